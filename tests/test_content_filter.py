"""Tests for the recap content filter."""

import pytest

from conftest import make_video
from services.content_filter import ContentFilter, RecapKeywords


class TestIsRecap:
    """Test ContentFilter.is_recap() decisions"""

    @pytest.mark.parametrize("title", [
        "Race Highlights | 2025 Spanish Grand Prix",
        "FP1 Highlights | 2025 Spanish Grand Prix",
        "Qualifying Highlights | 2025 Monaco Grand Prix",
        "Sprint Highlights | 2025 Miami Grand Prix",
    ])
    def test_accepts_session_recaps(self, content_filter, title):
        assert content_filter.is_recap(make_video('v1', title))

    @pytest.mark.parametrize("title", [
        "F2 Feature Race Highlights | 2025 Spanish Grand Prix",
        "Drivers React After Qualifying | 2025 Spanish Grand Prix",
        "Race Preview | 2025 Spanish Grand Prix",
        "Team Radio Highlights | 2025 Spanish Grand Prix",
        "Post-Race Show | 2025 Spanish Grand Prix",
    ])
    def test_rejects_excluded_titles(self, content_filter, title):
        assert not content_filter.is_recap(make_video('v1', title))

    def test_exclusion_beats_include(self, content_filter):
        video = make_video('v1', "F2 Race Highlights | 2025 Spanish Grand Prix")
        assert content_filter.rejection_reason(video) == "excluded keyword 'f2'"

    def test_requires_session_type(self, content_filter):
        video = make_video('v1', "Highlights | 2025 Spanish Grand Prix")
        assert content_filter.rejection_reason(video) == "no session type"

    def test_requires_include_keyword(self, content_filter):
        video = make_video('v1', "Race Start | 2025 Spanish Grand Prix", description='')
        assert content_filter.rejection_reason(video) == "no include keyword"

    def test_requires_f1_context(self, content_filter):
        video = make_video('v1', "Race Highlights", description='Sunday at the track')
        assert content_filter.rejection_reason(video) == "no F1 context"

    def test_include_and_context_read_description(self, content_filter):
        """Include keyword and F1 context may both come from the description"""
        video = make_video('v1', "Race | Barcelona", description='Extended highlights from Formula 1')
        assert content_filter.is_recap(video)


class TestDescriptionExclusions:
    """Test exclude_on_description toggle"""

    def test_description_exclusion_on_by_default(self, content_filter):
        video = make_video(
            'v1', "Race Highlights | 2025 Spanish Grand Prix",
            description='Formula 1 race. Watch the F2 support race next.',
        )
        assert not content_filter.is_recap(video)

    def test_title_only_exclusions(self, classifier):
        archive_filter = ContentFilter(classifier, exclude_on_description=False)
        video = make_video(
            'v1', "Race Highlights | 2025 Spanish Grand Prix",
            description='Formula 1 race. Watch the F2 support race next.',
        )
        assert archive_filter.is_recap(video)


class TestFilterVideos:
    """Test ContentFilter.filter_videos()"""

    def test_keeps_order_and_drops_rejects(self, content_filter):
        videos = [
            make_video('a', "Race Highlights | 2025 Spanish Grand Prix"),
            make_video('b', "Drivers React | 2025 Spanish Grand Prix"),
            make_video('c', "FP1 Highlights | 2025 Spanish Grand Prix"),
        ]
        assert [v.video_id for v in content_filter.filter_videos(videos)] == ['a', 'c']

    def test_empty_input(self, content_filter):
        assert content_filter.filter_videos([]) == []

    def test_custom_keywords(self, classifier):
        keywords = RecapKeywords(include=('recap',), exclude=('onboard',), f1_context=('f1',))
        custom = ContentFilter(classifier, keywords=keywords)
        assert custom.is_recap(make_video('a', "F1 Race Recap", description=''))
        assert not custom.is_recap(make_video('b', "F1 Race Highlights", description=''))
        assert not custom.is_recap(make_video('c', "F1 Race Recap onboard", description=''))
