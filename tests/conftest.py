"""Shared fixtures for the f1-recaps test suite."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from models.video import VideoItem
from services.archive_merger import ArchiveMerger
from services.artifact_store import ArtifactStore
from services.content_filter import ContentFilter
from services.session_classifier import SessionClassifier
from services.weekend_grouper import WeekendGrouper


def make_video(video_id, title, published_at='2025-06-01T12:00:00Z', description='Formula 1'):
    return VideoItem(
        video_id=video_id,
        title=title,
        published_at=published_at,
        description=description,
        thumbnail=f'https://i.ytimg.com/vi/{video_id}/hqdefault.jpg',
    )


def playlist_item(video_id, title, published_at='2025-06-01T12:00:00Z', description='Formula 1'):
    """Raw playlistItems.list item as returned by the YouTube API."""
    return {
        'snippet': {
            'title': title,
            'description': description,
            'thumbnails': {'high': {'url': f'https://i.ytimg.com/vi/{video_id}/hqdefault.jpg'}},
            'resourceId': {'videoId': video_id},
        },
        'contentDetails': {'videoId': video_id, 'videoPublishedAt': published_at},
    }


class FakeYouTube:
    """Stand-in for YouTubeService returning canned videos."""

    def __init__(self, uploads=None, search_results=None, lookup=None):
        self.uploads = list(uploads or [])
        self.search_results = search_results or {}
        self.lookup = lookup or {}
        self.queries = []
        self.lookup_batches = []

    def fetch_recent_uploads(self, channel_id, max_results=150):
        return self.uploads[:max_results]

    def search_all(self, channel_id, query, page_cap=5):
        self.queries.append(query)
        return list(self.search_results.get(query, []))

    def list_videos_by_ids(self, video_ids):
        batch = list(video_ids)
        self.lookup_batches.append(batch)
        return [self.lookup[video_id] for video_id in batch if video_id in self.lookup]

    def usage_summary(self):
        return {'apiCalls': 0, 'byEndpoint': []}


@pytest.fixture
def classifier():
    return SessionClassifier()


@pytest.fixture
def content_filter(classifier):
    return ContentFilter(classifier)


@pytest.fixture
def grouper(classifier):
    return WeekendGrouper(classifier, target_year=2025)


@pytest.fixture
def merger(grouper):
    return ArchiveMerger(grouper)


@pytest.fixture
def store(tmp_path):
    return ArtifactStore(str(tmp_path / 'data'))


@pytest.fixture
def config(tmp_path):
    """Minimal builder configuration writing into a temp data directory."""
    return {
        'youtube_api_key': 'test-key',
        'channel_id': 'UCB_qr75-ydFVKSF9Dmo6izg',
        'target_year': 2025,
        'latest_window': 3,
        'max_results': 150,
        'gp_page_cap': 1,
        'gp_delay_ms': 0,
        'missing_only': False,
        'prefer_manual': True,
        'session_rules': 'standard',
        'window_before_days': 1,
        'window_after_days': 3,
        'data_dir': str(tmp_path / 'data'),
        'standings_api_base': 'https://api.example.test/ergast/f1',
        'standings_max_retries': 1,
        'standings_retry_delay_ms': 0,
        'standings_timeout_seconds': 1.0,
    }
