"""Keyword filter that keeps only F1 session recap videos."""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from models.video import VideoItem
from models.weekend import SessionType
from services.session_classifier import SessionClassifier

logger = logging.getLogger(__name__)

INCLUDE_KEYWORDS = (
    'highlights', 'recap', 'session',
    'full race', 'full replay', 'full qualifying', 'extended highlights',
)

EXCLUDE_KEYWORDS = (
    # Other series
    'f2', 'formula 2', 'feature race', 'f3', 'formula 3', 'porsche', 'w series',
    'esports', 'indycar', 'nascar', 'wrc', 'dtm', 'motogp',
    # Shows, reactions and press
    'post-race show', 'post race show', 'live:', 'preview', 'analysis',
    'interview', 'press conference',
    'drivers react', 'driver react', 'react after', 'reaction', 'team radio',
    # Entertainment clips
    'top 10', 'best moments', 'radio rewinds', 'funniest',
    'kids', 'challenge', 'hot laps', 'simulator', 'sim', 'gaming',
)

F1_CONTEXT_KEYWORDS = ('grand prix', 'gp', 'formula 1', 'f1')


@dataclass(frozen=True)
class RecapKeywords:
    """Allow/deny lists for the recap filter, matched as lowercase substrings."""

    include: Tuple[str, ...] = INCLUDE_KEYWORDS
    exclude: Tuple[str, ...] = EXCLUDE_KEYWORDS
    f1_context: Tuple[str, ...] = F1_CONTEXT_KEYWORDS


class ContentFilter:
    """Decides whether a video is an in-scope F1 session recap.

    Exclusions are checked first and reject immediately. An accepted video
    must classify to a known session type, match an include keyword and
    carry F1 context, all three.
    """

    def __init__(
        self,
        classifier: SessionClassifier,
        keywords: Optional[RecapKeywords] = None,
        exclude_on_description: bool = True,
    ):
        """Initialize the filter.

        Args:
            classifier: Session classifier used for the session-type check
            keywords: Keyword lists; defaults to the built-in lists
            exclude_on_description: Also apply exclusions to the description.
                The season archive turns this off so descriptions that merely
                mention another series do not drop a genuine recap.
        """
        self.classifier = classifier
        self.keywords = keywords or RecapKeywords()
        self.exclude_on_description = exclude_on_description

    def rejection_reason(self, video: VideoItem) -> Optional[str]:
        """Explain why a video is not a recap.

        Returns:
            String describing why video was filtered, or None if it passes
        """
        title = video.title.lower()
        description = (video.description or '').lower()

        excluded_by = [keyword for keyword in self.keywords.exclude if keyword in title]
        if not excluded_by and self.exclude_on_description:
            excluded_by = [keyword for keyword in self.keywords.exclude if keyword in description]
        if excluded_by:
            return f"excluded keyword '{excluded_by[0]}'"

        if self.classifier.classify(video.title) == SessionType.OTHER:
            return "no session type"

        text = f"{title}\n{description}"
        if not any(keyword in text for keyword in self.keywords.include):
            return "no include keyword"
        if not any(keyword in text for keyword in self.keywords.f1_context):
            return "no F1 context"

        return None

    def is_recap(self, video: VideoItem) -> bool:
        return self.rejection_reason(video) is None

    def filter_videos(self, videos: List[VideoItem]) -> List[VideoItem]:
        """Keep recap videos, preserving input order."""
        kept = []
        for video in videos:
            reason = self.rejection_reason(video)
            if reason:
                logger.debug(f"Video {video.video_id} filtered: {reason}")
                continue
            kept.append(video)

        if len(kept) < len(videos):
            logger.info(f"Filtered out {len(videos) - len(kept)} videos that were not session recaps")
        return kept
