"""Grouping of recap videos into Grand Prix weekends."""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from models.video import VideoItem, format_timestamp
from models.weekend import CalendarEntry, Weekend, UNKNOWN_WEEKEND
from services.session_classifier import SessionClassifier

logger = logging.getLogger(__name__)

# Common Grand Prix title patterns - order matters!
GRAND_PRIX_PATTERNS = [
    re.compile(r'(?P<year>\d{4})\s+(?P<location>[A-Za-z\s]+)\s+Grand Prix', re.IGNORECASE),  # 2025 Spanish Grand Prix
    re.compile(r'(?P<location>[A-Za-z\s]+)\s+Grand Prix.*(?P<year>\d{4})', re.IGNORECASE),    # Spanish Grand Prix ... 2025
    re.compile(r'(?P<year>\d{4})\s+(?P<location>[A-Za-z\s]+)\s+GP', re.IGNORECASE),           # 2025 Spanish GP
    re.compile(r'(?P<location>[A-Za-z\s]+)\s+GP.*(?P<year>\d{4})', re.IGNORECASE),            # Spanish GP ... 2025
]

# Location without a year; the configured season year is assumed
FALLBACK_PATTERN = re.compile(r'(?P<location>[A-Za-z\s]+)\s+(?:Grand Prix|GP)', re.IGNORECASE)

_LEADING_YEAR = re.compile(r'^(\d{4})\s+')
_TRAILING_GP = re.compile(r'\s+grand prix$')

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


def _normalize(name: str) -> str:
    return ' '.join(name.lower().split())


def _split_name(name: str) -> tuple:
    """Split a normalized weekend name into (year or None, location)."""
    year_match = _LEADING_YEAR.match(name)
    year = year_match.group(1) if year_match else None
    location = _LEADING_YEAR.sub('', name)
    location = _TRAILING_GP.sub('', location).strip()
    return year, location


class WeekendGrouper:
    """Assigns recap videos to Grand Prix weekends and orders them by session."""

    def __init__(
        self,
        classifier: SessionClassifier,
        target_year: int,
        canonical_names: Optional[Sequence[str]] = None,
        window_before_days: int = 1,
        window_after_days: int = 3,
    ):
        """Initialize weekend grouper.

        Args:
            classifier: Session classifier used for in-weekend ordering
            target_year: Season year assumed when a title names no year
            canonical_names: Known weekend names ("2025 Spanish Grand Prix")
                that extracted names are snapped to
            window_before_days: Days before a calendar start still counted
                as part of that weekend
            window_after_days: Days after a calendar start still counted
                as part of that weekend
        """
        self.classifier = classifier
        self.target_year = target_year
        self.canonical_names = list(canonical_names or [])
        self.window_before = timedelta(days=window_before_days)
        self.window_after = timedelta(days=window_after_days)

    # ----- name extraction -----

    def extract_name(self, title: str) -> str:
        """Derive the canonical weekend name from a video title.

        Returns:
            "{year} {location} Grand Prix", or UNKNOWN_WEEKEND when no
            Grand Prix is mentioned
        """
        for pattern in GRAND_PRIX_PATTERNS:
            match = pattern.search(title or '')
            if match:
                location = ' '.join(match.group('location').split())
                if location:
                    return self.resolve_canonical(f"{match.group('year')} {location} Grand Prix")

        match = FALLBACK_PATTERN.search(title or '')
        if match:
            location = ' '.join(match.group('location').split())
            if location:
                return self.resolve_canonical(f"{self.target_year} {location} Grand Prix")

        return UNKNOWN_WEEKEND

    def resolve_canonical(self, candidate: str) -> str:
        """Snap a candidate name to the closest known weekend name.

        Exact (case/whitespace-insensitive) matches win; otherwise locations
        are compared by containment in both directions, within the same year.
        """
        if not self.canonical_names:
            return candidate

        normalized = _normalize(candidate)
        for canonical in self.canonical_names:
            if _normalize(canonical) == normalized:
                return canonical

        year, location = _split_name(normalized)
        if not location:
            return candidate

        for canonical in self.canonical_names:
            canonical_year, canonical_location = _split_name(_normalize(canonical))
            if year and canonical_year and year != canonical_year:
                continue
            if not canonical_location:
                continue
            if (canonical_location == location
                    or location in canonical_location
                    or canonical_location in location):
                return canonical

        return candidate

    # ----- ordering -----

    def order_videos(self, videos: Iterable[VideoItem]) -> List[VideoItem]:
        """Sort videos by session running order, then by publish time ascending."""
        videos = list(videos)
        order = self.classifier.session_order(v.title for v in videos)

        def sort_key(video: VideoItem):
            rank = order.get(self.classifier.classify(video.title), 99)
            return rank, video.published or _FAR_FUTURE

        return sorted(videos, key=sort_key)

    # ----- name-extraction strategy -----

    def group_by_name(self, videos: Iterable[VideoItem]) -> List[Weekend]:
        """Group videos by the weekend name found in their titles.

        Videos naming no Grand Prix go to the UNKNOWN_WEEKEND bucket.

        Returns:
            Weekends ordered by latest video, most recent first
        """
        groups: Dict[str, Weekend] = {}
        seen: Dict[str, set] = {}

        for video in videos:
            name = self.extract_name(video.title)
            if name not in groups:
                groups[name] = Weekend(name=name)
                seen[name] = set()
            if video.video_id in seen[name]:
                continue
            seen[name].add(video.video_id)
            groups[name].videos.append(video)

        if UNKNOWN_WEEKEND in groups:
            logger.warning(
                f"{len(groups[UNKNOWN_WEEKEND].videos)} videos named no Grand Prix; "
                f"kept in '{UNKNOWN_WEEKEND}' for review"
            )

        weekends = list(groups.values())
        for weekend in weekends:
            weekend.videos = self.order_videos(weekend.videos)

        return sort_by_latest(weekends)

    def select_season(self, weekends: Iterable[Weekend]) -> List[Weekend]:
        """Keep weekends of the target year, plus the unknown bucket."""
        return [w for w in weekends if w.is_unknown or w.has_year(self.target_year)]

    # ----- calendar-window strategy -----

    def window_for(self, entry: CalendarEntry) -> tuple:
        """Inclusive (first_day, last_day) publish window for a calendar weekend."""
        return entry.start_day - self.window_before, entry.start_day + self.window_after

    def group_by_calendar(
        self, calendar: Sequence[CalendarEntry], videos: Iterable[VideoItem]
    ) -> List[Weekend]:
        """Assign videos to calendar weekends by publish date.

        Every calendar weekend appears exactly once, in calendar order, even
        with no videos. A video outside every window is dropped.
        """
        weekends: List[Weekend] = []
        windows = []
        names = set()
        for entry in calendar:
            name = entry.weekend_name(self.target_year)
            if name in names:
                logger.warning(f"Duplicate calendar weekend '{name}' ignored")
                continue
            names.add(name)
            weekends.append(Weekend(name=name, start_date=format_timestamp(entry.start_date)))
            windows.append(self.window_for(entry))

        unmatched = 0
        seen = set()
        for video in videos:
            if video.video_id in seen:
                continue
            seen.add(video.video_id)

            published = video.published
            if published is None:
                logger.debug(f"Video {video.video_id} has no publish date, skipping")
                unmatched += 1
                continue

            day = published.date()
            for weekend, (first_day, last_day) in zip(weekends, windows):
                if first_day <= day <= last_day:
                    weekend.videos.append(video)
                    break
            else:
                logger.debug(f"Video {video.video_id} ({day}) is outside every weekend window")
                unmatched += 1

        if unmatched:
            logger.info(f"{unmatched} videos fell outside every calendar weekend window")

        for weekend in weekends:
            weekend.videos = self.order_videos(weekend.videos)

        return weekends


def sort_by_latest(weekends: Iterable[Weekend]) -> List[Weekend]:
    """Order weekends by latest video date, most recent first; empty weekends last."""
    floor = datetime.min.replace(tzinfo=timezone.utc)
    return sorted(weekends, key=lambda w: w.latest_date or floor, reverse=True)
