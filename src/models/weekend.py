"""Grand Prix weekend, calendar and archive artifact models."""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from models.video import VideoItem, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

UNKNOWN_WEEKEND = 'Unknown Grand Prix'

YEAR_PATTERN = re.compile(r'\b\d{4}\b')


class SessionType(Enum):
    """Category of on-track activity a video depicts."""
    FP1 = "fp1"
    FP2 = "fp2"
    FP3 = "fp3"
    QUALIFYING = "qualifying"
    SPRINT = "sprint"
    SPRINT_QUALIFYING = "sprint-qualifying"
    RACE = "race"
    RACE_QUALIFYING = "race-qualifying"
    OTHER = "other"


@dataclass
class Weekend:
    """A named Grand Prix weekend and its session videos.

    ``latest_date`` is always derived from ``videos``; a persisted value is never trusted.
    """

    name: str
    videos: List[VideoItem] = field(default_factory=list)
    start_date: Optional[str] = None

    @property
    def latest_date(self) -> Optional[datetime]:
        dates = [v.published for v in self.videos if v.published is not None]
        return max(dates) if dates else None

    @property
    def video_ids(self) -> List[str]:
        return [v.video_id for v in self.videos]

    @property
    def is_unknown(self) -> bool:
        return self.name == UNKNOWN_WEEKEND

    def has_year(self, year: int) -> bool:
        return str(year) in YEAR_PATTERN.findall(self.name)

    def to_dict(self) -> dict:
        latest = self.latest_date
        data = {
            'name': self.name,
            'videos': [v.to_dict() for v in self.videos],
            'latestDate': format_timestamp(latest) if latest else None,
        }
        if self.start_date:
            data['startDate'] = self.start_date
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Optional['Weekend']:
        """Create weekend from a persisted entry, dropping malformed or duplicate videos."""
        if not isinstance(data, dict) or not data.get('name'):
            return None
        videos: List[VideoItem] = []
        seen = set()
        for raw in data.get('videos') or []:
            video = VideoItem.from_dict(raw)
            if video and video.video_id not in seen:
                seen.add(video.video_id)
                videos.append(video)
        return cls(name=str(data['name']), videos=videos, start_date=data.get('startDate'))


def with_season_year(name: str, year: int) -> str:
    if YEAR_PATTERN.search(name):
        return name
    return f"{year} {name}"


def normalize_weekend_payload(payload: Any) -> List[dict]:
    """Reduce any accepted archive payload shape to a list of raw weekend dicts.

    Accepted shapes:
        - ``[weekend, ...]`` (bare list, used by hand-written override files)
        - ``{"grandPrixWeekends": [weekend, ...], ...}`` (artifact root)
        - ``None`` (missing file)

    Raises:
        ValueError: For any other shape
    """
    if payload is None:
        return []
    if isinstance(payload, list):
        weekends = payload
    elif isinstance(payload, dict):
        weekends = payload.get('grandPrixWeekends') or []
        if not isinstance(weekends, list):
            raise ValueError("grandPrixWeekends must be a list")
    else:
        raise ValueError(f"Unsupported archive payload type: {type(payload).__name__}")
    return [w for w in weekends if isinstance(w, dict)]


@dataclass
class ArchiveArtifact:
    """Root of a persisted video artifact (current feed or full archive)."""

    grand_prix_weekends: List[Weekend] = field(default_factory=list)
    last_updated: Optional[str] = None
    year: Optional[str] = None

    @property
    def total_videos(self) -> int:
        return sum(len(w.videos) for w in self.grand_prix_weekends)

    def to_dict(self) -> dict:
        data = {
            'lastUpdated': self.last_updated,
            'totalVideos': self.total_videos,
            'grandPrixWeekends': [w.to_dict() for w in self.grand_prix_weekends],
        }
        if self.year is not None:
            data['year'] = self.year
        return data

    @classmethod
    def from_payload(cls, payload: Any) -> 'ArchiveArtifact':
        """Build an artifact from parsed JSON of either accepted shape.

        Weekends with duplicate names are collapsed, keeping the first occurrence.
        """
        weekends: List[Weekend] = []
        seen_names = set()
        for raw in normalize_weekend_payload(payload):
            weekend = Weekend.from_dict(raw)
            if weekend is None:
                continue
            if weekend.name in seen_names:
                logger.warning(f"Duplicate weekend '{weekend.name}' in archive, keeping first")
                continue
            seen_names.add(weekend.name)
            weekends.append(weekend)

        last_updated = payload.get('lastUpdated') if isinstance(payload, dict) else None
        year = payload.get('year') if isinstance(payload, dict) else None
        return cls(
            grand_prix_weekends=weekends,
            last_updated=last_updated,
            year=str(year) if year is not None else None,
        )


@dataclass
class CalendarEntry:
    """One Grand Prix on the season calendar."""

    name: str
    start_date: datetime
    sessions: List[Dict[str, str]] = field(default_factory=list)

    @property
    def end_date(self) -> datetime:
        """Latest known instant of the weekend (last session, or the start)."""
        times = [self.start_date]
        for session in self.sessions:
            parsed = parse_timestamp(session.get('publishedAt'))
            if parsed:
                times.append(parsed)
        return max(times)

    @property
    def start_day(self) -> date:
        return self.start_date.date()

    @property
    def end_day(self) -> date:
        return self.end_date.date()

    def weekend_name(self, year: int) -> str:
        """Canonical weekend name, with the season year prefixed when missing."""
        return with_season_year(self.name, year)

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'startDate': format_timestamp(self.start_date),
            'sessions': list(self.sessions),
        }
