"""De-duplication and merging of weekend groups across fetch runs."""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from models.video import VideoItem, parse_timestamp
from models.weekend import Weekend
from services.weekend_grouper import WeekendGrouper, sort_by_latest

logger = logging.getLogger(__name__)


def dedupe_videos(videos: Iterable[VideoItem]) -> List[VideoItem]:
    """Drop repeated video ids, keeping the first occurrence and input order."""
    unique: Dict[str, VideoItem] = {}
    for video in videos:
        if video.video_id and video.video_id not in unique:
            unique[video.video_id] = video
    return list(unique.values())


class ArchiveMerger:
    """Combines freshly grouped weekends with previously persisted ones."""

    def __init__(self, grouper: WeekendGrouper):
        self.grouper = grouper

    def merge_archives(
        self, existing: Sequence[Weekend], incoming: Sequence[Weekend]
    ) -> List[Weekend]:
        """Accumulate weekends across runs.

        Weekends are keyed by name. For a shared name the video lists are
        unioned by videoId, existing videos first, and re-sorted into
        session order.

        Returns:
            Merged weekends, most recent latest video first
        """
        merged: Dict[str, Weekend] = {}
        seen: Dict[str, set] = {}

        for weekend in list(existing) + list(incoming):
            if not weekend or not weekend.name:
                continue
            base = merged.get(weekend.name)
            if base is None:
                base = Weekend(name=weekend.name, start_date=weekend.start_date)
                merged[weekend.name] = base
                seen[weekend.name] = set()
            elif not base.start_date and weekend.start_date:
                base.start_date = weekend.start_date

            for video in weekend.videos:
                if video.video_id and video.video_id not in seen[weekend.name]:
                    seen[weekend.name].add(video.video_id)
                    base.videos.append(video)

        for weekend in merged.values():
            weekend.videos = self.grouper.order_videos(weekend.videos)

        return sort_by_latest(merged.values())

    def merge_preserved_groups(
        self,
        fetched: Sequence[Weekend],
        preserved: Sequence[Weekend],
        prefer_preserved: bool = False,
    ) -> List[Weekend]:
        """Overlay preserved weekends onto freshly fetched ones, whole weekend at a time.

        Per weekend name:
            - prefer_preserved and the preserved weekend has videos: preserved
              replaces the fetched weekend outright
            - otherwise the fetched weekend is used if it has videos
            - otherwise the preserved weekend fills the gap

        Fetched order is kept; preserved-only weekends follow, oldest first.
        """
        if not preserved:
            return list(fetched)

        preserved_by_name: Dict[str, Weekend] = {}
        for weekend in preserved:
            if weekend and weekend.name and weekend.name not in preserved_by_name:
                preserved_by_name[weekend.name] = weekend

        result: List[Weekend] = []
        used = set()
        for weekend in fetched:
            choice = self._choose(weekend, preserved_by_name.get(weekend.name), prefer_preserved)
            result.append(choice)
            used.add(weekend.name)

        floor = datetime.min.replace(tzinfo=timezone.utc)
        extras = [w for name, w in preserved_by_name.items() if name not in used]
        extras.sort(key=lambda w: w.latest_date or parse_timestamp(w.start_date) or floor)
        for weekend in extras:
            result.append(self._copy(weekend))

        return result

    def _choose(
        self, fetched: Weekend, preserved: Optional[Weekend], prefer_preserved: bool
    ) -> Weekend:
        if preserved is None:
            return fetched
        if prefer_preserved and preserved.videos:
            logger.debug(f"Keeping preserved data for {preserved.name} ({len(preserved.videos)} videos)")
            return self._copy(preserved, start_date=fetched.start_date)
        if fetched.videos:
            return fetched
        if preserved.videos:
            return self._copy(preserved, start_date=fetched.start_date)
        return fetched

    def _copy(self, weekend: Weekend, start_date: Optional[str] = None) -> Weekend:
        return Weekend(
            name=weekend.name,
            videos=self.grouper.order_videos(dedupe_videos(weekend.videos)),
            start_date=start_date or weekend.start_date,
        )
