"""Season calendar loading, ICS parsing and the fetch schedule gate."""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, List, Optional

from models.video import format_timestamp, parse_timestamp
from models.weekend import CalendarEntry
from services.artifact_store import ArtifactStore

logger = logging.getLogger(__name__)

ICS_DATE = re.compile(r'^(\d{4})(\d{2})(\d{2})T(\d{2})(\d{2})(\d{2})Z$')
ICS_SESSION = re.compile(r'F1:\s*(.+?)\s*\(', re.IGNORECASE)
ICS_GRAND_PRIX = re.compile(r'\((.+)\)')


def parse_calendar_entries(payload: Any) -> List[CalendarEntry]:
    """Build calendar entries from calendar{year}.json content.

    Each entry is ``{name, startDate, sessions}`` where a session is either
    ``{title, publishedAt}`` or a bare title string. The weekend start is the
    earliest of startDate and all session times; entries with no usable time
    are skipped.
    """
    if not isinstance(payload, list):
        logger.warning("Calendar payload is not a list, ignoring")
        return []

    entries = []
    for raw in payload:
        if not isinstance(raw, dict):
            continue
        start = parse_timestamp(raw.get('startDate'))

        sessions = []
        for session in raw.get('sessions') or []:
            if isinstance(session, str):
                sessions.append({
                    'title': session,
                    'publishedAt': format_timestamp(start) if start else '',
                })
            elif isinstance(session, dict):
                sessions.append({
                    'title': session.get('title') or 'Session',
                    'publishedAt': session.get('publishedAt') or '',
                })

        times = [t for t in [start] + [parse_timestamp(s['publishedAt']) for s in sessions] if t]
        if not times:
            logger.debug(f"Calendar entry {raw.get('name')!r} has no usable dates, skipping")
            continue

        entries.append(CalendarEntry(
            name=raw.get('name') or 'Grand Prix',
            start_date=min(times),
            sessions=sessions,
        ))

    return entries


def _parse_ics_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    match = ICS_DATE.match(value)
    if not match:
        return None
    try:
        return datetime(*(int(part) for part in match.groups()), tzinfo=timezone.utc)
    except ValueError:
        return None


def _ics_value(block: str, key: str) -> Optional[str]:
    match = re.search(rf'{key}:([^\n\r]+)', block)
    return match.group(1).strip() if match else None


def parse_ics_calendar(text: str) -> List[CalendarEntry]:
    """Parse an F1 ICS feed into weekends, sorted by start.

    Events look like ``SUMMARY:F1: Practice 1 (Spanish Grand Prix)`` with a
    UTC ``DTSTART:20250530T113000Z``; events are grouped by the parenthesised
    Grand Prix name.
    """
    if not text:
        return []

    weekends = {}
    for block in text.split('BEGIN:VEVENT')[1:]:
        summary = _ics_value(block, 'SUMMARY')
        starts_at = _parse_ics_date(_ics_value(block, 'DTSTART'))
        if not summary or not starts_at:
            continue

        session_match = ICS_SESSION.search(summary)
        gp_match = ICS_GRAND_PRIX.search(summary)
        session_title = session_match.group(1).strip() if session_match else 'Session'
        gp_name = gp_match.group(1).strip() if gp_match else 'Grand Prix'

        entry = weekends.get(gp_name)
        if entry is None:
            entry = CalendarEntry(name=gp_name, start_date=starts_at)
            weekends[gp_name] = entry
        entry.sessions.append({'title': session_title, 'publishedAt': format_timestamp(starts_at)})
        if starts_at < entry.start_date:
            entry.start_date = starts_at

    return sorted(weekends.values(), key=lambda e: e.start_date)


@dataclass
class RunDecision:
    """Outcome of the schedule gate."""

    run: bool
    reason: str
    active: Optional[CalendarEntry] = None
    upcoming: Optional[CalendarEntry] = None

    def output_lines(self) -> List[str]:
        return [f"run={'true' if self.run else 'false'}", f"reason={self.reason}"]


class CalendarService:
    """Loads the season calendar from the data directory."""

    def __init__(self, store: ArtifactStore):
        self.store = store

    def load(self, year: int) -> List[CalendarEntry]:
        """Calendar for a season: calendar{year}.json, else matching ICS feeds."""
        payload = self.store.read_json(f'calendar{year}.json')
        if payload is not None:
            entries = parse_calendar_entries(payload)
            logger.info(f"Loaded {len(entries)} weekends from calendar{year}.json")
            return entries

        for ics_path in self.ics_files():
            if str(year) not in ics_path.name:
                continue
            entries = parse_ics_calendar(ics_path.read_text(encoding='utf-8'))
            if entries:
                logger.info(f"Loaded {len(entries)} weekends from {ics_path.name}")
                return entries

        logger.warning(f"No calendar found for {year}")
        return []

    def ics_files(self) -> list:
        if not self.store.data_dir.is_dir():
            return []
        return sorted(self.store.data_dir.glob('f1-calendar_*.ics'))

    def validate_ics_files(self) -> int:
        """Parse every ICS feed in the data directory.

        Returns:
            Total weekends parsed across all files (0 when there are none)

        Raises:
            ValueError: If a file yields no weekends
        """
        files = self.ics_files()
        if not files:
            logger.info("No ICS files found; skipping calendar validation.")
            return 0

        total = 0
        for ics_path in files:
            weekends = parse_ics_calendar(ics_path.read_text(encoding='utf-8'))
            if not weekends:
                raise ValueError(f"No weekends parsed from {ics_path.name}")
            logger.info(f"{ics_path.name}: {len(weekends)} weekends")
            total += len(weekends)

        logger.info(f"Total weekends parsed: {total}")
        return total


def within_fetch_window(today: date, entry: CalendarEntry) -> bool:
    """True from the day before a weekend starts through the day after it ends."""
    return entry.start_day - timedelta(days=1) <= today <= entry.end_day + timedelta(days=1)


def should_run(
    calendar: List[CalendarEntry],
    today: date,
    force_run: bool = False,
    manual_run: bool = False,
) -> RunDecision:
    """Decide whether the scheduled fetch should run today."""
    upcoming = next(
        (e for e in sorted(calendar, key=lambda e: e.start_day) if e.start_day >= today),
        None,
    )

    if manual_run:
        return RunDecision(True, 'manual dispatch', upcoming=upcoming)
    if force_run:
        return RunDecision(True, 'FORCE_RUN=true', upcoming=upcoming)

    active = next((e for e in calendar if within_fetch_window(today, e)), None)
    if active:
        return RunDecision(True, f"within window for {active.name}", active=active, upcoming=upcoming)

    if upcoming:
        reason = f"off-week; next weekend {upcoming.name} starts {format_timestamp(upcoming.start_date)}"
    else:
        reason = 'off-week'
    return RunDecision(False, reason, upcoming=upcoming)
