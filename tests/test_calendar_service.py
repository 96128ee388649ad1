"""Tests for calendar parsing and the fetch schedule gate."""

from datetime import date, datetime, timezone

import pytest

from models.weekend import CalendarEntry
from services.calendar_service import (
    CalendarService,
    parse_calendar_entries,
    parse_ics_calendar,
    should_run,
    within_fetch_window,
)

ICS_TEXT = """BEGIN:VCALENDAR
VERSION:2.0
BEGIN:VEVENT
SUMMARY:F1: Practice 1 (Spanish Grand Prix)
DTSTART:20250530T113000Z
END:VEVENT
BEGIN:VEVENT
SUMMARY:F1: Race (Spanish Grand Prix)
DTSTART:20250601T130000Z
END:VEVENT
BEGIN:VEVENT
SUMMARY:F1: Race (Monaco Grand Prix)
DTSTART:20250525T130000Z
END:VEVENT
END:VCALENDAR
"""


def spanish():
    return CalendarEntry(
        "Spanish Grand Prix",
        datetime(2025, 5, 30, 11, 30, tzinfo=timezone.utc),
        [{'title': 'Race', 'publishedAt': '2025-06-01T13:00:00.000Z'}],
    )


class TestParseCalendarEntries:
    def test_start_is_earliest_time(self):
        entries = parse_calendar_entries([{
            'name': 'Spanish Grand Prix',
            'startDate': '2025-05-31T00:00:00Z',
            'sessions': [
                {'title': 'Practice 1', 'publishedAt': '2025-05-30T11:30:00Z'},
                {'title': 'Race', 'publishedAt': '2025-06-01T13:00:00Z'},
            ],
        }])
        assert entries[0].start_date == datetime(2025, 5, 30, 11, 30, tzinfo=timezone.utc)
        assert entries[0].end_day == date(2025, 6, 1)

    def test_string_sessions_take_start_date(self):
        entries = parse_calendar_entries([{
            'name': 'Monaco Grand Prix', 'startDate': '2025-05-23T11:30:00Z', 'sessions': ['Race'],
        }])
        assert entries[0].sessions == [{'title': 'Race', 'publishedAt': '2025-05-23T11:30:00.000Z'}]

    def test_entries_without_dates_skipped(self):
        assert parse_calendar_entries([{'name': 'TBC', 'sessions': []}]) == []

    def test_non_list_payload(self):
        assert parse_calendar_entries({'name': 'x'}) == []


class TestParseIcs:
    def test_groups_events_by_grand_prix(self):
        entries = parse_ics_calendar(ICS_TEXT)
        assert [e.name for e in entries] == ['Monaco Grand Prix', 'Spanish Grand Prix']
        assert entries[1].start_date == datetime(2025, 5, 30, 11, 30, tzinfo=timezone.utc)
        assert [s['title'] for s in entries[1].sessions] == ['Practice 1', 'Race']

    def test_empty_text(self):
        assert parse_ics_calendar('') == []


class TestCalendarService:
    def test_prefers_json_calendar(self, store):
        store.write_json('calendar2025.json', [{'name': 'Spanish Grand Prix', 'startDate': '2025-05-30T11:30:00Z'}])
        store.path('f1-calendar_2025.ics').write_text(ICS_TEXT, encoding='utf-8')
        entries = CalendarService(store).load(2025)
        assert [e.name for e in entries] == ['Spanish Grand Prix']

    def test_falls_back_to_ics(self, store):
        store.data_dir.mkdir(parents=True)
        store.path('f1-calendar_2025.ics').write_text(ICS_TEXT, encoding='utf-8')
        assert len(CalendarService(store).load(2025)) == 2

    def test_no_calendar(self, store):
        assert CalendarService(store).load(2025) == []

    def test_validate_ics_files(self, store):
        store.data_dir.mkdir(parents=True)
        store.path('f1-calendar_2025.ics').write_text(ICS_TEXT, encoding='utf-8')
        assert CalendarService(store).validate_ics_files() == 2

    def test_validate_rejects_empty_file(self, store):
        store.data_dir.mkdir(parents=True)
        store.path('f1-calendar_2026.ics').write_text('BEGIN:VCALENDAR\nEND:VCALENDAR\n', encoding='utf-8')
        with pytest.raises(ValueError):
            CalendarService(store).validate_ics_files()

    def test_validate_without_files_is_noop(self, store):
        assert CalendarService(store).validate_ics_files() == 0


class TestShouldRun:
    """Test the schedule gate"""

    @pytest.mark.parametrize("today,expected", [
        (date(2025, 5, 28), False),
        (date(2025, 5, 29), True),
        (date(2025, 5, 31), True),
        (date(2025, 6, 2), True),
        (date(2025, 6, 3), False),
    ])
    def test_window(self, today, expected):
        assert within_fetch_window(today, spanish()) is expected

    def test_runs_during_weekend(self):
        decision = should_run([spanish()], date(2025, 5, 31))
        assert decision.run
        assert decision.active.name == 'Spanish Grand Prix'

    def test_off_week_reports_next_weekend(self):
        decision = should_run([spanish()], date(2025, 5, 20))
        assert not decision.run
        assert 'Spanish Grand Prix' in decision.reason
        assert decision.output_lines()[0] == 'run=false'

    @pytest.mark.parametrize("flags", [{'force_run': True}, {'manual_run': True}])
    def test_overrides(self, flags):
        decision = should_run([], date(2025, 1, 1), **flags)
        assert decision.run
        assert decision.output_lines()[0] == 'run=true'
