"""Championship standings fetcher backed by the Jolpica (Ergast-compatible) API."""

import logging
import math
from datetime import datetime, timezone
from typing import Dict, List, Optional

import requests

from models.standings import (
    ConstructorStanding,
    DriverStanding,
    StandingsSnapshot,
    validate_payload_shape,
)
from models.video import format_timestamp
from utils.retry import retry_with_backoff, NetworkError, TemporaryServiceError

logger = logging.getLogger(__name__)

USER_AGENT = 'f1-recaps-standings-fetcher/1.0'


def to_number(value) -> float:
    """Coerce an API value to a number; blanks and junk become 0."""
    if value is None or value == '':
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return int(number) if number.is_integer() else number


def normalize_driver_standings(rows: List[Dict]) -> List[DriverStanding]:
    standings = []
    for entry in rows or []:
        driver = entry.get('Driver') or {}
        name = f"{driver.get('givenName', '')} {driver.get('familyName', '')}".strip()
        constructors = entry.get('Constructors') or [{}]
        standings.append(DriverStanding(
            position=to_number(entry.get('position')),
            driver_code=driver.get('code') or '',
            driver_name=name or driver.get('driverId') or 'Unknown Driver',
            constructor_name=constructors[0].get('name') or 'Unknown Team',
            points=to_number(entry.get('points')),
            wins=to_number(entry.get('wins')),
        ))
    return standings


def normalize_constructor_standings(rows: List[Dict]) -> List[ConstructorStanding]:
    return [
        ConstructorStanding(
            position=to_number(entry.get('position')),
            constructor_name=(entry.get('Constructor') or {}).get('name') or 'Unknown Team',
            points=to_number(entry.get('points')),
            wins=to_number(entry.get('wins')),
        )
        for entry in rows or []
    ]


def extract_standings_list(payload: Dict, key: str, default_season: str) -> Dict:
    """Pull the first standings list out of an MRData response.

    Returns:
        {"season": str, "round": str or None, "total": int, "rows": list}
    """
    data = (payload or {}).get('MRData') or {}
    table = data.get('StandingsTable') or {}
    lists = table.get('StandingsLists') or []
    first = lists[0] if lists else {}
    rows = first.get(key) or []

    return {
        'season': str(table.get('season') or default_season),
        'round': first.get('round') or table.get('round') or None,
        'total': int(to_number(data.get('total'))) if data.get('total') is not None else len(rows),
        'rows': rows if isinstance(rows, list) else [],
    }


def _all_zero(rows: List) -> bool:
    return all(row.points == 0 and row.wins == 0 for row in rows)


class StandingsService:
    """Fetches driver and constructor standings for a season."""

    def __init__(
        self,
        base_url: str,
        max_retries: int = 3,
        retry_delay_ms: int = 1500,
        timeout_seconds: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout_seconds
        self.session = session or requests.Session()
        self.session.headers.update({'User-Agent': USER_AGENT})

        self._get_json = retry_with_backoff(
            max_retries=max(0, max_retries - 1),
            base_delay=retry_delay_ms / 1000.0,
            max_delay=30.0,
            exceptions=(NetworkError, TemporaryServiceError),
        )(self._get_json_once)

    def _get_json_once(self, url: str) -> Dict:
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise NetworkError(f"Request to {url} failed: {e}")

        if response.status_code >= 500 or response.status_code == 429:
            raise TemporaryServiceError(f"{url} returned {response.status_code}")
        response.raise_for_status()
        return response.json()

    def fetch(self, season: str) -> StandingsSnapshot:
        """Fetch and normalize standings.

        A season with no results yet (``total`` of 0, or every row at zero
        points and wins) yields a snapshot with no rows and no round, which
        the site shows as "season not started".
        """
        driver_url = f"{self.base_url}/{season}/driverstandings.json"
        constructor_url = f"{self.base_url}/{season}/constructorstandings.json"
        logger.info(f"Fetching {season} driver standings from {driver_url}")
        logger.info(f"Fetching {season} constructor standings from {constructor_url}")

        drivers_raw = extract_standings_list(self._get_json(driver_url), 'DriverStandings', season)
        constructors_raw = extract_standings_list(
            self._get_json(constructor_url), 'ConstructorStandings', season
        )

        drivers = normalize_driver_standings(drivers_raw['rows'])
        constructors = normalize_constructor_standings(constructors_raw['rows'])

        started = (
            (drivers_raw['total'] > 0 or constructors_raw['total'] > 0)
            and not (_all_zero(drivers) and _all_zero(constructors))
        )
        if not started:
            drivers, constructors = [], []

        return StandingsSnapshot(
            season=drivers_raw['season'] or constructors_raw['season'] or season,
            round=(drivers_raw['round'] or constructors_raw['round']) if started else None,
            updated_at=format_timestamp(datetime.now(timezone.utc)),
            drivers=drivers,
            constructors=constructors,
        )


def default_snapshot(season: str) -> StandingsSnapshot:
    """Empty pre-season payload so the site always has a schema to read."""
    return StandingsSnapshot(season=season, updated_at=format_timestamp(datetime.now(timezone.utc)))


def checked_payload(snapshot: StandingsSnapshot) -> Dict:
    payload = snapshot.to_dict()
    validate_payload_shape(payload)
    return payload
