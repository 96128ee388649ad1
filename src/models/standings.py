"""Championship standings models."""

from dataclasses import dataclass, field
from typing import List, Optional

REQUIRED_KEYS = ('season', 'round', 'updatedAt', 'seasonStarted', 'source', 'drivers', 'constructors')


@dataclass
class DriverStanding:
    position: int
    driver_code: str
    driver_name: str
    constructor_name: str
    points: float
    wins: int

    def to_dict(self) -> dict:
        return {
            'position': self.position,
            'driverCode': self.driver_code,
            'driverName': self.driver_name,
            'constructorName': self.constructor_name,
            'points': self.points,
            'wins': self.wins,
        }


@dataclass
class ConstructorStanding:
    position: int
    constructor_name: str
    points: float
    wins: int

    def to_dict(self) -> dict:
        return {
            'position': self.position,
            'constructorName': self.constructor_name,
            'points': self.points,
            'wins': self.wins,
        }


@dataclass
class StandingsSnapshot:
    """Driver and constructor standings for one season, as written to standings{year}.json."""

    season: str
    updated_at: str
    round: Optional[str] = None
    source: str = 'jolpica'
    drivers: List[DriverStanding] = field(default_factory=list)
    constructors: List[ConstructorStanding] = field(default_factory=list)

    @property
    def season_started(self) -> bool:
        return bool(self.drivers or self.constructors)

    def to_dict(self) -> dict:
        return {
            'season': self.season,
            'round': self.round,
            'updatedAt': self.updated_at,
            'seasonStarted': self.season_started,
            'source': self.source,
            'drivers': [d.to_dict() for d in self.drivers],
            'constructors': [c.to_dict() for c in self.constructors],
        }


def validate_payload_shape(payload: dict) -> None:
    """Check a standings payload has every key the site reads.

    Raises:
        ValueError: If a key is missing or drivers/constructors are not lists
    """
    for key in REQUIRED_KEYS:
        if key not in payload:
            raise ValueError(f'Invalid standings payload: missing key "{key}"')
    if not isinstance(payload['drivers'], list) or not isinstance(payload['constructors'], list):
        raise ValueError("Invalid standings payload: drivers/constructors must be arrays")
