"""Title-based session type classification for F1 recap videos."""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

from models.weekend import SessionType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionRules:
    """Keyword aliases for each session rule, matched as lowercase substrings."""

    fp1: Tuple[str, ...] = ('fp1',)
    fp2: Tuple[str, ...] = ('fp2',)
    fp3: Tuple[str, ...] = ('fp3', 'practice 3', 'free practice 3')
    sprint: Tuple[str, ...] = ('sprint',)
    qualifying: Tuple[str, ...] = ('qualifying', 'quali')
    sprint_qualifying: Tuple[str, ...] = ()
    race: Tuple[str, ...] = ('race',)
    practice: Tuple[str, ...] = ('practice',)

    @classmethod
    def standard(cls) -> 'SessionRules':
        return cls()

    @classmethod
    def extended(cls) -> 'SessionRules':
        """Richer variant: spelled-out practice names, sprint shootout and bare 'grand prix' races."""
        return cls(
            fp1=('fp1', 'practice 1', 'free practice 1'),
            fp2=('fp2', 'practice 2', 'free practice 2'),
            sprint_qualifying=('shootout',),
            race=('race', 'grand prix'),
        )

    @classmethod
    def named(cls, name: str) -> 'SessionRules':
        if name == 'extended':
            return cls.extended()
        if name == 'standard':
            return cls.standard()
        raise ValueError(f"Unknown session rule set: {name}")


# Regular weekend running order: FP1 -> FP2 -> FP3 -> Qualifying -> Race
REGULAR_SESSION_ORDER: Dict[SessionType, int] = {
    SessionType.FP1: 0,
    SessionType.FP2: 1,
    SessionType.FP3: 2,
    SessionType.QUALIFYING: 3,
    SessionType.SPRINT_QUALIFYING: 4,
    SessionType.SPRINT: 5,
    SessionType.RACE_QUALIFYING: 6,
    SessionType.RACE: 7,
    SessionType.OTHER: 99,
}

# Sprint weekend: FP1 -> Sprint -> Sprint Quali -> Race Quali -> Race, FP2/FP3 after
SPRINT_SESSION_ORDER: Dict[SessionType, int] = {
    SessionType.FP1: 0,
    SessionType.SPRINT: 1,
    SessionType.SPRINT_QUALIFYING: 2,
    SessionType.RACE_QUALIFYING: 3,
    SessionType.QUALIFYING: 4,
    SessionType.RACE: 5,
    SessionType.FP2: 6,
    SessionType.FP3: 7,
    SessionType.OTHER: 99,
}


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    return any(keyword in text for keyword in keywords)


class SessionClassifier:
    """Maps a free-text video title to a SessionType.

    Case-insensitive substring matching over an ordered rule list; the first
    matching rule wins, so specific rules are tested before general ones.
    """

    def __init__(self, rules: Optional[SessionRules] = None):
        self.rules = rules or SessionRules.standard()

    def classify(self, title: str) -> SessionType:
        """Classify a video title.

        Args:
            title: Video title

        Returns:
            Session type, SessionType.OTHER when no rule matches
        """
        text = (title or '').lower()
        rules = self.rules

        has_quali = _contains_any(text, rules.qualifying)

        if _contains_any(text, rules.fp1):
            return SessionType.FP1
        if _contains_any(text, rules.fp2):
            return SessionType.FP2
        if _contains_any(text, rules.fp3):
            return SessionType.FP3
        if _contains_any(text, rules.sprint):
            if has_quali or _contains_any(text, rules.sprint_qualifying):
                return SessionType.SPRINT_QUALIFYING
            return SessionType.SPRINT
        if 'race' in text and has_quali:
            return SessionType.RACE_QUALIFYING
        if has_quali:
            return SessionType.QUALIFYING
        if _contains_any(text, rules.race) and not _contains_any(text, rules.practice):
            return SessionType.RACE

        return SessionType.OTHER

    def session_order(self, titles: Iterable[str]) -> Dict[SessionType, int]:
        """Pick the running-order table for a weekend from its video titles."""
        if any(self.classify(title) == SessionType.SPRINT for title in titles):
            return SPRINT_SESSION_ORDER
        return REGULAR_SESSION_ORDER
