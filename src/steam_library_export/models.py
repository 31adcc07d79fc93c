"""
Data models for steam-library-export.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any


class Never(Enum):
    """Marker for a playtime or last-played value the scrape recorded as ``false``.

    Distinct from ``0`` and ``None``: a game with ``Never`` playtime was never
    launched, while ``0.0`` hours is a real (if small) measurement.
    """

    NEVER = "never"

    def __bool__(self) -> bool:
        return False

    def __str__(self) -> str:
        return "Never"


NEVER = Never.NEVER


class RecordState(str, Enum):
    """Processing state of one record within a run."""

    PENDING = "pending"
    SKIP_CHECK = "skip_check"
    SKIPPED = "skipped"
    FETCHING = "fetching"
    RENDERING = "rendering"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"


def _number_or_never(value: Any) -> float | Never:
    """Map the scraper's ``number | false`` convention onto ``float | NEVER``."""
    if value is False or value is None:
        return NEVER
    if isinstance(value, bool):
        # ``true`` has no meaning here
        return NEVER
    try:
        number = float(value)
    except (TypeError, ValueError):
        return NEVER
    # JSON allows Infinity and NaN, which no duration or timestamp can hold
    return number if math.isfinite(number) else NEVER


def _int_or_zero(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return 0


@dataclass(frozen=True)
class Record:
    """One game from the library scrape, before enrichment."""

    title: str
    external_id: int = 0
    playtime_hours: float | Never = NEVER
    last_played: int | Never = NEVER
    unlocked_count: int = 0
    total_count: int = 0

    @property
    def has_external_id(self) -> bool:
        return self.external_id > 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Record":
        """Create from a scrape entry (``name``, ``steamAppID``, ``playtime``, ...)."""
        title = data.get("name")
        if not isinstance(title, str) or not title.strip():
            raise ValueError("entry has no name")

        last_played = _number_or_never(data.get("lastPlayed"))
        if last_played is not NEVER:
            last_played = int(last_played)

        return cls(
            title=title,
            external_id=_int_or_zero(data.get("steamAppID")),
            playtime_hours=_number_or_never(data.get("playtime")),
            last_played=last_played,
            unlocked_count=_int_or_zero(data.get("myAchievements")),
            total_count=_int_or_zero(data.get("totalAchievements")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert back to the scrape entry shape."""
        return {
            "name": self.title,
            "steamAppID": self.external_id,
            "playtime": False if self.playtime_hours is NEVER else self.playtime_hours,
            "lastPlayed": False if self.last_played is NEVER else self.last_played,
            "myAchievements": self.unlocked_count,
            "totalAchievements": self.total_count,
        }
