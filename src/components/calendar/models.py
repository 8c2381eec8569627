"""
Zoned calendar models.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

# Default zone for groups created without an explicit one.
APP_TIME_ZONE = "America/New_York"

SUNDAY = 0
MONDAY = 1
TUESDAY = 2
WEDNESDAY = 3
THURSDAY = 4
FRIDAY = 5
SATURDAY = 6

DAY_NAMES: tuple[str, ...] = (
    "sunday",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
)


@dataclass(frozen=True)
class ZonedParts:
    """Wall-clock reading of an instant in a named zone."""

    year: int
    month: int
    day: int
    hour: int
    minute: int
    second: int

    @property
    def calendar_date(self) -> date:
        return date(self.year, self.month, self.day)
