"""
Cycle window models.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from src.components.calendar import APP_TIME_ZONE, FRIDAY


class CycleKind(str, Enum):
    """Recurring goal cycle."""

    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"


class WindowLabel(str, Enum):
    """Display label of a resolved window."""

    DAY = "Day"
    WEEK = "Week"
    BIWEEKLY = "Biweekly"


LABELS: dict[CycleKind, WindowLabel] = {
    CycleKind.DAILY: WindowLabel.DAY,
    CycleKind.WEEKLY: WindowLabel.WEEK,
    CycleKind.BIWEEKLY: WindowLabel.BIWEEKLY,
}

CYCLE_DAYS: dict[CycleKind, int] = {
    CycleKind.DAILY: 1,
    CycleKind.WEEKLY: 7,
    CycleKind.BIWEEKLY: 14,
}


@dataclass(frozen=True)
class CycleConfig:
    """
    Goal cycle settings of a group.

    anchor_at is the group/goal creation instant. Biweekly parity is fixed
    relative to the anchor's week. A settings edit builds a new config and
    leaves already-resolved windows alone.
    """

    kind: CycleKind
    anchor_at: datetime
    start_day_of_week: int = FRIDAY  # 0 = Sunday; ignored for daily
    timezone: str = APP_TIME_ZONE


@dataclass(frozen=True)
class CycleWindow:
    """A resolved cycle window, [starts_at, ends_at) in UTC."""

    key: str
    label: WindowLabel
    starts_at: datetime
    ends_at: datetime
    timezone: str

    def contains(self, instant: datetime) -> bool:
        return self.starts_at <= instant < self.ends_at


@dataclass(frozen=True)
class Countdown:
    """Time left until a window closes (never negative)."""

    total_seconds: int
    days: int
    hours: int
    minutes: int
