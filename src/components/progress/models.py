"""
Progress ledger models.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal
from uuid import UUID

MemberStatus = Literal["met_goal", "on_track", "at_risk"]

# Fraction of the goal at which a member counts as on track.
ON_TRACK_RATIO = 0.7

# Largest count change (or absolute count) one call may apply.
MAX_COUNT_CHANGE = 1000


@dataclass(frozen=True)
class ProgressKey:
    """Ledger partition: one member in one window of one group."""

    user_id: str
    group_id: str
    cycle_key: str


@dataclass(frozen=True)
class ProgressEvent:
    """
    One counted application.

    index is the 1-based ordinal among live events of the same key. A
    decrement reverses the highest-index live event; reversed events are kept
    for audit with reversed_at set.
    """

    id: UUID
    user_id: str
    group_id: str
    cycle_key: str
    index: int
    logged_at: datetime
    reversed_at: datetime | None = None

    @property
    def is_live(self) -> bool:
        return self.reversed_at is None


@dataclass(frozen=True)
class MemberProgress:
    """Derived count of a member for one window."""

    user_id: str
    goal: int
    count: int


@dataclass(frozen=True)
class ProgressDeltaOutput:
    """Ledger state after a delta was applied."""

    count: int
    max_index: int


@dataclass(frozen=True)
class LeaderboardEntry:
    """Ranked member progress for display."""

    rank: int
    user_id: str
    count: int
    goal: int
    progress_percent: int
    status: MemberStatus
    is_current_user: bool = False
