"""
Progress ledger - Append-only application counts per member and window.

Key behaviors:
- increment appends one event with index = count + 1
- decrement reverses exactly the highest-index live event
- set_absolute and record_delta add or reverse one event per application
- The repo applies each change as one atomic step, so a rejected or failed
  change leaves no partial state; the live indices of a key are always
  exactly 1..N
- Changes are capped at MAX_COUNT_CHANGE applications per call
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from src.core.errors import InvalidInputError
from src.core.locks import KeyedLocks
from src.core.ports.time import ClockPort

from .models import (
    MAX_COUNT_CHANGE,
    ON_TRACK_RATIO,
    LeaderboardEntry,
    MemberProgress,
    MemberStatus,
    ProgressDeltaOutput,
    ProgressEvent,
    ProgressKey,
)
from .ports import ProgressRepoPort

logger = logging.getLogger(__name__)


# --- Pure Functions ---


def classify_member(count: int, goal: int) -> MemberStatus:
    """met_goal at or above goal, on_track from 70% of goal, else at_risk."""
    if count >= goal:
        return "met_goal"
    if goal > 0 and count / goal >= ON_TRACK_RATIO:
        return "on_track"
    return "at_risk"


def build_leaderboard(
    progress: Iterable[MemberProgress],
    current_user_id: str | None = None,
) -> list[LeaderboardEntry]:
    """Rank members by count (desc), ties broken by user id."""
    ranked = sorted(progress, key=lambda p: (-p.count, p.user_id))
    return [
        LeaderboardEntry(
            rank=position + 1,
            user_id=item.user_id,
            count=item.count,
            goal=item.goal,
            progress_percent=round(item.count * 100 / item.goal) if item.goal > 0 else 100,
            status=classify_member(item.count, item.goal),
            is_current_user=item.user_id == current_user_id,
        )
        for position, item in enumerate(ranked)
    ]


# --- Service ---


class ProgressLedger:
    """Progress ledger service over a ProgressRepoPort."""

    def __init__(
        self,
        repo: ProgressRepoPort,
        clock: ClockPort,
        locks: KeyedLocks | None = None,
    ) -> None:
        self._repo = repo
        self._clock = clock
        self._locks = locks or KeyedLocks()

    # --- Mutations ---

    def _check_size(self, name: str, value: int) -> None:
        if abs(value) > MAX_COUNT_CHANGE:
            raise InvalidInputError(
                f"{name} must be within {MAX_COUNT_CHANGE} applications, got {value}"
            )

    def increment(self, user_id: str, group_id: str, cycle_key: str) -> int:
        key = ProgressKey(user_id, group_id, cycle_key)
        with self._locks.hold(key):
            count = self._repo.apply_delta(key, 1, self._clock.now_utc())
        logger.debug(f"Progress +1 {user_id}@{group_id}/{cycle_key} -> {count}")
        return count

    def decrement(self, user_id: str, group_id: str, cycle_key: str) -> int:
        """
        Reverse the most recent application.

        Raises:
            InvalidStateError: If the count is already zero.
        """
        key = ProgressKey(user_id, group_id, cycle_key)
        with self._locks.hold(key):
            count = self._repo.apply_delta(key, -1, self._clock.now_utc())
        logger.debug(f"Progress -1 {user_id}@{group_id}/{cycle_key} -> {count}")
        return count

    def set_absolute(self, user_id: str, group_id: str, cycle_key: str, target: int) -> int:
        """Move the count to target (clamped to >= 0), one event per application."""
        target = max(0, target)
        self._check_size("Count", target)
        key = ProgressKey(user_id, group_id, cycle_key)
        with self._locks.hold(key):
            count = self._repo.set_count(key, target, self._clock.now_utc())
        logger.info(f"Progress set {user_id}@{group_id}/{cycle_key} -> {count}")
        return count

    def record_delta(
        self,
        user_id: str,
        group_id: str,
        cycle_key: str,
        delta: int,
    ) -> ProgressDeltaOutput:
        """
        Apply a signed delta.

        The whole delta is applied or nothing is: a negative delta larger
        than the current count is rejected before any event is reversed.

        Raises:
            InvalidStateError: If the delta would take the count below zero.
            InvalidInputError: If the delta exceeds MAX_COUNT_CHANGE.
        """
        self._check_size("Delta", delta)
        key = ProgressKey(user_id, group_id, cycle_key)
        with self._locks.hold(key):
            count = self._repo.apply_delta(key, delta, self._clock.now_utc())
        if delta:
            logger.info(f"Progress {delta:+d} {user_id}@{group_id}/{cycle_key} -> {count}")
        return ProgressDeltaOutput(count=count, max_index=count)

    # --- Queries ---

    def count_for(self, user_id: str, group_id: str, cycle_key: str) -> int:
        return self._repo.count(ProgressKey(user_id, group_id, cycle_key))

    def list_events(
        self,
        user_id: str,
        group_id: str,
        include_reversed: bool = False,
    ) -> list[ProgressEvent]:
        """Audit trail of a member in a group, most recent first."""
        return self._repo.list_events(user_id, group_id, include_reversed)

    def member_progress(
        self,
        group_id: str,
        cycle_key: str,
        goals: Mapping[str, int],
    ) -> list[MemberProgress]:
        """
        Build settlement input for a window.

        Args:
            goals: Goal per member id; members without events count as 0
        """
        for user_id, goal in goals.items():
            if goal < 0:
                raise InvalidInputError(f"Goal for {user_id} must be >= 0, got {goal}")
        counts = self._repo.counts_for_window(group_id, cycle_key)
        return [
            MemberProgress(user_id=user_id, goal=goal, count=counts.get(user_id, 0))
            for user_id, goal in goals.items()
        ]

    def leaderboard(
        self,
        group_id: str,
        cycle_key: str,
        goals: Mapping[str, int],
        current_user_id: str | None = None,
    ) -> list[LeaderboardEntry]:
        return build_leaderboard(self.member_progress(group_id, cycle_key, goals), current_user_id)
