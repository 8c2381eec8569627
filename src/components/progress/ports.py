"""
Progress ledger port definitions.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from .models import ProgressEvent, ProgressKey


class ProgressRepoPort(Protocol):
    """Append-only event log partitioned by ProgressKey."""

    def apply_delta(self, key: ProgressKey, delta: int, now: datetime) -> int:
        """
        Append delta live events, or reverse the -delta highest live events.

        Check and mutation are one atomic step with respect to every other
        writer of the key. Returns the new live count.

        Raises:
            InvalidStateError: If the count would drop below zero; nothing
                is changed.
        """
        ...

    def set_count(self, key: ProgressKey, target: int, now: datetime) -> int:
        """Move the live count to target (>= 0) in one atomic step."""
        ...

    def count(self, key: ProgressKey) -> int:
        """Number of live events (equals the highest live index)."""
        ...

    def list_events(
        self,
        user_id: str,
        group_id: str,
        include_reversed: bool = False,
    ) -> list[ProgressEvent]:
        """All events of a member in a group, most recent first."""
        ...

    def counts_for_window(self, group_id: str, cycle_key: str) -> dict[str, int]:
        """Live counts per user for one window."""
        ...
