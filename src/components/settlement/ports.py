"""
Settlement component port definitions.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from .models import SettlementResult


class SettlementStorePort(Protocol):
    """Persistence of settlement results and window leases."""

    def acquire_lease(
        self,
        group_id: str,
        cycle_key: str,
        holder: str,
        now_utc: datetime,
        ttl_seconds: int,
    ) -> bool:
        """
        Take the exclusive lease on a window.

        Returns False if another holder has an unexpired lease.
        """
        ...

    def release_lease(self, group_id: str, cycle_key: str, holder: str) -> None:
        """Drop the lease if holder still owns it."""
        ...

    def get_result(self, group_id: str, cycle_key: str) -> SettlementResult | None:
        """Get the stored result for a window."""
        ...

    def save_result(self, result: SettlementResult, replace_existing: bool = False) -> None:
        """
        Persist a result atomically.

        Raises:
            AlreadySettledError: If a result exists and replace_existing is False.
            StoreUnavailableError: On timeout or I/O failure (nothing written).
        """
        ...

    def list_results(self, group_id: str) -> list[SettlementResult]:
        """All results of a group, most recently completed first."""
        ...
