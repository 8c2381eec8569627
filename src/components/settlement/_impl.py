"""
In-memory settlement store for testing/dev.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from threading import Lock

from src.core.errors import AlreadySettledError

from .models import SettlementResult


class InMemorySettlementStore:
    """In-memory implementation of SettlementStorePort."""

    def __init__(self) -> None:
        self._results: dict[tuple[str, str], SettlementResult] = {}
        self._leases: dict[tuple[str, str], tuple[str, datetime]] = {}
        self._lock = Lock()

    def acquire_lease(
        self,
        group_id: str,
        cycle_key: str,
        holder: str,
        now_utc: datetime,
        ttl_seconds: int,
    ) -> bool:
        key = (group_id, cycle_key)
        with self._lock:
            current = self._leases.get(key)
            if current is not None:
                current_holder, expires_at = current
                if current_holder != holder and expires_at > now_utc:
                    return False
            self._leases[key] = (holder, now_utc + timedelta(seconds=ttl_seconds))
            return True

    def release_lease(self, group_id: str, cycle_key: str, holder: str) -> None:
        key = (group_id, cycle_key)
        with self._lock:
            current = self._leases.get(key)
            if current is not None and current[0] == holder:
                del self._leases[key]

    def get_result(self, group_id: str, cycle_key: str) -> SettlementResult | None:
        with self._lock:
            return self._results.get((group_id, cycle_key))

    def save_result(self, result: SettlementResult, replace_existing: bool = False) -> None:
        key = (result.group_id, result.cycle_key)
        with self._lock:
            existing = self._results.get(key)
            if existing is not None and not replace_existing:
                raise AlreadySettledError(existing)
            self._results[key] = result

    def list_results(self, group_id: str) -> list[SettlementResult]:
        with self._lock:
            results = [r for (gid, _), r in self._results.items() if gid == group_id]
        return sorted(
            results,
            key=lambda r: r.completed_at or datetime.min.replace(tzinfo=UTC),
            reverse=True,
        )
