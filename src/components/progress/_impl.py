"""
In-memory progress repository for testing/dev.

Each key is a small arena: an ordered list of live events where the list
position is the index, so each appended or reversed event is O(1).
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from threading import Lock
from uuid import uuid4

from src.core.errors import InvalidStateError

from .models import ProgressEvent, ProgressKey


class InMemoryProgressRepo:
    """In-memory implementation of ProgressRepoPort."""

    def __init__(self) -> None:
        self._live: dict[ProgressKey, list[ProgressEvent]] = {}
        self._reversed: dict[ProgressKey, list[ProgressEvent]] = {}
        self._lock = Lock()

    def apply_delta(self, key: ProgressKey, delta: int, now: datetime) -> int:
        with self._lock:
            return self._apply(key, delta, now)

    def set_count(self, key: ProgressKey, target: int, now: datetime) -> int:
        with self._lock:
            return self._apply(key, target - len(self._live.get(key, ())), now)

    def _apply(self, key: ProgressKey, delta: int, now: datetime) -> int:
        log = self._live.setdefault(key, [])
        if len(log) + delta < 0:
            raise InvalidStateError(
                f"Cannot apply delta {delta} to count {len(log)} "
                f"for {key.user_id} in {key.cycle_key}",
                count=len(log),
            )
        for _ in range(delta):
            log.append(
                ProgressEvent(
                    id=uuid4(),
                    user_id=key.user_id,
                    group_id=key.group_id,
                    cycle_key=key.cycle_key,
                    index=len(log) + 1,
                    logged_at=now,
                )
            )
        reversed_log = self._reversed.setdefault(key, [])
        for _ in range(-delta):
            reversed_log.append(replace(log.pop(), reversed_at=now))
        return len(log)

    def count(self, key: ProgressKey) -> int:
        with self._lock:
            return len(self._live.get(key, ()))

    def list_events(
        self,
        user_id: str,
        group_id: str,
        include_reversed: bool = False,
    ) -> list[ProgressEvent]:
        with self._lock:
            events: list[ProgressEvent] = []
            for key, log in self._live.items():
                if key.user_id == user_id and key.group_id == group_id:
                    events.extend(log)
            if include_reversed:
                for key, log in self._reversed.items():
                    if key.user_id == user_id and key.group_id == group_id:
                        events.extend(log)
        return sorted(events, key=lambda e: (e.logged_at, e.index), reverse=True)

    def counts_for_window(self, group_id: str, cycle_key: str) -> dict[str, int]:
        with self._lock:
            return {
                key.user_id: len(log)
                for key, log in self._live.items()
                if key.group_id == group_id and key.cycle_key == cycle_key and log
            }
