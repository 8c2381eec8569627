"""
SQLite adapters for the progress ledger and settlement store.

Each mutation runs in its own BEGIN IMMEDIATE transaction, which takes the
database write lock up front; read-then-write sequences (a count check
with every event of one delta, the settled check, the lease check) are
therefore atomic across processes.
Connections use a bounded busy timeout; lock timeouts and I/O failures are
rolled back and surfaced as StoreUnavailableError.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID, uuid4

from src.components.progress.models import ProgressEvent, ProgressKey
from src.components.settlement.models import SettlementBreakdown, SettlementResult
from src.core.errors import AlreadySettledError, InvalidStateError, StoreUnavailableError

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------


def dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    """Convert SQLite row to dictionary."""
    return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}


def parse_dt(s: str | None) -> datetime | None:
    """Parse ISO datetime string."""
    return datetime.fromisoformat(s) if s else None


# -----------------------------------------------------------------------------
# Base SQLite Repository
# -----------------------------------------------------------------------------


class SQLiteRepoBase:
    """Base class for SQLite repositories."""

    def __init__(self, db_path: str, timeout_seconds: float = 5.0):
        self.db_path = db_path
        self.timeout_seconds = timeout_seconds

    def _get_conn(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(
                self.db_path,
                timeout=self.timeout_seconds,
                isolation_level=None,
            )
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Cannot open {self.db_path}: {e}") from e
        conn.row_factory = dict_factory
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Write transaction holding the database lock for its whole body."""
        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.execute("COMMIT")
        except sqlite3.OperationalError as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            logger.warning(f"SQLite store unavailable: {e}")
            raise StoreUnavailableError(str(e)) from e
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    @contextmanager
    def _reader(self) -> Iterator[sqlite3.Connection]:
        conn = self._get_conn()
        try:
            yield conn
        except sqlite3.OperationalError as e:
            raise StoreUnavailableError(str(e)) from e
        finally:
            conn.close()


# -----------------------------------------------------------------------------
# Progress Ledger
# -----------------------------------------------------------------------------


class SQLiteProgressRepo(SQLiteRepoBase):
    """SQLite implementation of ProgressRepoPort."""

    _LIVE_KEY = "user_id = ? AND group_id = ? AND cycle_key = ? AND reversed_at IS NULL"

    def apply_delta(self, key: ProgressKey, delta: int, now: datetime) -> int:
        with self._transaction() as conn:
            return self._apply(conn, key, self._live_count(conn, key), delta, now)

    def set_count(self, key: ProgressKey, target: int, now: datetime) -> int:
        with self._transaction() as conn:
            count = self._live_count(conn, key)
            return self._apply(conn, key, count, target - count, now)

    def _live_count(self, conn: sqlite3.Connection, key: ProgressKey) -> int:
        row = conn.execute(
            f"SELECT COUNT(*) AS n FROM progress_events WHERE {self._LIVE_KEY}",
            (key.user_id, key.group_id, key.cycle_key),
        ).fetchone()
        return int(row["n"])

    def _apply(
        self,
        conn: sqlite3.Connection,
        key: ProgressKey,
        count: int,
        delta: int,
        now: datetime,
    ) -> int:
        """Apply delta inside the caller's transaction; live indices stay 1..N."""
        if count + delta < 0:
            raise InvalidStateError(
                f"Cannot apply delta {delta} to count {count} "
                f"for {key.user_id} in {key.cycle_key}",
                count=count,
            )
        if delta > 0:
            conn.executemany(
                """
                INSERT INTO progress_events
                (id, user_id, group_id, cycle_key, idx, logged_at, reversed_at)
                VALUES (?, ?, ?, ?, ?, ?, NULL)
                """,
                [
                    (
                        str(uuid4()),
                        key.user_id,
                        key.group_id,
                        key.cycle_key,
                        count + offset,
                        now.isoformat(),
                    )
                    for offset in range(1, delta + 1)
                ],
            )
        elif delta < 0:
            conn.execute(
                f"UPDATE progress_events SET reversed_at = ? WHERE {self._LIVE_KEY} AND idx > ?",
                (now.isoformat(), key.user_id, key.group_id, key.cycle_key, count + delta),
            )
        return count + delta

    def count(self, key: ProgressKey) -> int:
        with self._reader() as conn:
            return self._live_count(conn, key)

    def list_events(
        self,
        user_id: str,
        group_id: str,
        include_reversed: bool = False,
    ) -> list[ProgressEvent]:
        query = "SELECT * FROM progress_events WHERE user_id = ? AND group_id = ?"
        if not include_reversed:
            query += " AND reversed_at IS NULL"
        query += " ORDER BY logged_at DESC, idx DESC"
        with self._reader() as conn:
            rows = conn.execute(query, (user_id, group_id)).fetchall()
        return [self._map_row(r) for r in rows]

    def counts_for_window(self, group_id: str, cycle_key: str) -> dict[str, int]:
        with self._reader() as conn:
            rows = conn.execute(
                """
                SELECT user_id, COUNT(*) AS n FROM progress_events
                WHERE group_id = ? AND cycle_key = ? AND reversed_at IS NULL
                GROUP BY user_id
                """,
                (group_id, cycle_key),
            ).fetchall()
        return {r["user_id"]: int(r["n"]) for r in rows}

    def _map_row(self, row: dict[str, Any]) -> ProgressEvent:
        return ProgressEvent(
            id=UUID(row["id"]),
            user_id=row["user_id"],
            group_id=row["group_id"],
            cycle_key=row["cycle_key"],
            index=row["idx"],
            logged_at=datetime.fromisoformat(row["logged_at"]),
            reversed_at=parse_dt(row["reversed_at"]),
        )


# -----------------------------------------------------------------------------
# Settlement Store
# -----------------------------------------------------------------------------


class SQLiteSettlementStore(SQLiteRepoBase):
    """SQLite implementation of SettlementStorePort."""

    def acquire_lease(
        self,
        group_id: str,
        cycle_key: str,
        holder: str,
        now_utc: datetime,
        ttl_seconds: int,
    ) -> bool:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT holder, expires_at FROM settlement_leases "
                "WHERE group_id = ? AND cycle_key = ?",
                (group_id, cycle_key),
            ).fetchone()
            if row is not None:
                expires_at = datetime.fromisoformat(row["expires_at"])
                if row["holder"] != holder and expires_at > now_utc:
                    return False
            conn.execute(
                """
                INSERT INTO settlement_leases (group_id, cycle_key, holder, expires_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(group_id, cycle_key) DO UPDATE SET
                    holder=excluded.holder,
                    expires_at=excluded.expires_at
                """,
                (
                    group_id,
                    cycle_key,
                    holder,
                    (now_utc + timedelta(seconds=ttl_seconds)).isoformat(),
                ),
            )
        return True

    def release_lease(self, group_id: str, cycle_key: str, holder: str) -> None:
        with self._transaction() as conn:
            conn.execute(
                "DELETE FROM settlement_leases WHERE group_id = ? AND cycle_key = ? AND holder = ?",
                (group_id, cycle_key, holder),
            )

    def get_result(self, group_id: str, cycle_key: str) -> SettlementResult | None:
        with self._reader() as conn:
            row = conn.execute(
                "SELECT * FROM settlement_results WHERE group_id = ? AND cycle_key = ?",
                (group_id, cycle_key),
            ).fetchone()
        return self._map_row(row) if row else None

    def save_result(self, result: SettlementResult, replace_existing: bool = False) -> None:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM settlement_results WHERE group_id = ? AND cycle_key = ?",
                (result.group_id, result.cycle_key),
            ).fetchone()
            if row is not None and not replace_existing:
                raise AlreadySettledError(self._map_row(row))
            conn.execute(
                """
                INSERT INTO settlement_results (
                    group_id, cycle_key, total_members, total_penalty_pool_cents,
                    penalty_share_per_member_cents, breakdowns_json, completed_at, triggered_by
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(group_id, cycle_key) DO UPDATE SET
                    total_members=excluded.total_members,
                    total_penalty_pool_cents=excluded.total_penalty_pool_cents,
                    penalty_share_per_member_cents=excluded.penalty_share_per_member_cents,
                    breakdowns_json=excluded.breakdowns_json,
                    completed_at=excluded.completed_at,
                    triggered_by=excluded.triggered_by
                """,
                (
                    result.group_id,
                    result.cycle_key,
                    result.total_members,
                    result.total_penalty_pool_cents,
                    result.penalty_share_per_member_cents,
                    json.dumps([asdict(b) for b in result.breakdowns]),
                    result.completed_at.isoformat() if result.completed_at else None,
                    result.triggered_by,
                ),
            )

    def list_results(self, group_id: str) -> list[SettlementResult]:
        with self._reader() as conn:
            rows = conn.execute(
                "SELECT * FROM settlement_results WHERE group_id = ? "
                "ORDER BY completed_at DESC, cycle_key DESC",
                (group_id,),
            ).fetchall()
        return [self._map_row(r) for r in rows]

    def _map_row(self, row: dict[str, Any]) -> SettlementResult:
        return SettlementResult(
            group_id=row["group_id"],
            cycle_key=row["cycle_key"],
            total_members=row["total_members"],
            total_penalty_pool_cents=row["total_penalty_pool_cents"],
            penalty_share_per_member_cents=row["penalty_share_per_member_cents"],
            breakdowns=tuple(
                SettlementBreakdown(**b) for b in json.loads(row["breakdowns_json"])
            ),
            completed_at=parse_dt(row["completed_at"]),
            triggered_by=row["triggered_by"],
        )
