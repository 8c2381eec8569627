"""
AccountingEngine - Facade over cycles, progress and settlement.

Wires the components to a store and a clock, and applies the rules
defaults (stake, zone, start day) at the edge. The API and CLI both talk
to this class only.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from src.adapters.clock import SystemClock
from src.adapters.sqlite.repos import SQLiteProgressRepo, SQLiteSettlementStore
from src.components.calendar import APP_TIME_ZONE, FRIDAY, load_zone
from src.components.cycles import (
    Countdown,
    CycleConfig,
    CycleKind,
    CycleWindow,
    next_cycle_window,
    parse_cycle_kind,
    parse_start_day,
    resolve_cycle_window,
    time_remaining,
)
from src.components.progress import (
    InMemoryProgressRepo,
    LeaderboardEntry,
    MemberProgress,
    ProgressDeltaOutput,
    ProgressEvent,
    ProgressLedger,
)
from src.components.settlement import (
    InMemorySettlementStore,
    SettlementConfig,
    SettlementResult,
    SettlementService,
    SettlementTransaction,
    StakeConfig,
    TriggeredBy,
)
from src.core.errors import AlreadySettledError, InvalidInputError
from src.core.locks import KeyedLocks
from src.core.ports.time import ClockPort
from src.rules.models import Rules

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineDefaults:
    """Values applied when a caller leaves them out."""

    stake: StakeConfig = StakeConfig(base_stake_cents=700, goal_locked_stake_cents=700)
    timezone: str = APP_TIME_ZONE
    kind: CycleKind = CycleKind.WEEKLY
    start_day_of_week: int = FRIDAY

    @classmethod
    def from_rules(cls, rules: Rules) -> EngineDefaults:
        return cls(
            stake=StakeConfig(
                base_stake_cents=rules.stakes.base_stake_cents,
                goal_locked_stake_cents=rules.stakes.goal_locked_stake_cents,
            ),
            timezone=rules.calendar.default_timezone,
            kind=rules.cycles.default_kind,
            start_day_of_week=rules.cycles.default_start_day,
        )


class AccountingEngine:
    """Cycle and settlement accounting for accountability groups."""

    def __init__(
        self,
        ledger: ProgressLedger,
        settlement: SettlementService,
        clock: ClockPort,
        defaults: EngineDefaults | None = None,
    ) -> None:
        self.ledger = ledger
        self.settlement = settlement
        self.clock = clock
        self.defaults = defaults or EngineDefaults()

    # --- Construction ---

    @classmethod
    def create(
        cls,
        db_path: str,
        rules: Rules,
        clock: ClockPort | None = None,
    ) -> AccountingEngine:
        """Engine over the SQLite store at db_path (migrations already applied)."""
        clock = clock or SystemClock()
        timeout = rules.store.timeout_seconds
        return cls(
            ledger=ProgressLedger(SQLiteProgressRepo(db_path, timeout), clock),
            settlement=SettlementService(
                SQLiteSettlementStore(db_path, timeout),
                clock,
                config=SettlementConfig(
                    lease_seconds=rules.settlement.lease_seconds,
                    allow_force_replay=rules.settlement.allow_force_replay,
                ),
            ),
            clock=clock,
            defaults=EngineDefaults.from_rules(rules),
        )

    @classmethod
    def in_memory(
        cls,
        clock: ClockPort | None = None,
        defaults: EngineDefaults | None = None,
        config: SettlementConfig | None = None,
    ) -> AccountingEngine:
        """Engine over in-memory repos, for tests and local runs."""
        clock = clock or SystemClock()
        locks = KeyedLocks()
        return cls(
            ledger=ProgressLedger(InMemoryProgressRepo(), clock, locks),
            settlement=SettlementService(InMemorySettlementStore(), clock, config, locks),
            clock=clock,
            defaults=defaults,
        )

    # --- Cycles ---

    def build_cycle_config(
        self,
        anchor_at: datetime,
        kind: CycleKind | str | None = None,
        start_day_of_week: int | str | None = None,
        timezone: str | None = None,
    ) -> CycleConfig:
        """
        Build a config from caller values, filling gaps from the defaults.

        A missing or blank zone falls back to the default zone. A given zone
        and start day are validated strictly.
        """
        zone = self.defaults.timezone
        if timezone is not None and timezone.strip():
            zone = timezone.strip()
            load_zone(zone)
        return CycleConfig(
            kind=parse_cycle_kind(kind) if kind is not None else self.defaults.kind,
            anchor_at=anchor_at,
            start_day_of_week=(
                parse_start_day(start_day_of_week)
                if start_day_of_week is not None
                else self.defaults.start_day_of_week
            ),
            timezone=zone,
        )

    def resolve_cycle_window(
        self,
        config: CycleConfig,
        now: datetime | None = None,
    ) -> CycleWindow:
        return resolve_cycle_window(config, now or self.clock.now_utc())

    def next_cycle_window(self, config: CycleConfig, window: CycleWindow) -> CycleWindow:
        return next_cycle_window(config, window)

    def previous_cycle_window(self, config: CycleConfig, window: CycleWindow) -> CycleWindow:
        """The window that ends where window begins."""
        return resolve_cycle_window(config, window.starts_at - timedelta(microseconds=1))

    def countdown(self, window: CycleWindow, now: datetime | None = None) -> Countdown:
        return time_remaining(window, now or self.clock.now_utc())

    # --- Progress ---

    def record_progress_delta(
        self,
        user_id: str,
        group_id: str,
        cycle_key: str,
        delta: int,
    ) -> ProgressDeltaOutput:
        return self.ledger.record_delta(user_id, group_id, cycle_key, delta)

    def set_progress(
        self,
        user_id: str,
        group_id: str,
        cycle_key: str,
        applications_count: int,
    ) -> ProgressDeltaOutput:
        """Set the absolute count (clamped to >= 0)."""
        count = self.ledger.set_absolute(user_id, group_id, cycle_key, applications_count)
        return ProgressDeltaOutput(count=count, max_index=count)

    def list_progress_events(
        self,
        user_id: str,
        group_id: str,
        include_reversed: bool = False,
    ) -> list[ProgressEvent]:
        return self.ledger.list_events(user_id, group_id, include_reversed)

    def leaderboard(
        self,
        group_id: str,
        cycle_key: str,
        goals: Mapping[str, int],
        current_user_id: str | None = None,
    ) -> list[LeaderboardEntry]:
        return self.ledger.leaderboard(group_id, cycle_key, goals, current_user_id)

    # --- Settlement ---

    def run_settlement(
        self,
        group_id: str,
        cycle_key: str,
        stake: StakeConfig | None,
        members: Sequence[MemberProgress],
        force: bool = False,
        triggered_by: TriggeredBy = "manual",
    ) -> SettlementResult:
        """Settle a window with explicit member counts."""
        return self.settlement.run_settlement(
            group_id,
            cycle_key,
            stake or self.defaults.stake,
            members,
            force=force,
            triggered_by=triggered_by,
        )

    def settle_window(
        self,
        group_id: str,
        cycle_key: str,
        goals: Mapping[str, int],
        stake: StakeConfig | None = None,
        force: bool = False,
        triggered_by: TriggeredBy = "manual",
    ) -> SettlementResult:
        """Settle a window with counts taken from the ledger."""
        if not goals:
            raise InvalidInputError(f"Cannot settle {group_id}/{cycle_key} with no members")
        members = self.ledger.member_progress(group_id, cycle_key, goals)
        return self.run_settlement(group_id, cycle_key, stake, members, force, triggered_by)

    def settle_closed_window(
        self,
        group_id: str,
        config: CycleConfig,
        goals: Mapping[str, int],
        stake: StakeConfig | None = None,
        now: datetime | None = None,
    ) -> SettlementResult:
        """
        Timer entry point: settle the window that closed most recently.

        A window someone already settled is not an error here; the stored
        result is returned.
        """
        current = self.resolve_cycle_window(config, now)
        closed = self.previous_cycle_window(config, current)
        try:
            return self.settle_window(group_id, closed.key, goals, stake, triggered_by="auto")
        except AlreadySettledError as e:
            logger.info(f"Auto settlement skipped, {group_id}/{closed.key} already settled")
            return e.existing

    def get_settlement(self, group_id: str, cycle_key: str) -> SettlementResult | None:
        return self.settlement.get_result(group_id, cycle_key)

    def settlement_history(self, group_id: str) -> list[SettlementResult]:
        return self.settlement.get_history(group_id)

    def settlement_transactions(
        self,
        group_id: str,
        cycle_key: str,
    ) -> list[SettlementTransaction]:
        return self.settlement.get_transactions(group_id, cycle_key)

    def describe(self) -> dict[str, Any]:
        """Defaults in effect, for health and CLI output."""
        return {
            "timezone": self.defaults.timezone,
            "kind": self.defaults.kind.value,
            "start_day_of_week": self.defaults.start_day_of_week,
            "base_stake_cents": self.defaults.stake.base_stake_cents,
            "goal_locked_stake_cents": self.defaults.stake.goal_locked_stake_cents,
        }
