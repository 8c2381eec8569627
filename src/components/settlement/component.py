"""
Settlement engine - Closed-pool stake settlement per group window.

Invariants:
- Sum of penalty shares equals the penalty pool exactly
- Shares differ by at most one cent; the extra cents go to the first
  members in user id order, so repeated runs place them identically
- Sum of net amounts is zero (no money created or destroyed)
- A window is settled at most once unless replay is forced, in which case
  the stored result is replaced, never duplicated

Run protocol: acquire window lease, check not settled, compute, persist,
release. A failed persist leaves the window unsettled and is safe to retry.
A failed release is logged and the lease lapses after lease_seconds.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace
from uuid import uuid4

from src.components.progress.models import MemberProgress
from src.core.errors import (
    AlreadySettledError,
    InvalidConfigError,
    InvalidInputError,
    LeaseHeldError,
    StoreUnavailableError,
)
from src.core.locks import KeyedLocks
from src.core.ports.time import ClockPort

from .models import (
    DEFAULT_CONFIG,
    SettlementBreakdown,
    SettlementConfig,
    SettlementResult,
    SettlementTransaction,
    StakeConfig,
    TriggeredBy,
)
from .ports import SettlementStorePort

logger = logging.getLogger(__name__)


# --- Validation ---


def validate_stake(base_stake_cents: int, goal_locked_stake_cents: int) -> None:
    """
    Stakes must be positive integer cents.

    Raises:
        InvalidConfigError: On non-integer or non-positive stakes.
    """
    for name, value in (
        ("base_stake_cents", base_stake_cents),
        ("goal_locked_stake_cents", goal_locked_stake_cents),
    ):
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidConfigError(f"{name} must be integer cents, got {value!r}")
        if value <= 0:
            raise InvalidConfigError(f"{name} must be positive, got {value}")


# --- Pure Functions ---


def calculate_settlement(
    group_id: str,
    cycle_key: str,
    base_stake_cents: int,
    goal_locked_stake_cents: int,
    members: Sequence[MemberProgress],
) -> SettlementResult:
    """
    Compute the settlement of one window.

    Members who miss their goal forfeit the goal-locked stake into a pool
    that is split equally across all members (including those who missed).

    Raises:
        InvalidConfigError: On non-positive stakes.
        InvalidInputError: If members is empty or ids repeat.
    """
    validate_stake(base_stake_cents, goal_locked_stake_cents)
    if not members:
        raise InvalidInputError(f"Cannot settle {group_id}/{cycle_key} with no members")

    ordered = sorted(members, key=lambda m: m.user_id)
    if len({m.user_id for m in ordered}) != len(ordered):
        raise InvalidInputError(f"Duplicate member ids in settlement of {group_id}/{cycle_key}")

    met = [m.count >= m.goal for m in ordered]
    total_pool = sum(0 if ok else goal_locked_stake_cents for ok in met)

    base_share, remainder = divmod(total_pool, len(ordered))

    breakdowns: list[SettlementBreakdown] = []
    for member, met_goal in zip(ordered, met, strict=True):
        share = base_share
        if remainder > 0:
            share += 1
            remainder -= 1

        goal_return = goal_locked_stake_cents if met_goal else 0
        net = (
            -(base_stake_cents + goal_locked_stake_cents)
            + base_stake_cents
            + goal_return
            + share
        )
        breakdowns.append(
            SettlementBreakdown(
                user_id=member.user_id,
                applications_sent=member.count,
                goal=member.goal,
                met_goal=met_goal,
                base_contribution_cents=base_stake_cents,
                goal_locked_contribution_cents=goal_locked_stake_cents,
                base_return_cents=base_stake_cents,
                goal_return_cents=goal_return,
                penalty_lost_cents=0 if met_goal else goal_locked_stake_cents,
                penalty_share_cents=share,
                net_cents=net,
            )
        )

    return SettlementResult(
        group_id=group_id,
        cycle_key=cycle_key,
        total_members=len(ordered),
        total_penalty_pool_cents=total_pool,
        penalty_share_per_member_cents=base_share,
        breakdowns=tuple(breakdowns),
    )


def build_settlement_transactions(result: SettlementResult) -> list[SettlementTransaction]:
    """
    Wallet lines for a settled window.

    Zero-amount lines are omitted; per member the amounts sum to net_cents.
    """
    transactions: list[SettlementTransaction] = []
    for b in result.breakdowns:
        lines = (
            (
                "stake_contribution",
                -(b.base_contribution_cents + b.goal_locked_contribution_cents),
                "Cycle stake contribution",
            ),
            ("base_return", b.base_return_cents, "Base stake return"),
            ("goal_return", b.goal_return_cents, "Goal-locked return"),
            ("penalty_share", b.penalty_share_cents, "Penalty pool distribution"),
        )
        for tx_type, amount, description in lines:
            if amount == 0:
                continue
            transactions.append(
                SettlementTransaction(
                    user_id=b.user_id,
                    group_id=result.group_id,
                    cycle_key=result.cycle_key,
                    type=tx_type,  # type: ignore[arg-type]
                    amount_cents=amount,
                    description=description,
                )
            )
    return transactions


# --- Service ---


class SettlementService:
    """Runs settlements against a SettlementStorePort."""

    def __init__(
        self,
        store: SettlementStorePort,
        clock: ClockPort,
        config: SettlementConfig | None = None,
        locks: KeyedLocks | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._config = config or DEFAULT_CONFIG
        self._locks = locks or KeyedLocks()

    def run_settlement(
        self,
        group_id: str,
        cycle_key: str,
        stake: StakeConfig,
        members: Sequence[MemberProgress],
        *,
        force: bool = False,
        triggered_by: TriggeredBy = "manual",
    ) -> SettlementResult:
        """
        Settle a window exactly once.

        Args:
            force: Recompute and replace an existing result

        Raises:
            AlreadySettledError: Window already settled and force is False.
            LeaseHeldError: Another runner is settling this window.
            StoreUnavailableError: Persist failed; the window stays unsettled.
            InvalidConfigError / InvalidInputError: Bad stake or members.
        """
        if force and not self._config.allow_force_replay:
            raise InvalidConfigError("Forced settlement replay is disabled")

        # Validate before taking the lease so bad input never blocks a window.
        validate_stake(stake.base_stake_cents, stake.goal_locked_stake_cents)
        if not members:
            raise InvalidInputError(f"Cannot settle {group_id}/{cycle_key} with no members")

        holder = f"{triggered_by}-{uuid4().hex[:12]}"
        with self._locks.hold((group_id, cycle_key)):
            now = self._clock.now_utc()
            if not self._store.acquire_lease(
                group_id, cycle_key, holder, now, self._config.lease_seconds
            ):
                raise LeaseHeldError(group_id, cycle_key)
            try:
                existing = self._store.get_result(group_id, cycle_key)
                if existing is not None and not force:
                    logger.info(f"Settlement {group_id}/{cycle_key} already completed")
                    raise AlreadySettledError(existing)

                result = replace(
                    calculate_settlement(
                        group_id,
                        cycle_key,
                        stake.base_stake_cents,
                        stake.goal_locked_stake_cents,
                        members,
                    ),
                    completed_at=now,
                    triggered_by=triggered_by,
                )
                self._store.save_result(result, replace_existing=force)
            finally:
                try:
                    self._store.release_lease(group_id, cycle_key, holder)
                except StoreUnavailableError as e:
                    logger.warning(
                        f"Lease release failed for {group_id}/{cycle_key}; "
                        f"it expires on its own: {e}"
                    )

        logger.info(
            f"Settled {group_id}/{cycle_key}: members={result.total_members} "
            f"pool={result.total_penalty_pool_cents} replay={existing is not None}"
        )
        return result

    def get_result(self, group_id: str, cycle_key: str) -> SettlementResult | None:
        return self._store.get_result(group_id, cycle_key)

    def get_history(self, group_id: str) -> list[SettlementResult]:
        """Settled windows of a group, most recent first."""
        return self._store.list_results(group_id)

    def get_transactions(self, group_id: str, cycle_key: str) -> list[SettlementTransaction]:
        result = self._store.get_result(group_id, cycle_key)
        return build_settlement_transactions(result) if result else []
