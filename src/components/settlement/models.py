"""
Settlement component models.

All money values are integer cents.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

TriggeredBy = Literal["auto", "manual"]

TransactionType = Literal[
    "stake_contribution",
    "base_return",
    "goal_return",
    "penalty_share",
]


# --- Configuration ---


@dataclass(frozen=True)
class StakeConfig:
    """Per-member stake for one cycle."""

    base_stake_cents: int
    goal_locked_stake_cents: int

    @property
    def total_stake_cents(self) -> int:
        return self.base_stake_cents + self.goal_locked_stake_cents


@dataclass(frozen=True)
class SettlementConfig:
    """Settlement run configuration from rules."""

    lease_seconds: int = 60
    allow_force_replay: bool = True


DEFAULT_CONFIG = SettlementConfig()


# --- Results ---


@dataclass(frozen=True)
class SettlementBreakdown:
    """
    One member's money movements for a settled window.

    net_cents = -(base_contribution + goal_locked_contribution)
                + base_return + goal_return + penalty_share
    """

    user_id: str
    applications_sent: int
    goal: int
    met_goal: bool
    base_contribution_cents: int
    goal_locked_contribution_cents: int
    base_return_cents: int
    goal_return_cents: int
    penalty_lost_cents: int
    penalty_share_cents: int
    net_cents: int


@dataclass(frozen=True)
class SettlementResult:
    """
    Settlement of one group window.

    Closed pool: penalty shares sum to the pool and nets sum to zero.
    """

    group_id: str
    cycle_key: str
    total_members: int
    total_penalty_pool_cents: int
    penalty_share_per_member_cents: int  # floor share; some members get +1
    breakdowns: tuple[SettlementBreakdown, ...] = field(default_factory=tuple)
    completed_at: datetime | None = None
    triggered_by: TriggeredBy = "manual"

    @property
    def cycle_id(self) -> str:
        return f"cycle-{self.cycle_key}"

    def breakdown_for(self, user_id: str) -> SettlementBreakdown | None:
        for breakdown in self.breakdowns:
            if breakdown.user_id == user_id:
                return breakdown
        return None


@dataclass(frozen=True)
class SettlementTransaction:
    """Wallet ledger line derived from a breakdown."""

    user_id: str
    group_id: str
    cycle_key: str
    type: TransactionType
    amount_cents: int
    description: str
