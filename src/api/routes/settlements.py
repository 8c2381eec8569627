"""
Settlement API routes.

Runs the once-per-window settlement of a group and exposes its history and
wallet transactions. Money values are integer cents.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, model_validator

from src.api.deps import get_engine
from src.api.errors import to_http_exception
from src.components.progress import MemberProgress
from src.components.settlement import SettlementResult, StakeConfig
from src.core.errors import AccountingError
from src.services.engine import AccountingEngine

router = APIRouter()


# --- Request/Response Models ---


class MemberInput(BaseModel):
    """A member's goal; count is read from the ledger when omitted."""

    user_id: str = Field(..., min_length=1)
    goal: int = Field(..., ge=0)
    count: int | None = Field(None, ge=0)


class SettleRequest(BaseModel):
    members: list[MemberInput] = Field(..., min_length=1)
    base_stake_cents: int | None = Field(None, gt=0)
    goal_locked_stake_cents: int | None = Field(None, gt=0)
    force: bool = False
    triggered_by: Literal["auto", "manual"] = "manual"

    @model_validator(mode="after")
    def _stake_pair(self) -> SettleRequest:
        if (self.base_stake_cents is None) != (self.goal_locked_stake_cents is None):
            raise ValueError("Provide both stake amounts or neither")
        return self


class BreakdownResponse(BaseModel):
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


class SettlementResponse(BaseModel):
    cycle_id: str
    group_id: str
    cycle_key: str
    total_members: int
    total_penalty_pool_cents: int
    penalty_share_per_member_cents: int
    breakdowns: list[BreakdownResponse]
    completed_at: datetime | None = None
    triggered_by: str


class HistoryResponse(BaseModel):
    settlements: list[SettlementResponse]
    total_count: int


class TransactionResponse(BaseModel):
    user_id: str
    type: str
    amount_cents: int
    description: str


class TransactionListResponse(BaseModel):
    group_id: str
    cycle_key: str
    transactions: list[TransactionResponse]


# --- Helpers ---


def result_to_response(result: SettlementResult) -> SettlementResponse:
    return SettlementResponse(
        cycle_id=result.cycle_id,
        group_id=result.group_id,
        cycle_key=result.cycle_key,
        total_members=result.total_members,
        total_penalty_pool_cents=result.total_penalty_pool_cents,
        penalty_share_per_member_cents=result.penalty_share_per_member_cents,
        breakdowns=[
            BreakdownResponse(
                user_id=b.user_id,
                applications_sent=b.applications_sent,
                goal=b.goal,
                met_goal=b.met_goal,
                base_contribution_cents=b.base_contribution_cents,
                goal_locked_contribution_cents=b.goal_locked_contribution_cents,
                base_return_cents=b.base_return_cents,
                goal_return_cents=b.goal_return_cents,
                penalty_lost_cents=b.penalty_lost_cents,
                penalty_share_cents=b.penalty_share_cents,
                net_cents=b.net_cents,
            )
            for b in result.breakdowns
        ],
        completed_at=result.completed_at,
        triggered_by=result.triggered_by,
    )


def _serialize_result(result: SettlementResult) -> dict[str, Any]:
    """Serialize a result for an error body."""
    return result_to_response(result).model_dump(mode="json")


def _resolve_members(
    engine: AccountingEngine,
    group_id: str,
    cycle_key: str,
    members: list[MemberInput],
) -> list[MemberProgress]:
    """Fill missing counts from the ledger."""
    ledger_counts = {
        p.user_id: p.count
        for p in engine.ledger.member_progress(
            group_id, cycle_key, {m.user_id: m.goal for m in members}
        )
    }
    return [
        MemberProgress(
            user_id=m.user_id,
            goal=m.goal,
            count=m.count if m.count is not None else ledger_counts.get(m.user_id, 0),
        )
        for m in members
    ]


# --- Routes ---


@router.post("/{group_id}/{cycle_key}", response_model=SettlementResponse)
def settle_window(
    group_id: str,
    cycle_key: str,
    request: SettleRequest,
    engine: AccountingEngine = Depends(get_engine),
) -> Any:
    """
    Settle one window of a group.

    A second attempt returns 409 with the stored result unless force is set.
    """
    stake = None
    if request.base_stake_cents is not None and request.goal_locked_stake_cents is not None:
        stake = StakeConfig(
            base_stake_cents=request.base_stake_cents,
            goal_locked_stake_cents=request.goal_locked_stake_cents,
        )

    try:
        members = _resolve_members(engine, group_id, cycle_key, request.members)
        result = engine.run_settlement(
            group_id,
            cycle_key,
            stake,
            members,
            force=request.force,
            triggered_by=request.triggered_by,
        )
    except AccountingError as e:
        raise to_http_exception(e, _serialize_result) from e

    return result_to_response(result)


@router.get("/{group_id}", response_model=HistoryResponse)
def settlement_history(
    group_id: str,
    engine: AccountingEngine = Depends(get_engine),
) -> Any:
    """Settled windows of a group, most recent first."""
    try:
        results = engine.settlement_history(group_id)
    except AccountingError as e:
        raise to_http_exception(e) from e

    return HistoryResponse(
        settlements=[result_to_response(r) for r in results],
        total_count=len(results),
    )


@router.get("/{group_id}/{cycle_key}", response_model=SettlementResponse)
def get_settlement(
    group_id: str,
    cycle_key: str,
    engine: AccountingEngine = Depends(get_engine),
) -> Any:
    try:
        result = engine.get_settlement(group_id, cycle_key)
    except AccountingError as e:
        raise to_http_exception(e) from e

    if result is None:
        raise HTTPException(status_code=404, detail="Settlement not found")

    return result_to_response(result)


@router.get("/{group_id}/{cycle_key}/transactions", response_model=TransactionListResponse)
def settlement_transactions(
    group_id: str,
    cycle_key: str,
    engine: AccountingEngine = Depends(get_engine),
) -> Any:
    """Wallet lines of a settled window; empty if the window is not settled."""
    try:
        transactions = engine.settlement_transactions(group_id, cycle_key)
    except AccountingError as e:
        raise to_http_exception(e) from e

    return TransactionListResponse(
        group_id=group_id,
        cycle_key=cycle_key,
        transactions=[
            TransactionResponse(
                user_id=t.user_id,
                type=t.type,
                amount_cents=t.amount_cents,
                description=t.description,
            )
            for t in transactions
        ],
    )
