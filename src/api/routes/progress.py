"""
Progress ledger API routes.

Members log applications one at a time (delta) or correct their count
(applications_count). Every change is kept as an individual event.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, model_validator

from src.api.deps import get_engine
from src.api.errors import to_http_exception
from src.components.progress import MAX_COUNT_CHANGE, ProgressEvent
from src.core.errors import AccountingError
from src.services.engine import AccountingEngine

router = APIRouter()


# --- Request/Response Models ---


class DeltaRequest(BaseModel):
    """Signed delta, or an absolute count to move to."""

    cycle_key: str = Field(..., min_length=1)
    delta: int | None = Field(None, ge=-MAX_COUNT_CHANGE, le=MAX_COUNT_CHANGE)
    applications_count: int | None = Field(
        None, le=MAX_COUNT_CHANGE, description="Absolute count, clamped to >= 0"
    )

    @model_validator(mode="after")
    def _exactly_one(self) -> DeltaRequest:
        if (self.delta is None) == (self.applications_count is None):
            raise ValueError("Provide exactly one of delta or applications_count")
        return self


class DeltaResponse(BaseModel):
    count: int
    max_index: int


class EventResponse(BaseModel):
    id: UUID
    user_id: str
    group_id: str
    cycle_key: str
    index: int
    logged_at: datetime
    reversed_at: datetime | None = None


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total_count: int


# --- Helpers ---


def event_to_response(event: ProgressEvent) -> EventResponse:
    return EventResponse(
        id=event.id,
        user_id=event.user_id,
        group_id=event.group_id,
        cycle_key=event.cycle_key,
        index=event.index,
        logged_at=event.logged_at,
        reversed_at=event.reversed_at,
    )


# --- Routes ---


@router.post("/{group_id}/{user_id}/delta", response_model=DeltaResponse)
def record_delta(
    group_id: str,
    user_id: str,
    request: DeltaRequest,
    engine: AccountingEngine = Depends(get_engine),
) -> Any:
    """
    Apply a progress change for one member in one window.

    A negative delta below zero is rejected with 409 and nothing changes.
    """
    try:
        if request.delta is not None:
            output = engine.record_progress_delta(
                user_id, group_id, request.cycle_key, request.delta
            )
        else:
            output = engine.set_progress(
                user_id, group_id, request.cycle_key, request.applications_count or 0
            )
    except AccountingError as e:
        raise to_http_exception(e) from e

    return DeltaResponse(count=output.count, max_index=output.max_index)


@router.get("/{group_id}/{user_id}/events", response_model=EventListResponse)
def list_events(
    group_id: str,
    user_id: str,
    include_reversed: bool = Query(False),
    cycle_key: str | None = Query(None),
    engine: AccountingEngine = Depends(get_engine),
) -> Any:
    """Member's events in a group, most recent first."""
    try:
        events = engine.list_progress_events(user_id, group_id, include_reversed)
    except AccountingError as e:
        raise to_http_exception(e) from e

    if cycle_key is not None:
        events = [e for e in events if e.cycle_key == cycle_key]

    return EventListResponse(
        events=[event_to_response(e) for e in events],
        total_count=len(events),
    )


@router.get("/{group_id}/{user_id}/count")
def get_count(
    group_id: str,
    user_id: str,
    cycle_key: str = Query(..., min_length=1),
    engine: AccountingEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Current net count of a member in a window."""
    if not cycle_key.strip():
        raise HTTPException(status_code=422, detail="cycle_key must not be blank")
    try:
        count = engine.ledger.count_for(user_id, group_id, cycle_key)
    except AccountingError as e:
        raise to_http_exception(e) from e
    return {"user_id": user_id, "group_id": group_id, "cycle_key": cycle_key, "count": count}
