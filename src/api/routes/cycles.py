"""
Cycle window API routes.

Resolves the current goal window of a group from its cycle settings.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from src.api.deps import get_engine
from src.api.errors import to_http_exception
from src.components.cycles import CycleWindow
from src.core.errors import AccountingError
from src.services.engine import AccountingEngine

router = APIRouter()


# --- Request/Response Models ---


class ResolveRequest(BaseModel):
    """Cycle settings of a group plus an optional evaluation instant."""

    anchor_at: datetime = Field(..., description="Group/goal creation instant (with offset)")
    kind: str | None = Field(None, description="daily, weekly or biweekly")
    start_day_of_week: int | str | None = Field(
        None, description="0..6 (0 = Sunday) or a day name"
    )
    timezone: str | None = Field(None, description="IANA zone; defaults from rules")
    now: datetime | None = Field(None, description="Evaluation instant; defaults to now")


class WindowResponse(BaseModel):
    key: str
    label: str
    starts_at: datetime
    ends_at: datetime
    timezone: str


class CountdownResponse(BaseModel):
    total_seconds: int
    days: int
    hours: int
    minutes: int


class ResolveResponse(BaseModel):
    window: WindowResponse
    countdown: CountdownResponse
    next_window: WindowResponse


# --- Helpers ---


def window_to_response(window: CycleWindow) -> WindowResponse:
    return WindowResponse(
        key=window.key,
        label=window.label.value,
        starts_at=window.starts_at,
        ends_at=window.ends_at,
        timezone=window.timezone,
    )


# --- Routes ---


@router.post("/resolve", response_model=ResolveResponse)
def resolve_window(
    request: ResolveRequest,
    engine: AccountingEngine = Depends(get_engine),
) -> Any:
    """
    Resolve the window containing `now`.

    Repeated calls inside one window return the same key and bounds.
    """
    try:
        config = engine.build_cycle_config(
            anchor_at=request.anchor_at,
            kind=request.kind,
            start_day_of_week=request.start_day_of_week,
            timezone=request.timezone,
        )
        now = request.now or engine.clock.now_utc()
        window = engine.resolve_cycle_window(config, now)
        countdown = engine.countdown(window, now)
        upcoming = engine.next_cycle_window(config, window)
    except AccountingError as e:
        raise to_http_exception(e) from e

    return ResolveResponse(
        window=window_to_response(window),
        countdown=CountdownResponse(
            total_seconds=countdown.total_seconds,
            days=countdown.days,
            hours=countdown.hours,
            minutes=countdown.minutes,
        ),
        next_window=window_to_response(upcoming),
    )
