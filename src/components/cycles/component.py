"""
Cycle window resolver.

Resolves the current daily / weekly / biweekly window for a group.

Invariants:
- Resolution is idempotent: any instant inside one window yields an equal
  CycleWindow, so the key is safe as a ledger partition and settlement
  dedup key
- Window lengths are counted in local calendar days, so a week that
  contains a DST change is still exactly 7 days from midnight to midnight
- Biweekly windows keep a fixed parity relative to the anchor week and never
  drift with the instant they are computed at
"""

from __future__ import annotations

from datetime import date, datetime

from src.components.calendar import (
    DAY_NAMES,
    add_days,
    calendar_date_iso,
    load_zone,
    local_calendar_date_of,
    local_midnight,
    to_epoch_day_number,
    weekday_of,
)
from src.core.errors import InvalidConfigError, InvalidInputError

from .models import CYCLE_DAYS, LABELS, Countdown, CycleConfig, CycleKind, CycleWindow

# --- Config Helpers ---


def parse_start_day(value: int | str) -> int:
    """
    Parse a start day given as 0..6 (0 = Sunday) or a day name.

    Raises:
        InvalidConfigError: If value is out of range or not a day name.
    """
    if isinstance(value, bool):
        raise InvalidConfigError(f"Invalid start day: {value!r}")
    if isinstance(value, int):
        if 0 <= value <= 6:
            return value
        raise InvalidConfigError(f"Start day must be 0..6, got {value}")
    if isinstance(value, str):
        name = value.strip().lower()
        if name.isdigit():
            return parse_start_day(int(name))
        if name in DAY_NAMES:
            return DAY_NAMES.index(name)
    raise InvalidConfigError(f"Invalid start day: {value!r}")


def parse_cycle_kind(value: CycleKind | str) -> CycleKind:
    try:
        return CycleKind(value.strip().lower() if isinstance(value, str) else value)
    except ValueError as e:
        raise InvalidConfigError(f"Unknown cycle kind: {value!r}") from e


def validate_cycle_config(config: CycleConfig) -> None:
    """Fail fast on an unusable config."""
    load_zone(config.timezone)
    parse_start_day(config.start_day_of_week)
    if config.anchor_at.tzinfo is None:
        raise InvalidInputError("Cycle anchor must be timezone-aware")


# --- Window Start Rules ---


def weekly_start(local_day: date, start_day_of_week: int) -> date:
    """Most recent start day on or before local_day."""
    offset = (weekday_of(local_day) - start_day_of_week + 7) % 7
    return add_days(local_day, -offset)


def biweekly_start(local_day: date, anchor_day: date, start_day_of_week: int) -> date:
    """Weekly start shifted back a week when it falls on the off-parity week."""
    start = weekly_start(local_day, start_day_of_week)
    anchor_start = weekly_start(anchor_day, start_day_of_week)
    week_diff = (to_epoch_day_number(start) - to_epoch_day_number(anchor_start)) // 7
    if week_diff % 2 != 0:
        start = add_days(start, -7)
    return start


def window_start_date(config: CycleConfig, now: datetime) -> date:
    """Local calendar date on which the window containing now begins."""
    kind = parse_cycle_kind(config.kind)
    today = local_calendar_date_of(now, config.timezone)

    if kind is CycleKind.DAILY:
        return today

    start_dow = parse_start_day(config.start_day_of_week)
    if kind is CycleKind.WEEKLY:
        return weekly_start(today, start_dow)

    anchor_day = local_calendar_date_of(config.anchor_at, config.timezone)
    return biweekly_start(today, anchor_day, start_dow)


# --- Resolution ---


def resolve_cycle_window(config: CycleConfig, now: datetime) -> CycleWindow:
    """
    Resolve the window containing now.

    Args:
        config: Group cycle settings
        now: Current instant (timezone-aware)

    Returns:
        CycleWindow with key "<kind>-<YYYY-MM-DD of local start>"
    """
    validate_cycle_config(config)
    kind = parse_cycle_kind(config.kind)

    start = window_start_date(config, now)
    end = add_days(start, CYCLE_DAYS[kind])

    return CycleWindow(
        key=f"{kind.value}-{calendar_date_iso(start)}",
        label=LABELS[kind],
        starts_at=local_midnight(start, config.timezone),
        ends_at=local_midnight(end, config.timezone),
        timezone=config.timezone,
    )


def next_cycle_window(config: CycleConfig, window: CycleWindow) -> CycleWindow:
    """The window that begins where window ends."""
    return resolve_cycle_window(config, window.ends_at)


def time_remaining(window: CycleWindow, now: datetime) -> Countdown:
    """Countdown to the window's settlement boundary."""
    total = max(0, int((window.ends_at - now).total_seconds()))
    return Countdown(
        total_seconds=total,
        days=total // 86400,
        hours=(total % 86400) // 3600,
        minutes=(total % 3600) // 60,
    )
