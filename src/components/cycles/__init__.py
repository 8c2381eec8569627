"""
Cycles component - Recurring goal window resolution.
"""

from .component import (
    biweekly_start,
    next_cycle_window,
    parse_cycle_kind,
    parse_start_day,
    resolve_cycle_window,
    time_remaining,
    validate_cycle_config,
    weekly_start,
    window_start_date,
)
from .models import (
    CYCLE_DAYS,
    Countdown,
    CycleConfig,
    CycleKind,
    CycleWindow,
    WindowLabel,
)

__all__ = [
    # Entry points
    "resolve_cycle_window",
    "next_cycle_window",
    "time_remaining",
    # Helpers
    "parse_start_day",
    "parse_cycle_kind",
    "validate_cycle_config",
    "weekly_start",
    "biweekly_start",
    "window_start_date",
    # Models
    "CycleConfig",
    "CycleKind",
    "CycleWindow",
    "Countdown",
    "WindowLabel",
    "CYCLE_DAYS",
]
