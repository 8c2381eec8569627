"""
Calendar component - Zoned calendar conversions.
"""

from .component import (
    add_days,
    calendar_date_iso,
    is_valid_time_zone,
    load_zone,
    local_calendar_date_of,
    local_midnight,
    normalize_time_zone,
    to_epoch_day_number,
    to_utc_instant,
    weekday_of,
    zoned_parts_of,
)
from .models import (
    APP_TIME_ZONE,
    DAY_NAMES,
    FRIDAY,
    MONDAY,
    SATURDAY,
    SUNDAY,
    THURSDAY,
    TUESDAY,
    WEDNESDAY,
    ZonedParts,
)

__all__ = [
    # Zone lookup
    "load_zone",
    "is_valid_time_zone",
    "normalize_time_zone",
    # Conversions
    "zoned_parts_of",
    "local_calendar_date_of",
    "to_utc_instant",
    "local_midnight",
    # Date arithmetic
    "add_days",
    "to_epoch_day_number",
    "weekday_of",
    "calendar_date_iso",
    # Models
    "ZonedParts",
    "APP_TIME_ZONE",
    "DAY_NAMES",
    "SUNDAY",
    "MONDAY",
    "TUESDAY",
    "WEDNESDAY",
    "THURSDAY",
    "FRIDAY",
    "SATURDAY",
]
