"""
Zoned calendar - DST-safe conversions between UTC instants and local days.

Key behaviors:
- The zone is always an explicit argument; there is no active-zone state
- Calendar dates are zone-independent ``date`` values
- Day arithmetic works on the Y-M-D triple, never on elapsed milliseconds
- Local wall time -> UTC uses a two-pass offset correction: guess with a zero
  offset, read the zone's offset at the guess, subtract it, then re-read the
  offset at the result
- Unknown zone names fail immediately with InvalidConfigError
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from src.core.errors import InvalidConfigError, InvalidInputError

from .models import APP_TIME_ZONE, ZonedParts

_EPOCH_ORDINAL = date(1970, 1, 1).toordinal()

Zone = ZoneInfo | str


# --- Zone Lookup ---


@lru_cache(maxsize=256)
def _zone_by_name(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def load_zone(zone: Zone) -> ZoneInfo:
    """
    Resolve an IANA zone name.

    Raises:
        InvalidConfigError: If the name is blank or not a known zone.
    """
    if isinstance(zone, ZoneInfo):
        return zone
    if not isinstance(zone, str) or not zone.strip():
        raise InvalidConfigError(f"Time zone must be a non-empty IANA name, got {zone!r}")
    try:
        return _zone_by_name(zone.strip())
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidConfigError(f"Unknown time zone: {zone!r}") from e


def is_valid_time_zone(value: object) -> bool:
    """Check whether value names a loadable zone."""
    try:
        load_zone(value)  # type: ignore[arg-type]
    except InvalidConfigError:
        return False
    return True


def normalize_time_zone(value: object, fallback: str = APP_TIME_ZONE) -> str:
    """
    Return a trimmed zone name, or fallback if value is not a valid zone.

    For config-loading edges only (user profiles, legacy rows). Calendar
    operations themselves never fall back.
    """
    if isinstance(value, str) and is_valid_time_zone(value):
        return value.strip()
    return fallback


# --- Instant -> Local ---


def _require_aware(instant: datetime) -> datetime:
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise InvalidInputError(f"Instant must be timezone-aware: {instant!r}")
    return instant


def zoned_parts_of(instant: datetime, zone: Zone) -> ZonedParts:
    """Read the wall clock in zone at instant."""
    local = _require_aware(instant).astimezone(load_zone(zone))
    return ZonedParts(
        year=local.year,
        month=local.month,
        day=local.day,
        hour=local.hour,
        minute=local.minute,
        second=local.second,
    )


def local_calendar_date_of(instant: datetime, zone: Zone) -> date:
    """The date a wall clock in zone shows at instant."""
    return zoned_parts_of(instant, zone).calendar_date


def _offset_at(instant: datetime, zone: ZoneInfo) -> timedelta:
    parts = zoned_parts_of(instant, zone)
    as_utc = datetime(
        parts.year, parts.month, parts.day, parts.hour, parts.minute, parts.second, tzinfo=UTC
    )
    return as_utc - instant.replace(microsecond=0)


# --- Local -> Instant ---


def to_utc_instant(
    calendar_date: date,
    hour: int,
    minute: int,
    second: int,
    zone: Zone,
) -> datetime:
    """
    Convert a local wall time in zone to a UTC instant.

    The first pass reads the offset at the zero-offset guess. In zones east
    of UTC a transition can sit between the guess and the target, so the
    offset is read again at the corrected instant. Wall times inside a DST
    gap are read with the offset from before the jump, so they land just
    after it on the same local date.
    """
    tz = load_zone(zone)
    guess = datetime(
        calendar_date.year,
        calendar_date.month,
        calendar_date.day,
        hour,
        minute,
        second,
        tzinfo=UTC,
    )
    first = guess - _offset_at(guess, tz)
    second_pass = guess - _offset_at(first, tz)
    if second_pass == first:
        return first

    parts = zoned_parts_of(second_pass, tz)
    wanted = (calendar_date, hour, minute, second)
    if (parts.calendar_date, parts.hour, parts.minute, parts.second) == wanted:
        return second_pass
    return max(first, second_pass)


def local_midnight(calendar_date: date, zone: Zone) -> datetime:
    """UTC instant of 00:00:00 local on calendar_date."""
    return to_utc_instant(calendar_date, 0, 0, 0, zone)


# --- Calendar Date Arithmetic ---


def add_days(calendar_date: date, days: int) -> date:
    return calendar_date + timedelta(days=days)


def to_epoch_day_number(calendar_date: date) -> int:
    """Days since 1970-01-01."""
    return calendar_date.toordinal() - _EPOCH_ORDINAL


def weekday_of(calendar_date: date) -> int:
    """Day of week with 0 = Sunday ... 6 = Saturday."""
    return calendar_date.isoweekday() % 7


def calendar_date_iso(calendar_date: date) -> str:
    return calendar_date.isoformat()
