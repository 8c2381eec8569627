"""
Unit tests for the Calendar component.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from src.components.calendar import (
    APP_TIME_ZONE,
    FRIDAY,
    SUNDAY,
    WEDNESDAY,
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
from src.core.errors import InvalidConfigError, InvalidInputError

NY = "America/New_York"
SYDNEY = "Australia/Sydney"


class TestZoneLookup:
    """Zone names resolve or fail fast."""

    def test_load_known_zone(self) -> None:
        assert load_zone(NY) == ZoneInfo(NY)

    def test_load_passes_zoneinfo_through(self) -> None:
        tz = ZoneInfo("Europe/London")
        assert load_zone(tz) is tz

    def test_load_strips_whitespace(self) -> None:
        assert load_zone("  Asia/Tokyo ") == ZoneInfo("Asia/Tokyo")

    @pytest.mark.parametrize("name", ["Mars/Olympus_Mons", "", "   "])
    def test_unknown_or_blank_zone_rejected(self, name: str) -> None:
        with pytest.raises(InvalidConfigError):
            load_zone(name)

    def test_is_valid_time_zone(self) -> None:
        assert is_valid_time_zone(NY)
        assert not is_valid_time_zone("Not/AZone")
        assert not is_valid_time_zone(None)
        assert not is_valid_time_zone(42)

    def test_normalize_falls_back(self) -> None:
        assert normalize_time_zone("Europe/Paris") == "Europe/Paris"
        assert normalize_time_zone("bogus") == APP_TIME_ZONE
        assert normalize_time_zone(None, "UTC") == "UTC"


class TestInstantToLocal:
    """Reading wall clocks in a zone."""

    def test_zoned_parts_new_york_winter(self) -> None:
        parts = zoned_parts_of(datetime(2025, 1, 15, 3, 30, 15, tzinfo=UTC), NY)
        assert (parts.year, parts.month, parts.day) == (2025, 1, 14)
        assert (parts.hour, parts.minute, parts.second) == (22, 30, 15)

    def test_local_date_differs_by_zone(self) -> None:
        instant = datetime(2025, 6, 1, 2, 0, tzinfo=UTC)
        assert local_calendar_date_of(instant, NY) == date(2025, 5, 31)
        assert local_calendar_date_of(instant, "Asia/Tokyo") == date(2025, 6, 1)

    def test_non_utc_aware_instant_accepted(self) -> None:
        instant = datetime(2025, 6, 1, 9, 0, tzinfo=timezone(timedelta(hours=9)))
        assert local_calendar_date_of(instant, "UTC") == date(2025, 6, 1)

    def test_naive_instant_rejected(self) -> None:
        with pytest.raises(InvalidInputError):
            zoned_parts_of(datetime(2025, 1, 1, 12, 0), NY)


class TestLocalToInstant:
    """Two-pass conversion from wall time to UTC."""

    def test_midnight_winter(self) -> None:
        assert local_midnight(date(2025, 1, 15), NY) == datetime(2025, 1, 15, 5, tzinfo=UTC)

    def test_midnight_summer(self) -> None:
        assert local_midnight(date(2025, 7, 4), NY) == datetime(2025, 7, 4, 4, tzinfo=UTC)

    def test_midnight_on_spring_forward_day(self) -> None:
        """Midnight precedes the 02:00 jump, so it is still EST."""
        assert local_midnight(date(2025, 3, 9), NY) == datetime(2025, 3, 9, 5, tzinfo=UTC)
        assert local_midnight(date(2025, 3, 10), NY) == datetime(2025, 3, 10, 4, tzinfo=UTC)

    def test_midnight_on_fall_back_day(self) -> None:
        assert local_midnight(date(2025, 11, 2), NY) == datetime(2025, 11, 2, 4, tzinfo=UTC)
        assert local_midnight(date(2025, 11, 3), NY) == datetime(2025, 11, 3, 5, tzinfo=UTC)

    def test_wall_time_reads_back(self) -> None:
        instant = to_utc_instant(date(2025, 8, 20), 13, 45, 30, "Australia/Sydney")
        parts = zoned_parts_of(instant, "Australia/Sydney")
        assert (parts.day, parts.hour, parts.minute, parts.second) == (20, 13, 45, 30)

    def test_sydney_midnight_on_spring_forward_day(self) -> None:
        """The jump at 02:00 falls between midnight and the zero-offset guess."""
        instant = local_midnight(date(2025, 10, 5), SYDNEY)
        assert instant == datetime(2025, 10, 4, 14, tzinfo=UTC)
        assert local_calendar_date_of(instant, SYDNEY) == date(2025, 10, 5)

    def test_sydney_midnight_on_fall_back_day(self) -> None:
        instant = local_midnight(date(2025, 4, 6), SYDNEY)
        assert instant == datetime(2025, 4, 5, 13, tzinfo=UTC)
        assert local_calendar_date_of(instant, SYDNEY) == date(2025, 4, 6)
        assert local_calendar_date_of(instant - timedelta(seconds=1), SYDNEY) == date(2025, 4, 5)

    def test_sydney_midnights_every_day(self) -> None:
        """Each local midnight reads back as 00:00 on its own date."""
        day = date(2025, 1, 1)
        for _ in range(366):
            parts = zoned_parts_of(local_midnight(day, SYDNEY), SYDNEY)
            assert (parts.calendar_date, parts.hour, parts.minute) == (day, 0, 0)
            day = add_days(day, 1)

    def test_wall_time_in_gap_keeps_date(self) -> None:
        """02:30 does not exist on 2025-10-05 in Sydney; it lands after the jump."""
        instant = to_utc_instant(date(2025, 10, 5), 2, 30, 0, SYDNEY)
        assert instant == datetime(2025, 10, 4, 16, 30, tzinfo=UTC)
        assert local_calendar_date_of(instant, SYDNEY) == date(2025, 10, 5)

    def test_positive_offset_zone(self) -> None:
        assert local_midnight(date(2025, 1, 1), "Asia/Kolkata") == datetime(
            2024, 12, 31, 18, 30, tzinfo=UTC
        )

    def test_unknown_zone_rejected(self) -> None:
        with pytest.raises(InvalidConfigError):
            local_midnight(date(2025, 1, 1), "Nowhere/City")


class TestDateArithmetic:
    """Y-M-D arithmetic independent of zones."""

    def test_add_days_crosses_month_and_year(self) -> None:
        assert add_days(date(2024, 12, 30), 3) == date(2025, 1, 2)
        assert add_days(date(2024, 3, 1), -1) == date(2024, 2, 29)

    def test_epoch_day_number(self) -> None:
        assert to_epoch_day_number(date(1970, 1, 1)) == 0
        assert to_epoch_day_number(date(1970, 1, 8)) == 7
        assert to_epoch_day_number(date(1969, 12, 31)) == -1

    def test_weekday_sunday_is_zero(self) -> None:
        assert weekday_of(date(2025, 1, 5)) == SUNDAY
        assert weekday_of(date(2025, 1, 1)) == WEDNESDAY
        assert weekday_of(date(2025, 3, 7)) == FRIDAY

    def test_calendar_date_iso(self) -> None:
        assert calendar_date_iso(date(2025, 3, 7)) == "2025-03-07"
