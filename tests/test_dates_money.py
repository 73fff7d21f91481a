"""
Tests for the local calendar and money helpers
"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from somiti.dates import (
    to_local_date, parse_date, today_local, add_months, months_between
)
from somiti.money import to_decimal, round_money, floor_at_zero, format_amount, total, ZERO
from somiti.errors import ValidationError


DHAKA = ZoneInfo("Asia/Dhaka")


class TestLocalDates:

    def test_plain_date_string(self):
        assert to_local_date("2024-03-05", DHAKA) == date(2024, 3, 5)

    def test_utc_evening_is_next_local_day(self):
        assert to_local_date("2024-01-01T20:00:00Z", DHAKA) == date(2024, 1, 2)
        assert to_local_date(datetime(2024, 1, 1, 17, 59, tzinfo=timezone.utc), DHAKA) == date(2024, 1, 1)

    def test_same_local_day_compares_equal(self):
        morning = to_local_date("2024-06-01T00:30:00+06:00", DHAKA)
        night = to_local_date("2024-06-01T17:30:00Z", DHAKA)
        assert morning == night

    def test_naive_datetime_is_local_wall_clock(self):
        assert to_local_date(datetime(2024, 1, 1, 23, 30), DHAKA) == date(2024, 1, 1)

    def test_invalid_string(self):
        with pytest.raises(ValidationError):
            to_local_date("01/02/2024", DHAKA)

    def test_parse_date_defaults_to_today(self):
        assert parse_date(None) == today_local()
        assert parse_date("", default_today=False) is None

    def test_today_local(self):
        now = datetime(2024, 12, 31, 19, 0, tzinfo=timezone.utc)
        assert today_local(now) == date(2025, 1, 1)

    def test_add_months_clamps(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2023, 11, 15), 3) == date(2024, 2, 15)

    def test_months_between(self):
        assert months_between(date(2024, 1, 31), date(2024, 3, 1)) == 2
        assert months_between(date(2024, 5, 1), date(2024, 4, 30)) == -1


class TestMoney:

    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    @pytest.mark.parametrize("value", [None, True, "abc", "NaN", "Infinity"])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(ValidationError):
            to_decimal(value)

    def test_round_half_up(self):
        assert round_money(Decimal("2.345")) == Decimal("2.35")
        assert round_money(Decimal("2.344")) == Decimal("2.34")

    def test_floor_and_total(self):
        assert floor_at_zero(Decimal("-5")) == ZERO
        assert total([Decimal("1.10"), Decimal("2.20")]) == Decimal("3.30")
        assert total([]) == ZERO

    def test_format_amount(self):
        assert format_amount(Decimal("110")) == "110.00"
