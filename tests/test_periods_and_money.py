"""
Period resolution and money arithmetic.

These are unit tests that do NOT require a database.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.errors import ValidationError
from app.models.enums import Currency, PeriodKind
from app.services.period_service import (
    DateRange,
    current_month,
    custom_range,
    months_back,
    previous_period,
    resolve_period,
)
from app.services.validation_service import parse_currency, parse_date, parse_period, to_naive_utc
from app.utils.helpers import calculate_growth, format_amount, percentage, round2


NOW = datetime(2024, 5, 15, 10, 30)


# ────────────────────────────────────────────
# PERIOD RESOLVER
# ────────────────────────────────────────────


class TestResolvePeriod:

    def test_week_is_trailing_seven_days(self):
        r = resolve_period(PeriodKind.WEEK, NOW)
        assert r.start == datetime(2024, 5, 8, 10, 30)
        assert r.end == NOW

    def test_month_starts_on_the_first(self):
        r = resolve_period(PeriodKind.MONTH, NOW)
        assert r.start == datetime(2024, 5, 1)
        assert r.end == NOW

    def test_quarter_start(self):
        r = resolve_period(PeriodKind.QUARTER, NOW)
        assert r.start == datetime(2024, 4, 1)

    @pytest.mark.parametrize("month,first_month", [
        (1, 1), (3, 1), (4, 4), (6, 4), (7, 7), (9, 7), (10, 10), (12, 10),
    ])
    def test_quarter_boundaries(self, month, first_month):
        r = resolve_period(PeriodKind.QUARTER, datetime(2023, month, 20, 8))
        assert r.start == datetime(2023, first_month, 1)

    def test_year_starts_january_first(self):
        r = resolve_period(PeriodKind.YEAR, NOW)
        assert r.start == datetime(2024, 1, 1)

    def test_accepts_plain_string(self):
        assert resolve_period("month", NOW) == resolve_period(PeriodKind.MONTH, NOW)

    def test_unknown_kind(self):
        with pytest.raises(ValidationError):
            resolve_period("fortnight", NOW)


class TestPreviousPeriod:

    def test_equal_length_and_adjacent(self):
        current = resolve_period(PeriodKind.MONTH, NOW)
        previous = previous_period(current)
        assert previous.end == current.start
        assert previous.length == current.length

    def test_month_is_rolling_not_calendar(self):
        """14.4375 days into May → previous window starts mid-April, not April 1st."""
        previous = previous_period(resolve_period(PeriodKind.MONTH, NOW))
        assert previous.start == datetime(2024, 5, 1) - timedelta(days=14, hours=10, minutes=30)
        assert previous.start != datetime(2024, 4, 1)

    def test_week(self):
        previous = previous_period(resolve_period(PeriodKind.WEEK, NOW))
        assert previous.start == datetime(2024, 5, 1, 10, 30)
        assert previous.end == datetime(2024, 5, 8, 10, 30)


class TestDateRange:

    def test_half_open(self):
        r = DateRange(start=datetime(2024, 5, 1), end=datetime(2024, 6, 1))
        assert r.contains(datetime(2024, 5, 1))
        assert r.contains(datetime(2024, 5, 31, 23, 59))
        assert not r.contains(datetime(2024, 6, 1))

    def test_to_dict(self):
        r = resolve_period(PeriodKind.QUARTER, NOW)
        assert r.to_dict(PeriodKind.QUARTER) == {
            "type": "quarter",
            "startDate": "2024-04-01T00:00:00",
            "endDate": "2024-05-15T10:30:00",
        }
        assert "type" not in r.to_dict()

    def test_current_month_covers_whole_month(self):
        r = current_month(datetime(2024, 2, 10))
        assert r.start == datetime(2024, 2, 1)
        assert r.end == datetime(2024, 3, 1)

    def test_current_month_december(self):
        r = current_month(datetime(2023, 12, 31, 23))
        assert r.end == datetime(2024, 1, 1)

    def test_custom_range_must_be_ordered(self):
        with pytest.raises(ValidationError):
            custom_range(datetime(2024, 5, 2), datetime(2024, 5, 1))
        with pytest.raises(ValidationError):
            custom_range(datetime(2024, 5, 1), datetime(2024, 5, 1))

    def test_months_back_clamps_day(self):
        assert months_back(datetime(2024, 8, 31), 6) == datetime(2024, 2, 29)


# ────────────────────────────────────────────
# INPUT VALIDATION
# ────────────────────────────────────────────


class TestParsing:

    def test_period_default(self):
        assert parse_period(None) == PeriodKind.MONTH
        assert parse_period("") == PeriodKind.MONTH

    def test_bad_period(self):
        with pytest.raises(ValidationError) as exc:
            parse_period("decade")
        assert exc.value.field == "period"
        assert exc.value.status_code == 400

    def test_currency_falls_back_to_user_default(self):
        assert parse_currency(None, "EUR") == Currency.EUR
        assert parse_currency("USD", "EUR") == Currency.USD

    def test_unsupported_currency(self):
        with pytest.raises(ValidationError):
            parse_currency("JPY", "GBP")

    def test_parse_date_variants(self):
        assert parse_date("startDate", "2024-05-01") == datetime(2024, 5, 1)
        assert parse_date("startDate", "2024-05-01T09:00:00Z") == datetime(2024, 5, 1, 9)
        assert parse_date("startDate", "2024-05-01T10:00:00+01:00") == datetime(2024, 5, 1, 9)
        assert parse_date("startDate", None) is None

    def test_parse_date_garbage(self):
        with pytest.raises(ValidationError):
            parse_date("endDate", "last tuesday")

    def test_to_naive_utc(self):
        aware = datetime(2024, 5, 31, 23, 30, tzinfo=timezone(timedelta(hours=-2)))
        assert to_naive_utc(aware) == datetime(2024, 6, 1, 1, 30)
        assert to_naive_utc(aware).tzinfo is None
        assert to_naive_utc(datetime(2024, 6, 1, 1, 30)) == datetime(2024, 6, 1, 1, 30)


# ────────────────────────────────────────────
# MONEY / PERCENTAGES
# ────────────────────────────────────────────


class TestGrowth:

    @pytest.mark.parametrize("current,previous,expected", [
        (0, 0, 0),
        (50, 0, 100),
        (150, 100, 50),
        (50, 100, -50),
        (0, 100, -100),
        (2, 1, 100),
    ])
    def test_growth(self, current, previous, expected):
        assert round2(calculate_growth(current, previous)) == expected

    def test_never_infinite(self):
        assert calculate_growth(Decimal("1000000"), 0) == Decimal("100")


class TestPercentage:

    def test_zero_denominator(self):
        assert percentage(10, 0) == 0

    def test_negative_denominator(self):
        """A loss-making period reports 0 margin rather than a sign-flipped one."""
        assert percentage(-30, -10) == 0

    def test_margin_rounding(self):
        assert round2(percentage(Decimal("16.75"), Decimal("41.75"))) == 40.12


class TestRounding:

    def test_half_up(self):
        assert round2(Decimal("2.345")) == 2.35
        assert round2(Decimal("2.344")) == 2.34
        assert round2("0.005") == 0.01

    def test_none_is_zero(self):
        assert round2(None) == 0.0

    def test_format_amount(self):
        assert format_amount(12.5, "GBP") == "£12.50"
        assert format_amount(Decimal("3"), "EUR") == "€3.00"
