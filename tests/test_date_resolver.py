"""
Tests for services/date_resolver.py - date tokens to calendar dates.
"""

from datetime import date

import pytest

from services.date_resolver import DateResolver, next_weekday, parse_numeric_date

MONDAY = date(2024, 6, 3)


@pytest.fixture
def resolver():
    return DateResolver()


class TestRelativeDays:
    def test_today(self, resolver):
        assert resolver.resolve_one("today", MONDAY) == MONDAY
        assert resolver.resolve_one("היום", MONDAY) == MONDAY

    def test_tomorrow(self, resolver):
        assert resolver.resolve_one("Tomorrow", MONDAY) == date(2024, 6, 4)
        assert resolver.resolve_one("מחר", MONDAY) == date(2024, 6, 4)

    def test_day_after_tomorrow(self, resolver):
        assert resolver.resolve_one("day after tomorrow", MONDAY) == date(2024, 6, 5)
        assert resolver.resolve_one("מחרתיים", MONDAY) == date(2024, 6, 5)


class TestWeekdays:
    """Weekday names always point forward, never at today."""

    def test_later_this_week(self, resolver):
        assert resolver.resolve_one("friday", MONDAY) == date(2024, 6, 7)

    def test_same_weekday_is_next_week(self, resolver):
        assert resolver.resolve_one("monday", MONDAY) == date(2024, 6, 10)
        assert next_weekday(MONDAY, MONDAY.weekday()) == date(2024, 6, 10)

    def test_hebrew_weekdays_start_on_sunday(self, resolver):
        assert resolver.resolve_one("ראשון", MONDAY) == date(2024, 6, 9)
        assert resolver.resolve_one("שני", MONDAY) == date(2024, 6, 10)
        assert resolver.resolve_one("שלישי", MONDAY) == date(2024, 6, 4)
        assert resolver.resolve_one("שבת", MONDAY) == date(2024, 6, 8)


class TestNumericDates:
    """Numeric dates are day first."""

    def test_full_year(self):
        assert parse_numeric_date("15/12/2024") == date(2024, 12, 15)

    def test_other_separators(self):
        assert parse_numeric_date("1.7.2024") == date(2024, 7, 1)
        assert parse_numeric_date("01-07-2024") == date(2024, 7, 1)

    def test_two_digit_year(self):
        assert parse_numeric_date("15/12/24") == date(2024, 12, 15)

    def test_impossible_dates_are_rejected(self):
        assert parse_numeric_date("31/02/2024") is None
        assert parse_numeric_date("12/13/2024") is None
        assert parse_numeric_date("15/12/202") is None

    def test_not_a_date(self):
        assert parse_numeric_date("tomorrow") is None


class TestResolve:
    def test_unresolvable_tokens_are_dropped(self, resolver):
        assert resolver.resolve(["31/02/2024", "someday", ""], MONDAY) == []

    def test_duplicates_collapse(self, resolver):
        out = resolver.resolve(["tomorrow", "מחר", "friday", "שלישי"], MONDAY)
        assert out == [date(2024, 6, 4), date(2024, 6, 7)]

    def test_none_tokens(self, resolver):
        assert resolver.resolve(None, MONDAY) == []
