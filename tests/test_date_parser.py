"""Tests for date parser with relative dates."""

import pytest
from datetime import date, timedelta
from dateutil.relativedelta import relativedelta
from bizledger.utils.date_parser import parse_date


def test_parse_absolute_date():
    """Test parsing absolute dates."""
    result = parse_date("2024-01-15")
    assert result == date(2024, 1, 15)


def test_parse_written_date():
    assert parse_date("January 15, 2024") == date(2024, 1, 15)


def test_parse_today():
    """Test parsing 'today'."""
    result = parse_date("today")
    assert result == date.today()


def test_parse_yesterday():
    """Test parsing 'yesterday'."""
    result = parse_date("Yesterday ")
    assert result == date.today() - timedelta(days=1)


def test_parse_tomorrow():
    """Test parsing 'tomorrow'."""
    result = parse_date("tomorrow")
    assert result == date.today() + timedelta(days=1)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("in 7 days", timedelta(days=7)),
        ("in 1 day", timedelta(days=1)),
        ("in 2 weeks", timedelta(weeks=2)),
    ],
)
def test_parse_offsets(text, expected):
    """Test due-date style offsets."""
    assert parse_date(text) == date.today() + expected


def test_parse_month_offset():
    assert parse_date("in 1 month") == date.today() + relativedelta(months=1)


@pytest.mark.parametrize("text", ["in a week", "in 3 fortnights", "not a date"])
def test_invalid_dates(text):
    with pytest.raises(ValueError, match="Could not parse date"):
        parse_date(text)
