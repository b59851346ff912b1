from datetime import timedelta

import pytest

from core.errors import ParseError, UnsupportedUnitError
from core.time_parser import parse_relative_time


def test_just_now_returns_now_exactly(now):
    assert parse_relative_time("just now", now) == now
    assert parse_relative_time("posted just now", now) == now


@pytest.mark.parametrize(
    "label, expected",
    [
        ("1 minute ago", timedelta(minutes=1)),
        ("3 hours ago", timedelta(hours=3)),
        ("2 days ago", timedelta(days=2)),
        ("1 week ago", timedelta(weeks=1)),
        ("2 months ago", timedelta(days=60)),
        ("1 year ago", timedelta(days=365)),
    ],
)
def test_units_subtract_from_now(now, label, expected):
    assert parse_relative_time(label, now) == now - expected


def test_plural_and_singular_parse_identically(now):
    assert parse_relative_time("1 hours ago", now) == parse_relative_time("1 hour ago", now)
    assert parse_relative_time("5 Minutes ago", now) == now - timedelta(minutes=5)


def test_month_and_year_use_fixed_approximations(now):
    assert now - parse_relative_time("1 month ago", now) == timedelta(milliseconds=2_592_000_000)
    assert now - parse_relative_time("1 year ago", now) == timedelta(milliseconds=31_536_000_000)


@pytest.mark.parametrize("label", ["ago 5 hours", "", "5 hours", "bogus", None])
def test_malformed_labels_raise_parse_error(now, label):
    with pytest.raises(ParseError) as excinfo:
        parse_relative_time(label, now)
    assert excinfo.value.label == label


def test_unknown_unit_raises_unsupported_unit(now):
    with pytest.raises(UnsupportedUnitError) as excinfo:
        parse_relative_time("5 fortnights ago", now)
    assert excinfo.value.unit == "fortnight"
    assert excinfo.value.label == "5 fortnights ago"


def test_out_of_range_count_is_a_parse_error(now):
    with pytest.raises(ParseError):
        parse_relative_time("99999999 years ago", now)
