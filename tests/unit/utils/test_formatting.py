import pytest

from membercard.utils.formatting import format_currency, format_points, relative_time, round_half_up
from membercard.utils.time_utils import format_timestamp, parse_timestamp

NOW = 1_700_000_000


def test_format_currency():
    assert format_currency(25680.5) == "฿25,680.50"
    assert format_currency(None) == "฿0.00"


def test_format_points():
    assert format_points(12000) == "12,000"
    assert format_points(None) == "0"


@pytest.mark.parametrize(
    "value, expected",
    [(46.666, 47), (46.5, 47), (46.49, 46), (0, 0), (100.0, 100)],
)
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


@pytest.mark.parametrize(
    "seconds_ago, expected",
    [
        (10, "just now"),
        (60, "1 minute ago"),
        (5 * 60, "5 minutes ago"),
        (3 * 3600, "3 hours ago"),
        (2 * 86400, "2 days ago"),
    ],
)
def test_relative_time(seconds_ago, expected):
    assert relative_time(NOW - seconds_ago, NOW) == expected


def test_relative_time_never_and_old_dates():
    assert relative_time(None, NOW) == "never"
    assert relative_time(NOW - 40 * 86400, NOW) == "05 October 2023"


def test_parse_timestamp_variants():
    assert parse_timestamp(NOW) == NOW
    assert parse_timestamp(NOW * 1000) == NOW
    assert parse_timestamp(str(NOW)) == NOW
    assert parse_timestamp("2023-11-14T22:13:20Z") == NOW
    assert parse_timestamp("2023-11-14T22:13:20") == NOW
    assert parse_timestamp("2023-11-15T05:13:20+07:00") == NOW


def test_parse_timestamp_rejects_garbage():
    with pytest.raises(ValueError):
        parse_timestamp("next tuesday")
    with pytest.raises(ValueError):
        parse_timestamp(True)


@pytest.mark.parametrize("value", [float("inf"), float("-inf"), float("nan"), 1e400, 10**400, "9" * 30])
def test_parse_timestamp_rejects_non_finite_and_out_of_range(value):
    with pytest.raises(ValueError):
        parse_timestamp(value)


def test_format_timestamp():
    assert format_timestamp(NOW) == "2023-11-14 22:13:20"
    assert format_timestamp(None) is None
