from datetime import datetime, timezone

import pytest

from meetmind.helpers import (
    dollars_to_cents, cents_to_dollars, fmt_money, parse_date, parse_range,
    is_valid_email, ct_equal, day_key, to_iso,
)


@pytest.mark.parametrize("dollars,cents", [
    (99.99, 9999),
    ("10", 1000),
    (0.125, 13),
    (0.005, 1),
    (0, 0),
])
def test_dollars_to_cents_rounds_half_up(dollars, cents):
    assert dollars_to_cents(dollars) == cents


def test_cents_helpers():
    assert cents_to_dollars(12345) == 123.45
    assert cents_to_dollars(None) == 0
    assert fmt_money(2500) == "$25.00"
    assert fmt_money(None) == "$0.00"


def test_parse_date_naive_is_utc():
    ts = parse_date("2025-03-01")
    assert ts == datetime(2025, 3, 1, tzinfo=timezone.utc).timestamp()
    assert parse_date("2025-03-01T12:00:00Z") == ts + 12 * 3600


def test_parse_date_end_of_day_covers_whole_day():
    end = parse_date("2025-03-01", end_of_day=True)
    assert day_key(end) == "2025-03-01"
    assert end > parse_date("2025-03-01T23:59:59")
    # explicit times are left alone
    assert parse_date("2025-03-01T10:00:00", end_of_day=True) == \
        parse_date("2025-03-01T10:00:00")


def test_parse_date_rejects_garbage():
    with pytest.raises(ValueError):
        parse_date("yesterday")


def test_parse_range_needs_both_ends():
    assert parse_range(None, "2025-01-31") is None
    assert parse_range("2025-01-01", "") is None
    start, end = parse_range("2025-01-01", "2025-01-31")
    assert start < end


def test_email_and_compare():
    assert is_valid_email("a@b.co")
    assert not is_valid_email("not-an-email")
    assert not is_valid_email(None)
    assert ct_equal("abc", "abc")
    assert not ct_equal("abc", "abd")


def test_to_iso():
    assert to_iso(None) is None
    assert to_iso(0) == "1970-01-01T00:00:00+00:00"
