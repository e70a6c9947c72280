import time
import re
from datetime import datetime, timezone, timedelta
from decimal import Decimal, ROUND_HALF_UP
import hmac
from typing import Optional, Tuple


DAY_SECONDS = 24 * 3600


# ----------------------------
# Helpers
# ----------------------------
def now_ts() -> float:
    return time.time()


def to_iso(ts: float | None) -> Optional[str]:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def to_dt(ts: float) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def day_key(ts: float) -> str:
    # YYYY-MM-DD in UTC
    return to_dt(ts).strftime("%Y-%m-%d")


def today_str() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def is_valid_email(email: Optional[str]) -> bool:
    if not email:
        return False
    email = email.strip()
    # simple but effective email check
    return re.match(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", email) is not None


def ct_equal(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode(), b.encode())


def dollars_to_cents(amount: float | int | str) -> int:
    # half-up, so 0.125 dollars -> 13 cents
    cents = Decimal(str(amount)) * 100
    return int(cents.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def cents_to_dollars(cents: int | None) -> float:
    return (cents or 0) / 100


def fmt_money(cents: float | int | None) -> str:
    return f"${(cents or 0) / 100:.2f}"


def parse_date(value: str, *, end_of_day: bool = False) -> float:
    """Parse an ISO date or datetime into an epoch timestamp (UTC).

    A bare date (``2025-01-31``) means midnight; with ``end_of_day`` it
    means the last instant of that day so ranges are inclusive.
    """
    value = value.strip()
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValueError(f"invalid date: {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    if end_of_day and len(value) == 10:
        dt = dt + timedelta(days=1) - timedelta(microseconds=1)
    return dt.timestamp()


def parse_range(
    start_date: Optional[str], end_date: Optional[str]
) -> Optional[Tuple[float, float]]:
    # filter only applies when both ends are given
    if not start_date or not end_date:
        return None
    return (
        parse_date(start_date),
        parse_date(end_date, end_of_day=True),
    )
