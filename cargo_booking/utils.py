"""Shared utilities used across the booking core."""

import hashlib
import hmac
import re
from datetime import date, datetime, time

SLOT_MINUTES = 30

_CLOCK_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def generate_time_options(step_minutes: int = SLOT_MINUTES) -> list[str]:
    """Return the clock marks offered by the booking form.

    Examples:
        >>> generate_time_options()[:3]
        ['00:00', '00:30', '01:00']
        >>> len(generate_time_options())
        48
    """
    return [
        f"{minutes // 60:02d}:{minutes % 60:02d}"
        for minutes in range(0, 24 * 60, step_minutes)
    ]


TIME_OPTIONS: tuple[str, ...] = tuple(generate_time_options())


def is_grid_time(value: str) -> bool:
    """Check whether a clock value is one of the half-hour marks."""
    return value in TIME_OPTIONS


def parse_clock_time(value: str) -> time:
    """Parse an ``HH:MM`` clock value into a ``time``."""
    match = _CLOCK_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid clock time: {value!r}")
    return time(int(match.group(1)), int(match.group(2)))


def as_datetime(value: date) -> datetime:
    """Promote a calendar date to midnight; datetimes pass through unchanged."""
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def as_calendar_date(value: date) -> date:
    """Strip any clock component from a selected calendar value."""
    if isinstance(value, datetime):
        return value.date()
    return value


def sign_payment(order_id: str, payment_id: str, secret: str) -> str:
    """Compute the gateway signature for a payment: HMAC-SHA256 of ``order|payment``."""
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_payment_signature(
    order_id: str, payment_id: str, signature: str, secret: str
) -> bool:
    """Constant-time comparison of a payment signature."""
    expected = sign_payment(order_id, payment_id, secret)
    return hmac.compare_digest(expected, signature)
