"""
Submission gate for the booking form.

Each rule pairs a form field with a check and the message shown next to
that field. Every rule is evaluated so the customer sees all violations at
once instead of fixing them one at a time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from cargo_booking.booking.interval import build_interval
from cargo_booking.errors import IntervalError, OffGridTime
from cargo_booking.schemas.booking_schema import RentalMode

if TYPE_CHECKING:
    from cargo_booking.booking.form_state import BookingFormState

logger = logging.getLogger(__name__)


def _has_start_date(state: BookingFormState) -> bool:
    return state.inputs.start_date is not None


def _has_end_date(state: BookingFormState) -> bool:
    return state.inputs.end_date is not None


def _times_on_grid(state: BookingFormState) -> bool:
    inputs = state.inputs
    if inputs.mode != RentalMode.HOURLY or inputs.start_date is None or inputs.end_date is None:
        return True
    try:
        build_interval(
            inputs.start_date, inputs.end_date, inputs.start_time, inputs.end_time, inputs.mode
        )
    except OffGridTime:
        return False
    except IntervalError:
        return True
    return True


def _range_is_ordered(state: BookingFormState) -> bool:
    inputs = state.inputs
    if inputs.start_date is None or inputs.end_date is None:
        return True
    try:
        build_interval(
            inputs.start_date, inputs.end_date, inputs.start_time, inputs.end_time, inputs.mode
        )
    except OffGridTime:
        return True
    except IntervalError:
        return False
    return True


def _has_pickup(state: BookingFormState) -> bool:
    return bool(state.inputs.pickup_location.strip())


def _has_dropoff(state: BookingFormState) -> bool:
    return bool(state.inputs.dropoff_location.strip())


def _is_available(state: BookingFormState) -> bool:
    return state.is_available


def _amount_positive(state: BookingFormState) -> bool:
    return state.amount > 0


@dataclass(frozen=True)
class FieldRule:
    """One submission check bound to a form field."""

    field: str
    message: str
    check: Callable[[BookingFormState], bool]


SUBMISSION_RULES: list[FieldRule] = [
    FieldRule("startDate", "Start date is required.", _has_start_date),
    FieldRule("endDate", "End date is required.", _has_end_date),
    FieldRule("timeRange", "Start and end times must be half-hour marks.", _times_on_grid),
    FieldRule("dateRange", "End date/time must be after start date/time.", _range_is_ordered),
    FieldRule("pickupLocation", "Pickup location is required.", _has_pickup),
    FieldRule("dropoffLocation", "Dropoff location is required.", _has_dropoff),
    FieldRule("availability", "Car is not available for the selected period.", _is_available),
    FieldRule("amount", "Booking amount must be greater than zero.", _amount_positive),
]


def validate_submission(state: BookingFormState) -> dict[str, str]:
    """Return every violated field mapped to its message; empty means submittable."""
    errors = {rule.field: rule.message for rule in SUBMISSION_RULES if not rule.check(state)}
    if errors:
        logger.debug("Submission blocked on fields: %s", sorted(errors))
    return errors
