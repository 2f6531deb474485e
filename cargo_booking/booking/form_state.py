"""
Immutable booking-form state and the pure reducer that advances it.

The whole form is one frozen ``BookingFormState`` value. Every user action,
network response, or payment callback is an event, and
``reduce(state, event)`` returns the next state without side effects. The
orchestrator owns the I/O; this module only decides what each event means.

Availability responses carry the request token of the interval that
produced them. A response whose token no longer matches the current state
belongs to a superseded interval and is dropped.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Any, Mapping, Optional, Union

from cargo_booking.booking.form_validator import validate_submission
from cargo_booking.booking.interval import BookingInterval, build_interval
from cargo_booking.booking.pricing import ZERO, RateCard, quote_amount
from cargo_booking.booking.state_machine import (
    LOCKED_PHASES,
    BookingPhase,
    InvalidTransitionError,
    TransitionTrigger,
    next_phase,
)
from cargo_booking.config import settings
from cargo_booking.errors import IntervalError
from cargo_booking.schemas.booking_schema import (
    AvailabilityVerdict,
    BookingDraft,
    ConfirmedBooking,
    PaymentOrder,
    PaymentProof,
    RentalMode,
)
from cargo_booking.schemas.vehicle_schema import Vehicle
from cargo_booking.utils import as_calendar_date

logger = logging.getLogger(__name__)

CHECKING_MESSAGE = "Checking availability..."
NOT_AVAILABLE_MESSAGE = "Car is not available for the selected period."
CHECK_FAILED_MESSAGE = "Failed to check availability. Please try again."
NOT_QUOTABLE_MESSAGE = "Booking amount must be greater than zero."
VEHICLE_LOADING_MESSAGE = "Car details are still loading."

# Inputs that feed the interval; clock times only matter for hourly rentals
_DATE_FIELDS = ("start_date", "end_date", "mode")
_CLOCK_FIELDS = ("start_time", "end_time")


@dataclass(frozen=True)
class BookingInputs:
    """Everything the customer has typed or picked on the form."""

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_time: str = settings.booking.default_start_time
    end_time: str = settings.booking.default_end_time
    mode: RentalMode = RentalMode(settings.booking.default_mode)
    pickup_location: str = ""
    dropoff_location: str = ""
    special_requests: str = ""

    def affects_interval(self, other: "BookingInputs") -> bool:
        """Whether switching from ``other`` to these inputs changes the rental window."""
        if any(getattr(self, f) != getattr(other, f) for f in _DATE_FIELDS):
            return True
        if self.mode == RentalMode.HOURLY:
            return any(getattr(self, f) != getattr(other, f) for f in _CLOCK_FIELDS)
        return False


@dataclass(frozen=True)
class BookingFormState:
    """Snapshot of one booking attempt."""

    vehicle_id: str
    vehicle: Optional[Vehicle] = None
    inputs: BookingInputs = field(default_factory=BookingInputs)
    interval: Optional[BookingInterval] = None
    amount: Decimal = ZERO
    token: int = 0
    verdict: Optional[AvailabilityVerdict] = None
    phase: BookingPhase = BookingPhase.IDLE
    message: str = "Please select valid dates."
    error: Optional[str] = None
    fatal: bool = False
    form_errors: Mapping[str, str] = field(default_factory=dict)
    draft: Optional[BookingDraft] = None
    order: Optional[PaymentOrder] = None
    proof: Optional[PaymentProof] = None
    booking: Optional[ConfirmedBooking] = None
    triggers: tuple[TransitionTrigger, ...] = ()

    @property
    def duration(self) -> int:
        return self.interval.duration if self.interval is not None else 0

    @property
    def is_available(self) -> bool:
        return (
            self.phase == BookingPhase.READY
            and self.verdict is not None
            and self.verdict.available
        )

    @property
    def can_submit(self) -> bool:
        return self.is_available and self.amount > 0

    @property
    def is_locked(self) -> bool:
        return self.phase in LOCKED_PHASES

    @property
    def is_finished(self) -> bool:
        return self.phase == BookingPhase.COMPLETED or self.fatal


# --------------------------------------------------------------------------- #
# Events
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class VehicleLoaded:
    vehicle: Vehicle


@dataclass(frozen=True)
class VehicleLoadFailed:
    message: str


@dataclass(frozen=True)
class InputsChanged:
    changes: Mapping[str, Any]


@dataclass(frozen=True)
class AvailabilityResolved:
    token: int
    verdict: AvailabilityVerdict


@dataclass(frozen=True)
class AvailabilityFailed:
    token: int
    message: str = CHECK_FAILED_MESSAGE


@dataclass(frozen=True)
class RetryRequested:
    pass


@dataclass(frozen=True)
class SubmitRequested:
    pass


@dataclass(frozen=True)
class AvailabilityLost:
    message: str = NOT_AVAILABLE_MESSAGE


@dataclass(frozen=True)
class OrderCreated:
    order: PaymentOrder


@dataclass(frozen=True)
class OrderFailed:
    message: str


@dataclass(frozen=True)
class PaymentCollected:
    proof: PaymentProof


@dataclass(frozen=True)
class PaymentCancelled:
    reason: str = "Payment was cancelled."


@dataclass(frozen=True)
class PaymentFailed:
    message: str


@dataclass(frozen=True)
class BookingConfirmed:
    booking: ConfirmedBooking


@dataclass(frozen=True)
class VerificationFailed:
    message: str


@dataclass(frozen=True)
class Reset:
    pass


BookingEvent = Union[
    VehicleLoaded, VehicleLoadFailed, InputsChanged, AvailabilityResolved,
    AvailabilityFailed, RetryRequested, SubmitRequested, AvailabilityLost,
    OrderCreated, OrderFailed, PaymentCollected, PaymentCancelled, PaymentFailed,
    BookingConfirmed, VerificationFailed, Reset,
]


# --------------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------------- #


def initial_state(vehicle_id: str, **inputs: Any) -> BookingFormState:
    """Fresh form for a vehicle, optionally pre-filled."""
    return BookingFormState(vehicle_id=vehicle_id, inputs=BookingInputs(**inputs))


def build_draft(state: BookingFormState) -> BookingDraft:
    """Assemble the payload sent for payment-order creation and verification."""
    inputs = state.inputs
    hourly = inputs.mode == RentalMode.HOURLY
    return BookingDraft(
        car_id=state.vehicle_id,
        start_date=as_calendar_date(inputs.start_date),
        end_date=as_calendar_date(inputs.end_date),
        start_time=inputs.start_time if hourly else None,
        end_time=inputs.end_time if hourly else None,
        booking_type=inputs.mode,
        pickup_location=inputs.pickup_location.strip(),
        dropoff_location=inputs.dropoff_location.strip(),
        special_requests=inputs.special_requests.strip(),
    )


def _advance(
    state: BookingFormState, triggers: tuple[TransitionTrigger, ...], **changes: Any
) -> BookingFormState:
    phase = state.phase
    for trigger in triggers:
        phase = next_phase(phase, trigger)
    return replace(state, phase=phase, triggers=triggers, **changes)


def _ensure_open(state: BookingFormState) -> None:
    if state.fatal:
        raise InvalidTransitionError(
            "Payment verification failed for this attempt; start a new booking."
        )


def _requote(
    state: BookingFormState,
    entry: TransitionTrigger,
    inputs: BookingInputs,
    vehicle: Optional[Vehicle],
) -> BookingFormState:
    """Recompute interval and price, and tag a fresh availability token."""
    token = state.token + 1
    cleared = dict(
        inputs=inputs, vehicle=vehicle, token=token, verdict=None, error=None,
        form_errors={}, draft=None, order=None, proof=None,
    )

    if vehicle is None:
        return _advance(
            state, (entry, TransitionTrigger.INTERVAL_INVALID),
            interval=None, amount=ZERO, message=VEHICLE_LOADING_MESSAGE, **cleared,
        )

    try:
        interval = build_interval(
            inputs.start_date, inputs.end_date, inputs.start_time, inputs.end_time, inputs.mode
        )
    except IntervalError as e:
        return _advance(
            state, (entry, TransitionTrigger.INTERVAL_INVALID),
            interval=None, amount=ZERO, message=str(e), **cleared,
        )

    amount = quote_amount(interval, RateCard.from_vehicle(vehicle))
    logger.debug(
        "Quoted %s for %d %s (token %d)", amount, interval.duration, interval.unit_label, token
    )
    return _advance(
        state, (entry, TransitionTrigger.INTERVAL_VALID),
        interval=interval, amount=amount, message=CHECKING_MESSAGE, **cleared,
    )


# --------------------------------------------------------------------------- #
# Reducer
# --------------------------------------------------------------------------- #


def reduce(state: BookingFormState, event: BookingEvent) -> BookingFormState:
    """
    Apply one event and return the next state.

    Events that arrive for a superseded availability request return ``state``
    itself, unchanged.

    Raises:
        InvalidTransitionError: If the event is not allowed in the current phase.
    """
    if isinstance(event, VehicleLoaded):
        _ensure_open(state)
        vehicle = event.vehicle
        inputs = state.inputs
        if not inputs.pickup_location:
            inputs = replace(inputs, pickup_location=vehicle.location)
        if not inputs.dropoff_location:
            inputs = replace(inputs, dropoff_location=vehicle.location)
        return _requote(state, TransitionTrigger.INPUTS_CHANGED, inputs, vehicle)

    if isinstance(event, VehicleLoadFailed):
        return _advance(
            state, (TransitionTrigger.VEHICLE_FAILED,), error=event.message, message=event.message,
        )

    if isinstance(event, InputsChanged):
        _ensure_open(state)
        if state.is_locked or state.phase == BookingPhase.COMPLETED:
            raise InvalidTransitionError(
                f"Inputs cannot change while the booking is '{state.phase.value}'."
            )
        inputs = replace(state.inputs, **event.changes)
        if not inputs.affects_interval(state.inputs):
            return replace(state, inputs=inputs, form_errors={}, triggers=())
        return _requote(state, TransitionTrigger.INPUTS_CHANGED, inputs, state.vehicle)

    if isinstance(event, AvailabilityResolved):
        if event.token != state.token or state.phase != BookingPhase.AWAITING_AVAILABILITY:
            logger.debug("Discarding stale availability verdict (token %d)", event.token)
            return state
        verdict = event.verdict
        if not verdict.available:
            message = verdict.message or NOT_AVAILABLE_MESSAGE
            return _advance(
                state, (TransitionTrigger.UNAVAILABLE,),
                verdict=verdict, error=message, message=message,
            )
        if state.amount <= 0:
            return _advance(
                state, (TransitionTrigger.NOT_QUOTABLE,),
                verdict=verdict, error=NOT_QUOTABLE_MESSAGE, message=NOT_QUOTABLE_MESSAGE,
            )
        return _advance(
            state, (TransitionTrigger.AVAILABLE,), verdict=verdict, message=verdict.message,
        )

    if isinstance(event, AvailabilityFailed):
        if event.token != state.token or state.phase != BookingPhase.AWAITING_AVAILABILITY:
            logger.debug("Discarding stale availability failure (token %d)", event.token)
            return state
        return _advance(
            state, (TransitionTrigger.CHECK_FAILED,), error=event.message, message=event.message,
        )

    if isinstance(event, RetryRequested):
        _ensure_open(state)
        return _requote(state, TransitionTrigger.RETRY, state.inputs, state.vehicle)

    if isinstance(event, SubmitRequested):
        _ensure_open(state)
        errors = validate_submission(state)
        if errors:
            return replace(state, form_errors=errors, triggers=())
        return _advance(
            state, (TransitionTrigger.SUBMIT,), form_errors={}, error=None, draft=build_draft(state),
        )

    if isinstance(event, AvailabilityLost):
        return _advance(
            state, (TransitionTrigger.AVAILABILITY_LOST,),
            verdict=AvailabilityVerdict(available=False, message=event.message),
            error=event.message, message=event.message,
        )

    if isinstance(event, OrderCreated):
        return _advance(state, (TransitionTrigger.ORDER_CREATED,), order=event.order)

    if isinstance(event, OrderFailed):
        return _advance(
            state, (TransitionTrigger.ORDER_FAILED,), error=event.message, message=event.message,
        )

    if isinstance(event, PaymentCollected):
        return _advance(state, (TransitionTrigger.PAYMENT_COLLECTED,), proof=event.proof)

    if isinstance(event, PaymentCancelled):
        return _advance(
            state, (TransitionTrigger.PAYMENT_CANCELLED,), order=None, message=event.reason,
        )

    if isinstance(event, PaymentFailed):
        return _advance(
            state, (TransitionTrigger.PAYMENT_FAILED,),
            order=None, error=event.message, message=event.message,
        )

    if isinstance(event, BookingConfirmed):
        return _advance(
            state, (TransitionTrigger.BOOKING_CONFIRMED,),
            booking=event.booking, message="Booking confirmed and payment successful!",
        )

    if isinstance(event, VerificationFailed):
        return _advance(
            state, (TransitionTrigger.VERIFICATION_FAILED,),
            error=event.message, message=event.message, fatal=True,
        )

    if isinstance(event, Reset):
        _ensure_open(state)
        return _advance(
            state, (TransitionTrigger.RESET,),
            interval=None, amount=ZERO, token=state.token + 1, verdict=None, error=None,
            form_errors={}, draft=None, order=None, proof=None,
            message="Please select valid dates.",
        )

    raise TypeError(f"Unknown booking event: {event!r}")
