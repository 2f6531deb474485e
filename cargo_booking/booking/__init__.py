from cargo_booking.booking.form_state import BookingFormState, BookingInputs, reduce
from cargo_booking.booking.interval import BookingInterval, build_interval, compute_duration
from cargo_booking.booking.orchestrator import BookingOrchestrator
from cargo_booking.booking.payment import PaymentCollector, PaymentHandoff
from cargo_booking.booking.pricing import RateCard, quote_amount
from cargo_booking.booking.state_machine import (
    BookingPhase,
    BookingStateMachine,
    TransitionTrigger,
)

__all__ = [
    "BookingOrchestrator",
    "BookingFormState",
    "BookingInputs",
    "reduce",
    "BookingInterval",
    "build_interval",
    "compute_duration",
    "RateCard",
    "quote_amount",
    "PaymentCollector",
    "PaymentHandoff",
    "BookingPhase",
    "BookingStateMachine",
    "TransitionTrigger",
]
