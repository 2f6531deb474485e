"""
Finite state machine for the booking flow.

Defines the nine booking phases and explicit transitions with triggers.
Every booking attempt follows a deterministic path through the phase graph:
quote, availability gate, payment order, external payment, verification.

Usage:
    sm = BookingStateMachine()
    sm.transition(TransitionTrigger.INPUTS_CHANGED)
    assert sm.current_state == BookingPhase.QUOTING
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from cargo_booking.errors import BookingError

logger = logging.getLogger(__name__)


class BookingPhase(str, Enum):
    """All possible phases of one booking attempt."""
    IDLE = "idle"
    QUOTING = "quoting"
    AWAITING_AVAILABILITY = "awaiting_availability"
    READY = "ready"
    SUBMITTING_ORDER = "submitting_order"
    AWAITING_PAYMENT = "awaiting_payment"
    VERIFYING_PAYMENT = "verifying_payment"
    COMPLETED = "completed"
    ERRORED = "errored"


class TransitionTrigger(str, Enum):
    """Events that cause phase transitions."""
    INPUTS_CHANGED = "inputs_changed"
    INTERVAL_VALID = "interval_valid"
    INTERVAL_INVALID = "interval_invalid"
    VEHICLE_FAILED = "vehicle_failed"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    CHECK_FAILED = "check_failed"
    NOT_QUOTABLE = "not_quotable"
    SUBMIT = "submit"
    ORDER_CREATED = "order_created"
    ORDER_FAILED = "order_failed"
    AVAILABILITY_LOST = "availability_lost"
    PAYMENT_COLLECTED = "payment_collected"
    PAYMENT_CANCELLED = "payment_cancelled"
    PAYMENT_FAILED = "payment_failed"
    BOOKING_CONFIRMED = "booking_confirmed"
    VERIFICATION_FAILED = "verification_failed"
    RETRY = "retry"
    RESET = "reset"


# Phases in which the customer may not edit inputs
LOCKED_PHASES = frozenset({
    BookingPhase.SUBMITTING_ORDER,
    BookingPhase.AWAITING_PAYMENT,
    BookingPhase.VERIFYING_PAYMENT,
})


@dataclass(frozen=True)
class Transition:
    """A single valid phase transition."""
    from_state: BookingPhase
    to_state: BookingPhase
    trigger: TransitionTrigger


@dataclass
class StateEntry:
    """Recorded history entry for a phase visit."""
    state: BookingPhase
    entered_at: datetime
    trigger: Optional[TransitionTrigger] = None


class InvalidTransitionError(BookingError):
    """Raised when a transition is not valid from the current phase."""


TRANSITIONS: list[Transition] = [
    # --- Quoting ---
    Transition(BookingPhase.IDLE, BookingPhase.QUOTING, TransitionTrigger.INPUTS_CHANGED),
    Transition(BookingPhase.IDLE, BookingPhase.ERRORED, TransitionTrigger.VEHICLE_FAILED),
    Transition(BookingPhase.QUOTING, BookingPhase.AWAITING_AVAILABILITY,
               TransitionTrigger.INTERVAL_VALID),
    Transition(BookingPhase.QUOTING, BookingPhase.IDLE, TransitionTrigger.INTERVAL_INVALID),
    Transition(BookingPhase.QUOTING, BookingPhase.ERRORED, TransitionTrigger.VEHICLE_FAILED),

    # --- Availability gate ---
    Transition(BookingPhase.AWAITING_AVAILABILITY, BookingPhase.READY,
               TransitionTrigger.AVAILABLE),
    Transition(BookingPhase.AWAITING_AVAILABILITY, BookingPhase.ERRORED,
               TransitionTrigger.UNAVAILABLE),
    Transition(BookingPhase.AWAITING_AVAILABILITY, BookingPhase.ERRORED,
               TransitionTrigger.CHECK_FAILED),
    Transition(BookingPhase.AWAITING_AVAILABILITY, BookingPhase.ERRORED,
               TransitionTrigger.NOT_QUOTABLE),
    Transition(BookingPhase.AWAITING_AVAILABILITY, BookingPhase.QUOTING,
               TransitionTrigger.INPUTS_CHANGED),

    # --- Ready ---
    Transition(BookingPhase.READY, BookingPhase.QUOTING, TransitionTrigger.INPUTS_CHANGED),
    Transition(BookingPhase.READY, BookingPhase.SUBMITTING_ORDER, TransitionTrigger.SUBMIT),

    # --- Payment order ---
    Transition(BookingPhase.SUBMITTING_ORDER, BookingPhase.AWAITING_PAYMENT,
               TransitionTrigger.ORDER_CREATED),
    Transition(BookingPhase.SUBMITTING_ORDER, BookingPhase.ERRORED,
               TransitionTrigger.ORDER_FAILED),
    Transition(BookingPhase.SUBMITTING_ORDER, BookingPhase.ERRORED,
               TransitionTrigger.AVAILABILITY_LOST),

    # --- External payment ---
    Transition(BookingPhase.AWAITING_PAYMENT, BookingPhase.VERIFYING_PAYMENT,
               TransitionTrigger.PAYMENT_COLLECTED),
    Transition(BookingPhase.AWAITING_PAYMENT, BookingPhase.READY,
               TransitionTrigger.PAYMENT_CANCELLED),
    Transition(BookingPhase.AWAITING_PAYMENT, BookingPhase.ERRORED,
               TransitionTrigger.PAYMENT_FAILED),

    # --- Verification ---
    Transition(BookingPhase.VERIFYING_PAYMENT, BookingPhase.COMPLETED,
               TransitionTrigger.BOOKING_CONFIRMED),
    Transition(BookingPhase.VERIFYING_PAYMENT, BookingPhase.ERRORED,
               TransitionTrigger.VERIFICATION_FAILED),

    # --- Recovery ---
    Transition(BookingPhase.ERRORED, BookingPhase.QUOTING, TransitionTrigger.INPUTS_CHANGED),
    Transition(BookingPhase.ERRORED, BookingPhase.QUOTING, TransitionTrigger.RETRY),
    Transition(BookingPhase.ERRORED, BookingPhase.ERRORED, TransitionTrigger.VEHICLE_FAILED),

    # --- Navigation away before submission ---
    Transition(BookingPhase.IDLE, BookingPhase.IDLE, TransitionTrigger.RESET),
    Transition(BookingPhase.QUOTING, BookingPhase.IDLE, TransitionTrigger.RESET),
    Transition(BookingPhase.AWAITING_AVAILABILITY, BookingPhase.IDLE, TransitionTrigger.RESET),
    Transition(BookingPhase.READY, BookingPhase.IDLE, TransitionTrigger.RESET),
    Transition(BookingPhase.ERRORED, BookingPhase.IDLE, TransitionTrigger.RESET),
]


def next_phase(current: BookingPhase, trigger: TransitionTrigger) -> BookingPhase:
    """
    Resolve the phase reached from ``current`` via ``trigger``.

    Raises:
        InvalidTransitionError: If no valid transition exists.
    """
    for t in TRANSITIONS:
        if t.from_state == current and t.trigger == trigger:
            return t.to_state

    valid = [t.trigger.value for t in TRANSITIONS if t.from_state == current]
    raise InvalidTransitionError(
        f"No valid transition from '{current.value}' "
        f"with trigger '{trigger.value}'. Valid triggers: {valid}"
    )


class BookingStateMachine:
    """
    Records the path one booking attempt takes through the phase graph.

    Every transition must be explicitly defined; anything else is rejected
    with a clear error indicating which triggers are allowed.
    """

    def __init__(self) -> None:
        self._current_state = BookingPhase.IDLE
        self._history: list[StateEntry] = [
            StateEntry(state=BookingPhase.IDLE, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> BookingPhase:
        return self._current_state

    def transition(self, trigger: TransitionTrigger) -> BookingPhase:
        """
        Execute a phase transition.

        Args:
            trigger: The event triggering the transition.

        Returns:
            The new booking phase.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        old_state = self._current_state
        self._current_state = next_phase(old_state, trigger)

        self._history.append(StateEntry(
            state=self._current_state,
            entered_at=datetime.now(timezone.utc),
            trigger=trigger,
        ))

        logger.debug(
            "Phase transition: %s -> %s (trigger: %s)",
            old_state.value, self._current_state.value, trigger.value,
        )
        return self._current_state

    def get_state_trace(self) -> list[str]:
        """Return ordered list of phase names visited."""
        return [entry.state.value for entry in self._history]

