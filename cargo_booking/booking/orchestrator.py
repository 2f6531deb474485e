"""
Booking orchestrator: drives one booking attempt against the rental backend.

Sequence: quote -> availability check -> submit -> payment order ->
external payment -> verification. All state lives in an immutable
``BookingFormState``; this class only performs the I/O each phase needs and
feeds the results back through ``reduce``.

Input edits are synchronous and may fire a new availability check. A newer
edit cancels the previous check, and the request token on each result keeps
a late answer from authorizing payment for an interval that is no longer
current. Once submission starts, edits are refused until the attempt
completes or errors.
"""

import asyncio
from typing import Any, Optional

from cargo_booking.booking.form_state import (
    CHECK_FAILED_MESSAGE,
    NOT_AVAILABLE_MESSAGE,
    AvailabilityFailed,
    AvailabilityLost,
    AvailabilityResolved,
    BookingConfirmed,
    BookingEvent,
    BookingFormState,
    InputsChanged,
    OrderCreated,
    OrderFailed,
    PaymentCancelled,
    PaymentCollected,
    PaymentFailed,
    Reset,
    RetryRequested,
    SubmitRequested,
    VehicleLoaded,
    VehicleLoadFailed,
    VerificationFailed,
    initial_state,
    reduce,
)
from cargo_booking.booking.interval import BookingInterval
from cargo_booking.booking.payment import PaymentCollector
from cargo_booking.booking.state_machine import BookingPhase, BookingStateMachine
from cargo_booking.config import settings
from cargo_booking.errors import (
    AvailabilityDenied,
    BookingLockedError,
    FormValidationError,
    ServiceError,
    VerificationError,
)
from cargo_booking.logging_context import (
    attempt_scope,
    get_attempt_logger,
    new_attempt_id,
    set_attempt_id,
)
from cargo_booking.schemas.booking_schema import ConfirmedBooking, UserCancelled
from cargo_booking.schemas.vehicle_schema import Vehicle
from cargo_booking.services.base import RentalService

logger = get_attempt_logger(__name__)

ORDER_FAILED_MESSAGE = "Failed to initiate payment."
VERIFICATION_FAILED_MESSAGE = "Payment verification failed."
VEHICLE_LOAD_FAILED_MESSAGE = "Failed to load car details. Please try again."


class BookingOrchestrator:
    """Runs the booking form's state machine for one vehicle."""

    def __init__(
        self,
        vehicle_id: str,
        service: RentalService,
        payment: PaymentCollector,
        support_contact: Optional[str] = None,
        **initial_inputs: Any,
    ) -> None:
        self._service = service
        self._payment = payment
        self._support_contact = support_contact or settings.booking.support_contact
        self._state = initial_state(vehicle_id, **initial_inputs)
        self._machine = BookingStateMachine()
        self._pending: Optional[asyncio.Task] = None
        self.attempt_id = new_attempt_id()

    @property
    def state(self) -> BookingFormState:
        return self._state

    @property
    def phase(self) -> BookingPhase:
        return self._state.phase

    @property
    def machine(self) -> BookingStateMachine:
        return self._machine

    # ------------------------------------------------------------------ #
    # Event plumbing
    # ------------------------------------------------------------------ #

    def _dispatch(self, event: BookingEvent) -> BookingFormState:
        new_state = reduce(self._state, event)
        if new_state is not self._state:
            for trigger in new_state.triggers:
                self._machine.transition(trigger)
            self._state = new_state
        return self._state

    def _ensure_editable(self) -> None:
        if self._state.is_locked:
            raise BookingLockedError("A submission is in progress; wait for it to finish.")
        if self._state.is_finished:
            raise BookingLockedError("This booking attempt has finished.")

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    def _schedule_availability(self) -> None:
        self._cancel_pending()
        state = self._state
        if state.phase != BookingPhase.AWAITING_AVAILABILITY:
            return
        self._pending = asyncio.get_running_loop().create_task(
            self._check_availability(state.token, state.interval)
        )

    async def _check_availability(self, token: int, interval: BookingInterval) -> None:
        set_attempt_id(self.attempt_id)
        try:
            verdict = await self._service.check_availability(
                self._state.vehicle_id, interval.start, interval.end
            )
        except ServiceError as e:
            logger.warning("Availability check failed (token %d): %s", token, e)
            self._dispatch(AvailabilityFailed(token, e.message or CHECK_FAILED_MESSAGE))
            return
        except Exception:
            logger.exception("Unexpected error during availability check (token %d)", token)
            self._dispatch(AvailabilityFailed(token, CHECK_FAILED_MESSAGE))
            return
        self._dispatch(AvailabilityResolved(token, verdict))

    # ------------------------------------------------------------------ #
    # Form events
    # ------------------------------------------------------------------ #

    async def load_vehicle(self) -> Vehicle:
        """Fetch the target vehicle and quote the current selection."""
        self._ensure_editable()
        with attempt_scope(self.attempt_id):
            try:
                vehicle = await self._service.get_vehicle(self._state.vehicle_id)
            except Exception as e:
                if isinstance(e, ServiceError):
                    logger.error("Failed to load car %s: %s", self._state.vehicle_id, e)
                else:
                    logger.exception("Unexpected error loading car %s", self._state.vehicle_id)
                self._dispatch(VehicleLoadFailed(VEHICLE_LOAD_FAILED_MESSAGE))
                raise
            self._dispatch(VehicleLoaded(vehicle))
            self._schedule_availability()
        return vehicle

    def update_inputs(self, **changes: Any) -> BookingFormState:
        """Apply form edits; interval changes re-quote and re-check availability."""
        self._ensure_editable()
        with attempt_scope(self.attempt_id):
            token = self._state.token
            self._dispatch(InputsChanged(changes))
            if self._state.token != token:
                self._schedule_availability()
        return self._state

    def retry(self) -> BookingFormState:
        """
        Re-check availability for the current inputs after a recoverable error.

        Raises:
            InvalidTransitionError: The form is not in the errored phase.
        """
        self._ensure_editable()
        with attempt_scope(self.attempt_id):
            self._dispatch(RetryRequested())
            self._schedule_availability()
        return self._state

    def reset(self) -> BookingFormState:
        """Customer navigated away: drop in-flight work and return to idle."""
        self._ensure_editable()
        with attempt_scope(self.attempt_id):
            self._cancel_pending()
            return self._dispatch(Reset())

    async def wait_for_availability(self) -> BookingFormState:
        """Wait until the newest availability check (if any) has settled."""
        while self._pending is not None and not self._pending.done():
            task = self._pending
            try:
                await task
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
        return self._state

    # ------------------------------------------------------------------ #
    # Submission
    # ------------------------------------------------------------------ #

    async def submit(self) -> Optional[ConfirmedBooking]:
        """
        Run the payment handshake for the current form.

        Returns:
            The confirmed booking, or ``None`` if the customer closed the
            payment window (the form goes back to ready).

        Raises:
            FormValidationError: Form incomplete; nothing was sent.
            AvailabilityDenied: The car was taken before the order was created.
            ServiceError: Order creation or payment failed; the customer may adjust and retry.
            VerificationError: Payment could not be verified; terminal for this attempt.
        """
        self._ensure_editable()
        with attempt_scope(self.attempt_id):
            return await self._submit()

    async def _submit(self) -> Optional[ConfirmedBooking]:
        state = self._dispatch(SubmitRequested())
        if state.form_errors:
            raise FormValidationError(dict(state.form_errors))

        self._cancel_pending()
        draft = state.draft
        interval = state.interval
        logger.info("Submitting booking for car %s: %s %d %s, amount %s",
                    draft.car_id, draft.booking_type.value, interval.duration,
                    interval.unit_label, state.amount)

        # The earlier verdict may be stale; the backend is the only arbiter
        try:
            verdict = await self._service.check_availability(
                draft.car_id, interval.start, interval.end
            )
            if not verdict.available:
                message = verdict.message or NOT_AVAILABLE_MESSAGE
                self._dispatch(AvailabilityLost(message))
                raise AvailabilityDenied(message)
            order = await self._service.create_payment_order(draft)
        except AvailabilityDenied:
            raise
        except ServiceError as e:
            logger.error("Payment order creation failed: %s", e)
            self._dispatch(OrderFailed(e.message or ORDER_FAILED_MESSAGE))
            raise
        except Exception:
            logger.exception("Unexpected error while creating payment order")
            self._dispatch(OrderFailed(ORDER_FAILED_MESSAGE))
            raise
        self._dispatch(OrderCreated(order))

        try:
            outcome = await self._payment.collect(order, draft)
        except Exception as e:
            message = getattr(e, "message", None) or str(e) or "Payment failed."
            logger.error("Payment for order %s failed: %s", order.order_id, message)
            self._dispatch(PaymentFailed(message))
            raise

        if isinstance(outcome, UserCancelled):
            logger.info("Payment for order %s cancelled by customer", order.order_id)
            self._dispatch(PaymentCancelled(outcome.reason))
            return None

        self._dispatch(PaymentCollected(outcome))
        try:
            booking = await self._service.verify_payment_and_create_booking(outcome, draft)
        except Exception as e:
            message = getattr(e, "message", None) or VERIFICATION_FAILED_MESSAGE
            error = VerificationError(message, support_contact=self._support_contact)
            logger.error("Verification failed for payment %s of order %s: %s",
                         outcome.payment_id, order.order_id, message)
            self._dispatch(VerificationFailed(error.support_message()))
            raise error from e

        self._dispatch(BookingConfirmed(booking))
        logger.info("Booking %s completed", booking.id)
        return booking
