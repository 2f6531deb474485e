"""Integration tests: orchestrator + reducer against the in-memory backend and the HTTP client."""

import asyncio
from datetime import date, datetime

import httpx
import pytest

from cargo_booking.booking.orchestrator import BookingOrchestrator
from cargo_booking.booking.payment import PaymentHandoff
from cargo_booking.booking.state_machine import BookingPhase
from cargo_booking.errors import AvailabilityDenied, VerificationError
from cargo_booking.schemas.booking_schema import BookingListFilter, BookingStatus, RentalMode
from cargo_booking.services.api_client import RentalApiClient
from cargo_booking.services.memory import InMemoryRentalService, SimulatedCheckout
from cargo_booking.utils import sign_payment


async def _ready(service, collector, **inputs) -> BookingOrchestrator:
    orchestrator = BookingOrchestrator("car-swift-01", service, collector, **inputs)
    await orchestrator.load_vehicle()
    await orchestrator.wait_for_availability()
    return orchestrator


class TestFullBookingFlow:
    """Drive complete attempts from the form to a stored booking."""

    @pytest.mark.asyncio
    async def test_daily_booking(self, memory_service):
        orchestrator = await _ready(
            memory_service, SimulatedCheckout(memory_service),
            start_date=date(2024, 6, 1), end_date=date(2024, 6, 3),
        )
        assert orchestrator.phase == BookingPhase.READY
        assert orchestrator.state.inputs.pickup_location == "Bengaluru - Indiranagar"

        booking = await orchestrator.submit()

        assert booking.total_amount == orchestrator.state.amount
        assert booking.duration == 2
        history = await memory_service.list_my_bookings(BookingListFilter())
        assert [b.id for b in history.bookings] == [booking.id]

    @pytest.mark.asyncio
    async def test_hourly_booking_through_widget_callbacks(self, memory_service):
        handoff = PaymentHandoff()
        orchestrator = await _ready(memory_service, handoff, start_date=date(2024, 6, 1),
                                    end_date=date(2024, 6, 1), mode=RentalMode.HOURLY,
                                    start_time="09:00", end_time="12:30")
        assert orchestrator.state.duration == 4

        task = asyncio.create_task(orchestrator.submit())
        while not handoff.pending:
            await asyncio.sleep(0)

        order = handoff.order
        assert order.amount_minor_units == 60000
        handoff.succeed("pay_widget1", sign_payment(order.order_id, "pay_widget1",
                                                    "cargo-test-secret"))
        booking = await task

        assert booking.booking_type == RentalMode.HOURLY
        assert booking.start_time == "09:00"
        assert orchestrator.phase == BookingPhase.COMPLETED

    @pytest.mark.asyncio
    async def test_second_customer_sees_car_taken(self, memory_service):
        dates = dict(start_date=date(2024, 6, 1), end_date=date(2024, 6, 3))
        first = await _ready(memory_service, SimulatedCheckout(memory_service), **dates)
        second = await _ready(memory_service, SimulatedCheckout(memory_service), **dates)
        assert second.phase == BookingPhase.READY

        await first.submit()
        with pytest.raises(AvailabilityDenied):
            await second.submit()
        assert second.phase == BookingPhase.ERRORED

        # Moving to free dates recovers the form
        second.update_inputs(start_date=date(2024, 6, 10), end_date=date(2024, 6, 11))
        await second.wait_for_availability()
        assert await second.submit() is not None

    @pytest.mark.asyncio
    async def test_abandoned_payment_keeps_selection(self, memory_service):
        checkout = SimulatedCheckout(memory_service, abandon=True)
        orchestrator = await _ready(memory_service, checkout, start_date=date(2024, 6, 1),
                                    end_date=date(2024, 6, 2))
        assert await orchestrator.submit() is None
        assert orchestrator.phase == BookingPhase.READY

        checkout.abandon = False
        booking = await orchestrator.submit()
        assert booking.status == BookingStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_forged_signature_is_fatal(self, memory_service):
        handoff = PaymentHandoff()
        orchestrator = await _ready(memory_service, handoff, start_date=date(2024, 6, 1),
                                    end_date=date(2024, 6, 2))
        task = asyncio.create_task(orchestrator.submit())
        while not handoff.pending:
            await asyncio.sleep(0)
        handoff.succeed("pay_x", "forged")

        with pytest.raises(VerificationError):
            await task
        assert orchestrator.state.fatal
        assert "contact support" in orchestrator.state.message
        history = await memory_service.list_my_bookings(BookingListFilter())
        assert history.bookings == []

    @pytest.mark.asyncio
    async def test_booking_can_be_cancelled_before_start(self):
        service = InMemoryRentalService(clock=lambda: datetime(2024, 5, 31, 18, 0))
        orchestrator = await _ready(service, SimulatedCheckout(service),
                                    start_date=date(2024, 6, 1), end_date=date(2024, 6, 2))
        booking = await orchestrator.submit()
        cancelled = await service.cancel_booking(booking.id)
        assert cancelled.status == BookingStatus.CANCELLED


class TestMalformedApiResponses:
    """The HTTP client and orchestrator together, over an httpx mock transport."""

    @staticmethod
    def _client(availability: httpx.Response) -> RentalApiClient:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/check-availability"):
                return availability
            return httpx.Response(200, json={
                "_id": "car-1", "title": "Test Hatchback",
                "pricePerDay": 1000, "pricePerHour": 100, "location": "Pune Station",
            })

        client = RentalApiClient(base_url="http://test.cargo.local/api", token="tok")
        client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return client

    @pytest.mark.asyncio
    async def test_html_availability_body_errors_the_form(self):
        client = self._client(httpx.Response(200, text="<html>gateway</html>"))
        orchestrator = BookingOrchestrator("car-1", client, PaymentHandoff(),
                                           start_date=date(2024, 6, 1), end_date=date(2024, 6, 3))
        await orchestrator.load_vehicle()
        await orchestrator.wait_for_availability()

        assert orchestrator.phase == BookingPhase.ERRORED
        assert orchestrator.state.message

        orchestrator.retry()
        await orchestrator.wait_for_availability()
        assert orchestrator.phase == BookingPhase.ERRORED
        await client.client.aclose()
