"""Shared test fixtures and helpers."""

import asyncio
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Union

import pytest

from cargo_booking.booking.payment import PaymentCollector
from cargo_booking.booking.state_machine import BookingStateMachine
from cargo_booking.schemas.booking_schema import (
    AvailabilityVerdict,
    BookingDraft,
    BookingListFilter,
    BookingPage,
    BookingStatus,
    ConfirmedBooking,
    PaymentOrder,
    PaymentOutcome,
    PaymentProof,
)
from cargo_booking.schemas.vehicle_schema import Vehicle, VehicleFilter, VehiclePage
from cargo_booking.services.base import RentalService
from cargo_booking.services.memory import InMemoryRentalService

START = date(2024, 6, 1)
END = date(2024, 6, 3)


def make_vehicle(
    vehicle_id: str = "car-1",
    price_per_day: str = "1000",
    price_per_hour: str = "100",
    location: str = "Pune Station",
    **extra,
) -> Vehicle:
    """Helper to create a Vehicle with sensible defaults."""
    return Vehicle.model_validate({
        "_id": vehicle_id,
        "title": "Test Hatchback",
        "brand": "Maruti",
        "model": "Swift",
        "pricePerDay": price_per_day,
        "pricePerHour": price_per_hour,
        "location": location,
        **extra,
    })


def make_order(order_id: str = "order_test1", amount: int = 200000) -> PaymentOrder:
    return PaymentOrder(
        order_id=order_id, amount_minor_units=amount, currency="INR",
        vehicle_title="Test Hatchback", gateway_key="rzp_test_key",
    )


def make_booking(draft: BookingDraft, booking_id: str = "bk_test1") -> ConfirmedBooking:
    return ConfirmedBooking(
        id=booking_id,
        status=BookingStatus.CONFIRMED,
        total_amount=Decimal("2000"),
        car=draft.car_id,
        start_date=datetime.combine(draft.start_date, datetime.min.time()),
        end_date=datetime.combine(draft.end_date, datetime.min.time()),
        booking_type=draft.booking_type,
        pickup_location=draft.pickup_location,
        dropoff_location=draft.dropoff_location,
    )


class FakeRentalService(RentalService):
    """Scriptable backend that records every call.

    With ``gated`` set, each availability check parks on a future appended
    to ``pending`` until the test resolves it.
    """

    def __init__(self, vehicle: Optional[Vehicle] = None) -> None:
        self.vehicle = vehicle or make_vehicle()
        self.verdict = AvailabilityVerdict(available=True, message="Car is available.")
        self.recheck_verdict: Optional[AvailabilityVerdict] = None
        self.gated = False
        self.pending: list[asyncio.Future] = []
        self.availability_calls: list[tuple[datetime, datetime]] = []
        self.vehicle_error: Optional[Exception] = None
        self.availability_error: Optional[Exception] = None
        self.order_error: Optional[Exception] = None
        self.verify_error: Optional[Exception] = None
        self.orders: list[BookingDraft] = []
        self.verifications: list[tuple[PaymentProof, BookingDraft]] = []

    async def get_vehicle(self, vehicle_id: str) -> Vehicle:
        if self.vehicle_error is not None:
            raise self.vehicle_error
        return self.vehicle

    async def list_vehicles(self, filters: VehicleFilter) -> VehiclePage:
        return VehiclePage(cars=[self.vehicle])

    async def list_brands(self) -> list[str]:
        return [self.vehicle.brand]

    async def check_availability(self, vehicle_id, start, end) -> AvailabilityVerdict:
        self.availability_calls.append((start, end))
        if self.availability_error is not None:
            raise self.availability_error
        if self.gated:
            future = asyncio.get_running_loop().create_future()
            self.pending.append(future)
            return await future
        if self.recheck_verdict is not None and len(self.availability_calls) > 1:
            return self.recheck_verdict
        return self.verdict

    async def create_payment_order(self, draft: BookingDraft) -> PaymentOrder:
        self.orders.append(draft)
        if self.order_error is not None:
            raise self.order_error
        return make_order()

    async def verify_payment_and_create_booking(self, proof, draft) -> ConfirmedBooking:
        self.verifications.append((proof, draft))
        if self.verify_error is not None:
            raise self.verify_error
        return make_booking(draft)

    async def cancel_booking(self, booking_id: str) -> ConfirmedBooking:
        raise NotImplementedError

    async def get_booking(self, booking_id: str) -> ConfirmedBooking:
        raise NotImplementedError

    async def list_my_bookings(self, filters: BookingListFilter) -> BookingPage:
        return BookingPage()


class ScriptedCollector(PaymentCollector):
    """Payment step that returns (or raises) a preset outcome."""

    def __init__(self, outcome: Union[PaymentOutcome, Exception, None] = None) -> None:
        self.outcome = outcome
        self.orders: list[PaymentOrder] = []

    async def collect(self, order: PaymentOrder, draft: BookingDraft) -> PaymentOutcome:
        self.orders.append(order)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        if self.outcome is None:
            return PaymentProof(order_id=order.order_id, payment_id="pay_1", signature="sig")
        return self.outcome


@pytest.fixture
def vehicle():
    return make_vehicle()


@pytest.fixture
def state_machine():
    return BookingStateMachine()


@pytest.fixture
def fake_service(vehicle):
    return FakeRentalService(vehicle)


@pytest.fixture
def collector():
    return ScriptedCollector()


@pytest.fixture
def memory_service():
    service = InMemoryRentalService(clock=lambda: datetime(2024, 5, 1, 12, 0))
    yield service
    service.reset()
