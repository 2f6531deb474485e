"""
In-memory rental backend.

Mirrors the behaviour of the production API closely enough to drive the
console demo and the tests: a small seeded fleet, overlap-based conflict
detection, signed payment orders, and per-customer booking history. Nothing
leaves the process.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from cargo_booking.booking.interval import BookingInterval, build_interval
from cargo_booking.booking.payment import PaymentCollector
from cargo_booking.booking.pricing import RateCard, quote_amount
from cargo_booking.config import settings
from cargo_booking.errors import (
    IntervalError,
    NotFound,
    ValidationError,
    VerificationError,
)
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
    UserCancelled,
)
from cargo_booking.schemas.vehicle_schema import Pagination, Vehicle, VehicleFilter, VehiclePage
from cargo_booking.services.base import RentalService
from cargo_booking.utils import sign_payment, verify_payment_signature

logger = logging.getLogger(__name__)

CATALOG_PAGE_SIZE = 12
MINOR_UNITS = 100

SEED_FLEET: list[dict] = [
    {
        "_id": "car-swift-01",
        "title": "Maruti Swift VXi",
        "brand": "Maruti",
        "model": "Swift",
        "year": 2022,
        "pricePerDay": "1800",
        "pricePerHour": "150",
        "location": "Bengaluru - Indiranagar",
        "fuelType": "Petrol",
        "transmission": "Manual",
        "seats": 5,
    },
    {
        "_id": "car-creta-02",
        "title": "Hyundai Creta SX",
        "brand": "Hyundai",
        "model": "Creta",
        "year": 2023,
        "pricePerDay": "3200",
        "pricePerHour": "260",
        "location": "Bengaluru - Koramangala",
        "fuelType": "Diesel",
        "transmission": "Automatic",
        "seats": 5,
    },
    {
        "_id": "car-nexon-03",
        "title": "Tata Nexon EV",
        "brand": "Tata",
        "model": "Nexon EV",
        "year": 2023,
        "pricePerDay": "2800",
        "pricePerHour": "220",
        "location": "Bengaluru - Whitefield",
        "fuelType": "Electric",
        "transmission": "Automatic",
        "seats": 5,
    },
    {
        "_id": "car-innova-04",
        "title": "Toyota Innova Crysta",
        "brand": "Toyota",
        "model": "Innova Crysta",
        "year": 2021,
        "pricePerDay": "4000",
        "pricePerHour": "320",
        "location": "Bengaluru - Airport",
        "fuelType": "Diesel",
        "transmission": "Manual",
        "seats": 7,
        "isAvailable": False,
    },
]

_SORT_KEYS: dict[str, Callable[[Vehicle], object]] = {
    "pricePerDay": lambda v: v.price_per_day,
    "pricePerHour": lambda v: v.price_per_hour,
    "year": lambda v: v.year or 0,
    "title": lambda v: v.title.lower(),
}

_BLOCKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


@dataclass
class _OrderRecord:
    order: PaymentOrder
    draft: BookingDraft
    interval: BookingInterval
    amount: Decimal
    consumed: bool = False


@dataclass
class _BookingRecord:
    booking: ConfirmedBooking
    interval: BookingInterval


class InMemoryRentalService(RentalService):
    """Process-local stand-in for the rental API."""

    def __init__(
        self,
        vehicles: Optional[list[Vehicle]] = None,
        user_id: str = "user-demo",
        key_id: str = "rzp_test_cargo",
        key_secret: str = "cargo-test-secret",
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        fleet = vehicles if vehicles is not None else [
            Vehicle.model_validate(item) for item in SEED_FLEET
        ]
        self._vehicles: dict[str, Vehicle] = {v.id: v for v in fleet}
        self._orders: dict[str, _OrderRecord] = {}
        self._bookings: dict[str, _BookingRecord] = {}
        self.user_id = user_id
        self.key_id = key_id
        self._key_secret = key_secret
        self._clock = clock

    def reset(self) -> None:
        """Clear all orders and bookings. Used by test fixtures for isolation."""
        self._orders.clear()
        self._bookings.clear()

    # ------------------------------------------------------------------ #
    # Catalog
    # ------------------------------------------------------------------ #

    async def get_vehicle(self, vehicle_id: str) -> Vehicle:
        vehicle = self._vehicles.get(vehicle_id)
        if vehicle is None:
            raise NotFound(f"Car {vehicle_id} not found.", status_code=404)
        return vehicle

    async def list_vehicles(self, filters: VehicleFilter) -> VehiclePage:
        cars = list(self._vehicles.values())
        if filters.search:
            needle = filters.search.lower().strip()
            cars = [
                v for v in cars
                if needle in v.title.lower() or needle in v.brand.lower() or needle in v.model.lower()
            ]
        if filters.brand:
            cars = [v for v in cars if v.brand.lower() == filters.brand.lower()]
        if filters.fuel_type:
            cars = [v for v in cars if (v.fuel_type or "").lower() == filters.fuel_type.lower()]
        if filters.transmission:
            cars = [
                v for v in cars if (v.transmission or "").lower() == filters.transmission.lower()
            ]
        if filters.min_price is not None:
            cars = [v for v in cars if v.price_per_day >= filters.min_price]
        if filters.max_price is not None:
            cars = [v for v in cars if v.price_per_day <= filters.max_price]

        key = _SORT_KEYS.get(filters.sort_by)
        descending = filters.sort_order == "desc"
        if key is not None:
            cars.sort(key=key, reverse=descending)
        elif descending:
            # createdAt: insertion order is creation order
            cars.reverse()

        return VehiclePage(
            cars=self._page(cars, filters.page, CATALOG_PAGE_SIZE),
            pagination=self._pagination(len(cars), filters.page, CATALOG_PAGE_SIZE),
        )

    async def list_brands(self) -> list[str]:
        return sorted({v.brand for v in self._vehicles.values() if v.brand})

    # ------------------------------------------------------------------ #
    # Availability
    # ------------------------------------------------------------------ #

    def _conflicts(self, vehicle_id: str, start: datetime, end: datetime) -> bool:
        for record in self._bookings.values():
            booking = record.booking
            if booking.vehicle_id != vehicle_id or booking.status not in _BLOCKING_STATUSES:
                continue
            if record.interval.start < end and start < record.interval.end:
                return True
        return False

    async def check_availability(
        self, vehicle_id: str, start: datetime, end: datetime
    ) -> AvailabilityVerdict:
        vehicle = await self.get_vehicle(vehicle_id)
        if not vehicle.is_available:
            return AvailabilityVerdict(
                available=False, message="Car is currently not available for booking."
            )
        if end <= start:
            return AvailabilityVerdict(available=False, message="End date must be after start date.")
        if self._conflicts(vehicle_id, start, end):
            return AvailabilityVerdict(
                available=False, message="Car is already booked for the selected period."
            )
        return AvailabilityVerdict(available=True, message="Car is available for the selected dates.")

    # ------------------------------------------------------------------ #
    # Orders and payment
    # ------------------------------------------------------------------ #

    def _interval_for(self, draft: BookingDraft) -> BookingInterval:
        try:
            return build_interval(
                draft.start_date, draft.end_date, draft.start_time, draft.end_time,
                draft.booking_type,
            )
        except IntervalError as e:
            raise ValidationError(str(e), fields={"dateRange": str(e)}, status_code=400) from e

    async def create_payment_order(self, draft: BookingDraft) -> PaymentOrder:
        vehicle = await self.get_vehicle(draft.car_id)

        missing = {
            name: f"{label} is required."
            for name, label, value in [
                ("pickupLocation", "Pickup location", draft.pickup_location),
                ("dropoffLocation", "Dropoff location", draft.dropoff_location),
            ]
            if not value.strip()
        }
        if missing:
            raise ValidationError(next(iter(missing.values())), fields=missing, status_code=400)

        interval = self._interval_for(draft)
        verdict = await self.check_availability(vehicle.id, interval.start, interval.end)
        if not verdict.available:
            raise ValidationError(
                verdict.message, fields={"availability": verdict.message}, status_code=400
            )

        amount = quote_amount(interval, RateCard.from_vehicle(vehicle))
        order = PaymentOrder(
            order_id=f"order_{uuid.uuid4().hex[:14]}",
            amount_minor_units=int(amount * MINOR_UNITS),
            currency=settings.booking.currency,
            vehicle_title=vehicle.title,
            gateway_key=self.key_id,
        )
        self._orders[order.order_id] = _OrderRecord(
            order=order, draft=draft, interval=interval, amount=amount
        )
        logger.info("Order %s created for %s: %s %s",
                    order.order_id, vehicle.id, amount, order.currency)
        return order

    def simulate_payment(self, order_id: str) -> PaymentProof:
        """Act as the gateway: pay an order and return the signed proof."""
        if order_id not in self._orders:
            raise NotFound(f"Order {order_id} not found.", status_code=404)
        payment_id = f"pay_{uuid.uuid4().hex[:14]}"
        return PaymentProof(
            order_id=order_id,
            payment_id=payment_id,
            signature=sign_payment(order_id, payment_id, self._key_secret),
        )

    async def verify_payment_and_create_booking(
        self, proof: PaymentProof, draft: BookingDraft
    ) -> ConfirmedBooking:
        record = self._orders.get(proof.order_id)
        if record is None:
            raise VerificationError("Unknown payment order.")
        if not verify_payment_signature(
            proof.order_id, proof.payment_id, proof.signature, self._key_secret
        ):
            logger.warning("Signature mismatch for order %s", proof.order_id)
            raise VerificationError("Payment verification failed. Please contact support.")
        if record.consumed:
            raise VerificationError("This payment has already been used for a booking.")
        if record.draft != draft:
            raise VerificationError("Booking details do not match the paid order.")
        if self._conflicts(draft.car_id, record.interval.start, record.interval.end):
            raise VerificationError(
                "Car was booked by someone else before your payment completed."
            )

        record.consumed = True
        booking = ConfirmedBooking(
            id=f"bk_{uuid.uuid4().hex[:10]}",
            status=BookingStatus.CONFIRMED,
            total_amount=record.amount,
            car=draft.car_id,
            user=self.user_id,
            start_date=record.interval.start,
            end_date=record.interval.end,
            start_time=draft.start_time,
            end_time=draft.end_time,
            booking_type=draft.booking_type,
            duration=record.interval.duration,
            pickup_location=draft.pickup_location,
            dropoff_location=draft.dropoff_location,
            special_requests=draft.special_requests,
            payment_id=proof.payment_id,
        )
        self._bookings[booking.id] = _BookingRecord(booking=booking, interval=record.interval)
        logger.info("Booking %s confirmed for %s", booking.id, draft.car_id)
        return booking

    # ------------------------------------------------------------------ #
    # Booking management
    # ------------------------------------------------------------------ #

    async def get_booking(self, booking_id: str) -> ConfirmedBooking:
        record = self._bookings.get(booking_id)
        if record is None:
            raise NotFound(f"Booking {booking_id} not found.", status_code=404)
        return record.booking

    async def cancel_booking(self, booking_id: str) -> ConfirmedBooking:
        booking = await self.get_booking(booking_id)
        if not booking.can_cancel(self._clock()):
            raise ValidationError(
                "Only upcoming confirmed bookings can be cancelled.",
                fields={"status": booking.status.value},
                status_code=400,
            )
        cancelled = booking.model_copy(update={"status": BookingStatus.CANCELLED})
        self._bookings[booking_id].booking = cancelled
        logger.info("Booking cancelled: %s", booking_id)
        return cancelled

    async def list_my_bookings(self, filters: BookingListFilter) -> BookingPage:
        bookings = [
            r.booking for r in self._bookings.values() if r.booking.user == self.user_id
        ]
        if filters.status is not None:
            bookings = [b for b in bookings if b.status == filters.status]
        bookings.reverse()
        return BookingPage(
            bookings=self._page(bookings, filters.page, filters.limit),
            pagination=self._pagination(len(bookings), filters.page, filters.limit),
        )

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _page(items: list, page: int, size: int) -> list:
        start = (page - 1) * size
        return items[start:start + size]

    @staticmethod
    def _pagination(total: int, page: int, size: int) -> Pagination:
        total_pages = max(1, -(-total // size))
        return Pagination(current_page=page, total_pages=total_pages, total_items=total)


class SimulatedCheckout(PaymentCollector):
    """Gateway stand-in: pays through the in-memory service, or walks away."""

    def __init__(self, service: InMemoryRentalService, abandon: bool = False) -> None:
        self._service = service
        self.abandon = abandon

    async def collect(self, order: PaymentOrder, draft: BookingDraft) -> PaymentOutcome:
        if self.abandon:
            return UserCancelled(order_id=order.order_id)
        return self._service.simulate_payment(order.order_id)
