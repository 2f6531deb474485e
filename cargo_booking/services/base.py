"""Port for the rental backend the booking core talks to."""

from abc import ABC, abstractmethod
from datetime import datetime

from cargo_booking.schemas.booking_schema import (
    AvailabilityVerdict,
    BookingDraft,
    BookingListFilter,
    BookingPage,
    ConfirmedBooking,
    PaymentOrder,
    PaymentProof,
)
from cargo_booking.schemas.vehicle_schema import Vehicle, VehicleFilter, VehiclePage


class RentalService(ABC):
    """Catalog, availability, payment-order, and booking operations."""

    @abstractmethod
    async def get_vehicle(self, vehicle_id: str) -> Vehicle:
        """Fetch one vehicle; raises ``NotFound`` or ``ServiceError``."""

    @abstractmethod
    async def list_vehicles(self, filters: VehicleFilter) -> VehiclePage:
        """Search the catalog."""

    @abstractmethod
    async def list_brands(self) -> list[str]:
        """Distinct brands offered in the catalog."""

    @abstractmethod
    async def check_availability(
        self, vehicle_id: str, start: datetime, end: datetime
    ) -> AvailabilityVerdict:
        """Ask whether the vehicle is free for ``[start, end)``."""

    @abstractmethod
    async def create_payment_order(self, draft: BookingDraft) -> PaymentOrder:
        """Create a gateway order; raises ``ValidationError`` or ``ServiceError``."""

    @abstractmethod
    async def verify_payment_and_create_booking(
        self, proof: PaymentProof, draft: BookingDraft
    ) -> ConfirmedBooking:
        """Verify the payment proof and persist the booking; raises ``VerificationError``."""

    @abstractmethod
    async def cancel_booking(self, booking_id: str) -> ConfirmedBooking:
        """Cancel an upcoming booking."""

    @abstractmethod
    async def get_booking(self, booking_id: str) -> ConfirmedBooking:
        """Fetch one booking; raises ``NotFound``."""

    @abstractmethod
    async def list_my_bookings(self, filters: BookingListFilter) -> BookingPage:
        """The current customer's bookings, newest first."""
