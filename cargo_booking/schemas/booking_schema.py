"""Booking, availability, and payment data models."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from cargo_booking.schemas.vehicle_schema import Pagination


class RentalMode(str, Enum):
    """Pricing and duration regime for a booking."""
    HOURLY = "hourly"
    DAILY = "daily"


class BookingStatus(str, Enum):
    """Server-side lifecycle of a booking."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AvailabilityVerdict(BaseModel):
    """Answer of the availability check for one interval."""
    available: bool
    message: str = ""


class BookingDraft(BaseModel):
    """Assembled, not-yet-persisted booking payload."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    car_id: str = Field(alias="carId")
    start_date: date = Field(alias="startDate")
    end_date: date = Field(alias="endDate")
    start_time: Optional[str] = Field(default=None, alias="startTime")
    end_time: Optional[str] = Field(default=None, alias="endTime")
    booking_type: RentalMode = Field(alias="bookingType")
    pickup_location: str = Field(alias="pickupLocation")
    dropoff_location: str = Field(alias="dropoffLocation")
    special_requests: str = Field(default="", alias="specialRequests")

    def to_payload(self) -> dict[str, Any]:
        """Serialize with the API's field names; dates become ``YYYY-MM-DD``."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class PaymentOrder(BaseModel):
    """Gateway order created for a draft; amount is in minor currency units."""

    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(alias="orderId")
    amount_minor_units: int = Field(alias="amount")
    currency: str
    vehicle_title: str = Field(default="", alias="carTitle")
    gateway_key: str = Field(default="", alias="key_id")


class PaymentProof(BaseModel):
    """What the payment gateway hands back once the customer has paid."""
    order_id: str
    payment_id: str
    signature: str

    def to_payload(self) -> dict[str, str]:
        return {
            "razorpay_order_id": self.order_id,
            "razorpay_payment_id": self.payment_id,
            "razorpay_signature": self.signature,
        }


class UserCancelled(BaseModel):
    """The customer closed the payment widget without paying."""
    order_id: str
    reason: str = "Payment window closed by user."


PaymentOutcome = Union[PaymentProof, UserCancelled]


class ConfirmedBooking(BaseModel):
    """Server-issued booking record."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    status: BookingStatus
    total_amount: Decimal = Field(alias="totalAmount")
    car: Any = None
    user: Any = None
    start_date: Optional[datetime] = Field(default=None, alias="startDate")
    end_date: Optional[datetime] = Field(default=None, alias="endDate")
    start_time: Optional[str] = Field(default=None, alias="startTime")
    end_time: Optional[str] = Field(default=None, alias="endTime")
    booking_type: Optional[RentalMode] = Field(default=None, alias="bookingType")
    duration: Optional[int] = None
    pickup_location: Optional[str] = Field(default=None, alias="pickupLocation")
    dropoff_location: Optional[str] = Field(default=None, alias="dropoffLocation")
    special_requests: Optional[str] = Field(default=None, alias="specialRequests")
    payment_id: Optional[str] = Field(default=None, alias="paymentId")

    @property
    def vehicle_id(self) -> Optional[str]:
        """The car reference, whether the API embedded the car or sent its id."""
        if isinstance(self.car, dict):
            return self.car.get("_id")
        return self.car

    def can_cancel(self, now: datetime) -> bool:
        """Only confirmed bookings that have not started yet can be cancelled."""
        if self.status != BookingStatus.CONFIRMED or self.start_date is None:
            return False
        start = self.start_date
        if (start.tzinfo is None) != (now.tzinfo is None):
            start, now = start.replace(tzinfo=None), now.replace(tzinfo=None)
        return start > now


class BookingListFilter(BaseModel):
    """Query parameters for the customer's booking history."""
    status: Optional[BookingStatus] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1)

    def to_query(self) -> dict[str, str]:
        data = self.model_dump(mode="json", exclude_none=True)
        return {key: str(value) for key, value in data.items()}


class BookingPage(BaseModel):
    """One page of the customer's bookings."""
    bookings: list[ConfirmedBooking] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)
