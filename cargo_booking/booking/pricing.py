"""Pricing engine: quoted amount for an interval and a vehicle's rate pair."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from cargo_booking.booking.interval import BookingInterval
from cargo_booking.schemas.booking_schema import RentalMode
from cargo_booking.schemas.vehicle_schema import Vehicle

ZERO = Decimal("0")


@dataclass(frozen=True)
class RateCard:
    """Per-day and per-hour price of one vehicle."""

    price_per_day: Decimal
    price_per_hour: Decimal

    @classmethod
    def from_vehicle(cls, vehicle: Vehicle) -> "RateCard":
        return cls(price_per_day=vehicle.price_per_day, price_per_hour=vehicle.price_per_hour)

    def rate_for(self, mode: RentalMode) -> Decimal:
        return self.price_per_day if mode == RentalMode.DAILY else self.price_per_hour


def quote_amount(interval: Optional[BookingInterval], rates: Optional[RateCard]) -> Decimal:
    """Duration times the mode's rate; zero means "not yet quotable"."""
    if interval is None or rates is None:
        return ZERO
    return Decimal(interval.duration) * rates.rate_for(interval.mode)
