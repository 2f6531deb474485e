"""
Command-line entry point.

Checks a car's availability and quote against the configured rental API,
or runs the offline console demo.

Usage:
    Quote:        python main.py quote <car_id> <start YYYY-MM-DD> <end YYYY-MM-DD>
    Console mode: python main.py console [--scenario hourly]
"""

import asyncio
import logging
import sys
from datetime import date

from cargo_booking.booking.interval import build_interval
from cargo_booking.booking.pricing import RateCard, quote_amount
from cargo_booking.config import settings
from cargo_booking.errors import BookingError
from cargo_booking.schemas.booking_schema import RentalMode
from cargo_booking.services.api_client import RentalApiClient

logger = logging.getLogger(__name__)


async def quote(vehicle_id: str, start: date, end: date) -> int:
    """Print the daily quote and live availability for one car."""
    async with RentalApiClient() as client:
        vehicle = await client.get_vehicle(vehicle_id)
        interval = build_interval(start, end, None, None, RentalMode.DAILY)
        amount = quote_amount(interval, RateCard.from_vehicle(vehicle))
        verdict = await client.check_availability(vehicle.id, interval.start, interval.end)

    print(f"{vehicle.title}: {interval.duration} {interval.unit_label}, "
          f"{settings.booking.currency} {amount}")
    print(verdict.message or ("Available" if verdict.available else "Not available"))
    return 0 if verdict.available else 2


def _run_quote_mode(args: list[str]) -> int:
    if len(args) != 3:
        print(__doc__)
        return 1
    vehicle_id, start, end = args
    try:
        return asyncio.run(quote(vehicle_id, date.fromisoformat(start), date.fromisoformat(end)))
    except (BookingError, ValueError) as e:
        logger.error("Quote failed: %s", e)
        return 1


def _run_console_mode(args: list[str]) -> int:
    """Start the offline console demo (no backend required)."""
    from console_demo import main as console_main

    return console_main(args)


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "console":
        sys.exit(_run_console_mode(sys.argv[2:]))
    elif len(sys.argv) > 1 and sys.argv[1] == "quote":
        sys.exit(_run_quote_mode(sys.argv[2:]))
    else:
        print(__doc__)
        sys.exit(1)
