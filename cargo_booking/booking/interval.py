"""
Interval builder: turns raw date/time selections into a canonical rental window.

Daily rentals cover whole calendar days (start floored to midnight, end ceiled
to the last millisecond of the end date). Hourly rentals combine each date
with a clock mark from the half-hour grid.

Usage:
    interval = build_interval(date(2024, 6, 1), date(2024, 6, 3), None, None, RentalMode.DAILY)
    assert interval.duration == 2
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

from cargo_booking.errors import IncompleteSelection, InvertedRange, OffGridTime
from cargo_booking.schemas.booking_schema import RentalMode
from cargo_booking.utils import as_calendar_date, as_datetime, is_grid_time, parse_clock_time

logger = logging.getLogger(__name__)

MILLIS_PER_HOUR = 3_600_000
MILLIS_PER_DAY = 86_400_000

HOUR = timedelta(milliseconds=MILLIS_PER_HOUR)
DAY = timedelta(milliseconds=MILLIS_PER_DAY)

END_OF_DAY = time(23, 59, 59, 999_000)


def _ceil_units(span: timedelta, unit: timedelta) -> int:
    return -((-span) // unit)


@dataclass(frozen=True)
class BookingInterval:
    """Immutable [start, end) rental window with its billable duration."""

    start: datetime
    end: datetime
    mode: RentalMode
    duration: int

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise InvertedRange("End date/time must be after start date/time.")
        if self.duration < 1:
            raise ValueError("Duration must be a positive number of units")

    @property
    def span(self) -> timedelta:
        return self.end - self.start

    @property
    def unit_label(self) -> str:
        unit = "day" if self.mode == RentalMode.DAILY else "hour"
        return unit if self.duration == 1 else f"{unit}s"


def compute_duration(
    mode: RentalMode,
    start: datetime,
    end: datetime,
    raw_start: Optional[date] = None,
    raw_end: Optional[date] = None,
) -> int:
    """Billable units for a window, always rounded up.

    Daily counts days between the selected calendar values (a bare date is
    midnight), with a floor of one day. Hourly counts hours between the exact
    instants, so 90 minutes bills as 2 hours.
    """
    if mode == RentalMode.DAILY:
        first = as_datetime(raw_start) if raw_start is not None else start
        last = as_datetime(raw_end) if raw_end is not None else end
        return max(1, _ceil_units(abs(last - first), DAY))
    return _ceil_units(abs(end - start), HOUR)


def build_interval(
    start_date: Optional[date],
    end_date: Optional[date],
    start_time: Optional[str],
    end_time: Optional[str],
    mode: RentalMode,
) -> BookingInterval:
    """
    Build the canonical interval for the current selections.

    Raises:
        IncompleteSelection: If either date is unset.
        OffGridTime: If an hourly clock time is not a half-hour mark.
        InvertedRange: If the end instant is not strictly after the start.
    """
    if start_date is None or end_date is None:
        raise IncompleteSelection("Please select valid dates.")

    first_day = as_calendar_date(start_date)
    last_day = as_calendar_date(end_date)

    if mode == RentalMode.HOURLY:
        for label, value in (("start", start_time), ("end", end_time)):
            if value is None or not is_grid_time(value):
                raise OffGridTime(f"Invalid {label} time {value!r}; choose a half-hour mark.")
        start = datetime.combine(first_day, parse_clock_time(start_time))
        end = datetime.combine(last_day, parse_clock_time(end_time))
    else:
        start = datetime.combine(first_day, time.min)
        end = datetime.combine(last_day, END_OF_DAY)

    if end <= start:
        raise InvertedRange("End date/time must be after start date/time.")

    duration = compute_duration(mode, start, end, start_date, end_date)
    logger.debug("Interval built: %s -> %s (%s, %d units)", start, end, mode.value, duration)
    return BookingInterval(start=start, end=end, mode=mode, duration=duration)
