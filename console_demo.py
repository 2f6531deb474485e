"""
Offline console demo: runs complete booking attempts without a backend.

Drives the real orchestrator, reducer, and phase machine against the
in-memory rental service and a simulated payment gateway. No network
calls, no gateway keys. Designed for walkthroughs of the booking flow.

Usage:
    python console_demo.py
    python console_demo.py --scenario hourly
    python console_demo.py --scenario verification
"""

import argparse
import asyncio
import sys
from datetime import date, timedelta
from typing import Optional

from cargo_booking.booking.orchestrator import BookingOrchestrator
from cargo_booking.booking.payment import PaymentCollector
from cargo_booking.config import settings
from cargo_booking.errors import AvailabilityDenied, BookingError, FormValidationError
from cargo_booking.schemas.booking_schema import (
    BookingDraft,
    BookingListFilter,
    PaymentOrder,
    PaymentOutcome,
    PaymentProof,
    RentalMode,
)
from cargo_booking.services.memory import InMemoryRentalService, SimulatedCheckout

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"


class TamperedCheckout(PaymentCollector):
    """Pays normally but returns a forged signature."""

    def __init__(self, service: InMemoryRentalService) -> None:
        self._service = service

    async def collect(self, order: PaymentOrder, draft: BookingDraft) -> PaymentOutcome:
        proof = self._service.simulate_payment(order.order_id)
        return PaymentProof(order_id=proof.order_id, payment_id=proof.payment_id,
                            signature="0" * 64)


class ConsoleSession:
    """Plays one scripted booking attempt in the terminal."""

    SCENARIOS: dict[str, str] = {
        "daily": "Two-day rental paid in full",
        "hourly": "Same-day hourly rental, 09:00 to 12:30",
        "unavailable": "Car that is withdrawn from the fleet",
        "cancelled": "Customer closes the payment window",
        "verification": "Gateway signature rejected after payment",
    }

    def __init__(self) -> None:
        self.service = InMemoryRentalService()
        self.today = date.today()

    def agent_say(self, text: str) -> None:
        print(f"{GREEN}{BOLD}[CarGo]{RESET} {GREEN}{text}{RESET}")

    def customer_do(self, text: str) -> None:
        print(f"\n{BLUE}[Customer] {RESET}{text}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def _show_state(self, orchestrator: BookingOrchestrator) -> None:
        state = orchestrator.state
        self.system_log(f"Phase: {state.phase.value}")
        if state.interval is not None:
            self.system_log(
                f"Quote: {state.duration} {state.interval.unit_label} = "
                f"{settings.booking.currency} {state.amount}"
            )
        if state.message:
            colour = RED if state.error else YELLOW
            print(f"{colour}  {state.message}{RESET}")

    def _collector(self, scenario: str) -> PaymentCollector:
        if scenario == "cancelled":
            return SimulatedCheckout(self.service, abandon=True)
        if scenario == "verification":
            return TamperedCheckout(self.service)
        return SimulatedCheckout(self.service)

    async def _play(self, scenario: str) -> None:
        vehicle_id = "car-innova-04" if scenario == "unavailable" else "car-swift-01"
        orchestrator = BookingOrchestrator(vehicle_id, self.service, self._collector(scenario))
        self.system_log(f"Attempt: {orchestrator.attempt_id}")

        self.customer_do(f"Opens the booking form for {vehicle_id}")
        vehicle = await orchestrator.load_vehicle()
        self.agent_say(
            f"{vehicle.title}: {settings.booking.currency} {vehicle.price_per_day}/day, "
            f"{vehicle.price_per_hour}/hour. Pickup at {vehicle.location}."
        )

        start = self.today + timedelta(days=7)
        if scenario == "hourly":
            self.customer_do("Switches to hourly and picks 09:00 to 12:30")
            orchestrator.update_inputs(
                mode=RentalMode.HOURLY, start_date=start, end_date=start,
                start_time="09:00", end_time="12:30",
            )
        else:
            self.customer_do(f"Picks {start} to {start + timedelta(days=2)}")
            orchestrator.update_inputs(start_date=start, end_date=start + timedelta(days=2))
        await orchestrator.wait_for_availability()
        self._show_state(orchestrator)

        self.customer_do("Presses 'Book now'")
        try:
            booking = await orchestrator.submit()
        except FormValidationError as e:
            for name, message in e.fields.items():
                print(f"{RED}  {name}: {message}{RESET}")
            self._show_state(orchestrator)
        except AvailabilityDenied as e:
            self.agent_say(e.message)
            self._show_state(orchestrator)
        except BookingError as e:
            self.agent_say(orchestrator.state.message or str(e))
            self._show_state(orchestrator)
        else:
            if booking is None:
                self.agent_say("No problem, your selection is saved. Book again whenever you're ready.")
            else:
                self.agent_say(
                    f"Booking {booking.id} confirmed: {booking.duration} "
                    f"{orchestrator.state.interval.unit_label}, "
                    f"{settings.booking.currency} {booking.total_amount}."
                )
            self._show_state(orchestrator)

        history = await self.service.list_my_bookings(
            BookingListFilter(limit=settings.booking.bookings_page_size)
        )
        self.system_log(f"Bookings on file: {history.pagination.total_items}")
        self.system_log(f"Phase trace: {' -> '.join(orchestrator.machine.get_state_trace())}")

    def run_scenario(self, scenario: str) -> bool:
        """Auto-play a scripted scenario. Returns False for an unknown name."""
        if scenario not in self.SCENARIOS:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return False

        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  CARGO BOOKING - Scenario: {scenario}{RESET}")
        print(f"{BOLD}  {self.SCENARIOS[scenario]}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

        asyncio.run(self._play(scenario))

        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        return True


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=f"{settings.booking.business_name} booking demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS) + ["all"],
        default="daily",
        help="Scripted booking attempt to play (default: daily)",
    )
    args = parser.parse_args(argv)

    names = list(ConsoleSession.SCENARIOS) if args.scenario == "all" else [args.scenario]
    for name in names:
        if not ConsoleSession().run_scenario(name):
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
