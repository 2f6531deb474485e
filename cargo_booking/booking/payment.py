"""
Hand-off to the external payment step.

The gateway widget reports back through callbacks. ``PaymentHandoff`` turns
those callbacks into a single-shot future that the orchestrator awaits once
per order: the customer either pays (a ``PaymentProof``), closes the widget
(``UserCancelled``), or the gateway reports a failure.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from cargo_booking.errors import ServiceError
from cargo_booking.schemas.booking_schema import (
    BookingDraft,
    PaymentOrder,
    PaymentOutcome,
    PaymentProof,
    UserCancelled,
)

logger = logging.getLogger(__name__)


class PaymentCollector(ABC):
    """Presents an order to the customer and reports how payment ended."""

    @abstractmethod
    async def collect(self, order: PaymentOrder, draft: BookingDraft) -> PaymentOutcome:
        """Wait for the customer to pay or dismiss the payment step."""


class PaymentHandoff(PaymentCollector):
    """Bridges widget callbacks (``succeed``/``cancel``/``fail``) to an awaitable."""

    def __init__(self) -> None:
        self._future: Optional[asyncio.Future] = None
        self.order: Optional[PaymentOrder] = None

    @property
    def pending(self) -> bool:
        return self._future is not None and not self._future.done()

    async def collect(self, order: PaymentOrder, draft: BookingDraft) -> PaymentOutcome:
        if self.pending:
            raise RuntimeError("A payment is already awaiting the customer.")
        self._future = asyncio.get_running_loop().create_future()
        self.order = order
        logger.info("Awaiting payment for order %s (%s %d)",
                    order.order_id, order.currency, order.amount_minor_units)
        return await self._future

    def _settle(self) -> asyncio.Future:
        if not self.pending:
            raise RuntimeError("No payment is awaiting an outcome.")
        return self._future

    def succeed(self, payment_id: str, signature: str) -> None:
        """Gateway success callback."""
        future = self._settle()
        future.set_result(PaymentProof(
            order_id=self.order.order_id, payment_id=payment_id, signature=signature,
        ))

    def cancel(self, reason: str = "Payment window closed by user.") -> None:
        """Widget dismissed without paying."""
        future = self._settle()
        future.set_result(UserCancelled(order_id=self.order.order_id, reason=reason))

    def fail(self, message: str) -> None:
        """Gateway reported that the payment itself failed."""
        future = self._settle()
        future.set_exception(ServiceError(message))
