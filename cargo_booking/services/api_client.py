"""Async client for the CarGo rental REST API."""

from datetime import datetime
from typing import Any, Optional

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from cargo_booking.config import settings
from cargo_booking.errors import NotFound, ServiceError, ValidationError, VerificationError
from cargo_booking.logging_context import get_attempt_logger
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
from cargo_booking.services.base import RentalService

logger = get_attempt_logger(__name__)

VERIFICATION_FALLBACK = "Payment verification failed. Please contact support."
UNEXPECTED_RESPONSE = "Unexpected response from the rental service."


def _error_message(data: Any, status_code: int) -> str:
    if isinstance(data, dict):
        if data.get("message"):
            return str(data["message"])
        errors = data.get("errors") or []
        if errors and isinstance(errors[0], dict) and errors[0].get("msg"):
            return str(errors[0]["msg"])
    return f"Request failed with status {status_code}"


def _parse(model: type[BaseModel], data: Any, endpoint: str, status: Optional[int] = None) -> Any:
    try:
        return model.model_validate(data)
    except SchemaError as e:
        logger.error("Malformed %s body from %s: %s", model.__name__, endpoint, e)
        raise ServiceError(UNEXPECTED_RESPONSE, status_code=status, response=data) from e


def _field_errors(data: Any) -> dict[str, str]:
    if not isinstance(data, dict):
        return {}
    fields: dict[str, str] = {}
    for item in data.get("errors") or []:
        if not isinstance(item, dict):
            continue
        name = item.get("path") or item.get("param") or item.get("field")
        if name:
            fields[str(name)] = str(item.get("msg", "Invalid value"))
    return fields


class RentalApiClient(RentalService):
    """
    Async client for the rental API.

    Usage:
        async with RentalApiClient(base_url, token) as client:
            car = await client.get_vehicle("64f1c0")
            verdict = await client.check_availability(car.id, start, end)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: API root (e.g., http://localhost:5000/api)
            token: Bearer token of the signed-in customer
            timeout: Request timeout in seconds
        """
        self.base_url = (base_url or settings.api.base_url).rstrip("/")
        self.token = token if token is not None else settings.api.token
        self.timeout = timeout or settings.api.timeout_sec
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "RentalApiClient":
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        self._client = httpx.AsyncClient(timeout=self.timeout, headers=headers)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get HTTP client, raise if not initialized."""
        if self._client is None:
            raise RuntimeError("Client not initialized. Use 'async with RentalApiClient(...)'.")
        return self._client

    # ------------------------------------------------------------------ #
    # Transport
    # ------------------------------------------------------------------ #

    async def _request(
        self, method: str, path: str, model: Optional[type[BaseModel]] = None, **kwargs: Any
    ) -> Any:
        """
        Send a request and return the decoded JSON body, translating failures.

        With ``model`` set, the body is validated into it and a body of the
        wrong shape (or no JSON at all) becomes a ``ServiceError``.
        """
        url = f"{self.base_url}{path}"
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Transport error on %s %s: %s", method, path, e)
            raise ServiceError(f"Could not reach the rental service: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        status = response.status_code
        if status >= 400:
            message = _error_message(data, status)
            logger.warning("%s %s failed (%d): %s", method, path, status, message)
            if status == 404:
                raise NotFound(message, status_code=status, response=data)
            fields = _field_errors(data)
            if status in (400, 422) and fields:
                raise ValidationError(message, fields=fields, status_code=status, response=data)
            raise ServiceError(message, status_code=status, response=data)
        if model is not None:
            return _parse(model, data, f"{method} {path}", status)
        return data

    # ------------------------------------------------------------------ #
    # Catalog
    # ------------------------------------------------------------------ #

    async def get_vehicle(self, vehicle_id: str) -> Vehicle:
        return await self._request("GET", f"/cars/{vehicle_id}", model=Vehicle)

    async def list_vehicles(self, filters: VehicleFilter) -> VehiclePage:
        return await self._request("GET", "/cars", model=VehiclePage, params=filters.to_query())

    async def list_brands(self) -> list[str]:
        data = await self._request("GET", "/cars/filters/brands")
        if not isinstance(data, list):
            raise ServiceError(UNEXPECTED_RESPONSE, response=data)
        return [str(b) for b in data]

    # ------------------------------------------------------------------ #
    # Booking flow
    # ------------------------------------------------------------------ #

    async def check_availability(
        self, vehicle_id: str, start: datetime, end: datetime
    ) -> AvailabilityVerdict:
        logger.debug("Checking availability of %s for %s -> %s", vehicle_id, start, end)
        return await self._request(
            "POST",
            f"/cars/{vehicle_id}/check-availability",
            model=AvailabilityVerdict,
            json={"startDate": start.isoformat(), "endDate": end.isoformat()},
        )

    async def create_payment_order(self, draft: BookingDraft) -> PaymentOrder:
        order = await self._request(
            "POST", "/bookings/create-razorpay-order", model=PaymentOrder,
            json=draft.to_payload(),
        )
        logger.info("Payment order %s created for car %s", order.order_id, draft.car_id)
        return order

    async def verify_payment_and_create_booking(
        self, proof: PaymentProof, draft: BookingDraft
    ) -> ConfirmedBooking:
        payload = {**proof.to_payload(), "bookingDetails": draft.to_payload()}
        try:
            data = await self._request("POST", "/bookings/verify-payment", json=payload)
            if not isinstance(data, dict) or not data.get("booking"):
                raise VerificationError(VERIFICATION_FALLBACK)
            booking = _parse(ConfirmedBooking, data["booking"], "POST /bookings/verify-payment")
        except ServiceError as e:
            raise VerificationError(e.message or VERIFICATION_FALLBACK) from e
        logger.info("Booking %s confirmed for order %s", booking.id, proof.order_id)
        return booking

    # ------------------------------------------------------------------ #
    # Booking management
    # ------------------------------------------------------------------ #

    async def cancel_booking(self, booking_id: str) -> ConfirmedBooking:
        path = f"/bookings/{booking_id}/cancel"
        data = await self._request("PATCH", path)
        record = data.get("booking", data) if isinstance(data, dict) else data
        booking = _parse(ConfirmedBooking, record, f"PATCH {path}")
        logger.info("Booking cancelled: %s", booking_id)
        return booking

    async def get_booking(self, booking_id: str) -> ConfirmedBooking:
        return await self._request("GET", f"/bookings/{booking_id}", model=ConfirmedBooking)

    async def list_my_bookings(self, filters: BookingListFilter) -> BookingPage:
        return await self._request(
            "GET", "/bookings/my-bookings", model=BookingPage, params=filters.to_query()
        )
