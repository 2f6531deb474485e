"""Tests for the rental API client."""

from datetime import date, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from cargo_booking.errors import NotFound, ServiceError, ValidationError, VerificationError
from cargo_booking.schemas.booking_schema import (
    BookingDraft,
    BookingListFilter,
    BookingStatus,
    PaymentProof,
    RentalMode,
)
from cargo_booking.schemas.vehicle_schema import VehicleFilter
from cargo_booking.services.api_client import RentalApiClient

BASE_URL = "http://test.cargo.local/api"


@pytest.fixture
def api_client():
    return RentalApiClient(base_url=BASE_URL, token="tok", timeout=5)


@pytest.fixture
def mock_response():
    response = MagicMock()
    response.status_code = 200
    return response


@pytest.fixture
def draft():
    return BookingDraft(
        car_id="car-1", start_date=date(2024, 6, 1), end_date=date(2024, 6, 3),
        booking_type=RentalMode.DAILY, pickup_location="Pune Station",
        dropoff_location="Pune Station",
    )


BOOKING_JSON = {
    "_id": "bk_1",
    "status": "confirmed",
    "totalAmount": 2000,
    "car": {"_id": "car-1", "title": "Test Hatchback"},
    "startDate": "2024-06-01T00:00:00.000Z",
    "endDate": "2024-06-03T23:59:59.999Z",
    "bookingType": "daily",
    "duration": 2,
}


class TestClientLifecycle:
    def test_client_requires_context(self, api_client):
        with pytest.raises(RuntimeError, match="not initialized"):
            _ = api_client.client

    @pytest.mark.asyncio
    async def test_context_sets_auth_header(self, api_client):
        async with api_client as client:
            assert client.client.headers["Authorization"] == "Bearer tok"
        assert api_client._client is None

    def test_base_url_trailing_slash_dropped(self):
        assert RentalApiClient(base_url=BASE_URL + "/").base_url == BASE_URL


class TestCatalog:
    @pytest.mark.asyncio
    async def test_get_vehicle(self, api_client, mock_response):
        mock_response.json.return_value = {
            "_id": "car-1", "title": "Swift", "pricePerDay": 1800, "pricePerHour": 150,
            "location": "Pune", "isAvailable": True,
        }
        with patch.object(api_client, "_client") as mock_client:
            mock_client.request = AsyncMock(return_value=mock_response)
            vehicle = await api_client.get_vehicle("car-1")

        assert vehicle.id == "car-1"
        assert vehicle.price_per_day == Decimal("1800")
        mock_client.request.assert_called_once_with("GET", f"{BASE_URL}/cars/car-1")

    @pytest.mark.asyncio
    async def test_list_vehicles_sends_filters(self, api_client, mock_response):
        mock_response.json.return_value = {
            "cars": [], "pagination": {"currentPage": 2, "totalPages": 3, "totalItems": 30},
        }
        with patch.object(api_client, "_client") as mock_client:
            mock_client.request = AsyncMock(return_value=mock_response)
            page = await api_client.list_vehicles(VehicleFilter(brand="Tata", page=2))

        assert page.pagination.has_next
        params = mock_client.request.call_args.kwargs["params"]
        assert params["brand"] == "Tata"
        assert params["sortBy"] == "createdAt"
        assert params["page"] == "2"

    @pytest.mark.asyncio
    async def test_list_brands(self, api_client, mock_response):
        mock_response.json.return_value = ["Tata", "Hyundai"]
        with patch.object(api_client, "_client") as mock_client:
            mock_client.request = AsyncMock(return_value=mock_response)
            assert await api_client.list_brands() == ["Tata", "Hyundai"]


class TestBookingFlow:
    @pytest.mark.asyncio
    async def test_check_availability_payload(self, api_client, mock_response):
        mock_response.json.return_value = {"available": False, "message": "Car is booked."}
        with patch.object(api_client, "_client") as mock_client:
            mock_client.request = AsyncMock(return_value=mock_response)
            verdict = await api_client.check_availability(
                "car-1", datetime(2024, 6, 1), datetime(2024, 6, 3, 23, 59)
            )

        assert not verdict.available
        assert verdict.message == "Car is booked."
        args = mock_client.request.call_args
        assert args.args == ("POST", f"{BASE_URL}/cars/car-1/check-availability")
        assert args.kwargs["json"] == {
            "startDate": "2024-06-01T00:00:00", "endDate": "2024-06-03T23:59:00",
        }

    @pytest.mark.asyncio
    async def test_create_payment_order(self, api_client, mock_response, draft):
        mock_response.json.return_value = {
            "orderId": "order_1", "amount": 200000, "currency": "INR",
            "carTitle": "Swift", "key_id": "rzp_test",
        }
        with patch.object(api_client, "_client") as mock_client:
            mock_client.request = AsyncMock(return_value=mock_response)
            order = await api_client.create_payment_order(draft)

        assert order.order_id == "order_1"
        assert order.amount_minor_units == 200000
        payload = mock_client.request.call_args.kwargs["json"]
        assert payload["carId"] == "car-1"
        assert payload["startDate"] == "2024-06-01"
        assert "startTime" not in payload

    @pytest.mark.asyncio
    async def test_verify_payment(self, api_client, mock_response, draft):
        mock_response.json.return_value = {"message": "ok", "booking": BOOKING_JSON}
        proof = PaymentProof(order_id="order_1", payment_id="pay_1", signature="sig")
        with patch.object(api_client, "_client") as mock_client:
            mock_client.request = AsyncMock(return_value=mock_response)
            booking = await api_client.verify_payment_and_create_booking(proof, draft)

        assert booking.id == "bk_1"
        assert booking.vehicle_id == "car-1"
        payload = mock_client.request.call_args.kwargs["json"]
        assert payload["razorpay_order_id"] == "order_1"
        assert payload["razorpay_signature"] == "sig"
        assert payload["bookingDetails"]["carId"] == "car-1"

    @pytest.mark.asyncio
    async def test_verify_rejection_becomes_verification_error(
        self, api_client, mock_response, draft
    ):
        mock_response.status_code = 400
        mock_response.json.return_value = {"message": "Invalid payment signature"}
        proof = PaymentProof(order_id="order_1", payment_id="pay_1", signature="bad")
        with patch.object(api_client, "_client") as mock_client:
            mock_client.request = AsyncMock(return_value=mock_response)
            with pytest.raises(VerificationError, match="Invalid payment signature"):
                await api_client.verify_payment_and_create_booking(proof, draft)

    @pytest.mark.asyncio
    async def test_verify_without_booking_fails(self, api_client, mock_response, draft):
        mock_response.json.return_value = {"message": "ok"}
        proof = PaymentProof(order_id="order_1", payment_id="pay_1", signature="sig")
        with patch.object(api_client, "_client") as mock_client:
            mock_client.request = AsyncMock(return_value=mock_response)
            with pytest.raises(VerificationError, match="contact support"):
                await api_client.verify_payment_and_create_booking(proof, draft)


class TestBookingManagement:
    @pytest.mark.asyncio
    async def test_cancel_booking(self, api_client, mock_response):
        mock_response.json.return_value = {
            "message": "Booking cancelled", "booking": {**BOOKING_JSON, "status": "cancelled"},
        }
        with patch.object(api_client, "_client") as mock_client:
            mock_client.request = AsyncMock(return_value=mock_response)
            booking = await api_client.cancel_booking("bk_1")

        assert booking.status == BookingStatus.CANCELLED
        mock_client.request.assert_called_once_with("PATCH", f"{BASE_URL}/bookings/bk_1/cancel")

    @pytest.mark.asyncio
    async def test_list_my_bookings(self, api_client, mock_response):
        mock_response.json.return_value = {
            "bookings": [BOOKING_JSON],
            "pagination": {"currentPage": 1, "totalPages": 1, "totalItems": 1},
        }
        with patch.object(api_client, "_client") as mock_client:
            mock_client.request = AsyncMock(return_value=mock_response)
            page = await api_client.list_my_bookings(
                BookingListFilter(status=BookingStatus.CONFIRMED)
            )

        assert page.bookings[0].id == "bk_1"
        assert mock_client.request.call_args.kwargs["params"] == {
            "status": "confirmed", "page": "1", "limit": "10",
        }


class TestErrorTranslation:
    @pytest.mark.asyncio
    async def test_not_found(self, api_client, mock_response):
        mock_response.status_code = 404
        mock_response.json.return_value = {"message": "Car not found"}
        with patch.object(api_client, "_client") as mock_client:
            mock_client.request = AsyncMock(return_value=mock_response)
            with pytest.raises(NotFound) as exc_info:
                await api_client.get_vehicle("missing")

        assert exc_info.value.status_code == 404
        assert "Car not found" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_field_errors(self, api_client, mock_response, draft):
        mock_response.status_code = 400
        mock_response.json.return_value = {
            "errors": [{"path": "pickupLocation", "msg": "Pickup location is required"}],
        }
        with patch.object(api_client, "_client") as mock_client:
            mock_client.request = AsyncMock(return_value=mock_response)
            with pytest.raises(ValidationError) as exc_info:
                await api_client.create_payment_order(draft)

        assert exc_info.value.fields == {"pickupLocation": "Pickup location is required"}

    @pytest.mark.asyncio
    async def test_server_error(self, api_client, mock_response):
        mock_response.status_code = 500
        mock_response.json.side_effect = ValueError("not json")
        with patch.object(api_client, "_client") as mock_client:
            mock_client.request = AsyncMock(return_value=mock_response)
            with pytest.raises(ServiceError, match="status 500"):
                await api_client.list_brands()

    @pytest.mark.asyncio
    async def test_transport_error(self, api_client):
        with patch.object(api_client, "_client") as mock_client:
            mock_client.request = AsyncMock(side_effect=httpx.ConnectError("refused"))
            with pytest.raises(ServiceError, match="Could not reach"):
                await api_client.get_booking("bk_1")

    @pytest.mark.asyncio
    async def test_non_json_success_body(self, api_client, mock_response):
        mock_response.json.side_effect = ValueError("not json")
        with patch.object(api_client, "_client") as mock_client:
            mock_client.request = AsyncMock(return_value=mock_response)
            with pytest.raises(ServiceError, match="Unexpected response") as exc_info:
                await api_client.check_availability(
                    "car-1", datetime(2024, 6, 1), datetime(2024, 6, 2)
                )

        assert exc_info.value.status_code == 200
        assert exc_info.value.response is None

    @pytest.mark.asyncio
    async def test_wrong_shape_vehicle(self, api_client, mock_response):
        mock_response.json.return_value = {"_id": "car-1", "pricePerDay": "cheap"}
        with patch.object(api_client, "_client") as mock_client:
            mock_client.request = AsyncMock(return_value=mock_response)
            with pytest.raises(ServiceError, match="Unexpected response"):
                await api_client.get_vehicle("car-1")

    @pytest.mark.asyncio
    async def test_brands_not_a_list(self, api_client, mock_response):
        mock_response.json.return_value = {"brands": ["Maruti"]}
        with patch.object(api_client, "_client") as mock_client:
            mock_client.request = AsyncMock(return_value=mock_response)
            with pytest.raises(ServiceError, match="Unexpected response"):
                await api_client.list_brands()

    @pytest.mark.asyncio
    async def test_malformed_booking_after_payment_is_verification_error(
        self, api_client, mock_response, draft
    ):
        mock_response.json.return_value = {"booking": {"_id": "bk_1"}}
        proof = PaymentProof(order_id="order_1", payment_id="pay_1", signature="sig")
        with patch.object(api_client, "_client") as mock_client:
            mock_client.request = AsyncMock(return_value=mock_response)
            with pytest.raises(VerificationError, match="Unexpected response"):
                await api_client.verify_payment_and_create_booking(proof, draft)
