"""Tests for configuration loading and validation."""

import pytest

from cargo_booking.config import (
    ApiConfig,
    AppConfig,
    BookingConfig,
    _safe_float,
    _safe_int,
    _validate_config,
)


class TestConfigValidation:
    def test_default_config_passes_validation(self):
        _validate_config(AppConfig())  # should not raise

    def test_zero_timeout(self):
        config = AppConfig(api=ApiConfig(timeout_sec=0))
        with pytest.raises(ValueError, match="CARGO_API_TIMEOUT"):
            _validate_config(config)

    def test_non_http_url(self):
        config = AppConfig(api=ApiConfig(base_url="ftp://cargo.local"))
        with pytest.raises(ValueError, match="CARGO_API_URL"):
            _validate_config(config)

    def test_unknown_rental_mode(self):
        config = AppConfig(booking=BookingConfig(default_mode="weekly"))
        with pytest.raises(ValueError, match="DEFAULT_RENTAL_MODE"):
            _validate_config(config)

    def test_off_grid_default_time(self):
        config = AppConfig(booking=BookingConfig(default_start_time="09:15"))
        with pytest.raises(ValueError, match="DEFAULT_START_TIME"):
            _validate_config(config)

    def test_bad_currency(self):
        config = AppConfig(booking=BookingConfig(currency="RUPEE"))
        with pytest.raises(ValueError, match="CURRENCY"):
            _validate_config(config)

    def test_page_size(self):
        config = AppConfig(booking=BookingConfig(bookings_page_size=0))
        with pytest.raises(ValueError, match="BOOKINGS_PAGE_SIZE"):
            _validate_config(config)


class TestConfigDefaults:
    def test_booking_form_defaults(self):
        booking = BookingConfig()
        assert booking.default_mode == "daily"
        assert booking.default_start_time == "09:00"
        assert booking.default_end_time == "17:00"
        assert booking.currency == "INR"

    def test_frozen(self):
        with pytest.raises(AttributeError):
            BookingConfig().currency = "USD"  # type: ignore[misc]


class TestSafeParsers:
    def test_safe_int(self, monkeypatch):
        monkeypatch.setenv("CARGO_TEST_INT", "12")
        assert _safe_int("CARGO_TEST_INT", "1") == 12

    def test_safe_int_invalid(self, monkeypatch):
        monkeypatch.setenv("CARGO_TEST_INT", "twelve")
        with pytest.raises(ValueError, match="CARGO_TEST_INT"):
            _safe_int("CARGO_TEST_INT", "1")

    def test_safe_float_default(self, monkeypatch):
        monkeypatch.delenv("CARGO_TEST_FLOAT", raising=False)
        assert _safe_float("CARGO_TEST_FLOAT", "2.5") == 2.5
