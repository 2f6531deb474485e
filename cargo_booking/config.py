"""
Centralized configuration with environment variable overrides.

API endpoints, booking-form defaults, and support wording are all
configurable here. Nothing is hardcoded in the orchestrator or clients.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from cargo_booking.logging_context import ATTEMPT_LOG_FORMAT, attach_attempt_filter
from cargo_booking.utils import is_grid_time

load_dotenv()

logger = logging.getLogger(__name__)

VALID_RENTAL_MODES = ("daily", "hourly")


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class ApiConfig:
    """Connection settings for the rental REST API."""

    base_url: str = os.getenv("CARGO_API_URL", "http://localhost:5000/api")
    token: str = os.getenv("CARGO_API_TOKEN", "")
    timeout_sec: float = _safe_float("CARGO_API_TIMEOUT", "30")


@dataclass(frozen=True)
class BookingConfig:
    """Storefront and booking-form defaults."""

    business_name: str = os.getenv("BUSINESS_NAME", "CarGo Car Rental")
    currency: str = os.getenv("CURRENCY", "INR")
    default_mode: str = os.getenv("DEFAULT_RENTAL_MODE", "daily")
    default_start_time: str = os.getenv("DEFAULT_START_TIME", "09:00")
    default_end_time: str = os.getenv("DEFAULT_END_TIME", "17:00")
    support_contact: str = os.getenv("SUPPORT_CONTACT", "support@cargo-rentals.example")
    bookings_page_size: int = _safe_int("BOOKINGS_PAGE_SIZE", "10")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    api: ApiConfig = field(default_factory=ApiConfig)
    booking: BookingConfig = field(default_factory=BookingConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.api.timeout_sec <= 0:
        raise ValueError(
            f"CARGO_API_TIMEOUT must be > 0, got {config.api.timeout_sec}"
        )
    if not config.api.base_url.startswith(("http://", "https://")):
        raise ValueError(
            f"CARGO_API_URL must be an http(s) URL, got {config.api.base_url!r}"
        )
    if config.booking.default_mode not in VALID_RENTAL_MODES:
        raise ValueError(
            f"DEFAULT_RENTAL_MODE must be one of {VALID_RENTAL_MODES}, "
            f"got {config.booking.default_mode!r}"
        )
    for name, value in [
        ("DEFAULT_START_TIME", config.booking.default_start_time),
        ("DEFAULT_END_TIME", config.booking.default_end_time),
    ]:
        if not is_grid_time(value):
            raise ValueError(f"{name} must be a half-hour mark (HH:00 or HH:30), got {value!r}")
    if len(config.booking.currency) != 3:
        raise ValueError(
            f"CURRENCY must be a 3-letter code, got {config.booking.currency!r}"
        )
    if config.booking.bookings_page_size < 1:
        raise ValueError(
            f"BOOKINGS_PAGE_SIZE must be >= 1, got {config.booking.bookings_page_size}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=getattr(logging, config.log_level.upper(), logging.INFO),
            format=ATTEMPT_LOG_FORMAT,
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        for handler in root.handlers:
            attach_attempt_filter(handler)
    logger.info("Configuration loaded for '%s'", config.booking.business_name)
    return config


# Singleton instance
settings = load_config()
