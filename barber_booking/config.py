"""
Centralized configuration with environment variable overrides.

Booking policy (slot cadence, buffers, advance-notice windows, hold TTL),
storage backends and timeouts are configurable here. The business catalog
itself (hours, services, barbers) lives in ``scheduling.catalog``.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from barber_booking.errors import ConfigurationError
from barber_booking.logging_context import RequestIdFilter

load_dotenv()

logger = logging.getLogger(__name__)

KV_BACKENDS = ("memory", "redis")
CALENDAR_BACKENDS = ("memory", "google")


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ConfigurationError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ConfigurationError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class BookingConfig:
    """Slot generation, conflict and hold policy."""

    slot_cadence_minutes: int = _safe_int("SLOT_CADENCE_MINUTES", "15")
    buffer_minutes: int = _safe_int("BOOKING_BUFFER_MINUTES", "10")
    min_advance_hours: float = _safe_float("MIN_ADVANCE_HOURS", "2")
    advance_booking_days: int = _safe_int("ADVANCE_BOOKING_DAYS", "30")
    availability_days: int = _safe_int("AVAILABILITY_DAYS", "7")
    hold_ttl_seconds: int = _safe_int("HOLD_TTL_SECONDS", "300")


@dataclass(frozen=True)
class StorageConfig:
    """Key-value store and calendar backend selection."""

    kv_backend: str = os.getenv("KV_BACKEND", "memory")
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    calendar_backend: str = os.getenv("CALENDAR_BACKEND", "memory")
    google_service_account_json: str = os.getenv("GOOGLE_SERVICE_ACCOUNT_JSON", "")
    backend_timeout_sec: float = _safe_float("BACKEND_TIMEOUT_SEC", "5.0")
    session_ttl_seconds: int = _safe_int("SESSION_TTL_SECONDS", "86400")
    history_ttl_seconds: int = _safe_int("HISTORY_TTL_SECONDS", "31536000")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    booking: BookingConfig = field(default_factory=BookingConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    business_config_path: str = os.getenv("BUSINESS_CONFIG_PATH", "")
    default_language: str = os.getenv("DEFAULT_LANGUAGE", "es")
    response_budget_sec: float = _safe_float("RESPONSE_BUDGET_SEC", "10.0")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    app_name: str = os.getenv("APP_NAME", "barber-booking")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    booking = config.booking
    if booking.slot_cadence_minutes < 1:
        raise ConfigurationError(
            f"SLOT_CADENCE_MINUTES must be >= 1, got {booking.slot_cadence_minutes}"
        )
    if booking.buffer_minutes < 0:
        raise ConfigurationError(
            f"BOOKING_BUFFER_MINUTES must be >= 0, got {booking.buffer_minutes}"
        )
    if booking.min_advance_hours < 0:
        raise ConfigurationError(
            f"MIN_ADVANCE_HOURS must be >= 0, got {booking.min_advance_hours}"
        )
    if booking.advance_booking_days < 1:
        raise ConfigurationError(
            f"ADVANCE_BOOKING_DAYS must be >= 1, got {booking.advance_booking_days}"
        )
    if booking.availability_days < 1:
        raise ConfigurationError(
            f"AVAILABILITY_DAYS must be >= 1, got {booking.availability_days}"
        )
    if booking.availability_days > booking.advance_booking_days:
        raise ConfigurationError(
            f"AVAILABILITY_DAYS ({booking.availability_days}) must not exceed "
            f"ADVANCE_BOOKING_DAYS ({booking.advance_booking_days})"
        )
    if booking.hold_ttl_seconds < 1:
        raise ConfigurationError(
            f"HOLD_TTL_SECONDS must be >= 1, got {booking.hold_ttl_seconds}"
        )

    storage = config.storage
    if storage.kv_backend not in KV_BACKENDS:
        raise ConfigurationError(
            f"KV_BACKEND must be one of {KV_BACKENDS}, got {storage.kv_backend!r}"
        )
    if storage.calendar_backend not in CALENDAR_BACKENDS:
        raise ConfigurationError(
            f"CALENDAR_BACKEND must be one of {CALENDAR_BACKENDS}, "
            f"got {storage.calendar_backend!r}"
        )
    if storage.calendar_backend == "google" and not storage.google_service_account_json:
        raise ConfigurationError(
            "GOOGLE_SERVICE_ACCOUNT_JSON is required when CALENDAR_BACKEND=google"
        )
    if storage.backend_timeout_sec <= 0:
        raise ConfigurationError(
            f"BACKEND_TIMEOUT_SEC must be > 0, got {storage.backend_timeout_sec}"
        )

    for ttl_name, ttl_value in [
        ("SESSION_TTL_SECONDS", storage.session_ttl_seconds),
        ("HISTORY_TTL_SECONDS", storage.history_ttl_seconds),
    ]:
        if ttl_value < 1:
            raise ConfigurationError(f"{ttl_name} must be >= 1, got {ttl_value}")

    if config.response_budget_sec <= 0:
        raise ConfigurationError(
            f"RESPONSE_BUDGET_SEC must be > 0, got {config.response_budget_sec}"
        )
    if config.default_language not in ("es", "en"):
        raise ConfigurationError(
            f"DEFAULT_LANGUAGE must be 'es' or 'en', got {config.default_language!r}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] [%(request_id)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())
    logger.info("Configuration loaded for '%s'", config.app_name)
    return config


# Singleton instance
settings = load_config()
