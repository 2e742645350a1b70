"""
Backend registry: construct stores and calendars by configured name.

Factories take the ``StorageConfig`` and return a ready backend, so the
rest of the package never imports Redis or Google client code directly.
"""

import logging
from typing import Callable, Optional

from barber_booking.backends.calendar import (
    CalendarBackend,
    GoogleCalendarBackend,
    InMemoryCalendarBackend,
)
from barber_booking.backends.kv import InMemoryKeyValueStore, KeyValueStore, RedisKeyValueStore
from barber_booking.config import StorageConfig, settings

logger = logging.getLogger(__name__)

_KV_REGISTRY: dict[str, Callable[[StorageConfig], KeyValueStore]] = {}
_CALENDAR_REGISTRY: dict[str, Callable[[StorageConfig], CalendarBackend]] = {}


def register_kv_store(name: str, factory: Callable[[StorageConfig], KeyValueStore]) -> None:
    """Register a key-value store factory by name."""
    _KV_REGISTRY[name] = factory
    logger.debug("KV store registered: %s", name)


def register_calendar(name: str, factory: Callable[[StorageConfig], CalendarBackend]) -> None:
    """Register a calendar backend factory by name."""
    _CALENDAR_REGISTRY[name] = factory
    logger.debug("Calendar backend registered: %s", name)


def create_kv_store(name: Optional[str] = None, storage: Optional[StorageConfig] = None) -> KeyValueStore:
    """Create the key-value store selected by ``name`` (default: KV_BACKEND).

    Raises:
        KeyError: If the name is not registered.
    """
    storage = storage or settings.storage
    name = name or storage.kv_backend
    if name not in _KV_REGISTRY:
        raise KeyError(f"KV store '{name}' not registered. Available: {list(_KV_REGISTRY)}")
    logger.info("Using %s key-value store", name)
    return _KV_REGISTRY[name](storage)


def create_calendar(name: Optional[str] = None, storage: Optional[StorageConfig] = None) -> CalendarBackend:
    """Create the calendar backend selected by ``name`` (default: CALENDAR_BACKEND).

    Raises:
        KeyError: If the name is not registered.
    """
    storage = storage or settings.storage
    name = name or storage.calendar_backend
    if name not in _CALENDAR_REGISTRY:
        raise KeyError(
            f"Calendar backend '{name}' not registered. Available: {list(_CALENDAR_REGISTRY)}"
        )
    logger.info("Using %s calendar backend", name)
    return _CALENDAR_REGISTRY[name](storage)


def get_registered_backends() -> dict[str, list[str]]:
    """Return registered backend names by kind."""
    return {"kv": list(_KV_REGISTRY), "calendar": list(_CALENDAR_REGISTRY)}


def _auto_register() -> None:
    """Register the built-in backends. Called once at import time."""
    register_kv_store("memory", lambda storage: InMemoryKeyValueStore())
    register_kv_store(
        "redis",
        lambda storage: RedisKeyValueStore(url=storage.redis_url, timeout=storage.backend_timeout_sec),
    )
    register_calendar("memory", lambda storage: InMemoryCalendarBackend())
    register_calendar(
        "google",
        lambda storage: GoogleCalendarBackend(
            credentials_json=storage.google_service_account_json,
            timeout=storage.backend_timeout_sec,
        ),
    )


_auto_register()
