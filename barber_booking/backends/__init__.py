from barber_booking.backends.calendar import (
    CalendarBackend,
    GoogleCalendarBackend,
    InMemoryCalendarBackend,
)
from barber_booking.backends.kv import InMemoryKeyValueStore, KeyValueStore, RedisKeyValueStore
from barber_booking.backends.registry import (
    create_calendar,
    create_kv_store,
    get_registered_backends,
    register_calendar,
    register_kv_store,
)

__all__ = [
    "KeyValueStore", "InMemoryKeyValueStore", "RedisKeyValueStore",
    "CalendarBackend", "InMemoryCalendarBackend", "GoogleCalendarBackend",
    "create_kv_store", "create_calendar", "register_kv_store", "register_calendar",
    "get_registered_backends",
]
