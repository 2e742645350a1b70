"""Shared test fixtures and helpers."""

from datetime import date, datetime, time, timedelta
from typing import Any, Optional
from zoneinfo import ZoneInfo

import pytest

from barber_booking.backends.calendar import InMemoryCalendarBackend
from barber_booking.backends.kv import InMemoryKeyValueStore
from barber_booking.booking.commit import BookingCommitter
from barber_booking.booking.history import BookingHistory
from barber_booking.booking.holds import HoldManager
from barber_booking.config import BookingConfig
from barber_booking.flows.menu_flow import MenuBookingFlow
from barber_booking.flows.session_store import SessionStore
from barber_booking.scheduling.availability import AvailabilityAggregator
from barber_booking.scheduling.calendar_model import BusinessCalendar
from barber_booking.scheduling.catalog import build_profile
from barber_booking.schemas.booking_schema import BookingRequest

MADRID = ZoneInfo("Europe/Madrid")

# Monday; "now" is the Friday morning before it.
MONDAY = date(2025, 3, 17)
SUNDAY = date(2025, 3, 16)
NOW = datetime(2025, 3, 14, 9, 0, tzinfo=MADRID)

CUSTOMER = "+34612345678"
OTHER_CUSTOMER = "+34699888777"

_WEEKDAY = {"open": "09:00", "close": "18:00", "breaks": [{"start": "14:00", "end": "15:00"}]}

TEST_BUSINESS: dict[str, Any] = {
    "name": "Test Barbers",
    "timezone": "Europe/Madrid",
    "hours": {
        "monday": _WEEKDAY,
        "tuesday": _WEEKDAY,
        "wednesday": _WEEKDAY,
        "thursday": _WEEKDAY,
        "friday": _WEEKDAY,
        "saturday": {"open": "10:00", "close": "14:00"},
        "sunday": {"closed": True},
    },
    "services": [
        {
            "id": "haircut",
            "name": {"es": "Corte de pelo", "en": "Haircut"},
            "duration_minutes": 30,
            "price": {"amount": "25", "currency": "EUR"},
        },
        {
            "id": "beard-trim",
            "name": {"es": "Arreglo de barba", "en": "Beard trim"},
            "duration_minutes": 15,
            "price": {"amount": "10", "currency": "EUR"},
        },
        {
            "id": "hair-coloring",
            "name": {"es": "Tinte de pelo", "en": "Hair colouring"},
            "duration_minutes": 60,
            "price": {"amount": "40", "currency": "EUR"},
        },
    ],
    "barbers": [
        {"id": "A", "name": "Carlos", "calendar_ref": "cal-a"},
        {"id": "B", "name": "Miguel", "calendar_ref": "cal-b", "services": ["haircut", "beard-trim"]},
    ],
}


class FakeClock:
    """Controllable wall clock (for holds and policy) and monotonic clock (for TTLs)."""

    def __init__(self, now: datetime = NOW) -> None:
        self.current = now
        self.seconds = 0.0

    def __call__(self) -> datetime:
        return self.current

    def monotonic(self) -> float:
        return self.seconds

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)
        self.seconds += seconds


def at(day: date, hour: int, minute: int = 0) -> datetime:
    """Madrid wall-clock datetime on ``day``."""
    return datetime.combine(day, time(hour, minute), tzinfo=MADRID)


def make_request(
    start: datetime,
    service_id: str = "haircut",
    barber_id: Optional[str] = "A",
    phone: str = CUSTOMER,
    **kwargs: Any,
) -> BookingRequest:
    return BookingRequest(
        customer_phone=phone,
        customer_name=kwargs.pop("customer_name", "Juan"),
        service_id=service_id,
        start=start,
        barber_id=barber_id,
        **kwargs,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def policy():
    return BookingConfig(
        slot_cadence_minutes=15,
        buffer_minutes=10,
        min_advance_hours=2,
        advance_booking_days=30,
        availability_days=7,
        hold_ttl_seconds=300,
    )


@pytest.fixture
def profile():
    return build_profile(TEST_BUSINESS)


@pytest.fixture
def calendar(profile):
    return BusinessCalendar(profile)


@pytest.fixture
def backend():
    return InMemoryCalendarBackend()


@pytest.fixture
def kv(clock):
    return InMemoryKeyValueStore(clock=clock.monotonic)


@pytest.fixture
def aggregator(calendar, backend, policy, clock):
    return AvailabilityAggregator(calendar, backend, policy, clock)


@pytest.fixture
def holds(kv, policy, clock):
    return HoldManager(kv, policy.hold_ttl_seconds, clock)


@pytest.fixture
def history(kv):
    return BookingHistory(kv)


@pytest.fixture
def committer(aggregator, holds, history):
    return BookingCommitter(aggregator, holds, history)


@pytest.fixture
def sessions(kv):
    return SessionStore(kv, ttl_seconds=86400, default_language="es")


@pytest.fixture
def flow(committer, sessions):
    return MenuBookingFlow(committer, sessions, response_budget_sec=5.0, date_options=7)
