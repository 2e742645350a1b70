"""
Assemble the booking engine from configuration.

Usage:
    engine = build_engine()
    slots = engine.aggregator.available_slots(day, "haircut", ANY_RESOURCE)
    reply = await engine.flow.handle("+34612345678", "service:haircut")
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from barber_booking.backends.calendar import CalendarBackend
from barber_booking.backends.kv import KeyValueStore
from barber_booking.backends.registry import create_calendar, create_kv_store
from barber_booking.booking.commit import BookingCommitter
from barber_booking.booking.history import BookingHistory
from barber_booking.booking.holds import HoldManager
from barber_booking.config import AppConfig, settings
from barber_booking.flows.menu_flow import MenuBookingFlow
from barber_booking.flows.session_store import SessionStore
from barber_booking.scheduling.availability import AvailabilityAggregator, utc_now
from barber_booking.scheduling.calendar_model import BusinessCalendar
from barber_booking.scheduling.catalog import load_business_profile
from barber_booking.schemas.business_schema import BusinessProfile

logger = logging.getLogger(__name__)


@dataclass
class BookingEngine:
    """All collaborators of one running assistant."""

    calendar: BusinessCalendar
    kv: KeyValueStore
    backend: CalendarBackend
    aggregator: AvailabilityAggregator
    holds: HoldManager
    history: BookingHistory
    committer: BookingCommitter
    sessions: SessionStore
    flow: MenuBookingFlow


def build_engine(
    config: Optional[AppConfig] = None,
    profile: Optional[BusinessProfile] = None,
    kv: Optional[KeyValueStore] = None,
    backend: Optional[CalendarBackend] = None,
    clock: Callable[[], datetime] = utc_now,
) -> BookingEngine:
    """Wire the engine. Any collaborator passed in replaces the configured one."""
    config = config or settings
    profile = profile or load_business_profile(config.business_config_path or None)
    kv = kv or create_kv_store(storage=config.storage)
    backend = backend or create_calendar(storage=config.storage)

    calendar = BusinessCalendar(profile)
    aggregator = AvailabilityAggregator(calendar, backend, config.booking, clock)
    holds = HoldManager(kv, config.booking.hold_ttl_seconds, clock)
    history = BookingHistory(kv, config.storage.history_ttl_seconds)
    committer = BookingCommitter(aggregator, holds, history)
    sessions = SessionStore(kv, config.storage.session_ttl_seconds, config.default_language)
    flow = MenuBookingFlow(
        committer,
        sessions,
        response_budget_sec=config.response_budget_sec,
        date_options=config.booking.availability_days,
    )
    logger.info(
        "Booking engine ready for '%s' (%s store, %s calendar)",
        profile.name, kv.name, backend.name,
    )
    return BookingEngine(
        calendar=calendar,
        kv=kv,
        backend=backend,
        aggregator=aggregator,
        holds=holds,
        history=history,
        committer=committer,
        sessions=sessions,
        flow=flow,
    )
