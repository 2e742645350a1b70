"""
Availability aggregation across one barber or the whole roster.

For a given day and service, the aggregator:
1. Validates the request (known service and barber, date within horizon).
2. Returns nothing for closed days without touching the calendar.
3. Reads each candidate barber's busy intervals once for the whole day.
4. Annotates every generated slot with the barbers who are free for it.

Busy snapshots are read per call and never cached.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Callable, Optional, Union

from barber_booking.backends.calendar import CalendarBackend
from barber_booking.config import BookingConfig
from barber_booking.errors import InvalidRequest
from barber_booking.scheduling.calendar_model import BusinessCalendar
from barber_booking.scheduling.conflicts import first_conflict, is_free
from barber_booking.scheduling.slot_generator import generate_slots, within_horizon
from barber_booking.schemas.booking_schema import BusyInterval, CandidateSlot, DayAvailability
from barber_booking.schemas.business_schema import Barber

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Specific:
    """A customer asked for one named barber."""

    barber_id: str


@dataclass(frozen=True)
class AnyResource:
    """Any barber offering the service will do."""


ResourceSelector = Union[Specific, AnyResource]
ANY_RESOURCE = AnyResource()


def selector_for(choice: Optional[str]) -> ResourceSelector:
    """Map a menu choice (barber id, "any" or None) to a selector."""
    if not choice or choice == "any":
        return ANY_RESOURCE
    return Specific(choice)


def resource_conflict(
    backend: CalendarBackend,
    barber: Barber,
    start: datetime,
    end: datetime,
    buffer: timedelta,
    tz: Optional[tzinfo] = None,
) -> Optional[BusyInterval]:
    """
    Live check of one barber over the narrow buffered window around a slot.

    Returns the first busy interval in the way, or None when free. The
    window is sent in ``tz`` (the shop's zone) because backends read
    all-day events as local days in the zone of the query.
    """
    window_start, window_end = start - buffer, end + buffer
    if tz is not None:
        window_start, window_end = window_start.astimezone(tz), window_end.astimezone(tz)
    busy = backend.list_busy(barber.calendar_ref, window_start, window_end)
    return first_conflict(start, end, busy, buffer)


def resource_is_free(
    backend: CalendarBackend,
    barber: Barber,
    start: datetime,
    end: datetime,
    buffer: timedelta,
    tz: Optional[tzinfo] = None,
) -> bool:
    return resource_conflict(backend, barber, start, end, buffer, tz) is None


class AvailabilityAggregator:
    """Compute bookable slots from business hours and live calendar data."""

    def __init__(
        self,
        calendar: BusinessCalendar,
        backend: CalendarBackend,
        policy: BookingConfig,
        clock: Clock = utc_now,
    ) -> None:
        self.calendar = calendar
        self.backend = backend
        self.policy = policy
        self.clock = clock

    @property
    def buffer(self) -> timedelta:
        return timedelta(minutes=self.policy.buffer_minutes)

    @property
    def min_advance(self) -> timedelta:
        return timedelta(hours=self.policy.min_advance_hours)

    def resources(self, service_id: str, selector: ResourceSelector) -> list[Barber]:
        """Barbers a request may be served by, in roster order.

        Raises:
            InvalidRequest: Unknown service, unknown barber, or a barber
                who does not offer the service.
        """
        if self.calendar.service(service_id) is None:
            raise InvalidRequest(f"Unknown service: {service_id!r}", field="service_id")

        if isinstance(selector, Specific):
            barber = self.calendar.resource(selector.barber_id)
            if barber is None:
                raise InvalidRequest(f"Unknown barber: {selector.barber_id!r}", field="barber_id")
            if not barber.offers(service_id):
                raise InvalidRequest(
                    f"{barber.name} does not offer {service_id!r}", field="barber_id"
                )
            return [barber]
        return self.calendar.resources_for(service_id)

    def check_day(self, day: date) -> None:
        """Raise ``InvalidRequest`` for past days or days beyond the horizon."""
        if not within_horizon(day, self.clock(), self.calendar.tz, self.policy.advance_booking_days):
            raise InvalidRequest(
                f"{day.isoformat()} is outside the booking window "
                f"(today to {self.policy.advance_booking_days} days ahead)",
                field="date",
            )

    def available_slots(
        self, day: date, service_id: str, selector: ResourceSelector = ANY_RESOURCE
    ) -> list[CandidateSlot]:
        """Bookable slots for ``day``, each with its free barbers in roster order."""
        resources = self.resources(service_id, selector)
        self.check_day(day)

        hours = self.calendar.hours_for(day)
        if hours is None or not resources:
            return []

        tz = self.calendar.tz
        service = self.calendar.service(service_id)
        candidates = generate_slots(
            day,
            hours,
            service.duration_minutes,
            self.policy.slot_cadence_minutes,
            tz,
            now=self.clock(),
            min_advance=self.min_advance,
            horizon_days=self.policy.advance_booking_days,
        ).to_list()
        if not candidates:
            return []

        day_start = datetime.combine(day, time(0), tzinfo=tz)
        day_end = day_start + timedelta(days=1)
        busy_by_resource = {
            barber.id: self.backend.list_busy(barber.calendar_ref, day_start, day_end)
            for barber in resources
        }

        buffer = self.buffer
        slots: list[CandidateSlot] = []
        for candidate in candidates:
            free = tuple(
                barber.id
                for barber in resources
                if is_free(candidate.start, candidate.end, busy_by_resource[barber.id], buffer)
            )
            if free:
                slots.append(candidate.with_free(free))

        logger.debug(
            "%d/%d slots free on %s for %s (%d barbers)",
            len(slots), len(candidates), day.isoformat(), service_id, len(resources),
        )
        return slots

    def available_days(
        self,
        start: date,
        service_id: str,
        selector: ResourceSelector = ANY_RESOURCE,
        days: Optional[int] = None,
    ) -> list[DayAvailability]:
        """Availability for the next ``days`` open days from ``start``.

        Closed days are skipped and the horizon truncates the range.
        """
        self.resources(service_id, selector)
        count = days or self.policy.availability_days
        today = self.clock().astimezone(self.calendar.tz).date()
        first = max(start, today)
        last = today + timedelta(days=self.policy.advance_booking_days)

        result: list[DayAvailability] = []
        for day in self.calendar.open_days(first, count, until=last):
            result.append(DayAvailability(
                date=day.isoformat(),
                day_name=day.strftime("%A"),
                slots=self.available_slots(day, service_id, selector),
            ))
        return result

    @staticmethod
    def pick_resource(slot: CandidateSlot) -> Optional[str]:
        """First free barber in roster order, or None if the slot is full."""
        return slot.free_resources[0] if slot.free_resources else None
