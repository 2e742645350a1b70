"""
Business calendar model: pure lookups over the validated business profile.

Unknown ids return None rather than raising, so callers can fall back to
presenting the customer with a choice list.
"""

from datetime import date, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from barber_booking.scheduling.catalog import match_service_id
from barber_booking.schemas.business_schema import (
    WEEKDAYS,
    Barber,
    BusinessProfile,
    DayHours,
    Service,
)

SHOP_RESOURCE_ID = "shop"


class BusinessCalendar:
    """Read-only view of opening hours, services and the barber roster."""

    def __init__(self, profile: BusinessProfile) -> None:
        self._profile = profile
        self._services = {s.id: s for s in profile.services}
        self._barbers = {b.id: b for b in profile.barbers}

    @property
    def profile(self) -> BusinessProfile:
        return self._profile

    @property
    def tz(self) -> ZoneInfo:
        return self._profile.tz

    def hours_for(self, day: date) -> Optional[DayHours]:
        """Opening hours for a date, or None when the business is closed.

        A weekday missing from the configuration counts as closed.
        """
        hours = self._profile.hours.get(WEEKDAYS[day.weekday()])
        if hours is None or hours.closed:
            return None
        return hours

    def is_open(self, day: date) -> bool:
        return self.hours_for(day) is not None

    def open_days(self, start: date, count: int, until: Optional[date] = None) -> list[date]:
        """Next ``count`` open dates from ``start`` (inclusive), stopping at ``until``."""
        days: list[date] = []
        current = start
        # A fully closed week means nothing will ever open.
        if not any(self.is_open(start + timedelta(days=i)) for i in range(7)):
            return days
        while len(days) < count:
            if until is not None and current > until:
                break
            if self.is_open(current):
                days.append(current)
            current += timedelta(days=1)
        return days

    def services_catalog(self) -> list[Service]:
        return list(self._profile.services)

    def service(self, service_id: Optional[str]) -> Optional[Service]:
        if not service_id:
            return None
        return self._services.get(service_id)

    def match_service(self, query: str) -> Optional[Service]:
        """Match free text like "arreglo de barba" to a service."""
        matched = match_service_id(query, list(self._services))
        return self._services.get(matched) if matched else None

    def resources_for(self, service_id: Optional[str] = None) -> list[Barber]:
        """Barbers able to perform the service, in roster order.

        With an empty roster and a shop calendar configured, the shop
        itself is the single bookable resource.
        """
        if not self._profile.barbers:
            if self._profile.calendar_ref:
                return [self._shop_resource()]
            return []
        if service_id is None:
            return list(self._profile.barbers)
        return [b for b in self._profile.barbers if b.offers(service_id)]

    def resource(self, resource_id: Optional[str]) -> Optional[Barber]:
        if not resource_id:
            return None
        if resource_id == SHOP_RESOURCE_ID and not self._profile.barbers:
            return self._shop_resource() if self._profile.calendar_ref else None
        return self._barbers.get(resource_id)

    def _shop_resource(self) -> Barber:
        return Barber(
            id=SHOP_RESOURCE_ID,
            name=self._profile.name,
            calendar_ref=self._profile.calendar_ref or "primary",
        )
