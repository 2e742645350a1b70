"""
Fixed-cadence slot generation inside business hours.

Candidates start at opening time and step by the configured cadence
(independent of service duration). A candidate is dropped when its
``[start, start + duration)`` range crosses closing time or a break,
starts before ``now + min_advance``, or falls on a day outside
``[today, today + horizon_days]``.
"""

from collections.abc import Iterator
from datetime import date, datetime, time, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from barber_booking.schemas.booking_schema import CandidateSlot
from barber_booking.schemas.business_schema import DayHours


def at(day: date, clock_time: time, tz: ZoneInfo) -> datetime:
    """Localize a wall-clock time on ``day`` into the business timezone."""
    return datetime.combine(day, clock_time, tzinfo=tz)


def within_horizon(day: date, now: datetime, tz: ZoneInfo, horizon_days: Optional[int]) -> bool:
    """True when ``day`` is today or later and not beyond the booking horizon."""
    today = now.astimezone(tz).date()
    if day < today:
        return False
    if horizon_days is not None and day > today + timedelta(days=horizon_days):
        return False
    return True


def fits_business_hours(start: datetime, end: datetime, hours: DayHours, tz: ZoneInfo) -> bool:
    """Check ``[start, end)`` lies inside opening hours and avoids every break."""
    local_start = start.astimezone(tz)
    local_end = end.astimezone(tz)
    day = local_start.date()
    if local_end.date() != day and local_end.time() != time(0):
        return False
    if local_start < at(day, hours.open, tz) or local_end > at(day, hours.close, tz):
        return False
    for brk in hours.breaks:
        if local_start < at(day, brk.end, tz) and local_end > at(day, brk.start, tz):
            return False
    return True


class SlotSequence:
    """Lazy, finite, restartable sequence of candidate slots for one day.

    Iterating twice yields the same candidates; nothing is computed
    until iteration starts.
    """

    def __init__(
        self,
        day: date,
        hours: Optional[DayHours],
        duration: timedelta,
        cadence: timedelta,
        tz: ZoneInfo,
        earliest_start: Optional[datetime] = None,
        bookable_day: bool = True,
    ) -> None:
        self.day = day
        self.hours = hours
        self.duration = duration
        self.cadence = cadence
        self.tz = tz
        self.earliest_start = earliest_start
        self.bookable_day = bookable_day

    def __iter__(self) -> Iterator[CandidateSlot]:
        if not self.bookable_day or self.hours is None or self.hours.closed:
            return
        open_at = at(self.day, self.hours.open, self.tz)
        close_at = at(self.day, self.hours.close, self.tz)
        breaks = [
            (at(self.day, b.start, self.tz), at(self.day, b.end, self.tz))
            for b in self.hours.breaks
        ]

        start = open_at
        while start + self.duration <= close_at:
            end = start + self.duration
            too_soon = self.earliest_start is not None and start < self.earliest_start
            in_break = any(start < b_end and end > b_start for b_start, b_end in breaks)
            if not too_soon and not in_break:
                yield CandidateSlot(start=start, end=end)
            start += self.cadence

    def __bool__(self) -> bool:
        return next(iter(self), None) is not None

    def to_list(self) -> list[CandidateSlot]:
        return list(self)


def generate_slots(
    day: date,
    hours: Optional[DayHours],
    duration_minutes: int,
    cadence_minutes: int,
    tz: ZoneInfo,
    *,
    now: Optional[datetime] = None,
    min_advance: timedelta = timedelta(0),
    horizon_days: Optional[int] = None,
) -> SlotSequence:
    """Enumerate candidate slots for ``day`` (without free resources yet).

    When ``now`` is given, slots starting before ``now + min_advance`` are
    dropped and days outside the booking horizon produce nothing.
    """
    if duration_minutes <= 0:
        raise ValueError(f"duration_minutes must be > 0, got {duration_minutes}")
    if cadence_minutes <= 0:
        raise ValueError(f"cadence_minutes must be > 0, got {cadence_minutes}")

    earliest: Optional[datetime] = None
    bookable = True
    if now is not None:
        earliest = now + min_advance
        bookable = within_horizon(day, now, tz, horizon_days)

    return SlotSequence(
        day=day,
        hours=hours,
        duration=timedelta(minutes=duration_minutes),
        cadence=timedelta(minutes=cadence_minutes),
        tz=tz,
        earliest_start=earliest,
        bookable_day=bookable,
    )
