"""
Half-open interval conflict checks with a symmetric buffer.

Two intervals ``[a0, a1)`` and ``[b0, b1)`` overlap iff ``a0 < b1`` and
``a1 > b0``. The buffer widens each busy interval on both sides before
the test, enforcing a minimum gap between consecutive appointments.

Busy intervals with ``end <= start`` come from malformed events; they
never conflict and the buffer is not applied to them.
"""

from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Optional

from barber_booking.schemas.booking_schema import BusyInterval


def overlaps(
    start: datetime,
    end: datetime,
    busy: BusyInterval,
    buffer: timedelta = timedelta(0),
) -> bool:
    """Check whether ``[start, end)`` conflicts with a buffered busy interval."""
    if busy.is_degenerate:
        return False
    return start < busy.end + buffer and end > busy.start - buffer


def is_free(
    start: datetime,
    end: datetime,
    busy_intervals: Iterable[BusyInterval],
    buffer: timedelta = timedelta(0),
) -> bool:
    """True when no busy interval conflicts with ``[start, end)``."""
    return not any(overlaps(start, end, busy, buffer) for busy in busy_intervals)


def first_conflict(
    start: datetime,
    end: datetime,
    busy_intervals: Iterable[BusyInterval],
    buffer: timedelta = timedelta(0),
) -> Optional[BusyInterval]:
    """Return the first conflicting busy interval, or None."""
    for busy in busy_intervals:
        if overlaps(start, end, busy, buffer):
            return busy
    return None
