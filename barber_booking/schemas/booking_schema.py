"""Booking and availability data models."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from barber_booking.errors import SlotNoLongerAvailable


@dataclass(frozen=True)
class BusyInterval:
    """A period during which a resource is already committed."""

    resource_ref: str
    start: datetime
    end: datetime

    @property
    def is_degenerate(self) -> bool:
        """Zero-length or inverted intervals come from malformed events."""
        return self.end <= self.start


@dataclass(frozen=True)
class CandidateSlot:
    """A start/end pair of fixed service duration.

    ``free_resources`` holds barber ids in roster order; an empty tuple
    means the slot is not offered.
    """

    start: datetime
    end: datetime
    free_resources: tuple[str, ...] = field(default=())

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def label(self) -> str:
        return self.start.strftime("%H:%M")

    def with_free(self, resources: tuple[str, ...]) -> "CandidateSlot":
        return CandidateSlot(start=self.start, end=self.end, free_resources=resources)


class DayAvailability(BaseModel):
    """Availability summary for one open day."""

    date: str
    day_name: str
    slots: list[CandidateSlot] = Field(default_factory=list)

    @property
    def total_slots(self) -> int:
        return len(self.slots)

    @property
    def has_availability(self) -> bool:
        return bool(self.slots)


class BookingHold(BaseModel):
    """A short-lived exclusive claim on a slot."""

    slot_key: str
    holder: str
    created_at: datetime
    expires_at: datetime


class BookingRequest(BaseModel):
    """Structured booking input, already parsed by the conversational layer.

    ``barber_id`` of None means "any available barber".
    """

    customer_phone: str
    customer_name: str = ""
    service_id: str
    start: datetime
    barber_id: Optional[str] = None
    language: str = "es"
    customer_email: Optional[str] = None


class EventDetails(BaseModel):
    """Metadata written alongside a calendar event."""

    summary: str
    description: str = ""
    timezone: str = "Europe/Madrid"
    customer_phone: str = ""
    service_id: str = ""
    attendee_email: Optional[str] = None


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class BookingRecord(BaseModel):
    """Durable result of a committed booking."""

    resource_ref: str
    calendar_ref: str
    service_ref: str
    start: datetime
    end: datetime
    customer: str
    customer_name: str = ""
    external_event_id: str
    language: str = "es"
    status: BookingStatus = BookingStatus.CONFIRMED
    booked_at: Optional[datetime] = None


class CommitState(str, Enum):
    """States a single booking attempt moves through."""

    REQUESTED = "requested"
    HOLD_ACQUIRED = "hold_acquired"
    HOLD_DENIED = "hold_denied"
    VERIFIED = "verified"
    CONFLICTED = "conflicted"
    COMMITTED = "committed"
    HOLD_RELEASED = "hold_released"
    FAILED = "failed"


class CommitStatus(str, Enum):
    COMMITTED = "committed"
    SLOT_NO_LONGER_AVAILABLE = "slot_no_longer_available"


class CommitResult(BaseModel):
    """Outcome of the commit protocol."""

    status: CommitStatus
    record: Optional[BookingRecord] = None
    message: str = ""
    trace: list[CommitState] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == CommitStatus.COMMITTED

    def unwrap(self) -> BookingRecord:
        """Return the record or raise ``SlotNoLongerAvailable``."""
        if self.record is None:
            raise SlotNoLongerAvailable(self.message or SlotNoLongerAvailable().args[0])
        return self.record


class CancelResult(BaseModel):
    success: bool
    message: str
    event_id: Optional[str] = None
