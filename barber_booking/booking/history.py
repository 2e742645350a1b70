"""Per-customer booking history kept in the key-value store."""

import json
import logging
from datetime import datetime
from typing import Optional

from pydantic import TypeAdapter, ValidationError

from barber_booking.backends.kv import KeyValueStore
from barber_booking.booking.locks import LOCK_PREFIX, StoreLock
from barber_booking.schemas.booking_schema import BookingRecord, BookingStatus
from barber_booking.utils import mask_phone, normalize_phone

logger = logging.getLogger(__name__)

_RECORDS = TypeAdapter(list[BookingRecord])


class BookingHistory:
    """
    Booking records under ``bookings:{phone}``.

    The calendar stays the source of truth; this list backs "my upcoming
    appointments" and cancellation by customer without a calendar search.
    Writes rewrite the whole list, so they run under a per-customer lock;
    a customer's messages can be handled concurrently.
    """

    def __init__(
        self, store: KeyValueStore, ttl_seconds: int = 31536000, lock_wait_seconds: float = 5.0
    ) -> None:
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.lock_wait_seconds = lock_wait_seconds

    @staticmethod
    def key(customer: str) -> str:
        return f"bookings:{normalize_phone(customer)}"

    def bookings(self, customer: str) -> list[BookingRecord]:
        raw = self.store.get(self.key(customer))
        if not raw:
            return []
        try:
            return _RECORDS.validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable booking history for %s", mask_phone(customer))
            return []

    def _save(self, customer: str, records: list[BookingRecord]) -> None:
        payload = json.dumps([r.model_dump(mode="json") for r in records])
        self.store.set(self.key(customer), payload, ttl=self.ttl_seconds)

    def _lock(self, customer: str) -> StoreLock:
        return StoreLock(
            self.store, LOCK_PREFIX + self.key(customer), wait_seconds=self.lock_wait_seconds
        )

    def append(self, record: BookingRecord) -> None:
        with self._lock(record.customer):
            records = self.bookings(record.customer)
            records.append(record)
            self._save(record.customer, records)

    def upcoming(self, customer: str, now: datetime) -> list[BookingRecord]:
        """Confirmed bookings that have not started yet, soonest first."""
        return sorted(
            (r for r in self.bookings(customer) if r.status == BookingStatus.CONFIRMED and r.start > now),
            key=lambda r: r.start,
        )

    def find(self, customer: str, event_id: str) -> Optional[BookingRecord]:
        for record in self.bookings(customer):
            if record.external_event_id == event_id:
                return record
        return None

    def mark_cancelled(self, customer: str, event_id: str) -> Optional[BookingRecord]:
        """Flag a booking as cancelled. Returns the updated record, if found."""
        with self._lock(customer):
            records = self.bookings(customer)
            for i, record in enumerate(records):
                if record.external_event_id == event_id:
                    records[i] = record.model_copy(update={"status": BookingStatus.CANCELLED})
                    self._save(customer, records)
                    return records[i]
        return None
