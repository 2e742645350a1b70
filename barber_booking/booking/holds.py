"""
Short-lived exclusive holds on slots.

A hold is a TTL'd key in the shared key-value store. Acquisition is a
single conditional set (``set_if_absent``); there is no read-then-write
path, so two concurrent requests can never both believe they own a slot.

A hold may be re-acquired by its holder (the menu holds a slot while the
customer confirms, then commits under the same token). Committing needs
two more exclusions on top of the hold:

- a commit marker next to the hold key, so one holder retrying the same
  confirmation cannot run two commits on one slot;
- a per-barber lock around the calendar re-check and write, so bookings
  with different but overlapping start times are serialized.
"""

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from pydantic import ValidationError

from barber_booking.backends.kv import KeyValueStore
from barber_booking.booking.locks import LOCK_PREFIX, StoreLock
from barber_booking.schemas.booking_schema import BookingHold

logger = logging.getLogger(__name__)

HOLD_PREFIX = "hold:"
COMMIT_SUFFIX = ":commit"


class HoldStatus(str, Enum):
    ACQUIRED = "acquired"
    CONFLICT = "conflict"


def slot_key(start: datetime, resource_id: Optional[str] = None) -> str:
    """Hold key for a slot: the exact UTC instant, scoped to a barber if given.

    Examples:
        >>> from datetime import datetime, timezone
        >>> slot_key(datetime(2025, 3, 17, 9, 0, tzinfo=timezone.utc), "barber1")
        'hold:barber1:2025-03-17T09:00:00+00:00'
    """
    instant = start.astimezone(timezone.utc).isoformat()
    if resource_id:
        return f"{HOLD_PREFIX}{resource_id}:{instant}"
    return f"{HOLD_PREFIX}{instant}"


class HoldManager:
    """Acquire, inspect and release slot holds."""

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: int = 300,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        lock_ttl_seconds: int = 30,
        lock_wait_seconds: float = 5.0,
    ) -> None:
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.lock_ttl_seconds = lock_ttl_seconds
        self.lock_wait_seconds = lock_wait_seconds

    def acquire_hold(self, key: str, holder: str) -> HoldStatus:
        """
        Try to claim ``key`` for ``holder``.

        Re-acquiring a hold already owned by the same holder succeeds
        without creating a second hold or extending the first.
        """
        now = self.clock()
        hold = BookingHold(
            slot_key=key,
            holder=holder,
            created_at=now,
            expires_at=now + timedelta(seconds=self.ttl_seconds),
        )
        payload = hold.model_dump_json()

        # Second pass covers a hold that expired between the set and the read.
        for _ in range(2):
            if self.store.set_if_absent(key, payload, ttl=self.ttl_seconds):
                logger.debug("Hold acquired: %s", key)
                return HoldStatus.ACQUIRED
            current = self.current_hold(key)
            if current is None:
                continue
            if current.holder == holder:
                return HoldStatus.ACQUIRED
            break

        logger.info("Hold conflict on %s", key)
        return HoldStatus.CONFLICT

    def release_hold(self, key: str, holder: Optional[str] = None) -> bool:
        """
        Release a hold. Idempotent: releasing a missing hold returns False.

        With ``holder``, the key is removed only if that holder still owns
        it, so a late release never deletes somebody else's newer hold.
        """
        if holder is None:
            released = self.store.delete(key)
        else:
            raw = self.store.get(key)
            if raw is None:
                return False
            hold = self._parse(key, raw)
            if hold is None or hold.holder != holder:
                return False
            released = self.store.delete_if_value(key, raw)
        if released:
            logger.debug("Hold released: %s", key)
        return released

    def current_hold(self, key: str) -> Optional[BookingHold]:
        raw = self.store.get(key)
        if raw is None:
            return None
        return self._parse(key, raw)

    @staticmethod
    def _parse(key: str, raw: str) -> Optional[BookingHold]:
        try:
            return BookingHold.model_validate_json(raw)
        except ValidationError:
            logger.warning("Unreadable hold payload under %s", key)
            return None

    def claim_commit(self, key: str, attempt: str) -> HoldStatus:
        """
        Mark ``key`` as being committed by ``attempt``.

        Unlike the hold itself this is never re-entrant: a second attempt
        gets CONFLICT even when it runs for the same holder.
        """
        if self.store.set_if_absent(key + COMMIT_SUFFIX, attempt, ttl=self.ttl_seconds):
            return HoldStatus.ACQUIRED
        logger.info("Commit already in progress on %s", key)
        return HoldStatus.CONFLICT

    def release_commit(self, key: str, attempt: str) -> bool:
        return self.store.delete_if_value(key + COMMIT_SUFFIX, attempt)

    def resource_lock(self, resource_id: str) -> StoreLock:
        """Lock serializing calendar re-check and write for one barber."""
        return StoreLock(
            self.store,
            f"{LOCK_PREFIX}barber:{resource_id}",
            ttl_seconds=self.lock_ttl_seconds,
            wait_seconds=self.lock_wait_seconds,
        )
