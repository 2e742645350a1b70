"""
Short mutual-exclusion locks kept in the shared key-value store.

A lock is a key written with ``set_if_absent`` under a random token and
removed with ``delete_if_value``, so only the owner can unlock it. The
TTL frees a lock whose owner died mid-section.

Usage:
    with StoreLock(store, "lock:barber:A"):
        ...  # re-check the calendar and write the event
"""

import logging
import time
import uuid

from barber_booking.backends.kv import KeyValueStore
from barber_booking.errors import BackendUnavailable, LockTimeout

logger = logging.getLogger(__name__)

LOCK_PREFIX = "lock:"


class StoreLock:
    """Polling lock on one store key. Not re-entrant."""

    def __init__(
        self,
        store: KeyValueStore,
        key: str,
        ttl_seconds: int = 30,
        wait_seconds: float = 5.0,
        poll_seconds: float = 0.01,
    ) -> None:
        self.store = store
        self.key = key
        self.ttl_seconds = ttl_seconds
        self.wait_seconds = wait_seconds
        self.poll_seconds = poll_seconds
        self.token = uuid.uuid4().hex

    def acquire(self) -> bool:
        """Wait up to ``wait_seconds`` for the lock. Returns True once owned."""
        deadline = time.monotonic() + self.wait_seconds
        while not self.store.set_if_absent(self.key, self.token, ttl=self.ttl_seconds):
            if time.monotonic() >= deadline:
                logger.warning("Gave up waiting for %s", self.key)
                return False
            time.sleep(self.poll_seconds)
        return True

    def release(self) -> bool:
        return self.store.delete_if_value(self.key, self.token)

    def __enter__(self) -> "StoreLock":
        if not self.acquire():
            raise LockTimeout(self.key, self.wait_seconds)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            released = self.release()
        except BackendUnavailable as err:
            # The TTL frees the lock.
            logger.error("Could not release %s: %s", self.key, err)
            return
        if not released:
            logger.warning("Lock %s expired before release", self.key)
