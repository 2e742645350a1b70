"""
Key-value store backends for holds, sessions and booking history.

Values are strings (callers store JSON). ``set_if_absent`` and
``delete_if_value`` are the atomic primitives the hold layer builds on;
every other caller only needs ``get``/``set``/``delete``.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

import redis
from redis.exceptions import RedisError

from barber_booking.errors import BackendUnavailable

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """String key-value store with per-key TTL in seconds."""

    name = "abstract"

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        ...

    @abstractmethod
    def set_if_absent(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        """Write only when the key does not exist. Returns True if written."""

    @abstractmethod
    def delete_if_value(self, key: str, expected: str) -> bool:
        """Delete only when the stored value equals ``expected``."""

    def ping(self) -> bool:
        """Round-trip check used by the health command."""
        return True


class InMemoryKeyValueStore(KeyValueStore):
    """
    Thread-safe in-process store for tests and the console demo.

    ``clock`` returns seconds on a monotonic scale; tests inject a fake
    clock to expire entries without sleeping.
    """

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._data: dict[str, tuple[str, Optional[float]]] = {}

    def _live(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    def _expiry(self, ttl: Optional[int]) -> Optional[float]:
        return self._clock() + ttl if ttl else None

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._live(key)

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        with self._lock:
            self._data[key] = (value, self._expiry(ttl))

    def delete(self, key: str) -> bool:
        with self._lock:
            existed = self._live(key) is not None
            self._data.pop(key, None)
            return existed

    def set_if_absent(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        with self._lock:
            if self._live(key) is not None:
                return False
            self._data[key] = (value, self._expiry(ttl))
            return True

    def delete_if_value(self, key: str, expected: str) -> bool:
        with self._lock:
            if self._live(key) != expected:
                return False
            del self._data[key]
            return True

    def ttl(self, key: str) -> Optional[float]:
        """Seconds left before ``key`` expires, or None if absent/persistent."""
        with self._lock:
            if self._live(key) is None:
                return None
            expires_at = self._data[key][1]
            return None if expires_at is None else expires_at - self._clock()

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return sorted(k for k in list(self._data) if k.startswith(prefix) and self._live(k) is not None)

    def reset(self) -> None:
        """Drop every entry. Used between tests."""
        with self._lock:
            self._data.clear()


# Deletes KEYS[1] only if it still holds ARGV[1]; GET and DEL run atomically.
_COMPARE_AND_DELETE = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""


class RedisKeyValueStore(KeyValueStore):
    """Redis-backed store. Any ``RedisError`` surfaces as ``BackendUnavailable``."""

    name = "redis"

    def __init__(
        self,
        client: Optional["redis.Redis"] = None,
        *,
        url: str = "redis://localhost:6379/0",
        timeout: float = 5.0,
    ) -> None:
        if client is None:
            client = redis.from_url(
                url,
                decode_responses=True,
                socket_connect_timeout=timeout,
                socket_timeout=timeout,
            )
        self._client = client
        self._compare_and_delete = client.register_script(_COMPARE_AND_DELETE)

    def _fail(self, op: str, exc: Exception) -> BackendUnavailable:
        logger.error("Redis %s failed: %s", op, exc)
        return BackendUnavailable(f"Redis {op} failed: {exc}", backend=self.name)

    def get(self, key: str) -> Optional[str]:
        try:
            return self._client.get(key)
        except RedisError as exc:
            raise self._fail("GET", exc) from exc

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        try:
            self._client.set(key, value, ex=ttl)
        except RedisError as exc:
            raise self._fail("SET", exc) from exc

    def delete(self, key: str) -> bool:
        try:
            return bool(self._client.delete(key))
        except RedisError as exc:
            raise self._fail("DEL", exc) from exc

    def set_if_absent(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        try:
            return bool(self._client.set(key, value, nx=True, ex=ttl))
        except RedisError as exc:
            raise self._fail("SET NX", exc) from exc

    def delete_if_value(self, key: str, expected: str) -> bool:
        try:
            return bool(self._compare_and_delete(keys=[key], args=[expected]))
        except RedisError as exc:
            raise self._fail("compare-and-delete", exc) from exc

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except RedisError as exc:
            raise self._fail("PING", exc) from exc
