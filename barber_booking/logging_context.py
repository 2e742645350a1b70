"""Request ID logging context for tracing webhook events across modules.

Every incoming messaging event is handled independently and concurrently,
so log lines from different customers interleave. A request-aware logger
attaches the current request ID to every record.

Usage:
    from barber_booking.logging_context import get_request_logger, set_request_id

    set_request_id("WA-wamid.HBgL")
    logger = get_request_logger(__name__)
    logger.info("Processing selection")  # → [WA-wamid.HBgL] Processing selection
"""

import logging
import uuid
from contextvars import ContextVar

_request_id: ContextVar[str] = ContextVar("request_id", default="NO_REQUEST_ID")


def set_request_id(request_id: str) -> None:
    """Set the request ID for the current context."""
    _request_id.set(request_id)


def new_request_id(prefix: str = "REQ") -> str:
    """Generate and set a fresh request ID, returning it."""
    request_id = f"{prefix}-{uuid.uuid4().hex[:8]}"
    set_request_id(request_id)
    return request_id


def get_request_id() -> str:
    """Retrieve the current request ID."""
    return _request_id.get()


class RequestIdFilter(logging.Filter):
    """Injects request_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()  # type: ignore[attr-defined]
        return True


def get_request_logger(name: str) -> logging.Logger:
    """Return a logger with the RequestIdFilter attached.

    The filter adds ``request_id`` to each record so formatters can
    include ``%(request_id)s`` in their format string.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, RequestIdFilter) for f in logger.filters):
        logger.addFilter(RequestIdFilter())
    return logger
