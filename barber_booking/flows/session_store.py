"""Menu sessions persisted per customer in the key-value store."""

import logging

from pydantic import ValidationError

from barber_booking.backends.kv import KeyValueStore
from barber_booking.schemas.session_schema import ConversationSession
from barber_booking.utils import mask_phone, normalize_phone

logger = logging.getLogger(__name__)


class SessionStore:
    """Load and save ``ConversationSession`` objects under ``session:{phone}``."""

    def __init__(self, store: KeyValueStore, ttl_seconds: int = 86400, default_language: str = "es") -> None:
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.default_language = default_language

    @staticmethod
    def key(phone: str) -> str:
        return f"session:{normalize_phone(phone)}"

    def load(self, phone: str) -> ConversationSession:
        """Return the stored session, or a fresh one if missing or unreadable."""
        raw = self.store.get(self.key(phone))
        if raw:
            try:
                return ConversationSession.model_validate_json(raw)
            except ValidationError:
                logger.warning("Resetting unreadable session for %s", mask_phone(phone))
        return ConversationSession(phone=normalize_phone(phone), language=self.default_language)

    def save(self, session: ConversationSession) -> None:
        self.store.set(self.key(session.phone), session.model_dump_json(), ttl=self.ttl_seconds)

    def clear(self, phone: str) -> bool:
        return self.store.delete(self.key(phone))
