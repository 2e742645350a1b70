"""Per-customer menu session persisted in the key-value store."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ConversationSession(BaseModel):
    """
    Structured state of one customer's menu conversation.

    Stored as JSON under ``session:{phone}`` between messages. Every
    flow step reads and writes this instead of parsing message history.
    """

    phone: str
    state: str = "service_selection"
    language: str = "es"
    service_id: Optional[str] = None
    barber_choice: Optional[str] = None  # barber id or "any"
    assigned_barber_id: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    offered_times: dict[str, list[str]] = Field(default_factory=dict)
    slot_start: Optional[datetime] = None
    holder_token: Optional[str] = None
    last_event_id: Optional[str] = None
    error_count: int = 0
    updated_at: Optional[datetime] = None

    def clear_booking(self) -> None:
        """Forget the in-progress selection, keeping language and phone."""
        self.service_id = None
        self.barber_choice = None
        self.assigned_barber_id = None
        self.date = None
        self.time = None
        self.offered_times = {}
        self.slot_start = None
        self.holder_token = None
