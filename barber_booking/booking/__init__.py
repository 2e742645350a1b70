from barber_booking.booking.commit import BookingCommitter, CommitTrace, PlacedHold
from barber_booking.booking.history import BookingHistory
from barber_booking.booking.holds import HoldManager, HoldStatus, slot_key

__all__ = [
    "BookingCommitter", "CommitTrace", "PlacedHold",
    "BookingHistory",
    "HoldManager", "HoldStatus", "slot_key",
]
