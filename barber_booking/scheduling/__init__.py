from barber_booking.scheduling.availability import (
    ANY_RESOURCE,
    AnyResource,
    AvailabilityAggregator,
    ResourceSelector,
    Specific,
)
from barber_booking.scheduling.calendar_model import BusinessCalendar
from barber_booking.scheduling.conflicts import is_free, overlaps
from barber_booking.scheduling.slot_generator import SlotSequence, generate_slots

__all__ = [
    "BusinessCalendar",
    "generate_slots", "SlotSequence",
    "overlaps", "is_free",
    "AvailabilityAggregator", "ResourceSelector", "Specific", "AnyResource", "ANY_RESOURCE",
]
