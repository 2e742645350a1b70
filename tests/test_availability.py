"""Tests for availability aggregation across the barber roster."""

from datetime import date, datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from barber_booking.backends.calendar import GoogleCalendarBackend
from barber_booking.errors import BackendUnavailable, InvalidRequest
from barber_booking.scheduling.availability import (
    ANY_RESOURCE,
    AvailabilityAggregator,
    Specific,
    resource_conflict,
    resource_is_free,
    selector_for,
)
from barber_booking.schemas.booking_schema import CandidateSlot
from tests.conftest import MADRID, MONDAY, NOW, SUNDAY, at


def _by_label(slots):
    return {slot.label: slot for slot in slots}


class TestSelectorFor:
    def test_any(self):
        assert selector_for(None) is ANY_RESOURCE
        assert selector_for("any") is ANY_RESOURCE

    def test_specific(self):
        assert selector_for("A") == Specific("A")


class TestAvailableSlots:
    def test_all_free_lists_every_barber(self, aggregator):
        slots = aggregator.available_slots(MONDAY, "haircut")
        assert slots[0].label == "09:00"
        assert slots[0].free_resources == ("A", "B")
        assert len(slots) == 30

    def test_busy_barber_removed_from_slot(self, aggregator, backend):
        backend.add_busy("cal-a", at(MONDAY, 10), at(MONDAY, 10, 30))
        slots = _by_label(aggregator.available_slots(MONDAY, "haircut", ANY_RESOURCE))

        assert slots["10:00"].free_resources == ("B",)
        assert slots["09:30"].free_resources == ("B",)
        assert slots["10:30"].free_resources == ("B",)
        assert slots["09:15"].free_resources == ("A", "B")
        assert slots["10:45"].free_resources == ("A", "B")

    def test_slot_dropped_when_nobody_free(self, aggregator, backend):
        backend.add_busy("cal-a", at(MONDAY, 10), at(MONDAY, 10, 30))
        backend.add_busy("cal-b", at(MONDAY, 10), at(MONDAY, 10, 30))
        labels = [s.label for s in aggregator.available_slots(MONDAY, "haircut")]
        assert "10:00" not in labels
        assert "09:15" in labels

    def test_specific_barber(self, aggregator, backend):
        backend.add_busy("cal-b", at(MONDAY, 9), at(MONDAY, 12))
        slots = aggregator.available_slots(MONDAY, "haircut", Specific("B"))
        assert slots[0].label == "12:15"
        assert all(s.free_resources == ("B",) for s in slots)

    def test_service_filters_roster(self, aggregator, backend):
        slots = aggregator.available_slots(MONDAY, "hair-coloring")
        assert all(s.free_resources == ("A",) for s in slots)
        assert [ref for ref, _, _ in backend.list_calls] == ["cal-a"]

    def test_one_read_per_barber(self, aggregator, backend):
        aggregator.available_slots(MONDAY, "haircut")
        assert sorted(ref for ref, _, _ in backend.list_calls) == ["cal-a", "cal-b"]

    def test_reads_whole_local_day(self, aggregator, backend):
        aggregator.available_slots(MONDAY, "haircut", Specific("A"))
        _, start, end = backend.list_calls[0]
        assert start == at(MONDAY, 0)
        assert end - start == timedelta(days=1)

    def test_closed_day_makes_no_calendar_calls(self, aggregator, backend):
        assert aggregator.available_slots(SUNDAY, "haircut") == []
        assert backend.list_calls == []

    def test_min_advance_applies_today(self, aggregator, backend):
        # NOW is Friday 09:00 with two hours of notice.
        slots = aggregator.available_slots(NOW.date(), "haircut")
        assert slots[0].label == "11:00"

    def test_fresh_read_every_call(self, aggregator, backend):
        assert "10:00" in _by_label(aggregator.available_slots(MONDAY, "haircut", Specific("A")))
        backend.add_busy("cal-a", at(MONDAY, 10), at(MONDAY, 10, 30))
        assert "10:00" not in _by_label(aggregator.available_slots(MONDAY, "haircut", Specific("A")))

    def test_backend_failure_propagates(self, aggregator, backend):
        backend.unavailable = True
        with pytest.raises(BackendUnavailable):
            aggregator.available_slots(MONDAY, "haircut")


class TestValidation:
    def test_unknown_service(self, aggregator, backend):
        with pytest.raises(InvalidRequest, match="Unknown service") as exc_info:
            aggregator.available_slots(MONDAY, "massage")
        assert exc_info.value.field == "service_id"
        assert backend.list_calls == []

    def test_unknown_barber(self, aggregator):
        with pytest.raises(InvalidRequest, match="Unknown barber"):
            aggregator.available_slots(MONDAY, "haircut", Specific("Z"))

    def test_barber_without_service(self, aggregator):
        with pytest.raises(InvalidRequest, match="does not offer"):
            aggregator.available_slots(MONDAY, "hair-coloring", Specific("B"))

    def test_past_day(self, aggregator, backend):
        with pytest.raises(InvalidRequest, match="outside the booking window"):
            aggregator.available_slots(date(2025, 3, 10), "haircut")
        assert backend.list_calls == []

    def test_beyond_horizon(self, aggregator):
        with pytest.raises(InvalidRequest):
            aggregator.available_slots(NOW.date() + timedelta(days=31), "haircut")

    def test_last_day_of_horizon_is_allowed(self, aggregator):
        last = NOW.date() + timedelta(days=30)
        aggregator.available_slots(last, "haircut")  # should not raise


class TestAvailableDays:
    def test_skips_closed_days(self, aggregator):
        days = aggregator.available_days(date(2025, 3, 15), "haircut", days=3)
        assert [d.date for d in days] == ["2025-03-15", "2025-03-17", "2025-03-18"]
        assert days[0].day_name == "Saturday"

    def test_includes_fully_booked_days(self, aggregator, backend):
        backend.add_busy("cal-a", at(MONDAY, 8), at(MONDAY, 19))
        backend.add_busy("cal-b", at(MONDAY, 8), at(MONDAY, 19))
        days = aggregator.available_days(MONDAY, "haircut", days=2)
        assert days[0].date == "2025-03-17"
        assert not days[0].has_availability
        assert days[1].total_slots == 30

    def test_start_in_past_clamped_to_today(self, aggregator):
        days = aggregator.available_days(date(2025, 3, 1), "haircut", days=1)
        assert days[0].date == NOW.date().isoformat()

    def test_stops_at_horizon(self, aggregator):
        start = NOW.date() + timedelta(days=29)
        days = aggregator.available_days(start, "haircut", days=7)
        # 2025-04-13 is the last bookable day and a Sunday.
        assert [d.date for d in days] == ["2025-04-12"]

    def test_defaults_to_configured_day_count(self, aggregator, policy):
        days = aggregator.available_days(MONDAY, "haircut")
        assert len(days) == policy.availability_days

    def test_validates_before_reading(self, aggregator, backend):
        with pytest.raises(InvalidRequest):
            aggregator.available_days(MONDAY, "massage")
        assert backend.list_calls == []


class TestResourceHelpers:
    def test_pick_resource_first_in_roster(self):
        slot = CandidateSlot(start=at(MONDAY, 10), end=at(MONDAY, 10, 30), free_resources=("B", "A"))
        assert AvailabilityAggregator.pick_resource(slot) == "B"

    def test_pick_resource_none_when_full(self):
        slot = CandidateSlot(start=at(MONDAY, 10), end=at(MONDAY, 10, 30))
        assert AvailabilityAggregator.pick_resource(slot) is None

    def test_resource_is_free_reads_narrow_window(self, calendar, backend):
        barber = calendar.resource("A")
        backend.add_busy("cal-a", at(MONDAY, 10), at(MONDAY, 10, 30))
        buffer = timedelta(minutes=10)

        assert not resource_is_free(backend, barber, at(MONDAY, 10, 30), at(MONDAY, 11), buffer)
        assert resource_is_free(backend, barber, at(MONDAY, 10, 45), at(MONDAY, 11, 15), buffer)
        _, start, end = backend.list_calls[-1]
        assert start == at(MONDAY, 10, 35)
        assert end == at(MONDAY, 11, 25)

    def test_all_day_event_read_in_shop_zone(self, calendar):
        service = MagicMock()
        service.events.return_value.list.return_value.execute.return_value = {
            "items": [{"start": {"date": "2025-03-18"}, "end": {"date": "2025-03-19"}}]
        }
        google = GoogleCalendarBackend(service)
        barber = calendar.resource("A")
        # 00:15 to 00:45 on Tuesday in Madrid, still Monday in UTC.
        start = datetime(2025, 3, 17, 23, 15, tzinfo=timezone.utc)
        end = datetime(2025, 3, 17, 23, 45, tzinfo=timezone.utc)

        conflict = resource_conflict(google, barber, start, end, timedelta(0), tz=MADRID)

        assert conflict is not None
        assert conflict.start == datetime(2025, 3, 18, tzinfo=MADRID)
        kwargs = service.events.return_value.list.call_args.kwargs
        assert kwargs["timeMin"] == "2025-03-18T00:15:00+01:00"
        assert not resource_is_free(google, barber, start, end, timedelta(0), tz=MADRID)
