"""
Booking commit protocol: hold, double-check, write, release.

A booking attempt moves through an explicit set of states:

    REQUESTED -> HOLD_ACQUIRED -> VERIFIED -> COMMITTED -> HOLD_RELEASED
    REQUESTED -> HOLD_ACQUIRED -> CONFLICTED -> HOLD_RELEASED
    REQUESTED -> HOLD_DENIED

The hold serializes concurrent attempts on the same barber and instant,
and the commit marker keeps a retried confirmation from running twice.
The re-read of the barber's calendar and the event write happen under a
per-barber lock, so overlapping bookings that start at different times
see each other, and so does anything written outside this process.
Losing any of these races is a normal outcome (``SLOT_NO_LONGER_AVAILABLE``),
not an exception. "Any barber" requests run one attempt per barber in
roster order and stop at the first that commits.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from barber_booking.backends.calendar import CalendarBackend
from barber_booking.booking.event_text import (
    confirmation_message,
    event_description,
    event_summary,
    message,
)
from barber_booking.booking.history import BookingHistory
from barber_booking.booking.holds import HoldManager, HoldStatus, slot_key
from barber_booking.errors import BackendUnavailable, InvalidRequest, InvalidTransitionError
from barber_booking.logging_context import get_request_logger
from barber_booking.scheduling.availability import (
    AvailabilityAggregator,
    resource_conflict,
    resource_is_free,
    selector_for,
)
from barber_booking.scheduling.slot_generator import fits_business_hours
from barber_booking.schemas.booking_schema import (
    BookingRecord,
    BookingRequest,
    CancelResult,
    CommitResult,
    CommitState,
    CommitStatus,
    EventDetails,
)
from barber_booking.schemas.business_schema import Barber, Service
from barber_booking.utils import is_valid_phone, mask_phone, normalize_phone

logger = get_request_logger(__name__)


class CommitTrace:
    """Records the states one attempt passes through, rejecting illegal moves."""

    TRANSITIONS: dict[CommitState, set[CommitState]] = {
        CommitState.REQUESTED: {CommitState.HOLD_ACQUIRED, CommitState.HOLD_DENIED},
        CommitState.HOLD_ACQUIRED: {
            CommitState.VERIFIED, CommitState.CONFLICTED, CommitState.FAILED,
        },
        CommitState.VERIFIED: {CommitState.COMMITTED, CommitState.FAILED},
        CommitState.COMMITTED: {CommitState.HOLD_RELEASED},
        CommitState.CONFLICTED: {CommitState.HOLD_RELEASED},
        CommitState.FAILED: {CommitState.HOLD_RELEASED},
        CommitState.HOLD_DENIED: set(),
        CommitState.HOLD_RELEASED: set(),
    }

    def __init__(self) -> None:
        self.states: list[CommitState] = [CommitState.REQUESTED]

    @property
    def current(self) -> CommitState:
        return self.states[-1]

    def advance(self, state: CommitState) -> None:
        if state not in self.TRANSITIONS[self.current]:
            raise InvalidTransitionError(
                f"No commit transition from '{self.current.value}' to '{state.value}'"
            )
        self.states.append(state)

    def get_state_trace(self) -> list[str]:
        return [s.value for s in self.states]


@dataclass(frozen=True)
class PlacedHold:
    """A hold taken while the customer reviews the booking summary."""

    slot_key: str
    resource_id: str
    holder: str


class BookingCommitter:
    """Turns a validated ``BookingRequest`` into exactly one calendar event."""

    def __init__(
        self,
        aggregator: AvailabilityAggregator,
        holds: HoldManager,
        history: BookingHistory,
    ) -> None:
        self.aggregator = aggregator
        self.holds = holds
        self.history = history

    @property
    def calendar(self):
        return self.aggregator.calendar

    @property
    def backend(self) -> CalendarBackend:
        return self.aggregator.backend

    # --- validation -------------------------------------------------------

    def validate(self, request: BookingRequest) -> tuple[Service, list[Barber]]:
        """
        Check a request before any hold or calendar write.

        Returns the service and the barbers who may serve it, in roster
        order (a single barber when one was named).

        Raises:
            InvalidRequest: On any malformed or out-of-policy request.
        """
        if not is_valid_phone(request.customer_phone):
            raise InvalidRequest("Invalid customer phone number", field="customer_phone")
        if request.start.tzinfo is None:
            raise InvalidRequest("Booking start must be timezone-aware", field="start")

        resources = self.aggregator.resources(request.service_id, selector_for(request.barber_id))
        if not resources:
            raise InvalidRequest(
                f"No barber offers {request.service_id!r}", field="service_id"
            )
        service = self.calendar.service(request.service_id)

        tz = self.calendar.tz
        start = request.start
        end = start + timedelta(minutes=service.duration_minutes)
        day = start.astimezone(tz).date()
        self.aggregator.check_day(day)

        hours = self.calendar.hours_for(day)
        if hours is None:
            raise InvalidRequest(f"Closed on {day.isoformat()}", field="start")
        if not fits_business_hours(start, end, hours, tz):
            raise InvalidRequest("Requested time is outside business hours", field="start")
        if start < self.aggregator.clock() + self.aggregator.min_advance:
            raise InvalidRequest(
                f"Bookings need at least {self.aggregator.policy.min_advance_hours}h notice",
                field="start",
            )
        return service, resources

    # --- holds ------------------------------------------------------------

    def place_hold(self, request: BookingRequest, holder: str) -> Optional[PlacedHold]:
        """
        Hold a slot while the customer confirms. Returns None if taken.

        For "any barber" requests the first barber in roster order who is
        free on the calendar and not held by someone else gets the hold.
        The returned ``resource_id`` should be sent back as ``barber_id``
        on commit so the same hold is re-acquired.
        """
        service, resources = self.validate(request)
        start = request.start
        end = start + timedelta(minutes=service.duration_minutes)
        for barber in resources:
            if len(resources) > 1 and not resource_is_free(
                self.backend, barber, start, end, self.aggregator.buffer, self.calendar.tz
            ):
                continue
            key = slot_key(start, barber.id)
            if self.holds.acquire_hold(key, holder) is HoldStatus.ACQUIRED:
                return PlacedHold(slot_key=key, resource_id=barber.id, holder=holder)
        return None

    def release(self, key: str, holder: str) -> bool:
        return self.holds.release_hold(key, holder)

    def _release_quietly(self, key: str, holder: str, attempt: str) -> None:
        try:
            self.holds.release_commit(key, attempt)
            self.holds.release_hold(key, holder)
        except BackendUnavailable as exc:
            # The hold still expires on its own after the TTL.
            logger.error("Could not release hold %s: %s", key, exc)

    # --- commit -----------------------------------------------------------

    def commit(self, request: BookingRequest, holder: Optional[str] = None) -> CommitResult:
        """
        Book ``request`` exactly once or report the slot as taken.

        The result carries the trace of the last barber tried.

        Raises:
            InvalidRequest: Rejected before any hold or calendar call.
            BackendUnavailable: Calendar or store failure; the hold is
                still released.
        """
        service, resources = self.validate(request)
        customer = normalize_phone(request.customer_phone)
        holder = holder or customer
        end = request.start + timedelta(minutes=service.duration_minutes)

        result: Optional[CommitResult] = None
        for barber in resources:
            result = self._attempt(request, service, barber, customer, holder, end)
            if result.success:
                break
            if len(resources) > 1:
                logger.info("%s not available at %s", barber.id, request.start.isoformat())
        return result

    def _attempt(
        self,
        request: BookingRequest,
        service: Service,
        barber: Barber,
        customer: str,
        holder: str,
        end: datetime,
    ) -> CommitResult:
        """Run the protocol against one barber."""
        start = request.start
        trace = CommitTrace()
        key = slot_key(start, barber.id)
        if self.holds.acquire_hold(key, holder) is HoldStatus.CONFLICT:
            trace.advance(CommitState.HOLD_DENIED)
            logger.info("Hold denied for %s on %s", mask_phone(customer), key)
            return self._unavailable(trace, request.language)

        attempt = uuid.uuid4().hex
        if self.holds.claim_commit(key, attempt) is HoldStatus.CONFLICT:
            # The attempt that owns the marker releases the hold.
            trace.advance(CommitState.HOLD_DENIED)
            logger.info("Duplicate commit for %s on %s", mask_phone(customer), key)
            return self._unavailable(trace, request.language)
        trace.advance(CommitState.HOLD_ACQUIRED)

        record: Optional[BookingRecord] = None
        try:
            with self.holds.resource_lock(barber.id):
                conflict = resource_conflict(
                    self.backend, barber, start, end, self.aggregator.buffer, self.calendar.tz
                )
                if conflict is not None:
                    trace.advance(CommitState.CONFLICTED)
                    logger.info(
                        "Live re-check on %s hit busy %s-%s",
                        key, conflict.start.isoformat(), conflict.end.isoformat(),
                    )
                else:
                    trace.advance(CommitState.VERIFIED)
                    record = self._write(request, service, barber, customer, start, end)
                    self._append_history(record)
                    trace.advance(CommitState.COMMITTED)
        except Exception:
            trace.advance(CommitState.FAILED)
            raise
        finally:
            self._release_quietly(key, holder, attempt)
            trace.advance(CommitState.HOLD_RELEASED)

        if record is None:
            return self._unavailable(trace, request.language)

        logger.info(
            "Booking committed: %s with %s at %s for %s",
            service.id, barber.id, start.isoformat(), mask_phone(customer),
        )
        return CommitResult(
            status=CommitStatus.COMMITTED,
            record=record,
            message=confirmation_message(
                self.calendar.profile.name, service, start.astimezone(self.calendar.tz),
                request.customer_name, barber, request.language,
            ),
            trace=trace.states,
        )

    def _write(
        self,
        request: BookingRequest,
        service: Service,
        barber: Barber,
        customer: str,
        start: datetime,
        end: datetime,
    ) -> BookingRecord:
        details = EventDetails(
            summary=event_summary(service, request.customer_name, request.language),
            description=event_description(
                service, request.customer_name, customer, request.language,
                request.customer_email, barber,
            ),
            timezone=self.calendar.profile.timezone,
            customer_phone=customer,
            service_id=service.id,
            attendee_email=request.customer_email,
        )
        event_id = self.backend.create_event(barber.calendar_ref, start, end, details)
        return BookingRecord(
            resource_ref=barber.id,
            calendar_ref=barber.calendar_ref,
            service_ref=service.id,
            start=start,
            end=end,
            customer=customer,
            customer_name=request.customer_name,
            external_event_id=event_id,
            language=request.language,
            booked_at=self.aggregator.clock(),
        )

    def _append_history(self, record: BookingRecord) -> None:
        try:
            self.history.append(record)
        except BackendUnavailable as exc:
            # The calendar event is the source of truth; history is a convenience index.
            logger.error(
                "Booking %s created but history update failed: %s",
                record.external_event_id, exc,
            )

    @staticmethod
    def _unavailable(trace: CommitTrace, language: str) -> CommitResult:
        return CommitResult(
            status=CommitStatus.SLOT_NO_LONGER_AVAILABLE,
            message=message("slot_taken", language),
            trace=trace.states,
        )

    # --- cancellation -----------------------------------------------------

    def upcoming_bookings(self, customer: str) -> list[BookingRecord]:
        return self.history.upcoming(customer, self.aggregator.clock())

    def cancel_booking(self, customer: str, event_id: str, language: str = "es") -> CancelResult:
        """
        Cancel one of the customer's own bookings by event id.

        Only bookings found in the customer's history can be cancelled.
        """
        record = self.history.find(customer, event_id)
        if record is None:
            return CancelResult(success=False, message=message("not_found", language), event_id=event_id)

        deleted = self.backend.delete_event(record.calendar_ref, event_id)
        self.history.mark_cancelled(customer, event_id)
        if not deleted:
            logger.warning("Event %s was already gone from %s", event_id, record.calendar_ref)
            return CancelResult(success=False, message=message("not_found", language), event_id=event_id)

        logger.info("Booking %s cancelled for %s", event_id, mask_phone(normalize_phone(customer)))
        return CancelResult(success=True, message=message("cancelled", language), event_id=event_id)
