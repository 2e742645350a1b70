"""
Interactive booking menu on top of the booking engine.

Each incoming selection (an interactive list or button id such as
``service:haircut`` or ``time:10:30``) is routed by the customer's current
menu state. Replies carry text plus the next set of options; rendering
them onto a messaging platform is the transport's job.

Engine calls are blocking, so they run in worker threads. Each response
is bounded by ``response_budget_sec``; when it expires the customer gets
a "try again" reply while the worker thread finishes on its own, which
means a commit in progress still releases its hold.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

from barber_booking.booking.commit import BookingCommitter
from barber_booking.booking.event_text import message
from barber_booking.booking.holds import slot_key
from barber_booking.config import settings
from barber_booking.errors import BackendUnavailable, InvalidRequest
from barber_booking.flows.messages import day_label, text
from barber_booking.flows.session_store import SessionStore
from barber_booking.flows.state_machine import MenuState, MenuStateMachine, MenuTrigger
from barber_booking.logging_context import get_request_logger, new_request_id
from barber_booking.scheduling.availability import selector_for
from barber_booking.schemas.booking_schema import BookingRequest, CandidateSlot
from barber_booking.schemas.session_schema import ConversationSession
from barber_booking.utils import mask_phone, parse_hhmm

logger = get_request_logger(__name__)

MAX_LIST_ROWS = 10
MAX_TITLE_LENGTH = 24
MAX_ERRORS = 3
RESTART_WORDS = ("restart", "menu", "hola", "hi", "hello", "inicio")


class ReplyKind(str, Enum):
    TEXT = "text"
    LIST = "list"
    BUTTONS = "buttons"


@dataclass
class FlowOption:
    """One selectable row or button."""

    id: str
    title: str
    description: str = ""


@dataclass
class FlowReply:
    """What to send back to the customer."""

    text: str
    options: list[FlowOption] = field(default_factory=list)
    kind: ReplyKind = ReplyKind.TEXT
    state: str = ""

    def option_ids(self) -> list[str]:
        return [o.id for o in self.options]


class MenuBookingFlow:
    """Drive the service → barber → date → time → confirm menu for each customer."""

    def __init__(
        self,
        committer: BookingCommitter,
        sessions: SessionStore,
        response_budget_sec: float = settings.response_budget_sec,
        date_options: int = settings.booking.availability_days,
    ) -> None:
        self.committer = committer
        self.sessions = sessions
        self.response_budget_sec = response_budget_sec
        self.date_options = date_options

    @property
    def aggregator(self):
        return self.committer.aggregator

    @property
    def calendar(self):
        return self.committer.calendar

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        return await asyncio.to_thread(func, *args)

    # --- entry point ------------------------------------------------------

    async def handle(
        self,
        phone: str,
        selection: str,
        customer_name: str = "",
        language: Optional[str] = None,
    ) -> FlowReply:
        """Process one customer selection and return the reply to send."""
        new_request_id("WA")
        fallback_language = language or self.sessions.default_language
        try:
            session = await asyncio.wait_for(
                self._run(self.sessions.load, phone), timeout=self.response_budget_sec
            )
        except (asyncio.TimeoutError, BackendUnavailable) as exc:
            logger.error("Session load failed for %s: %s", mask_phone(phone), exc)
            return FlowReply(text("unavailable", fallback_language))

        if language in ("es", "en"):
            session.language = language
        sm = MenuStateMachine.from_value(session.state)

        try:
            reply = await asyncio.wait_for(
                self._dispatch(session, sm, selection.strip(), customer_name),
                timeout=self.response_budget_sec,
            )
        except asyncio.TimeoutError:
            logger.error("Response budget of %.1fs exceeded", self.response_budget_sec)
            reply = FlowReply(text("timeout", session.language))
        except BackendUnavailable as exc:
            logger.error("Backend unavailable (%s): %s", exc.backend, exc)
            reply = FlowReply(text("unavailable", session.language))

        session.state = sm.current_state.value
        session.updated_at = datetime.now(timezone.utc)
        try:
            await asyncio.wait_for(
                self._run(self.sessions.save, session), timeout=self.response_budget_sec
            )
        except (asyncio.TimeoutError, BackendUnavailable) as exc:
            logger.error("Session save failed for %s: %s", mask_phone(phone), exc)
        reply.state = session.state
        return reply

    async def _dispatch(
        self, session: ConversationSession, sm: MenuStateMachine, selection: str, customer_name: str
    ) -> FlowReply:
        try:
            return await self._route(session, sm, selection, customer_name)
        except InvalidRequest as exc:
            logger.info("Rejected selection %r: %s", selection, exc)
            return await self._invalid(session, sm)

    async def _route(
        self, session: ConversationSession, sm: MenuStateMachine, selection: str, customer_name: str
    ) -> FlowReply:
        kind, _, value = selection.partition(":")
        kind = kind.lower()
        state = sm.current_state
        first_contact = session.updated_at is None

        if kind in RESTART_WORDS:
            await self._restart(session, sm)
            return self._service_menu(session, welcome=True)
        if kind == "cancel" and not value:
            return await self._cancel_menu(session, sm)
        if kind == "cancel_event":
            return await self._on_cancel_event(session, sm, value)

        if state in (MenuState.COMPLETED, MenuState.CANCELLATION):
            await self._restart(session, sm)
            return self._service_menu(session, welcome=True)

        if state == MenuState.SERVICE_SELECTION:
            if kind != "service":
                value = selection
            return await self._on_service(session, sm, value, first_contact)
        if state == MenuState.BARBER_SELECTION and kind == "barber":
            return await self._on_barber(session, sm, value)
        if state == MenuState.DATE_SELECTION and kind == "date":
            return await self._on_date(session, sm, value)
        if state == MenuState.TIME_SELECTION and kind == "time":
            return await self._on_time(session, sm, value)
        if state == MenuState.CONFIRMATION and kind == "confirm":
            return await self._on_confirm(session, sm, value, customer_name)
        return await self._invalid(session, sm)

    # --- step handlers ----------------------------------------------------

    async def _on_service(
        self, session: ConversationSession, sm: MenuStateMachine, value: str, first_contact: bool
    ) -> FlowReply:
        service = self.calendar.service(value) or self.calendar.match_service(value)
        if service is None:
            if first_contact:
                return self._service_menu(session, welcome=True)
            return await self._invalid(session, sm)

        session.clear_booking()
        session.service_id = service.id
        session.error_count = 0
        sm.transition(MenuTrigger.SERVICE_CHOSEN)
        return self._barber_menu(session)

    async def _on_barber(self, session: ConversationSession, sm: MenuStateMachine, value: str) -> FlowReply:
        if value != "any":
            barber = self.calendar.resource(value)
            if barber is None or not barber.offers(session.service_id):
                return await self._invalid(session, sm)

        session.barber_choice = value
        reply = await self._date_menu(session)
        if not reply.options:
            return reply
        session.error_count = 0
        sm.transition(MenuTrigger.BARBER_CHOSEN)
        return reply

    async def _on_date(self, session: ConversationSession, sm: MenuStateMachine, value: str) -> FlowReply:
        try:
            day = date.fromisoformat(value)
        except ValueError:
            return await self._invalid(session, sm)

        slots = await self._slots_for(session, day)
        if not slots:
            reply = await self._date_menu(session)
            reply.text = text("no_times", session.language)
            return reply

        session.date = day.isoformat()
        session.error_count = 0
        sm.transition(MenuTrigger.DATE_CHOSEN)
        return self._time_menu(session, slots)

    async def _on_time(self, session: ConversationSession, sm: MenuStateMachine, value: str) -> FlowReply:
        chosen = parse_hhmm(value)
        offered = session.offered_times.get(session.date or "", [])
        if chosen is None or chosen.strftime("%H:%M") not in offered:
            return await self._invalid(session, sm)

        await self._drop_hold(session)
        start = datetime.combine(date.fromisoformat(session.date), chosen, tzinfo=self.calendar.tz)
        request = BookingRequest(
            customer_phone=session.phone,
            service_id=session.service_id,
            start=start,
            barber_id=None if session.barber_choice == "any" else session.barber_choice,
            language=session.language,
        )
        holder = uuid.uuid4().hex
        placed = await self._run(self.committer.place_hold, request, holder)
        if placed is None:
            sm.transition(MenuTrigger.SLOT_TAKEN)
            return await self._slot_taken(session, sm)

        session.time = chosen.strftime("%H:%M")
        session.slot_start = start
        session.holder_token = holder
        session.assigned_barber_id = placed.resource_id
        session.error_count = 0
        sm.transition(MenuTrigger.TIME_CHOSEN)
        return self._summary(session)

    async def _on_confirm(
        self, session: ConversationSession, sm: MenuStateMachine, value: str, customer_name: str
    ) -> FlowReply:
        if value == "no":
            await self._drop_hold(session)
            session.clear_booking()
            sm.transition(MenuTrigger.DECLINED)
            reply = self._service_menu(session)
            reply.text = text("declined", session.language)
            return reply
        if value != "yes" or session.slot_start is None:
            return await self._invalid(session, sm)

        request = BookingRequest(
            customer_phone=session.phone,
            customer_name=customer_name,
            service_id=session.service_id,
            start=session.slot_start,
            barber_id=session.assigned_barber_id,
            language=session.language,
        )
        try:
            result = await self._run(self.committer.commit, request, session.holder_token)
        except InvalidRequest as exc:
            logger.info("Held slot no longer bookable: %s", exc)
            result = None

        if result is None or not result.success:
            await self._drop_hold(session)
            sm.transition(MenuTrigger.SLOT_TAKEN)
            return await self._slot_taken(session, sm)

        session.last_event_id = result.record.external_event_id
        session.clear_booking()
        session.error_count = 0
        sm.transition(MenuTrigger.CONFIRMED)
        return FlowReply(result.message)

    # --- cancellation -----------------------------------------------------

    async def _cancel_menu(self, session: ConversationSession, sm: MenuStateMachine) -> FlowReply:
        if not sm.can(MenuTrigger.CANCEL_REQUESTED):
            await self._restart(session, sm)
        sm.transition(MenuTrigger.CANCEL_REQUESTED)

        upcoming = await self._run(self.committer.upcoming_bookings, session.phone)
        if not upcoming:
            sm.transition(MenuTrigger.CANCEL_DONE)
            reply = self._service_menu(session)
            reply.text = f"{text('no_bookings', session.language)}\n\n{reply.text}"
            return reply

        tz = self.calendar.tz
        options = []
        for record in upcoming[:MAX_LIST_ROWS]:
            local = record.start.astimezone(tz)
            service = self.calendar.service(record.service_ref)
            options.append(FlowOption(
                id=f"cancel_event:{record.external_event_id}",
                title=f"{day_label(local.date(), session.language)} {local.strftime('%H:%M')}",
                description=service.display_name(session.language) if service else record.service_ref,
            ))
        return FlowReply(text("choose_cancel", session.language), options, ReplyKind.LIST)

    async def _on_cancel_event(self, session: ConversationSession, sm: MenuStateMachine, event_id: str) -> FlowReply:
        if sm.current_state != MenuState.CANCELLATION or not event_id:
            return await self._invalid(session, sm)
        result = await self._run(self.committer.cancel_booking, session.phone, event_id, session.language)
        sm.transition(MenuTrigger.CANCEL_DONE)
        return FlowReply(result.message)

    # --- menus ------------------------------------------------------------

    def _service_menu(self, session: ConversationSession, welcome: bool = False) -> FlowReply:
        lang = session.language
        options = [
            FlowOption(
                id=f"service:{s.id}",
                title=s.display_name(lang)[:MAX_TITLE_LENGTH],
                description=f"{s.duration_minutes} min · {s.price}",
            )
            for s in self.calendar.services_catalog()[:MAX_LIST_ROWS]
        ]
        body = (
            text("welcome", lang, business=self.calendar.profile.name)
            if welcome else text("choose_service", lang)
        )
        return FlowReply(body, options, ReplyKind.LIST)

    def _barber_menu(self, session: ConversationSession) -> FlowReply:
        lang = session.language
        service = self.calendar.service(session.service_id)
        options = [FlowOption(id="barber:any", title=text("any_barber", lang))]
        options.extend(
            FlowOption(id=f"barber:{b.id}", title=b.name[:MAX_TITLE_LENGTH])
            for b in self.calendar.resources_for(session.service_id)
        )
        return FlowReply(
            text("choose_barber", lang, service=service.display_name(lang)),
            options[:MAX_LIST_ROWS],
            ReplyKind.LIST,
        )

    async def _date_menu(self, session: ConversationSession) -> FlowReply:
        lang = session.language
        today = self.aggregator.clock().astimezone(self.calendar.tz).date()
        days = await self._run(
            self.aggregator.available_days,
            today,
            session.service_id,
            selector_for(session.barber_choice),
            self.date_options,
        )
        options = [
            FlowOption(id=f"date:{d.date}", title=day_label(date.fromisoformat(d.date), lang))
            for d in days
            if d.has_availability
        ][:MAX_LIST_ROWS]
        if not options:
            return FlowReply(text("no_days", lang))
        return FlowReply(text("choose_date", lang), options, ReplyKind.LIST)

    def _time_menu(self, session: ConversationSession, slots: list[CandidateSlot]) -> FlowReply:
        lang = session.language
        shown = slots[:MAX_LIST_ROWS]
        session.offered_times = {session.date: [s.label for s in shown]}
        options = [FlowOption(id=f"time:{s.label}", title=s.label) for s in shown]
        return FlowReply(
            text("choose_time", lang, day=day_label(date.fromisoformat(session.date), lang)),
            options,
            ReplyKind.LIST,
        )

    def _summary(self, session: ConversationSession) -> FlowReply:
        lang = session.language
        service = self.calendar.service(session.service_id)
        barber = self.calendar.resource(session.assigned_barber_id)
        body = text(
            "summary",
            lang,
            service=service.display_name(lang),
            barber=barber.name if barber else "-",
            day=day_label(date.fromisoformat(session.date), lang),
            time=session.time,
        )
        options = [
            FlowOption(id="confirm:yes", title=text("confirm_yes", lang)),
            FlowOption(id="confirm:no", title=text("confirm_no", lang)),
        ]
        return FlowReply(body, options, ReplyKind.BUTTONS)

    async def _slots_for(self, session: ConversationSession, day: date) -> list[CandidateSlot]:
        return await self._run(
            self.aggregator.available_slots,
            day,
            session.service_id,
            selector_for(session.barber_choice),
        )

    async def _slot_taken(self, session: ConversationSession, sm: MenuStateMachine) -> FlowReply:
        """Re-offer the remaining times on the chosen day, or fall back to days."""
        slots = await self._slots_for(session, date.fromisoformat(session.date))
        if not slots:
            sm.transition(MenuTrigger.NO_TIMES)
            reply = await self._date_menu(session)
            reply.text = text("no_times", session.language)
            return reply
        reply = self._time_menu(session, slots)
        reply.text = f"{message('slot_taken', session.language)}\n\n{reply.text}"
        return reply

    # --- recovery ---------------------------------------------------------

    async def _invalid(self, session: ConversationSession, sm: MenuStateMachine) -> FlowReply:
        session.error_count += 1
        lang = session.language
        if session.error_count >= MAX_ERRORS:
            await self._restart(session, sm)
            reply = self._service_menu(session)
            reply.text = f"{text('too_many_errors', lang)} {reply.text}"
            return reply

        reply = await self._prompt(session, sm.current_state)
        reply.text = f"{text('invalid', lang)}\n\n{reply.text}"
        return reply

    async def _prompt(self, session: ConversationSession, state: MenuState) -> FlowReply:
        """Repeat the menu for the current state."""
        if state == MenuState.BARBER_SELECTION:
            return self._barber_menu(session)
        if state == MenuState.DATE_SELECTION:
            return await self._date_menu(session)
        if state == MenuState.TIME_SELECTION:
            labels = session.offered_times.get(session.date or "", [])
            options = [FlowOption(id=f"time:{label}", title=label) for label in labels]
            day = day_label(date.fromisoformat(session.date), session.language) if session.date else ""
            return FlowReply(text("choose_time", session.language, day=day), options, ReplyKind.LIST)
        if state == MenuState.CONFIRMATION:
            return self._summary(session)
        return self._service_menu(session)

    async def _restart(self, session: ConversationSession, sm: MenuStateMachine) -> None:
        await self._drop_hold(session)
        session.clear_booking()
        session.error_count = 0
        sm.transition(MenuTrigger.RESTART)

    async def _drop_hold(self, session: ConversationSession) -> None:
        """Release the hold taken at time selection, if any."""
        if session.holder_token and session.slot_start and session.assigned_barber_id:
            key = slot_key(session.slot_start, session.assigned_barber_id)
            try:
                await self._run(self.committer.release, key, session.holder_token)
            except BackendUnavailable as exc:
                logger.warning("Could not release hold %s, it will expire: %s", key, exc)
        session.holder_token = None
        session.slot_start = None
        session.assigned_barber_id = None
