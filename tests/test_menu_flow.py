"""Tests for the interactive booking menu flow."""

import asyncio

import pytest

from barber_booking.booking.holds import slot_key
from barber_booking.flows.menu_flow import MAX_LIST_ROWS, MenuBookingFlow, ReplyKind
from barber_booking.flows.state_machine import MenuState
from tests.conftest import CUSTOMER, MONDAY, OTHER_CUSTOMER, at

BOOK_MONDAY_TEN = ["hola", "service:haircut", "barber:A", "date:2025-03-17", "time:10:00"]


async def _walk(flow, selections, phone=CUSTOMER, **kwargs):
    reply = None
    for selection in selections:
        reply = await flow.handle(phone, selection, **kwargs)
    return reply


class TestHappyPath:
    @pytest.mark.asyncio
    async def test_welcome_lists_services(self, flow):
        reply = await flow.handle(CUSTOMER, "hola")
        assert reply.text.startswith("¡Hola! Bienvenido a Test Barbers")
        assert reply.kind == ReplyKind.LIST
        assert reply.option_ids() == ["service:haircut", "service:beard-trim", "service:hair-coloring"]
        assert reply.options[0].description == "30 min · 25EUR"
        assert reply.state == MenuState.SERVICE_SELECTION.value

    @pytest.mark.asyncio
    async def test_barber_menu_offers_any_first(self, flow):
        reply = await _walk(flow, ["hola", "service:haircut"])
        assert reply.option_ids() == ["barber:any", "barber:A", "barber:B"]
        assert reply.state == MenuState.BARBER_SELECTION.value

    @pytest.mark.asyncio
    async def test_barber_menu_filtered_by_service(self, flow):
        reply = await _walk(flow, ["hola", "service:hair-coloring"])
        assert reply.option_ids() == ["barber:any", "barber:A"]

    @pytest.mark.asyncio
    async def test_date_menu_skips_closed_days(self, flow):
        reply = await _walk(flow, ["hola", "service:haircut", "barber:any"])
        assert reply.option_ids()[:3] == ["date:2025-03-14", "date:2025-03-15", "date:2025-03-17"]
        assert reply.options[2].title == "Lunes 17/03"
        assert reply.state == MenuState.DATE_SELECTION.value

    @pytest.mark.asyncio
    async def test_time_menu_limited_to_list_rows(self, flow):
        reply = await _walk(flow, ["hola", "service:haircut", "barber:any", "date:2025-03-17"])
        assert len(reply.options) == MAX_LIST_ROWS
        assert reply.options[0].id == "time:09:00"
        assert reply.text == "Horarios disponibles el Lunes 17/03:"
        assert reply.state == MenuState.TIME_SELECTION.value

    @pytest.mark.asyncio
    async def test_time_selection_places_hold(self, flow, kv):
        reply = await _walk(flow, BOOK_MONDAY_TEN)
        assert reply.kind == ReplyKind.BUTTONS
        assert reply.option_ids() == ["confirm:yes", "confirm:no"]
        assert "Carlos" in reply.text
        assert reply.state == MenuState.CONFIRMATION.value
        assert kv.keys("hold:") == [slot_key(at(MONDAY, 10), "A")]

    @pytest.mark.asyncio
    async def test_confirm_books_and_releases_hold(self, flow, backend, kv, sessions):
        reply = await _walk(flow, BOOK_MONDAY_TEN + ["confirm:yes"], customer_name="Juan")

        assert reply.text.startswith("✅ ¡Reserva confirmada!")
        assert reply.state == MenuState.COMPLETED.value
        events = backend.events("cal-a")
        assert len(events) == 1
        assert events[0]["details"].summary == "Corte de pelo - Juan"
        assert kv.keys("hold:") == []
        session = sessions.load(CUSTOMER)
        assert session.last_event_id == events[0]["id"]
        assert session.service_id is None

    @pytest.mark.asyncio
    async def test_any_barber_assigned_at_hold(self, flow, backend):
        backend.add_busy("cal-a", at(MONDAY, 10), at(MONDAY, 10, 30))
        selections = ["hola", "service:haircut", "barber:any", "date:2025-03-17", "time:10:00"]
        reply = await _walk(flow, selections)
        assert "Miguel" in reply.text
        reply = await flow.handle(CUSTOMER, "confirm:yes")
        assert reply.state == MenuState.COMPLETED.value
        assert len(backend.events("cal-b")) == 1

    @pytest.mark.asyncio
    async def test_free_text_service(self, flow):
        reply = await _walk(flow, ["hola", "quiero un corte de pelo"])
        assert reply.state == MenuState.BARBER_SELECTION.value

    @pytest.mark.asyncio
    async def test_english(self, flow):
        reply = await flow.handle(CUSTOMER, "hello", language="en")
        assert reply.text.startswith("Hi! Welcome to Test Barbers")
        reply = await flow.handle(CUSTOMER, "service:haircut")
        assert reply.options[0].title == "Any barber"

    @pytest.mark.asyncio
    async def test_message_after_completion_starts_over(self, flow):
        await _walk(flow, BOOK_MONDAY_TEN + ["confirm:yes"])
        reply = await flow.handle(CUSTOMER, "thanks")
        assert reply.state == MenuState.SERVICE_SELECTION.value
        assert reply.text.startswith("¡Hola!")


class TestInvalidSelections:
    @pytest.mark.asyncio
    async def test_unknown_text_on_first_contact_shows_welcome(self, flow, sessions):
        reply = await flow.handle(CUSTOMER, "buenas tardes")
        assert reply.text.startswith("¡Hola!")
        assert sessions.load(CUSTOMER).error_count == 0

    @pytest.mark.asyncio
    async def test_unknown_barber_reprompts(self, flow, sessions):
        reply = await _walk(flow, ["hola", "service:haircut", "barber:Z"])
        assert reply.text.startswith("No he entendido esa opción.")
        assert reply.option_ids()[0] == "barber:any"
        assert reply.state == MenuState.BARBER_SELECTION.value
        assert sessions.load(CUSTOMER).error_count == 1

    @pytest.mark.asyncio
    async def test_barber_without_service_rejected(self, flow):
        reply = await _walk(flow, ["hola", "service:hair-coloring", "barber:B"])
        assert reply.state == MenuState.BARBER_SELECTION.value
        assert reply.text.startswith("No he entendido")

    @pytest.mark.asyncio
    async def test_wrong_kind_for_state(self, flow):
        reply = await _walk(flow, ["hola", "service:haircut", "time:10:00"])
        assert reply.state == MenuState.BARBER_SELECTION.value

    @pytest.mark.asyncio
    async def test_malformed_date(self, flow):
        reply = await _walk(flow, ["hola", "service:haircut", "barber:A", "date:tomorrow"])
        assert reply.state == MenuState.DATE_SELECTION.value
        assert reply.text.startswith("No he entendido")

    @pytest.mark.asyncio
    async def test_date_outside_window(self, flow):
        reply = await _walk(flow, ["hola", "service:haircut", "barber:A", "date:2025-06-01"])
        assert reply.state == MenuState.DATE_SELECTION.value
        assert reply.text.startswith("No he entendido")

    @pytest.mark.asyncio
    async def test_time_not_offered(self, flow, kv):
        selections = ["hola", "service:haircut", "barber:A", "date:2025-03-17", "time:17:30"]
        reply = await _walk(flow, selections)
        assert reply.state == MenuState.TIME_SELECTION.value
        assert reply.options[0].id == "time:09:00"
        assert kv.keys("hold:") == []

    @pytest.mark.asyncio
    async def test_too_many_errors_restarts(self, flow, sessions):
        reply = await _walk(flow, ["hola", "service:haircut", "barber:X", "barber:Y", "barber:Z"])
        assert reply.text.startswith("Empecemos de nuevo.")
        assert reply.state == MenuState.SERVICE_SELECTION.value
        session = sessions.load(CUSTOMER)
        assert session.error_count == 0
        assert session.service_id is None


class TestLostRaces:
    @pytest.mark.asyncio
    async def test_fully_booked_day_stays_on_dates(self, flow, backend):
        backend.add_busy("cal-a", at(MONDAY, 8), at(MONDAY, 19))
        reply = await _walk(flow, ["hola", "service:haircut", "barber:A", "date:2025-03-17"])
        assert reply.text == "No quedan horarios libres ese día. Elige otro día:"
        assert reply.state == MenuState.DATE_SELECTION.value
        assert "date:2025-03-17" not in reply.option_ids()

    @pytest.mark.asyncio
    async def test_time_held_by_someone_else(self, flow, holds):
        await _walk(flow, ["hola", "service:haircut", "barber:A", "date:2025-03-17"])
        holds.acquire_hold(slot_key(at(MONDAY, 10), "A"), "another-customer")

        reply = await flow.handle(CUSTOMER, "time:10:00")
        assert reply.text.startswith("Lo siento, ese horario ya no está disponible.")
        assert reply.state == MenuState.TIME_SELECTION.value
        # The aggregator does not filter held slots, so 10:00 is still listed.
        assert "time:10:00" in reply.option_ids()

    @pytest.mark.asyncio
    async def test_slot_taken_before_confirmation(self, flow, backend, kv):
        await _walk(flow, BOOK_MONDAY_TEN)
        backend.add_busy("cal-a", at(MONDAY, 10), at(MONDAY, 10, 30))

        reply = await flow.handle(CUSTOMER, "confirm:yes")
        assert reply.text.startswith("Lo siento")
        assert reply.state == MenuState.TIME_SELECTION.value
        assert "time:10:00" not in reply.option_ids()
        assert kv.keys("hold:") == []
        assert len(backend.events("cal-a")) == 1

    @pytest.mark.asyncio
    async def test_other_customer_blocked_by_pending_confirmation(self, flow):
        await _walk(flow, BOOK_MONDAY_TEN)
        reply = await _walk(flow, BOOK_MONDAY_TEN, phone=OTHER_CUSTOMER)
        assert reply.state == MenuState.TIME_SELECTION.value
        assert reply.text.startswith("Lo siento")

        reply = await flow.handle(CUSTOMER, "confirm:yes")
        assert reply.state == MenuState.COMPLETED.value

    @pytest.mark.asyncio
    async def test_last_time_taken_falls_back_to_dates(self, flow, backend, holds):
        # Leave only 17:30 free for barber A on Monday.
        backend.add_busy("cal-a", at(MONDAY, 8), at(MONDAY, 17, 20))
        await _walk(flow, ["hola", "service:haircut", "barber:A", "date:2025-03-17"])
        holds.acquire_hold(slot_key(at(MONDAY, 17, 30), "A"), "another-customer")
        backend.add_busy("cal-a", at(MONDAY, 17, 30), at(MONDAY, 18))

        reply = await flow.handle(CUSTOMER, "time:17:30")
        assert reply.state == MenuState.DATE_SELECTION.value
        assert reply.text == "No quedan horarios libres ese día. Elige otro día:"


class TestBackingOut:
    @pytest.mark.asyncio
    async def test_decline_releases_hold(self, flow, kv, backend):
        reply = await _walk(flow, BOOK_MONDAY_TEN + ["confirm:no"])
        assert reply.text == "Reserva descartada. ¿Quieres reservar otro servicio?"
        assert reply.state == MenuState.SERVICE_SELECTION.value
        assert kv.keys("hold:") == []
        assert backend.events("cal-a") == []

    @pytest.mark.asyncio
    async def test_restart_releases_hold(self, flow, kv):
        await _walk(flow, BOOK_MONDAY_TEN)
        reply = await flow.handle(CUSTOMER, "menu")
        assert reply.state == MenuState.SERVICE_SELECTION.value
        assert kv.keys("hold:") == []

    @pytest.mark.asyncio
    async def test_choosing_another_time_swaps_hold(self, flow, kv):
        await _walk(flow, ["hola", "service:haircut", "barber:A", "date:2025-03-17", "time:10:00"])
        await flow.handle(CUSTOMER, "confirm:no")
        await _walk(flow, ["service:haircut", "barber:A", "date:2025-03-17", "time:10:30"])
        assert kv.keys("hold:") == [slot_key(at(MONDAY, 10, 30), "A")]


class TestCancellation:
    @pytest.mark.asyncio
    async def test_no_upcoming_bookings(self, flow):
        reply = await _walk(flow, ["hola", "cancel"])
        assert reply.text.startswith("No tienes citas próximas.")
        assert reply.state == MenuState.SERVICE_SELECTION.value

    @pytest.mark.asyncio
    async def test_cancel_booking(self, flow, backend):
        await _walk(flow, BOOK_MONDAY_TEN + ["confirm:yes"])
        event_id = backend.events("cal-a")[0]["id"]

        reply = await flow.handle(CUSTOMER, "cancel")
        assert reply.state == MenuState.CANCELLATION.value
        assert reply.option_ids() == [f"cancel_event:{event_id}"]
        assert reply.options[0].title == "Lunes 17/03 10:00"
        assert reply.options[0].description == "Corte de pelo"

        reply = await flow.handle(CUSTOMER, f"cancel_event:{event_id}")
        assert reply.text == "✅ Tu cita ha sido cancelada exitosamente."
        assert reply.state == MenuState.SERVICE_SELECTION.value
        assert backend.events("cal-a") == []

    @pytest.mark.asyncio
    async def test_cancel_mid_booking_releases_hold(self, flow, kv):
        await _walk(flow, BOOK_MONDAY_TEN)
        reply = await flow.handle(CUSTOMER, "cancel")
        assert reply.state == MenuState.SERVICE_SELECTION.value
        assert kv.keys("hold:") == []

    @pytest.mark.asyncio
    async def test_cancel_event_outside_cancellation_menu(self, flow, backend):
        await _walk(flow, BOOK_MONDAY_TEN + ["confirm:yes"])
        event_id = backend.events("cal-a")[0]["id"]
        await _walk(flow, ["hola", "service:haircut"])

        reply = await flow.handle(CUSTOMER, f"cancel_event:{event_id}")
        assert reply.text.startswith("No he entendido")
        assert len(backend.events("cal-a")) == 1

    @pytest.mark.asyncio
    async def test_other_customers_bookings_not_listed(self, flow, backend):
        await _walk(flow, BOOK_MONDAY_TEN + ["confirm:yes"])
        reply = await _walk(flow, ["hola", "cancel"], phone=OTHER_CUSTOMER)
        assert reply.text.startswith("No tienes citas próximas.")
        assert reply.state == MenuState.SERVICE_SELECTION.value
        assert len(backend.events("cal-a")) == 1


class TestDegradedBackends:
    @pytest.mark.asyncio
    async def test_calendar_unavailable(self, flow, backend):
        await _walk(flow, ["hola", "service:haircut"])
        backend.unavailable = True
        reply = await flow.handle(CUSTOMER, "barber:any")
        assert reply.text.startswith("Estamos teniendo problemas técnicos.")
        assert reply.state == MenuState.BARBER_SELECTION.value

    @pytest.mark.asyncio
    async def test_response_budget_exceeded(self, committer, sessions, kv):
        backend = committer.aggregator.backend
        flow = MenuBookingFlow(committer, sessions, response_budget_sec=5.0, date_options=3)
        await _walk(flow, BOOK_MONDAY_TEN)

        backend.latency = 0.3
        flow.response_budget_sec = 0.1
        reply = await flow.handle(CUSTOMER, "confirm:yes")
        assert reply.text.startswith("Esto está tardando más de lo normal.")

        # The commit keeps running in its worker thread and still releases its hold.
        await asyncio.sleep(1.0)
        assert len(backend.events("cal-a")) == 1
        assert kv.keys("hold:") == []
