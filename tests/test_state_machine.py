"""Tests for the booking menu state machine."""

import pytest

from barber_booking.errors import InvalidTransitionError
from barber_booking.flows.state_machine import MenuState, MenuStateMachine, MenuTrigger


@pytest.fixture
def state_machine():
    return MenuStateMachine()


def _at_confirmation() -> MenuStateMachine:
    sm = MenuStateMachine()
    for trigger in (
        MenuTrigger.SERVICE_CHOSEN,
        MenuTrigger.BARBER_CHOSEN,
        MenuTrigger.DATE_CHOSEN,
        MenuTrigger.TIME_CHOSEN,
    ):
        sm.transition(trigger)
    return sm


class TestInitialState:
    def test_starts_in_service_selection(self, state_machine):
        assert state_machine.current_state == MenuState.SERVICE_SELECTION

    def test_initial_history_has_one_entry(self, state_machine):
        assert len(state_machine.get_history()) == 1

    def test_from_persisted_value(self):
        sm = MenuStateMachine.from_value("time_selection")
        assert sm.current_state == MenuState.TIME_SELECTION

    def test_unknown_persisted_value_starts_over(self):
        assert MenuStateMachine.from_value("greeting").current_state == MenuState.SERVICE_SELECTION
        assert MenuStateMachine.from_value(None).current_state == MenuState.SERVICE_SELECTION


class TestBookingPath:
    def test_full_path(self):
        sm = _at_confirmation()
        assert sm.transition(MenuTrigger.CONFIRMED) == MenuState.COMPLETED
        assert sm.get_state_trace() == [
            "service_selection",
            "barber_selection",
            "date_selection",
            "time_selection",
            "confirmation",
            "completed",
        ]

    def test_history_records_triggers(self):
        sm = _at_confirmation()
        history = sm.get_history()
        assert history[0].trigger is None
        assert history[-1].trigger == MenuTrigger.TIME_CHOSEN

    def test_cannot_skip_steps(self, state_machine):
        with pytest.raises(InvalidTransitionError, match="Valid triggers"):
            state_machine.transition(MenuTrigger.DATE_CHOSEN)
        assert state_machine.current_state == MenuState.SERVICE_SELECTION

    def test_cannot_confirm_before_time(self, state_machine):
        state_machine.transition(MenuTrigger.SERVICE_CHOSEN)
        assert not state_machine.can(MenuTrigger.CONFIRMED)


class TestSideExits:
    def test_slot_taken_at_confirmation_returns_to_times(self):
        sm = _at_confirmation()
        assert sm.transition(MenuTrigger.SLOT_TAKEN) == MenuState.TIME_SELECTION

    def test_slot_taken_at_time_selection_stays(self):
        sm = MenuStateMachine(MenuState.TIME_SELECTION)
        assert sm.transition(MenuTrigger.SLOT_TAKEN) == MenuState.TIME_SELECTION

    def test_no_times_returns_to_dates(self):
        sm = MenuStateMachine(MenuState.TIME_SELECTION)
        assert sm.transition(MenuTrigger.NO_TIMES) == MenuState.DATE_SELECTION

    def test_declined_returns_to_services(self):
        sm = _at_confirmation()
        assert sm.transition(MenuTrigger.DECLINED) == MenuState.SERVICE_SELECTION

    @pytest.mark.parametrize("state", list(MenuState))
    def test_restart_from_every_state(self, state):
        sm = MenuStateMachine(state)
        assert sm.transition(MenuTrigger.RESTART) == MenuState.SERVICE_SELECTION


class TestCancellation:
    def test_cancel_from_service_selection(self, state_machine):
        assert state_machine.transition(MenuTrigger.CANCEL_REQUESTED) == MenuState.CANCELLATION
        assert state_machine.transition(MenuTrigger.CANCEL_DONE) == MenuState.SERVICE_SELECTION

    def test_cancel_after_completion(self):
        sm = MenuStateMachine(MenuState.COMPLETED)
        assert sm.can(MenuTrigger.CANCEL_REQUESTED)

    def test_cannot_cancel_mid_booking(self):
        sm = _at_confirmation()
        assert not sm.can(MenuTrigger.CANCEL_REQUESTED)
        assert sm.get_valid_triggers() == [
            MenuTrigger.CONFIRMED,
            MenuTrigger.SLOT_TAKEN,
            MenuTrigger.DECLINED,
            MenuTrigger.RESTART,
        ]
