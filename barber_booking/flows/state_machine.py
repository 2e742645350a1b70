"""
Finite state machine for the interactive booking menu.

Every customer conversation follows a fixed path through the menu:

    service -> barber -> date -> time -> confirmation -> completed

with explicit side exits (slot taken, declined, restart, cancellation).
The current state is persisted in the customer's session between
messages; a machine is rebuilt from it for each incoming selection.

Usage:
    sm = MenuStateMachine()
    sm.transition(MenuTrigger.SERVICE_CHOSEN)
    assert sm.current_state == MenuState.BARBER_SELECTION
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from barber_booking.errors import InvalidTransitionError

logger = logging.getLogger(__name__)


class MenuState(str, Enum):
    """All possible states of a booking menu conversation."""
    SERVICE_SELECTION = "service_selection"
    BARBER_SELECTION = "barber_selection"
    DATE_SELECTION = "date_selection"
    TIME_SELECTION = "time_selection"
    CONFIRMATION = "confirmation"
    COMPLETED = "completed"
    CANCELLATION = "cancellation"


class MenuTrigger(str, Enum):
    """Customer selections and outcomes that move the menu along."""
    SERVICE_CHOSEN = "service_chosen"
    BARBER_CHOSEN = "barber_chosen"
    DATE_CHOSEN = "date_chosen"
    TIME_CHOSEN = "time_chosen"
    NO_TIMES = "no_times"
    SLOT_TAKEN = "slot_taken"
    CONFIRMED = "confirmed"
    DECLINED = "declined"
    CANCEL_REQUESTED = "cancel_requested"
    CANCEL_DONE = "cancel_done"
    RESTART = "restart"


@dataclass
class Transition:
    """A single valid state transition."""
    from_state: MenuState
    to_state: MenuState
    trigger: MenuTrigger


@dataclass
class StateEntry:
    """Recorded history entry for a state visit."""
    state: MenuState
    entered_at: datetime
    trigger: Optional[MenuTrigger] = None


class MenuStateMachine:
    """
    Deterministic state machine controlling the booking menu.

    A selection that has no transition from the current state is
    rejected with the list of triggers that would have been accepted.
    """

    TRANSITIONS: list[Transition] = [
        # --- Booking path ---
        Transition(MenuState.SERVICE_SELECTION, MenuState.BARBER_SELECTION,
                   MenuTrigger.SERVICE_CHOSEN),
        Transition(MenuState.BARBER_SELECTION, MenuState.DATE_SELECTION,
                   MenuTrigger.BARBER_CHOSEN),
        Transition(MenuState.DATE_SELECTION, MenuState.TIME_SELECTION,
                   MenuTrigger.DATE_CHOSEN),
        Transition(MenuState.TIME_SELECTION, MenuState.CONFIRMATION,
                   MenuTrigger.TIME_CHOSEN),
        Transition(MenuState.CONFIRMATION, MenuState.COMPLETED,
                   MenuTrigger.CONFIRMED),

        # --- Lost races and empty days ---
        Transition(MenuState.TIME_SELECTION, MenuState.DATE_SELECTION,
                   MenuTrigger.NO_TIMES),
        Transition(MenuState.TIME_SELECTION, MenuState.TIME_SELECTION,
                   MenuTrigger.SLOT_TAKEN),
        Transition(MenuState.CONFIRMATION, MenuState.TIME_SELECTION,
                   MenuTrigger.SLOT_TAKEN),

        # --- Customer backs out ---
        Transition(MenuState.CONFIRMATION, MenuState.SERVICE_SELECTION,
                   MenuTrigger.DECLINED),

        # --- Cancellation ---
        Transition(MenuState.SERVICE_SELECTION, MenuState.CANCELLATION,
                   MenuTrigger.CANCEL_REQUESTED),
        Transition(MenuState.COMPLETED, MenuState.CANCELLATION,
                   MenuTrigger.CANCEL_REQUESTED),
        Transition(MenuState.CANCELLATION, MenuState.SERVICE_SELECTION,
                   MenuTrigger.CANCEL_DONE),
    ] + [
        # --- Restart from anywhere ---
        Transition(state, MenuState.SERVICE_SELECTION, MenuTrigger.RESTART)
        for state in MenuState
    ]

    def __init__(self, state: MenuState = MenuState.SERVICE_SELECTION) -> None:
        self._current_state = state
        self._history: list[StateEntry] = [
            StateEntry(state=state, entered_at=datetime.now(timezone.utc))
        ]

    @classmethod
    def from_value(cls, value: Optional[str]) -> "MenuStateMachine":
        """Rebuild from a persisted state name; unknown names start over."""
        try:
            return cls(MenuState(value))
        except ValueError:
            logger.warning("Unknown persisted menu state %r, starting over", value)
            return cls()

    @property
    def current_state(self) -> MenuState:
        return self._current_state

    def can(self, trigger: MenuTrigger) -> bool:
        return trigger in self.get_valid_triggers()

    def transition(self, trigger: MenuTrigger) -> MenuState:
        """
        Execute a state transition.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_state == self._current_state and t.trigger == trigger:
                old_state = self._current_state
                self._current_state = t.to_state
                self._history.append(StateEntry(
                    state=self._current_state,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                ))
                logger.debug(
                    "Menu transition: %s -> %s (trigger: %s)",
                    old_state.value, self._current_state.value, trigger.value,
                )
                return self._current_state

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def get_valid_triggers(self) -> list[MenuTrigger]:
        """Return all triggers valid from the current state."""
        return [t.trigger for t in self.TRANSITIONS if t.from_state == self._current_state]

    def get_history(self) -> list[StateEntry]:
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of state names visited."""
        return [entry.state.value for entry in self._history]
