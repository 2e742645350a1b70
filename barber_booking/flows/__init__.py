from barber_booking.flows.menu_flow import FlowOption, FlowReply, MenuBookingFlow, ReplyKind
from barber_booking.flows.session_store import SessionStore
from barber_booking.flows.state_machine import MenuState, MenuStateMachine, MenuTrigger

__all__ = [
    "MenuBookingFlow", "FlowReply", "FlowOption", "ReplyKind",
    "SessionStore",
    "MenuStateMachine", "MenuState", "MenuTrigger",
]
