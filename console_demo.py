"""
Offline console demo: runs the booking menu without WhatsApp, Redis or Google.

Uses the real availability aggregator, hold layer, commit protocol and
menu flow against in-memory backends, with a few existing appointments
seeded on the barbers' calendars.

Usage:
    python console_demo.py
    python console_demo.py --scenario booking
    python console_demo.py --scenario conflict
    python console_demo.py --scenario cancel
"""

import argparse
import asyncio
from datetime import datetime, time, timedelta
from typing import Optional

from barber_booking.app import BookingEngine, build_engine
from barber_booking.backends.calendar import InMemoryCalendarBackend
from barber_booking.backends.kv import InMemoryKeyValueStore
from barber_booking.errors import SlotNoLongerAvailable
from barber_booking.flows.menu_flow import FlowReply
from barber_booking.schemas.booking_schema import BookingRequest

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEMO_PHONE = "+34612345678"
RIVAL_PHONE = "+34699888777"


def seed_calendar(engine: BookingEngine, days_ahead: int = 14) -> None:
    """Block a few realistic appointments so not every slot is free."""
    backend = engine.backend
    tz = engine.calendar.tz
    today = engine.aggregator.clock().astimezone(tz).date()
    barbers = engine.calendar.resources_for()
    for offset in range(1, days_ahead + 1):
        day = today + timedelta(days=offset)
        if not engine.calendar.is_open(day):
            continue
        for i, barber in enumerate(barbers):
            start = datetime.combine(day, time(10 + i, 0), tzinfo=tz)
            backend.add_busy(barber.calendar_ref, start, start + timedelta(minutes=45))


class ConsoleSession:
    """Plays the customer side of the menu in the terminal."""

    # "@1" picks the first option offered by the previous reply.
    SCENARIOS: dict[str, list[str]] = {
        "booking": ["hola", "corte de pelo", "barber:any", "@1", "@1", "confirm:yes"],
        "cancel": [
            "hola", "service:beard-trim", "barber:barber2", "@1", "@1", "confirm:yes",
            "cancel", "@1",
        ],
    }

    MAX_INPUT_LENGTH = 500

    def __init__(self, engine: Optional[BookingEngine] = None, phone: str = DEMO_PHONE) -> None:
        self.engine = engine or build_engine(
            kv=InMemoryKeyValueStore(), backend=InMemoryCalendarBackend()
        )
        self.phone = phone
        self.last_reply: Optional[FlowReply] = None

    def bot_say(self, reply: FlowReply) -> None:
        print(f"{GREEN}{BOLD}[Bot]{RESET} {GREEN}{reply.text}{RESET}")
        for i, option in enumerate(reply.options, 1):
            extra = f" {DIM}({option.description}){RESET}" if option.description else ""
            print(f"  {YELLOW}{i:>2}.{RESET} {option.title}{extra} {DIM}[{option.id}]{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def _resolve(self, text: str) -> str:
        """Turn "@N" or a bare number into the id of the Nth offered option."""
        raw = text[1:] if text.startswith("@") else text
        if raw.isdigit() and self.last_reply and self.last_reply.options:
            index = int(raw) - 1
            if 0 <= index < len(self.last_reply.options):
                return self.last_reply.options[index].id
        return text

    async def send(self, text: str, name: str = "Demo") -> FlowReply:
        selection = self._resolve(text)
        print(f"\n{BLUE}[Customer] {RESET}{selection}")
        reply = await self.engine.flow.handle(self.phone, selection, customer_name=name)
        self.last_reply = reply
        self.bot_say(reply)
        self.system_log(f"State: {reply.state}")
        return reply

    async def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        if scenario == "conflict":
            await self.run_conflict()
            return
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        self._banner(f"Scenario: {scenario}")
        for step in steps:
            await self.send(step)
        self._banner(f"Scenario '{scenario}' complete.")

    async def run_conflict(self) -> None:
        """Two customers race for the same barber and time; only one wins."""
        self._banner("Scenario: conflict")
        engine = self.engine
        today = engine.aggregator.clock().astimezone(engine.calendar.tz).date()
        days = engine.aggregator.available_days(today, "haircut", days=3)
        day = next((d for d in days if d.has_availability), None)
        if day is None:
            print(f"{RED}No availability to race for.{RESET}")
            return
        slot = day.slots[0]
        barber_id = engine.aggregator.pick_resource(slot)
        self.system_log(f"Both customers want {day.date} {slot.label} with {barber_id}")

        def attempt(phone: str):
            request = BookingRequest(
                customer_phone=phone, service_id="haircut", start=slot.start, barber_id=barber_id,
            )
            return engine.committer.commit(request)

        results = await asyncio.gather(
            asyncio.to_thread(attempt, DEMO_PHONE),
            asyncio.to_thread(attempt, RIVAL_PHONE),
        )
        for phone, result in zip((DEMO_PHONE, RIVAL_PHONE), results):
            trace = " -> ".join(s.value for s in result.trace)
            try:
                record = result.unwrap()
            except SlotNoLongerAvailable as exc:
                print(f"{RED}{phone}: {exc}{RESET} {DIM}({trace}){RESET}")
            else:
                booked = record.start.astimezone(engine.calendar.tz).strftime("%H:%M")
                print(f"{GREEN}{phone}: booked {booked} with {record.resource_ref}{RESET} {DIM}({trace}){RESET}")
        self._banner("Scenario 'conflict' complete.")

    async def run(self) -> None:
        self._banner("Interactive mode. Type a number to pick an option, 'quit' to exit.")
        await self.send("hola")
        while True:
            user_input = (await asyncio.to_thread(input, f"\n{BLUE}[Customer] {RESET}")).strip()
            if not user_input:
                continue
            if user_input.lower() in ("quit", "exit", "q"):
                print(f"\n{DIM}Session ended.{RESET}")
                return
            if len(user_input) > self.MAX_INPUT_LENGTH:
                print(f"{RED}That was quite long, keep it brief.{RESET}")
                continue
            await self.send(user_input)

    def _banner(self, title: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  BARBER BOOKING - {title}{RESET}")
        print(f"{BOLD}  Business: {self.engine.calendar.profile.name}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=["booking", "conflict", "cancel"],
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    args = parser.parse_args()

    session = ConsoleSession()
    seed_calendar(session.engine)
    if args.scenario:
        asyncio.run(session.run_scenario(args.scenario))
    else:
        asyncio.run(session.run())


if __name__ == "__main__":
    main()
