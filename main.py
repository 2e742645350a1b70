"""
Command-line entry point.

Runs the offline menu demo or prints availability using the configured
backends (in-memory by default, Redis and Google Calendar when set in
the environment).

Usage:
    Console mode:  python main.py console [--scenario booking]
    Availability:  python main.py availability --service haircut [--barber barber1]
                   [--date 2025-03-17] [--days 7]
    Health:        python main.py health
"""

import argparse
import asyncio
import logging
from datetime import date, timedelta
from typing import Optional

from barber_booking.config import settings
from barber_booking.errors import BookingError
from barber_booking.scheduling.availability import selector_for

logger = logging.getLogger(__name__)


def _run_console_mode(scenario: Optional[str]) -> None:
    """Start the offline console demo (no credentials required)."""
    from console_demo import ConsoleSession, seed_calendar

    session = ConsoleSession()
    seed_calendar(session.engine)
    if scenario:
        asyncio.run(session.run_scenario(scenario))
    else:
        asyncio.run(session.run())


def _run_availability(service: str, barber: Optional[str], start: Optional[str], days: Optional[int]) -> int:
    """Print free slots per day for a service using the configured backends."""
    from barber_booking.app import build_engine

    engine = build_engine()
    today = engine.aggregator.clock().astimezone(engine.calendar.tz).date()
    first = date.fromisoformat(start) if start else today
    try:
        result = engine.aggregator.available_days(first, service, selector_for(barber), days)
    except BookingError as exc:
        logger.error("Availability lookup failed: %s", exc)
        print(f"Error: {exc}")
        return 1

    for day in result:
        print(f"{day.date} ({day.day_name}): {day.total_slots} slots")
        for slot in day.slots:
            print(f"  {slot.label}  {', '.join(slot.free_resources)}")
    return 0


def _run_health() -> int:
    """Check the configured store and every barber calendar answer."""
    from barber_booking.app import build_engine

    try:
        engine = build_engine()
        engine.kv.ping()
        now = engine.aggregator.clock()
        for barber in engine.calendar.resources_for():
            engine.backend.list_busy(barber.calendar_ref, now, now + timedelta(hours=1))
    except BookingError as exc:
        logger.error("Health check failed: %s", exc)
        print(f"Unhealthy: {exc}")
        return 1
    print(f"OK ({engine.kv.name} store, {engine.backend.name} calendar)")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description=f"{settings.app_name} command line")
    sub = parser.add_subparsers(dest="command", required=True)

    console = sub.add_parser("console", help="Run the offline menu demo")
    console.add_argument("--scenario", choices=["booking", "conflict", "cancel"], default=None)

    avail = sub.add_parser("availability", help="Print available slots")
    avail.add_argument("--service", required=True)
    avail.add_argument("--barber", default=None, help="Barber id, or omit for any barber")
    avail.add_argument("--date", default=None, help="First day (YYYY-MM-DD), default today")
    avail.add_argument("--days", type=int, default=None)

    sub.add_parser("health", help="Check the store and calendar backends")

    args = parser.parse_args()
    if args.command == "health":
        return _run_health()
    if args.command == "console":
        _run_console_mode(args.scenario)
        return 0
    return _run_availability(args.service, args.barber, args.date, args.days)


if __name__ == "__main__":
    raise SystemExit(main())
