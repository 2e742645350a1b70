"""
Calendar backends: busy-interval reads and event writes per calendar.

Backend failures raise ``BackendUnavailable``. An unreachable calendar is
never reported as an empty one, since that would read as "no conflicts".
"""

import itertools
import json
import logging
import threading
import time as time_module
from abc import ABC, abstractmethod
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Any, Optional

import google_auth_httplib2
import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from barber_booking.errors import BackendUnavailable, ConfigurationError
from barber_booking.schemas.booking_schema import BusyInterval, EventDetails

logger = logging.getLogger(__name__)

CALENDAR_SCOPES = ["https://www.googleapis.com/auth/calendar"]
EVENT_REMINDERS = [
    {"method": "popup", "minutes": 24 * 60},
    {"method": "popup", "minutes": 60},
]
PAGE_SIZE = 250


class CalendarBackend(ABC):
    """Read busy intervals and write events on a per-barber calendar."""

    name = "abstract"

    @abstractmethod
    def list_busy(self, calendar_ref: str, start: datetime, end: datetime) -> list[BusyInterval]:
        """Busy intervals intersecting ``[start, end)``, ordered by start."""

    @abstractmethod
    def create_event(
        self, calendar_ref: str, start: datetime, end: datetime, details: EventDetails
    ) -> str:
        """Create an event and return its id."""

    @abstractmethod
    def delete_event(self, calendar_ref: str, event_id: str) -> bool:
        """Delete an event. Returns False when it does not exist."""


class InMemoryCalendarBackend(CalendarBackend):
    """
    Thread-safe in-process calendar for tests and the console demo.

    ``list_calls`` records every ``list_busy`` call so tests can assert on
    the number of backend round trips. ``latency`` adds a sleep to each
    call to widen race windows in concurrency tests.
    """

    name = "memory"

    def __init__(self, latency: float = 0.0) -> None:
        self.latency = latency
        self.unavailable = False
        self.list_calls: list[tuple[str, datetime, datetime]] = []
        self._lock = threading.Lock()
        self._events: dict[str, dict[str, dict[str, Any]]] = {}
        self._ids = itertools.count(1)

    def _check(self) -> None:
        if self.latency:
            time_module.sleep(self.latency)
        if self.unavailable:
            raise BackendUnavailable("Calendar backend is unavailable", backend=self.name)

    def add_busy(self, calendar_ref: str, start: datetime, end: datetime, summary: str = "Busy") -> str:
        """Block time on a calendar directly, bypassing the booking flow."""
        return self._insert(calendar_ref, start, end, EventDetails(summary=summary))

    def _insert(self, calendar_ref: str, start: datetime, end: datetime, details: EventDetails) -> str:
        with self._lock:
            event_id = f"evt-{next(self._ids)}"
            self._events.setdefault(calendar_ref, {})[event_id] = {
                "id": event_id,
                "start": start,
                "end": end,
                "details": details,
            }
            return event_id

    def list_busy(self, calendar_ref: str, start: datetime, end: datetime) -> list[BusyInterval]:
        self._check()
        with self._lock:
            self.list_calls.append((calendar_ref, start, end))
            events = list(self._events.get(calendar_ref, {}).values())
        busy = [
            BusyInterval(resource_ref=calendar_ref, start=e["start"], end=e["end"])
            for e in events
            if e["start"] < end and e["end"] > start
        ]
        return sorted(busy, key=lambda b: b.start)

    def create_event(
        self, calendar_ref: str, start: datetime, end: datetime, details: EventDetails
    ) -> str:
        self._check()
        event_id = self._insert(calendar_ref, start, end, details)
        logger.info("Event %s created on %s at %s", event_id, calendar_ref, start.isoformat())
        return event_id

    def delete_event(self, calendar_ref: str, event_id: str) -> bool:
        self._check()
        with self._lock:
            return self._events.get(calendar_ref, {}).pop(event_id, None) is not None

    def events(self, calendar_ref: str) -> list[dict[str, Any]]:
        with self._lock:
            return list(self._events.get(calendar_ref, {}).values())

    def reset(self) -> None:
        with self._lock:
            self._events.clear()
            self.list_calls.clear()
        self.unavailable = False


def _load_service_account_info(credentials_json: str) -> dict[str, Any]:
    """Accept either the JSON document itself or a path to it."""
    raw = credentials_json.strip()
    try:
        if raw.startswith("{"):
            return json.loads(raw)
        return json.loads(Path(raw).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Invalid GOOGLE_SERVICE_ACCOUNT_JSON: {exc}") from exc


def _parse_event_time(value: dict[str, str], tz) -> datetime:
    """Parse an event start/end. Date-only values mean midnight in ``tz``."""
    if "dateTime" in value:
        return datetime.fromisoformat(value["dateTime"].replace("Z", "+00:00"))
    return datetime.combine(date.fromisoformat(value["date"]), time(0), tzinfo=tz)


class GoogleCalendarBackend(CalendarBackend):
    """
    Google Calendar v3 via a service account.

    ``calendar_ref`` is the Google calendar id. Cancelled and transparent
    ("show as available") events are not busy. All-day events block the
    whole day(s) they cover in the timezone of the query window.
    """

    name = "google"

    def __init__(self, service=None, *, credentials_json: str = "", timeout: float = 5.0) -> None:
        self._service = service if service is not None else self._build_service(credentials_json, timeout)

    @staticmethod
    def _build_service(credentials_json: str, timeout: float):
        if not credentials_json:
            raise ConfigurationError("GOOGLE_SERVICE_ACCOUNT_JSON not configured")
        info = _load_service_account_info(credentials_json)
        credentials = service_account.Credentials.from_service_account_info(
            info, scopes=CALENDAR_SCOPES
        )
        http = google_auth_httplib2.AuthorizedHttp(credentials, http=httplib2.Http(timeout=timeout))
        return build("calendar", "v3", http=http, cache_discovery=False)

    def _fail(self, op: str, exc: Exception) -> BackendUnavailable:
        logger.error("Google Calendar %s failed: %s", op, exc)
        return BackendUnavailable(f"Google Calendar {op} failed: {exc}", backend=self.name)

    def list_busy(self, calendar_ref: str, start: datetime, end: datetime) -> list[BusyInterval]:
        tz = start.tzinfo or timezone.utc
        busy: list[BusyInterval] = []
        page_token: Optional[str] = None
        try:
            while True:
                response = self._service.events().list(
                    calendarId=calendar_ref,
                    timeMin=start.isoformat(),
                    timeMax=end.isoformat(),
                    singleEvents=True,
                    orderBy="startTime",
                    maxResults=PAGE_SIZE,
                    pageToken=page_token,
                ).execute()
                for event in response.get("items", []):
                    if event.get("status") == "cancelled":
                        continue
                    if event.get("transparency") == "transparent":
                        continue
                    if "start" not in event or "end" not in event:
                        continue
                    busy.append(BusyInterval(
                        resource_ref=calendar_ref,
                        start=_parse_event_time(event["start"], tz),
                        end=_parse_event_time(event["end"], tz),
                    ))
                page_token = response.get("nextPageToken")
                if not page_token:
                    break
        except (HttpError, httplib2.HttpLib2Error, GoogleAuthError, OSError) as exc:
            raise self._fail("events.list", exc) from exc
        return sorted(busy, key=lambda b: b.start)

    def create_event(
        self, calendar_ref: str, start: datetime, end: datetime, details: EventDetails
    ) -> str:
        body: dict[str, Any] = {
            "summary": details.summary,
            "description": details.description,
            "start": {"dateTime": start.isoformat(), "timeZone": details.timezone},
            "end": {"dateTime": end.isoformat(), "timeZone": details.timezone},
            "reminders": {"useDefault": False, "overrides": EVENT_REMINDERS},
            "extendedProperties": {
                "private": {
                    "customerPhone": details.customer_phone,
                    "serviceId": details.service_id,
                },
            },
        }
        if details.attendee_email:
            body["attendees"] = [{"email": details.attendee_email}]
        try:
            created = self._service.events().insert(calendarId=calendar_ref, body=body).execute()
        except (HttpError, httplib2.HttpLib2Error, GoogleAuthError, OSError) as exc:
            raise self._fail("events.insert", exc) from exc
        logger.info("Google event %s created on %s", created.get("id"), calendar_ref)
        return created["id"]

    def delete_event(self, calendar_ref: str, event_id: str) -> bool:
        try:
            self._service.events().delete(calendarId=calendar_ref, eventId=event_id).execute()
        except HttpError as exc:
            if exc.resp.status in (404, 410):
                return False
            raise self._fail("events.delete", exc) from exc
        except (httplib2.HttpLib2Error, GoogleAuthError, OSError) as exc:
            raise self._fail("events.delete", exc) from exc
        return True
