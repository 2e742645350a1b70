"""Default barbershop profile, service aliases, and profile loading."""

import json
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from barber_booking.errors import ConfigurationError
from barber_booking.schemas.business_schema import BusinessProfile

logger = logging.getLogger(__name__)

_WEEKDAY_HOURS = {"open": "09:00", "close": "20:00", "breaks": [{"start": "14:00", "end": "15:00"}]}

DEFAULT_BUSINESS: dict[str, Any] = {
    "name": "Barbería El Clásico",
    "timezone": "Europe/Madrid",
    "calendar_ref": "primary",
    "languages": ["es", "en"],
    "hours": {
        "monday": _WEEKDAY_HOURS,
        "tuesday": _WEEKDAY_HOURS,
        "wednesday": _WEEKDAY_HOURS,
        "thursday": _WEEKDAY_HOURS,
        "friday": {"open": "09:00", "close": "21:00", "breaks": [{"start": "14:00", "end": "15:00"}]},
        "saturday": {"open": "10:00", "close": "18:00"},
        "sunday": {"closed": True},
    },
    "services": [
        {
            "id": "haircut",
            "name": {"es": "Corte de pelo", "en": "Haircut"},
            "duration_minutes": 30,
            "price": {"amount": "25", "currency": "EUR"},
            "category": "hair",
        },
        {
            "id": "beard-trim",
            "name": {"es": "Arreglo de barba", "en": "Beard trim"},
            "duration_minutes": 15,
            "price": {"amount": "10", "currency": "EUR"},
            "category": "beard",
        },
        {
            "id": "haircut-beard-combo",
            "name": {"es": "Corte + Barba", "en": "Haircut + Beard"},
            "duration_minutes": 45,
            "price": {"amount": "30", "currency": "EUR"},
            "category": "combo",
        },
        {
            "id": "hair-coloring",
            "name": {"es": "Tinte de pelo", "en": "Hair colouring"},
            "duration_minutes": 60,
            "price": {"amount": "40", "currency": "EUR"},
            "category": "hair",
        },
        {
            "id": "kids-haircut",
            "name": {"es": "Corte infantil", "en": "Kids haircut"},
            "duration_minutes": 20,
            "price": {"amount": "15", "currency": "EUR"},
            "category": "hair",
        },
        {
            "id": "hot-towel-shave",
            "name": {"es": "Afeitado tradicional", "en": "Hot towel shave"},
            "duration_minutes": 25,
            "price": {"amount": "20", "currency": "EUR"},
            "category": "beard",
        },
    ],
    "barbers": [
        {"id": "barber1", "name": "Carlos", "calendar_ref": "carlos@group.calendar.google.com"},
        {"id": "barber2", "name": "Miguel", "calendar_ref": "miguel@group.calendar.google.com"},
        {
            "id": "barber3",
            "name": "Javier",
            "calendar_ref": "javier@group.calendar.google.com",
            "services": ["haircut", "haircut-beard-combo", "hair-coloring", "kids-haircut"],
        },
        {"id": "barber4", "name": "Antonio", "calendar_ref": "antonio@group.calendar.google.com"},
    ],
}

SERVICE_ALIASES: dict[str, str] = {
    "corte y barba": "haircut-beard-combo", "combo": "haircut-beard-combo",
    "haircut and beard": "haircut-beard-combo",
    "infantil": "kids-haircut", "niño": "kids-haircut", "nino": "kids-haircut",
    "kids": "kids-haircut", "child": "kids-haircut",
    "tinte": "hair-coloring", "color": "hair-coloring", "colour": "hair-coloring",
    "dye": "hair-coloring",
    "afeitado": "hot-towel-shave", "shave": "hot-towel-shave", "toalla": "hot-towel-shave",
    "barba": "beard-trim", "beard": "beard-trim",
    "corte": "haircut", "pelo": "haircut", "haircut": "haircut", "hair": "haircut",
}


def build_profile(data: dict[str, Any]) -> BusinessProfile:
    """Validate raw configuration data into a ``BusinessProfile``.

    Raises:
        ConfigurationError: If the data is missing fields or malformed.
    """
    try:
        return BusinessProfile.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid business configuration: {exc}") from exc


def load_business_profile(path: Optional[str] = None) -> BusinessProfile:
    """Load the business profile from a JSON file, or the built-in default."""
    if not path:
        return build_profile(DEFAULT_BUSINESS)

    config_file = Path(path)
    try:
        raw = json.loads(config_file.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigurationError(f"Business config not found: {path}") from None
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Business config is not valid JSON: {exc}") from exc

    profile = build_profile(raw)
    logger.info(
        "Business profile '%s' loaded from %s (%d services, %d barbers)",
        profile.name, path, len(profile.services), len(profile.barbers),
    )
    return profile


def match_service_id(query: str, service_ids: list[str]) -> Optional[str]:
    """Match free text to a service id. Returns None if no match.

    Aliases are checked longest first so "corte y barba" wins over "corte".
    """
    normalized = query.lower().strip()
    if not normalized:
        return None
    if normalized in service_ids:
        return normalized
    for alias in sorted(SERVICE_ALIASES, key=len, reverse=True):
        if alias in normalized and SERVICE_ALIASES[alias] in service_ids:
            return SERVICE_ALIASES[alias]
    for sid in service_ids:
        if sid in normalized:
            return sid
    return None
