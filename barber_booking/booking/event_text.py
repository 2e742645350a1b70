"""Localized calendar event text and booking confirmations."""

from datetime import datetime
from typing import Optional

from barber_booking.schemas.business_schema import Barber, Service

LABELS: dict[str, dict[str, str]] = {
    "es": {
        "customer": "Cliente",
        "phone": "Teléfono",
        "email": "Email",
        "service": "Servicio",
        "barber": "Barbero",
        "duration": "Duración",
        "price": "Precio",
        "date": "Fecha",
        "time": "Hora",
        "confirmed": "✅ ¡Reserva confirmada!",
        "closing": "¡Te esperamos!",
    },
    "en": {
        "customer": "Customer",
        "phone": "Phone",
        "email": "Email",
        "service": "Service",
        "barber": "Barber",
        "duration": "Duration",
        "price": "Price",
        "date": "Date",
        "time": "Time",
        "confirmed": "✅ Booking confirmed!",
        "closing": "We look forward to seeing you!",
    },
}


def labels(language: str) -> dict[str, str]:
    return LABELS.get(language, LABELS["es"])


def event_summary(service: Service, customer_name: str, language: str = "es") -> str:
    """e.g. ``Corte de pelo - Juan``; falls back to the service alone."""
    name = service.display_name(language)
    return f"{name} - {customer_name}" if customer_name else name


def event_description(
    service: Service,
    customer_name: str,
    customer_phone: str,
    language: str = "es",
    customer_email: Optional[str] = None,
    barber: Optional[Barber] = None,
) -> str:
    l = labels(language)
    lines = [
        f"{l['customer']}: {customer_name or '-'}",
        f"{l['phone']}: {customer_phone}",
    ]
    if customer_email:
        lines.append(f"{l['email']}: {customer_email}")
    lines.append("")
    lines.append(f"{l['service']}: {service.display_name(language)}")
    if barber is not None:
        lines.append(f"{l['barber']}: {barber.name}")
    lines.append(f"{l['duration']}: {service.duration_minutes} min")
    lines.append(f"{l['price']}: {service.price}")
    return "\n".join(lines)


def confirmation_message(
    business_name: str,
    service: Service,
    start: datetime,
    customer_name: str = "",
    barber: Optional[Barber] = None,
    language: str = "es",
) -> str:
    """Customer-facing confirmation once the event exists."""
    l = labels(language)
    lines = [l["confirmed"], ""]
    if customer_name:
        lines.append(f"{l['customer']}: {customer_name}")
    lines.append(f"{l['service']}: {service.display_name(language)}")
    if barber is not None:
        lines.append(f"{l['barber']}: {barber.name}")
    lines.append(f"{l['date']}: {start.strftime('%d/%m/%Y')}")
    lines.append(f"{l['time']}: {start.strftime('%H:%M')}")
    lines.append(f"{l['duration']}: {service.duration_minutes} min")
    lines.append(f"{l['price']}: {service.price}")
    lines.extend(["", business_name, l["closing"]])
    return "\n".join(lines)


MESSAGES: dict[str, dict[str, str]] = {
    "es": {
        "slot_taken": "Lo siento, ese horario ya no está disponible. Por favor elige otro.",
        "cancelled": "✅ Tu cita ha sido cancelada exitosamente.",
        "not_found": "Cita no encontrada.",
    },
    "en": {
        "slot_taken": "Sorry, that time slot is no longer available. Please choose another.",
        "cancelled": "✅ Your appointment has been successfully cancelled.",
        "not_found": "Appointment not found.",
    },
}


def message(key: str, language: str = "es") -> str:
    return MESSAGES.get(language, MESSAGES["es"])[key]
