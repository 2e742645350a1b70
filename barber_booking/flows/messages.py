"""Localized menu texts for the booking flow (Spanish and English)."""

from datetime import date

TEXTS: dict[str, dict[str, str]] = {
    "es": {
        "welcome": "¡Hola! Bienvenido a {business}. ¿Qué servicio te gustaría reservar?",
        "choose_service": "¿Qué servicio te gustaría reservar?",
        "choose_barber": "¿Con qué barbero quieres tu {service}?",
        "any_barber": "Cualquier barbero",
        "choose_date": "Elige un día:",
        "no_days": "Lo siento, no hay disponibilidad en los próximos días.",
        "choose_time": "Horarios disponibles el {day}:",
        "no_times": "No quedan horarios libres ese día. Elige otro día:",
        "summary": "Resumen de tu reserva:\n{service} con {barber}\n{day} a las {time}\n\n¿Confirmas?",
        "confirm_yes": "Confirmar",
        "confirm_no": "Cancelar",
        "declined": "Reserva descartada. ¿Quieres reservar otro servicio?",
        "invalid": "No he entendido esa opción.",
        "too_many_errors": "Empecemos de nuevo.",
        "unavailable": "Estamos teniendo problemas técnicos. Inténtalo de nuevo en unos minutos.",
        "timeout": "Esto está tardando más de lo normal. Inténtalo de nuevo en unos minutos.",
        "no_bookings": "No tienes citas próximas.",
        "choose_cancel": "¿Qué cita quieres cancelar?",
    },
    "en": {
        "welcome": "Hi! Welcome to {business}. Which service would you like to book?",
        "choose_service": "Which service would you like to book?",
        "choose_barber": "Which barber would you like for your {service}?",
        "any_barber": "Any barber",
        "choose_date": "Pick a day:",
        "no_days": "Sorry, there is no availability in the coming days.",
        "choose_time": "Available times on {day}:",
        "no_times": "No free times left that day. Pick another day:",
        "summary": "Your booking:\n{service} with {barber}\n{day} at {time}\n\nConfirm?",
        "confirm_yes": "Confirm",
        "confirm_no": "Cancel",
        "declined": "Booking discarded. Would you like to book another service?",
        "invalid": "Sorry, I didn't understand that option.",
        "too_many_errors": "Let's start over.",
        "unavailable": "We're having technical problems. Please try again in a few minutes.",
        "timeout": "This is taking longer than usual. Please try again in a few minutes.",
        "no_bookings": "You have no upcoming appointments.",
        "choose_cancel": "Which appointment would you like to cancel?",
    },
}

DAY_NAMES: dict[str, tuple[str, ...]] = {
    "es": ("Lunes", "Martes", "Miércoles", "Jueves", "Viernes", "Sábado", "Domingo"),
    "en": ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"),
}


def text(key: str, language: str = "es", **values: str) -> str:
    template = TEXTS.get(language, TEXTS["es"])[key]
    return template.format(**values) if values else template


def day_label(day: date, language: str = "es") -> str:
    """e.g. ``Lunes 17/03``."""
    names = DAY_NAMES.get(language, DAY_NAMES["es"])
    return f"{names[day.weekday()]} {day.strftime('%d/%m')}"
