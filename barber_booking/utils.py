"""Shared utilities used across the booking engine."""

import re
from datetime import time
from typing import Optional

MIN_PHONE_DIGITS = 10
MAX_PHONE_DIGITS = 15


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("+34 612 345 678")
        '+34612345678'
        >>> normalize_phone("(612) 345-678")
        '612345678'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def is_valid_phone(value: str) -> bool:
    """Check a phone number has a plausible digit count once normalized."""
    digits = normalize_phone(value).lstrip("+")
    return MIN_PHONE_DIGITS <= len(digits) <= MAX_PHONE_DIGITS


def mask_phone(value: str) -> str:
    """Mask all but the last four digits of a phone number for logging.

    Examples:
        >>> mask_phone("+34612345678")
        '+*******5678'
    """
    if not value:
        return "****"
    if len(value) <= 4:
        return "*" * len(value)
    prefix = "+" if value.startswith("+") else ""
    body = value[len(prefix):]
    return prefix + "*" * (len(body) - 4) + body[-4:]


def parse_hhmm(value: str) -> Optional[time]:
    """Parse an ``HH:MM`` string into a ``time``. Returns None if invalid."""
    match = re.fullmatch(r"\s*(\d{1,2}):(\d{2})\s*", value or "")
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return time(hour, minute)
