"""Business profile models: opening hours, service catalog, barber roster."""

from datetime import time
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

WEEKDAYS = (
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
)


class Break(BaseModel):
    """A pause inside opening hours (e.g. lunch)."""

    model_config = ConfigDict(frozen=True)

    start: time
    end: time

    @model_validator(mode="after")
    def _check_order(self) -> "Break":
        if self.start >= self.end:
            raise ValueError(f"break start {self.start} must be before end {self.end}")
        return self


class DayHours(BaseModel):
    """Opening hours for a single weekday.

    When ``closed`` is true the remaining fields are ignored.
    """

    model_config = ConfigDict(frozen=True)

    open: Optional[time] = None
    close: Optional[time] = None
    closed: bool = False
    breaks: list[Break] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_hours(self) -> "DayHours":
        if self.closed:
            return self
        if self.open is None or self.close is None:
            raise ValueError("open and close are required unless the day is closed")
        if self.open >= self.close:
            raise ValueError(f"open {self.open} must be before close {self.close}")

        ordered = sorted(self.breaks, key=lambda b: b.start)
        for brk in ordered:
            if brk.start < self.open or brk.end > self.close:
                raise ValueError(
                    f"break {brk.start}-{brk.end} lies outside {self.open}-{self.close}"
                )
        for prev, nxt in zip(ordered, ordered[1:]):
            if nxt.start < prev.end:
                raise ValueError(
                    f"breaks {prev.start}-{prev.end} and {nxt.start}-{nxt.end} overlap"
                )
        return self


class Price(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: Decimal = Field(ge=0)
    currency: str = "EUR"

    def __str__(self) -> str:
        return f"{self.amount}{self.currency}"


class Service(BaseModel):
    """A bookable service. ``name`` is keyed by language code."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: dict[str, str]
    duration_minutes: int = Field(gt=0)
    price: Price
    description: dict[str, str] = Field(default_factory=dict)
    category: str = "general"

    @field_validator("name")
    @classmethod
    def _name_not_empty(cls, value: dict[str, str]) -> dict[str, str]:
        if not value:
            raise ValueError("service name needs at least one language")
        return value

    def display_name(self, language: str = "es") -> str:
        """Localized name, falling back to any configured language."""
        return self.name.get(language) or next(iter(self.name.values()))


class Barber(BaseModel):
    """A bookable resource with its own calendar.

    An empty ``services`` list means the barber offers every service.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str
    calendar_ref: str = Field(min_length=1)
    services: list[str] = Field(default_factory=list)

    def offers(self, service_id: str) -> bool:
        return not self.services or service_id in self.services


class BusinessProfile(BaseModel):
    """Validated business configuration, immutable for the process lifetime."""

    model_config = ConfigDict(frozen=True)

    name: str
    timezone: str = "Europe/Madrid"
    calendar_ref: Optional[str] = None
    languages: list[str] = Field(default_factory=lambda: ["es", "en"])
    hours: dict[str, DayHours]
    services: list[Service]
    barbers: list[Barber] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown timezone: {value!r}") from None
        return value

    @field_validator("hours")
    @classmethod
    def _known_weekdays(cls, value: dict[str, DayHours]) -> dict[str, DayHours]:
        unknown = sorted(set(value) - set(WEEKDAYS))
        if unknown:
            raise ValueError(f"unknown weekdays in hours: {unknown}")
        return value

    @model_validator(mode="after")
    def _check_catalog(self) -> "BusinessProfile":
        if not self.services:
            raise ValueError("at least one service must be configured")
        service_ids = [s.id for s in self.services]
        if len(service_ids) != len(set(service_ids)):
            raise ValueError("service ids must be unique")
        barber_ids = [b.id for b in self.barbers]
        if len(barber_ids) != len(set(barber_ids)):
            raise ValueError("barber ids must be unique")
        for barber in self.barbers:
            missing = sorted(set(barber.services) - set(service_ids))
            if missing:
                raise ValueError(f"barber {barber.id!r} references unknown services {missing}")
        return self

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)
