"""Slot availability and booking engine for a barbershop messaging assistant."""

__version__ = "0.1.0"
