"""Drivers24 — Telegram client for the Drivers24 driver-booking marketplace."""

__version__ = "1.0.0"
