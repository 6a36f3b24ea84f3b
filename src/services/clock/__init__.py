"""Clock services package."""

from src.services.clock.sources import (
    ClockSourceInterface,
    ClockUnavailableError,
    HttpClockSource,
    ResilientClock,
    TimezoneClock,
    create_clock,
)

__all__ = [
    "ClockSourceInterface",
    "ClockUnavailableError",
    "HttpClockSource",
    "ResilientClock",
    "TimezoneClock",
    "create_clock",
]
