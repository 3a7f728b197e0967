"""Domain errors raised by the habit core."""

from __future__ import annotations


class HabitBotError(Exception):
    """Base class for all habit-core errors."""


class UnknownTimezoneError(HabitBotError, ValueError):
    """Raised when an IANA timezone name cannot be resolved.

    Fatal to the single calculation only: scheduler loops catch it per
    item and move on.
    """

    def __init__(self, timezone: str) -> None:
        super().__init__(f"Unknown timezone: {timezone!r}")
        self.timezone = timezone


class InvalidCountError(HabitBotError, ValueError):
    """Raised when a habit log count is not a positive integer."""

    def __init__(self, count: object) -> None:
        super().__init__(f"Count must be greater than zero, got {count!r}")
        self.count = count
