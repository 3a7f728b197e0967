"""
HabitBot — Data Models.

Users, their habit logs and their reminders. Logs are immutable facts;
reminders only ever change through their active flag and last-sent marker.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from habitbot.core.calendar_math import MinuteOfDay

LOG_SOURCES = ("TELEGRAM", "SYSTEM")


@dataclass
class User:
    """A person who has talked to the bot at least once."""

    id: int
    contact: str                      # Telegram chat id, as text
    display_name: str | None = None
    timezone: str = "UTC"             # IANA name
    created_at: str = ""


@dataclass(frozen=True)
class HabitLog:
    """One reported activity. Never mutated or deleted."""

    id: int
    user_id: int
    habit: str                        # lower-cased, e.g. "pushups"
    count: int                        # always > 0
    logged_at: datetime               # aware, UTC
    source: str = "TELEGRAM"
    note: str | None = None


@dataclass
class Reminder:
    """A daily nudge to log a habit, sent inside a local time window.

    ``timezone`` and ``contact`` are copied from the owning user when the
    reminder is loaded, so the scheduler never needs a second lookup.
    """

    id: int
    user_id: int
    active: bool = True
    habit: str | None = None          # informational label only
    window_start: MinuteOfDay | None = None
    window_end: MinuteOfDay | None = None
    last_sent_at: datetime | None = None
    timezone: str = "UTC"
    contact: str = ""

    @property
    def label(self) -> str:
        return self.habit or "your habit"

    @property
    def has_window(self) -> bool:
        return self.window_start is not None and self.window_end is not None

    def describe(self) -> str:
        window = f"{self.window_start}-{self.window_end}" if self.has_window else "any time"
        status = "" if self.active else " (stopped)"
        return f"#{self.id} {self.label} ({window}){status}"


@dataclass
class LogResult:
    """Outcome of logging a habit: who, what, and the running daily total."""

    user: User
    log: HabitLog
    today_total: int = field(default=0)
