"""Storage port — abstract interface for habit persistence.

Core modules depend on this protocol, never on a specific database.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from habitbot.data.models import HabitLog, Reminder, User


class HabitStore(Protocol):
    """Abstract storage interface used by core modules."""

    def find_active_reminders(self) -> list[Reminder]: ...

    def mark_reminder_sent(self, reminder_id: int, sent_at: datetime) -> None: ...

    def sum_log_count(
        self, user_id: int, habit: str, start: datetime, end: datetime
    ) -> int: ...

    def grouped_log_sums(
        self, user_id: int, start: datetime, end: datetime
    ) -> dict[str, int]: ...

    def distinct_users_with_logs(self, start: datetime, end: datetime) -> list[int]: ...

    def find_user_by_id(self, user_id: int) -> User | None: ...

    def upsert_user_by_contact(
        self,
        contact: str,
        name: str | None = None,
        timezone_name: str | None = None,
    ) -> User: ...

    def create_log(
        self,
        user_id: int,
        habit: str,
        count: int,
        logged_at: datetime,
        source: str,
        note: str | None = None,
    ) -> HabitLog: ...
