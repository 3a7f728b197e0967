"""Habit service — business rules for logging a reported activity.

Validates the count, makes sure the reporting user exists, stores the log
and returns the user's running total for their local day.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from habitbot.core.calendar_math import resolve_timezone
from habitbot.core.errors import InvalidCountError
from habitbot.data.models import LogResult

if TYPE_CHECKING:
    from habitbot.core.stats import StatsService
    from habitbot.ports.storage_port import HabitStore

logger = logging.getLogger(__name__)

DEFAULT_HABIT = "pushups"


class HabitService:
    """Logs habits on behalf of a contact."""

    def __init__(
        self,
        store: HabitStore,
        stats: StatsService,
        default_habit: str = DEFAULT_HABIT,
    ) -> None:
        self._store = store
        self._stats = stats
        self._default_habit = default_habit

    def log_habit(
        self,
        contact: str,
        habit: str | None,
        count: int,
        source: str = "TELEGRAM",
        display_name: str | None = None,
        timezone_name: str | None = None,
        logged_at: datetime | None = None,
        note: str | None = None,
    ) -> LogResult:
        """Store one habit report and return it with today's total.

        Raises InvalidCountError before touching storage when count <= 0,
        and UnknownTimezoneError when an explicit timezone is not valid.
        """
        if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
            raise InvalidCountError(count)
        if timezone_name is not None:
            resolve_timezone(timezone_name)

        user = self._store.upsert_user_by_contact(contact, display_name, timezone_name)
        name = (habit or "").strip().lower() or self._default_habit
        when = logged_at or datetime.now(timezone.utc)

        log = self._store.create_log(
            user_id=user.id,
            habit=name,
            count=count,
            logged_at=when,
            source=source,
            note=note,
        )
        today_total = self._stats.total_for_day(user.id, log.habit, user.timezone, as_of=when)
        return LogResult(user=user, log=log, today_total=today_total)
