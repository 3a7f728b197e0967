"""Stats service — aggregates habit counts over local days and weeks.

Thin layer over the storage port: every query is a sum over an absolute
instant range, and calendar_math turns "today" or "this week" in a user's
timezone into that range.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from habitbot.core.calendar_math import day_bounds, week_bounds

if TYPE_CHECKING:
    from habitbot.ports.storage_port import HabitStore

logger = logging.getLogger(__name__)

_DAY_MARGIN = timedelta(days=1, hours=1)
_WEEK_MARGIN = timedelta(days=7, hours=1)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class StatsService:
    """Range sums, grouped summaries and activity lookups over habit logs."""

    def __init__(self, store: HabitStore) -> None:
        self._store = store

    def total_in_range(
        self, user_id: int, habit: str, start: datetime, end: datetime
    ) -> int:
        """Sum of counts for (user, habit) in [start, end); 0 when nothing matches."""
        if end <= start:
            return 0
        return self._store.sum_log_count(user_id, habit, start, end)

    def total_for_day(
        self,
        user_id: int,
        habit: str,
        timezone: str,
        as_of: datetime | None = None,
    ) -> int:
        bounds = day_bounds(as_of or _now(), timezone)
        return self.total_in_range(user_id, habit, bounds.start, bounds.end)

    def total_for_week(
        self,
        user_id: int,
        habit: str,
        timezone: str,
        as_of: datetime | None = None,
    ) -> int:
        bounds = week_bounds(as_of or _now(), timezone)
        return self.total_in_range(user_id, habit, bounds.start, bounds.end)

    def grouped_totals(
        self, user_id: int, start: datetime, end: datetime
    ) -> dict[str, int]:
        """Per-habit sums over [start, end). Habits with no logs are omitted."""
        if end <= start:
            return {}
        totals = self._store.grouped_log_sums(user_id, start, end)
        return {habit: total for habit, total in totals.items() if total > 0}

    def daily_summary(
        self, user_id: int, timezone: str, as_of: datetime | None = None
    ) -> dict[str, int]:
        bounds = day_bounds(as_of or _now(), timezone)
        return self.grouped_totals(user_id, bounds.start, bounds.end)

    def weekly_summary(
        self, user_id: int, timezone: str, as_of: datetime | None = None
    ) -> dict[str, int]:
        bounds = week_bounds(as_of or _now(), timezone)
        return self.grouped_totals(user_id, bounds.start, bounds.end)

    def users_with_activity(self, start: datetime, end: datetime) -> list[int]:
        """Distinct users with at least one log in [start, end)."""
        if end <= start:
            return []
        return list(dict.fromkeys(self._store.distinct_users_with_logs(start, end)))

    def users_active_today(
        self, timezone: str, as_of: datetime | None = None
    ) -> list[int]:
        bounds = day_bounds(as_of or _now(), timezone)
        return self.users_with_activity(bounds.start, bounds.end)

    def users_active_this_week(
        self, timezone: str, as_of: datetime | None = None
    ) -> list[int]:
        bounds = week_bounds(as_of or _now(), timezone)
        return self.users_with_activity(bounds.start, bounds.end)

    def summary_candidates(
        self, period: str, timezone: str, as_of: datetime | None = None
    ) -> list[int]:
        """Coarse pre-filter for the summary triggers.

        Takes the period's bounds in ``timezone`` and widens them on both
        sides by one period plus a DST hour. Any user's own local period
        that contains ``as_of`` lies inside that window, so nobody with
        local activity is dropped. Users returned here may still have an
        empty summary in their own timezone; callers skip those.
        """
        instant = as_of or _now()
        if period == "day":
            bounds, margin = day_bounds(instant, timezone), _DAY_MARGIN
        elif period == "week":
            bounds, margin = week_bounds(instant, timezone), _WEEK_MARGIN
        else:
            raise ValueError(f"Unknown summary period: {period!r}")
        return self.users_with_activity(bounds.start - margin, bounds.end + margin)
