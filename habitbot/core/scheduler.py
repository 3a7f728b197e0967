"""
HabitBot — Periodic Triggers.

Reminder check: sends "log your habit" nudges to every reminder that is
due, at most once per local day inside its window.

Daily / weekly summary: sends each active user their per-habit totals for
their own local day or ISO week.

Error boundaries are explicit and two-level:

- per item: a failure for one reminder or user (bad timezone, failed send,
  failed mark-sent write) is logged and the loop moves on;
- per trigger: ``HabitJobs.run`` never lets an exception escape, and skips
  a tick when the previous tick of the same trigger is still running.

This module is provider-agnostic: it depends on HabitStore and
NotificationPort protocols, not on specific implementations.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from habitbot.core.errors import UnknownTimezoneError
from habitbot.core.reminder_rules import is_due
from habitbot.ports.notification_port import NotificationError

if TYPE_CHECKING:
    from habitbot.core.stats import StatsService
    from habitbot.data.models import Reminder
    from habitbot.ports.notification_port import NotificationPort
    from habitbot.ports.storage_port import HabitStore

logger = logging.getLogger(__name__)

REMINDER_TRIGGER = "reminder_check"
DAILY_SUMMARY_TRIGGER = "daily_summary"
WEEKLY_SUMMARY_TRIGGER = "weekly_summary"
TRIGGERS = (REMINDER_TRIGGER, DAILY_SUMMARY_TRIGGER, WEEKLY_SUMMARY_TRIGGER)


def format_reminder(reminder: Reminder) -> str:
    return f"Reminder: log {reminder.label} now."


def format_summary(period: str, totals: dict[str, int]) -> str:
    """Render grouped totals as a summary message, one habit per line."""
    header = "Your weekly summary" if period == "week" else "Your daily summary"
    lines = [f"{habit}: {total}" for habit, total in totals.items()]
    return f"{header}:\n" + "\n".join(lines)


class HabitJobs:
    """Bodies of the three periodic triggers, wired once at startup."""

    def __init__(
        self,
        store: HabitStore,
        stats: StatsService,
        notifier: NotificationPort,
        prefilter_timezone: str = "UTC",
    ) -> None:
        self._store = store
        self._stats = stats
        self._notifier = notifier
        self._prefilter_timezone = prefilter_timezone
        self._locks = {name: asyncio.Lock() for name in TRIGGERS}
        self._bodies = {
            REMINDER_TRIGGER: self.check_reminders,
            DAILY_SUMMARY_TRIGGER: self.send_daily_summaries,
            WEEKLY_SUMMARY_TRIGGER: self.send_weekly_summaries,
        }

    async def run(self, trigger: str, now: datetime | None = None) -> int | None:
        """Run one tick of ``trigger``. Returns messages sent, or None if skipped/failed."""
        body = self._bodies[trigger]
        lock = self._locks[trigger]
        if lock.locked():
            logger.warning("Trigger %s still running; skipping this tick", trigger)
            return None

        async with lock:
            try:
                sent = await body(now or datetime.now(timezone.utc))
            except Exception:
                logger.exception("Trigger %s failed", trigger)
                return None

        logger.info("Trigger %s finished: %d message(s) sent", trigger, sent)
        return sent

    # ------------------------------------------------------------------
    # Reminders
    # ------------------------------------------------------------------

    async def check_reminders(self, now: datetime) -> int:
        """Send every due reminder and record when it was sent."""
        reminders = self._store.find_active_reminders()
        sent = 0
        for reminder in reminders:
            if await self._process_reminder(reminder, now):
                sent += 1
        return sent

    async def _process_reminder(self, reminder: Reminder, now: datetime) -> bool:
        try:
            if not is_due(reminder, now):
                return False
        except UnknownTimezoneError as exc:
            logger.error("Skipping reminder #%d: %s", reminder.id, exc)
            return False

        try:
            await self._notifier.send_message(reminder.contact, format_reminder(reminder))
        except NotificationError as exc:
            logger.error("Failed to send reminder #%d: %s", reminder.id, exc)
            return False
        except Exception as exc:
            logger.exception("Unexpected error sending reminder #%d: %s", reminder.id, exc)
            return False

        try:
            self._store.mark_reminder_sent(reminder.id, now)
        except Exception as exc:
            # The message went out; without the marker it may go out again.
            logger.error("Reminder #%d sent but not marked: %s", reminder.id, exc)
        logger.info("Reminder #%d sent to %s", reminder.id, reminder.contact)
        return True

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    async def send_daily_summaries(self, now: datetime) -> int:
        return await self._send_summaries("day", now)

    async def send_weekly_summaries(self, now: datetime) -> int:
        return await self._send_summaries("week", now)

    async def _send_summaries(self, period: str, now: datetime) -> int:
        user_ids = self._stats.summary_candidates(period, self._prefilter_timezone, as_of=now)
        sent = 0
        for user_id in user_ids:
            try:
                if await self._send_summary_to(user_id, period, now):
                    sent += 1
            except Exception as exc:
                logger.error("Failed %s summary for user %d: %s", period, user_id, exc)
        return sent

    async def _send_summary_to(self, user_id: int, period: str, now: datetime) -> bool:
        user = self._store.find_user_by_id(user_id)
        if user is None:
            return False

        if period == "week":
            totals = self._stats.weekly_summary(user.id, user.timezone, as_of=now)
        else:
            totals = self._stats.daily_summary(user.id, user.timezone, as_of=now)
        if not totals:
            return False

        await self._notifier.send_message(user.contact, format_summary(period, totals))
        logger.info("%s summary sent to user %d", period.capitalize(), user.id)
        return True
