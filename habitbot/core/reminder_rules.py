"""Reminder rules — decides whether a reminder is due at a given instant.

A reminder fires at most once per local day, inside its local send window:

- inactive reminders never fire;
- a reminder without a complete window is always "in window";
- a window is inclusive on both ends and never wraps past midnight, so a
  start later than its end is simply an empty window;
- once sent at or after the start of today's window occurrence, the
  reminder stays quiet until the local date rolls over.

No I/O: ``is_due`` is a pure function of the reminder state and the
evaluation instant.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from habitbot.core.calendar_math import local_instant_at_clock, local_minute_of_day

if TYPE_CHECKING:
    from habitbot.core.calendar_math import MinuteOfDay
    from habitbot.data.models import Reminder


def in_window(
    now: datetime,
    timezone: str,
    window_start: MinuteOfDay | None,
    window_end: MinuteOfDay | None,
) -> bool:
    """True when the local time of ``now`` lies in [start, end]."""
    if window_start is None or window_end is None:
        return True
    current = local_minute_of_day(now, timezone)
    return window_start <= current <= window_end


def recently_sent(
    last_sent_at: datetime | None,
    now: datetime,
    timezone: str,
    window_start: MinuteOfDay | None,
) -> bool:
    """True when the last send happened at or after today's window start.

    Without a window start there is no occurrence to compare against, so
    the recency check is skipped.
    """
    if last_sent_at is None or window_start is None:
        return False
    occurrence_start = local_instant_at_clock(now, timezone, window_start)
    return last_sent_at >= occurrence_start


def is_due(reminder: Reminder, now: datetime) -> bool:
    """Decide whether ``reminder`` should be sent at ``now``.

    Raises UnknownTimezoneError if the owner's timezone cannot be resolved.
    """
    if not reminder.active:
        return False
    if not in_window(now, reminder.timezone, reminder.window_start, reminder.window_end):
        return False
    return not recently_sent(
        reminder.last_sent_at, now, reminder.timezone, reminder.window_start,
    )
