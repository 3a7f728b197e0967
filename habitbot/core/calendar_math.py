"""Calendar math — pure timezone-aware date logic.

Maps (instant, IANA timezone) pairs to local calendar concepts: the local
day, the local ISO week (Monday start), the local wall clock, and the
instant of a wall-clock time on a given local date.

Every range returned here is half-open: start inclusive, end exclusive.
All returned instants are timezone-aware UTC datetimes.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone as dt_timezone
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from habitbot.core.errors import UnknownTimezoneError

_HHMM_RE = re.compile(r"^(\d{1,2}):(\d{2})$")

_MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True, order=True)
class MinuteOfDay:
    """A local wall-clock time with minute precision (0..1439)."""

    minutes: int

    def __post_init__(self) -> None:
        if not 0 <= self.minutes < _MINUTES_PER_DAY:
            raise ValueError(f"Minute of day out of range: {self.minutes}")

    @classmethod
    def parse(cls, value: str) -> MinuteOfDay:
        """Parse an ``HH:MM`` 24h string. Raises ValueError when malformed."""
        match = _HHMM_RE.match(value.strip()) if isinstance(value, str) else None
        if match is None:
            raise ValueError(f"Expected HH:MM, got {value!r}")
        hour, minute = int(match.group(1)), int(match.group(2))
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            raise ValueError(f"Hour/minute out of range: {value!r}")
        return cls(hour * 60 + minute)

    @property
    def hour(self) -> int:
        return self.minutes // 60

    @property
    def minute(self) -> int:
        return self.minutes % 60

    def as_time(self) -> time:
        return time(self.hour, self.minute)

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


@dataclass(frozen=True)
class TimeRange:
    """Half-open absolute instant range ``[start, end)``."""

    start: datetime
    end: datetime

    def __contains__(self, instant: datetime) -> bool:
        return self.start <= instant < self.end


@lru_cache(maxsize=256)
def resolve_timezone(name: str) -> ZoneInfo:
    """Return the ZoneInfo for an IANA name.

    Raises UnknownTimezoneError for empty or unresolvable names; there is
    no silent fallback to UTC.
    """
    if not name or not name.strip():
        raise UnknownTimezoneError(name)
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise UnknownTimezoneError(name) from exc


def _require_aware(instant: datetime) -> None:
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise ValueError(f"Expected a timezone-aware datetime, got {instant!r}")


def _local_date(instant: datetime, zone: ZoneInfo) -> date:
    _require_aware(instant)
    return instant.astimezone(zone).date()


def _local_midnight(day: date, zone: ZoneInfo) -> datetime:
    """First instant of a local date, in UTC.

    When midnight falls in a DST gap, fold=0 resolves to the transition
    instant, which is the first existing local time of that date.
    """
    return datetime.combine(day, time(0), tzinfo=zone).astimezone(dt_timezone.utc)


def day_bounds(instant: datetime, timezone: str) -> TimeRange:
    """Local calendar day containing ``instant``.

    start is local midnight of that date, end is local midnight of the next
    date. The absolute length is 24h except on DST transition days.
    """
    zone = resolve_timezone(timezone)
    day = _local_date(instant, zone)
    return TimeRange(
        start=_local_midnight(day, zone),
        end=_local_midnight(day + timedelta(days=1), zone),
    )


def week_bounds(instant: datetime, timezone: str) -> TimeRange:
    """Local ISO week (Monday 00:00 to next Monday 00:00) containing ``instant``."""
    zone = resolve_timezone(timezone)
    day = _local_date(instant, zone)
    weekday_sunday_zero = day.isoweekday() % 7
    days_from_monday = (weekday_sunday_zero + 6) % 7  # Monday => 0, Sunday => 6
    monday = day - timedelta(days=days_from_monday)
    return TimeRange(
        start=_local_midnight(monday, zone),
        end=_local_midnight(monday + timedelta(days=7), zone),
    )


def local_clock(instant: datetime, timezone: str) -> tuple[int, int]:
    """Return the local (hour, minute) of ``instant``."""
    zone = resolve_timezone(timezone)
    _require_aware(instant)
    local = instant.astimezone(zone)
    return local.hour, local.minute


def local_minute_of_day(instant: datetime, timezone: str) -> MinuteOfDay:
    hour, minute = local_clock(instant, timezone)
    return MinuteOfDay(hour * 60 + minute)


def local_instant_at_clock(
    reference: datetime,
    timezone: str,
    hhmm: MinuteOfDay | str,
) -> datetime:
    """Instant of the wall-clock time ``hhmm`` on the local date of ``reference``.

    A wall time inside a DST gap resolves with fold=0 (pre-transition
    offset); an ambiguous wall time resolves to its first occurrence.
    """
    zone = resolve_timezone(timezone)
    clock = hhmm if isinstance(hhmm, MinuteOfDay) else MinuteOfDay.parse(hhmm)
    day = _local_date(reference, zone)
    local = datetime.combine(day, clock.as_time(), tzinfo=zone)
    return local.astimezone(dt_timezone.utc)
