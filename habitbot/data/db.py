"""
HabitBot — Habit Database.

SQLite-backed storage for users, habit logs and reminders. Instants are
stored as fixed-width UTC ISO strings so that range filters can compare
them as text.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from habitbot.core.calendar_math import MinuteOfDay
from habitbot.core.errors import InvalidCountError
from habitbot.data.models import LOG_SOURCES, HabitLog, Reminder, User

logger = logging.getLogger(__name__)


def _to_db(instant: datetime) -> str:
    """Normalize an instant to the stored text form (naive means UTC)."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_db(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value).astimezone(timezone.utc)


def _parse_window(value: str | None) -> MinuteOfDay | None:
    return MinuteOfDay.parse(value) if value else None


class HabitDB:
    """SQLite-backed storage for users, habit logs and reminders."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from habitbot.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        """Create tables and indexes if they don't exist."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id            INTEGER PRIMARY KEY AUTOINCREMENT,
                    contact       TEXT    NOT NULL UNIQUE,
                    display_name  TEXT,
                    timezone      TEXT    NOT NULL DEFAULT 'UTC',
                    created_at    TEXT    NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS habit_logs (
                    id         INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id    INTEGER NOT NULL REFERENCES users(id),
                    habit      TEXT    NOT NULL,
                    count      INTEGER NOT NULL CHECK (count > 0),
                    logged_at  TEXT    NOT NULL,
                    source     TEXT    NOT NULL,
                    note       TEXT
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_logs_user_habit_time "
                "ON habit_logs (user_id, habit, logged_at)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_logs_time ON habit_logs (logged_at)"
            )
            conn.execute("""
                CREATE TABLE IF NOT EXISTS reminders (
                    id            INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id       INTEGER NOT NULL REFERENCES users(id),
                    active        INTEGER NOT NULL DEFAULT 1,
                    habit         TEXT,
                    window_start  TEXT,
                    window_end    TEXT,
                    last_sent_at  TEXT
                )
            """)
        logger.debug("Habit tables initialized at %s", self._db_path)

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            contact=row["contact"],
            display_name=row["display_name"],
            timezone=row["timezone"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_reminder(row: sqlite3.Row) -> Reminder:
        return Reminder(
            id=row["id"],
            user_id=row["user_id"],
            active=bool(row["active"]),
            habit=row["habit"],
            window_start=_parse_window(row["window_start"]),
            window_end=_parse_window(row["window_end"]),
            last_sent_at=_from_db(row["last_sent_at"]),
            timezone=row["timezone"],
            contact=row["contact"],
        )

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def upsert_user_by_contact(
        self,
        contact: str,
        name: str | None = None,
        timezone_name: str | None = None,
    ) -> User:
        """Create the user on first contact; update name/timezone only when given."""
        now = _to_db(datetime.now(timezone.utc))
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO users (contact, display_name, timezone, created_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(contact) DO UPDATE SET
                    display_name = COALESCE(excluded.display_name, users.display_name),
                    timezone     = CASE WHEN ? IS NULL THEN users.timezone
                                        ELSE excluded.timezone END
                """,
                (contact, name, timezone_name or "UTC", now, timezone_name),
            )
            row = conn.execute(
                "SELECT * FROM users WHERE contact = ?", (contact,)
            ).fetchone()
        return self._row_to_user(row)

    def find_user_by_id(self, user_id: int) -> User | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def find_user_by_contact(self, contact: str) -> User | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE contact = ?", (contact,)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    # ------------------------------------------------------------------
    # Habit logs
    # ------------------------------------------------------------------

    def create_log(
        self,
        user_id: int,
        habit: str,
        count: int,
        logged_at: datetime,
        source: str,
        note: str | None = None,
    ) -> HabitLog:
        """Insert an immutable habit log. Rejects non-positive counts."""
        if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
            raise InvalidCountError(count)
        if source not in LOG_SOURCES:
            raise ValueError(f"Unknown log source: {source!r}")

        stored_at = _to_db(logged_at)
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO habit_logs (user_id, habit, count, logged_at, source, note)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (user_id, habit, count, stored_at, source, note),
            )
            log_id = cursor.lastrowid

        logger.info("Habit logged: #%d user %d %s x%d", log_id, user_id, habit, count)
        return HabitLog(
            id=log_id,
            user_id=user_id,
            habit=habit,
            count=count,
            logged_at=_from_db(stored_at),
            source=source,
            note=note,
        )

    def sum_log_count(
        self, user_id: int, habit: str, start: datetime, end: datetime
    ) -> int:
        """Sum of counts for one user and habit with logged_at in [start, end)."""
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT COALESCE(SUM(count), 0) AS total FROM habit_logs
                WHERE user_id = ? AND habit = ? AND logged_at >= ? AND logged_at < ?
                """,
                (user_id, habit, _to_db(start), _to_db(end)),
            ).fetchone()
        return int(row["total"])

    def grouped_log_sums(
        self, user_id: int, start: datetime, end: datetime
    ) -> dict[str, int]:
        """Per-habit sums for one user over [start, end), ordered by habit."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT habit, SUM(count) AS total FROM habit_logs
                WHERE user_id = ? AND logged_at >= ? AND logged_at < ?
                GROUP BY habit ORDER BY habit
                """,
                (user_id, _to_db(start), _to_db(end)),
            ).fetchall()
        return {row["habit"]: int(row["total"]) for row in rows}

    def distinct_users_with_logs(self, start: datetime, end: datetime) -> list[int]:
        """IDs of users with at least one log in [start, end)."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT DISTINCT user_id FROM habit_logs
                WHERE logged_at >= ? AND logged_at < ?
                ORDER BY user_id
                """,
                (_to_db(start), _to_db(end)),
            ).fetchall()
        return [row["user_id"] for row in rows]

    # ------------------------------------------------------------------
    # Reminders
    # ------------------------------------------------------------------

    _REMINDER_SELECT = """
        SELECT r.*, u.timezone AS timezone, u.contact AS contact
        FROM reminders r JOIN users u ON u.id = r.user_id
    """

    def add_reminder(
        self,
        user_id: int,
        habit: str | None = None,
        window_start: MinuteOfDay | None = None,
        window_end: MinuteOfDay | None = None,
    ) -> Reminder:
        """Provision a new active reminder for a user."""
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO reminders (user_id, active, habit, window_start, window_end)
                VALUES (?, 1, ?, ?, ?)
                """,
                (
                    user_id, habit,
                    str(window_start) if window_start is not None else None,
                    str(window_end) if window_end is not None else None,
                ),
            )
            reminder_id = cursor.lastrowid
            row = conn.execute(
                self._REMINDER_SELECT + " WHERE r.id = ?", (reminder_id,)
            ).fetchone()

        logger.info("Reminder #%d added for user %d", reminder_id, user_id)
        return self._row_to_reminder(row)

    def find_active_reminders(self) -> list[Reminder]:
        """All active reminders joined with their owner's timezone and contact."""
        with self._connect() as conn:
            rows = conn.execute(
                self._REMINDER_SELECT + " WHERE r.active = 1 ORDER BY r.id"
            ).fetchall()
        return [self._row_to_reminder(r) for r in rows]

    def list_reminders(self, user_id: int, active_only: bool = True) -> list[Reminder]:
        query = self._REMINDER_SELECT + " WHERE r.user_id = ?"
        if active_only:
            query += " AND r.active = 1"
        query += " ORDER BY r.id"
        with self._connect() as conn:
            rows = conn.execute(query, (user_id,)).fetchall()
        return [self._row_to_reminder(r) for r in rows]

    def get_reminder(self, reminder_id: int) -> Reminder | None:
        with self._connect() as conn:
            row = conn.execute(
                self._REMINDER_SELECT + " WHERE r.id = ?", (reminder_id,)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_reminder(row)

    def mark_reminder_sent(self, reminder_id: int, sent_at: datetime) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE reminders SET last_sent_at = ? WHERE id = ?",
                (_to_db(sent_at), reminder_id),
            )
        logger.debug("Reminder #%d marked sent at %s", reminder_id, sent_at)

    def deactivate_reminder(self, reminder_id: int, user_id: int) -> bool:
        """Stop a reminder owned by ``user_id``. Returns False if nothing changed."""
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE reminders SET active = 0 WHERE id = ? AND user_id = ? AND active = 1",
                (reminder_id, user_id),
            )
        stopped = cursor.rowcount > 0
        if stopped:
            logger.info("Reminder #%d deactivated", reminder_id)
        return stopped
