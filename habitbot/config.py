"""
HabitBot — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from habitbot/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str

    # LLM intent fallback — optional; empty key disables it
    LLM_PROVIDER: str = "gemini"
    LLM_MODEL: str = ""          # empty → smart default per provider
    LLM_API_KEY: str = ""

    # SQLite
    DATABASE_PATH: str = "data/habits.db"

    # Security — empty list means the bot answers everyone
    ALLOWED_USER_IDS: list[int] = []

    # Habits
    DEFAULT_HABIT: str = "pushups"

    # Triggers (five-field crontab expressions, evaluated in TIMEZONE;
    # day-of-week must use names, e.g. SUN or MON-FRI)
    REMINDER_CRON: str = "0 9 * * *"          # 09:00 daily
    DAILY_SUMMARY_CRON: str = "0 20 * * *"    # 20:00 daily
    WEEKLY_SUMMARY_CRON: str = "0 20 * * SUN" # Sundays 20:00
    TIMEZONE: str = "UTC"

    LOG_LEVEL: str = "INFO"

    @field_validator("ALLOWED_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator("REMINDER_CRON", "DAILY_SUMMARY_CRON", "WEEKLY_SUMMARY_CRON")
    @classmethod
    def check_cron(cls, v: str) -> str:
        fields = v.split()
        if len(fields) != 5:
            raise ValueError(f"Expected a five-field cron expression, got {v!r}")
        # APScheduler numbers weekdays from Monday=0, crontab from Sunday=0
        if any(ch.isdigit() for ch in fields[4]):
            raise ValueError(
                f"Use weekday names (SUN, MON-FRI) in the day-of-week field, got {fields[4]!r}"
            )
        return " ".join(fields)

    @field_validator("TIMEZONE")
    @classmethod
    def check_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone {v!r}") from exc
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.upper()


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        LLM_PROVIDER=os.getenv("LLM_PROVIDER", "gemini"),
        LLM_MODEL=os.getenv("LLM_MODEL", ""),
        LLM_API_KEY=os.getenv("LLM_API_KEY", ""),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/habits.db"),
        ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
        DEFAULT_HABIT=os.getenv("DEFAULT_HABIT", "pushups").strip().lower(),
        REMINDER_CRON=os.getenv("REMINDER_CRON", "0 9 * * *"),
        DAILY_SUMMARY_CRON=os.getenv("DAILY_SUMMARY_CRON", "0 20 * * *"),
        WEEKLY_SUMMARY_CRON=os.getenv("WEEKLY_SUMMARY_CRON", "0 20 * * SUN"),
        TIMEZONE=os.getenv("TIMEZONE", "UTC"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
    )


# Singleton — imported by other modules as:
#   from habitbot.config import settings
settings = _load_settings()
