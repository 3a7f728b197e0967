"""Shared test fixtures and configuration.

Sets up fake environment variables so habitbot.config doesn't sys.exit(),
and provides common fixtures like a temp DB.
"""

import os

# Patch env vars BEFORE any habitbot imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("LLM_API_KEY", "")
os.environ.setdefault("ALLOWED_USER_IDS", "12345")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("TIMEZONE", "UTC")

import pytest


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_habits.db")


@pytest.fixture
def habit_db(tmp_db_path):
    """Return a HabitDB instance backed by a temp file."""
    from habitbot.data.db import HabitDB
    return HabitDB(db_path=tmp_db_path)


@pytest.fixture
def stats(habit_db):
    from habitbot.core.stats import StatsService
    return StatsService(habit_db)
