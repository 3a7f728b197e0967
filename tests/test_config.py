"""Tests for habitbot.config — Settings validation."""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from apscheduler.triggers.cron import CronTrigger
from pydantic import ValidationError

from habitbot.config import Settings


class TestSettings:
    def test_defaults(self):
        s = Settings(TELEGRAM_BOT_TOKEN="t")
        assert s.TIMEZONE == "UTC"
        assert s.REMINDER_CRON == "0 9 * * *"
        assert s.DAILY_SUMMARY_CRON == "0 20 * * *"
        assert s.WEEKLY_SUMMARY_CRON == "0 20 * * SUN"
        assert s.ALLOWED_USER_IDS == []
        assert s.DEFAULT_HABIT == "pushups"

    def test_allowed_user_ids_from_string(self):
        s = Settings(TELEGRAM_BOT_TOKEN="t", ALLOWED_USER_IDS="1, 2,3")
        assert s.ALLOWED_USER_IDS == [1, 2, 3]

    def test_bad_cron_rejected(self):
        with pytest.raises(ValidationError):
            Settings(TELEGRAM_BOT_TOKEN="t", REMINDER_CRON="every day")

    @pytest.mark.parametrize("expr", ["0 20 * * 0", "0 20 * * 1-5", "0 20 * * */2"])
    def test_numeric_weekday_rejected(self, expr):
        with pytest.raises(ValidationError):
            Settings(TELEGRAM_BOT_TOKEN="t", WEEKLY_SUMMARY_CRON=expr)

    def test_named_weekday_accepted(self):
        s = Settings(TELEGRAM_BOT_TOKEN="t", WEEKLY_SUMMARY_CRON="0  20 * *  MON-FRI")
        assert s.WEEKLY_SUMMARY_CRON == "0 20 * * MON-FRI"

    def test_default_weekly_summary_fires_on_sunday(self):
        utc = ZoneInfo("UTC")
        s = Settings(TELEGRAM_BOT_TOKEN="t")
        trigger = CronTrigger.from_crontab(s.WEEKLY_SUMMARY_CRON, timezone=utc)
        # Thursday 2024-06-13 -> Sunday 2024-06-16
        fire = trigger.get_next_fire_time(None, datetime(2024, 6, 13, 12, tzinfo=utc))
        assert fire == datetime(2024, 6, 16, 20, tzinfo=utc)
        assert fire.isoweekday() == 7

    def test_bad_timezone_rejected(self):
        with pytest.raises(ValidationError):
            Settings(TELEGRAM_BOT_TOKEN="t", TIMEZONE="Mars/Base")

    def test_log_level_upper(self):
        assert Settings(TELEGRAM_BOT_TOKEN="t", LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"
