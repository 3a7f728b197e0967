"""Tests for habitbot.core.stats — range sums and grouped summaries."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from habitbot.core.errors import UnknownTimezoneError
from habitbot.core.stats import StatsService


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def user(habit_db):
    return habit_db.upsert_user_by_contact("12345", "Amit")


def _log(habit_db, user, habit, count, when):
    return habit_db.create_log(user.id, habit, count, when, "TELEGRAM")


class TestTotalInRange:
    def test_no_logs_is_zero(self, stats, user):
        assert stats.total_in_range(user.id, "pushups", utc(2024, 6, 13), utc(2024, 6, 14)) == 0

    def test_empty_range_is_zero(self, habit_db, stats, user):
        _log(habit_db, user, "pushups", 10, utc(2024, 6, 13, 9))
        assert stats.total_in_range(user.id, "pushups", utc(2024, 6, 13, 9), utc(2024, 6, 13, 9)) == 0

    def test_habit_matches_exactly(self, habit_db, stats, user):
        _log(habit_db, user, "pushups", 10, utc(2024, 6, 13, 9))
        assert stats.total_in_range(user.id, "Pushups", utc(2024, 6, 13), utc(2024, 6, 14)) == 0

    def test_additive_over_split_ranges(self, habit_db, stats, user):
        start = utc(2024, 6, 10)
        for i in range(30):
            _log(habit_db, user, "pushups", i + 1, start + timedelta(hours=5 * i, minutes=7))
        a, c = utc(2024, 6, 10), utc(2024, 6, 17)
        whole = stats.total_in_range(user.id, "pushups", a, c)
        assert whole == sum(range(1, 31))
        for b in (a, utc(2024, 6, 11, 10, 7), utc(2024, 6, 13, 12), c):
            left = stats.total_in_range(user.id, "pushups", a, b)
            right = stats.total_in_range(user.id, "pushups", b, c)
            assert left + right == whole


class TestDayAndWeekTotals:
    def test_total_for_day_uses_user_timezone(self, habit_db, stats, user):
        # 23:30 UTC June 12 is 08:30 June 13 in Tokyo
        _log(habit_db, user, "pushups", 10, utc(2024, 6, 12, 23, 30))
        _log(habit_db, user, "pushups", 5, utc(2024, 6, 13, 10))
        as_of = utc(2024, 6, 13, 12)
        assert stats.total_for_day(user.id, "pushups", "Asia/Tokyo", as_of=as_of) == 15
        assert stats.total_for_day(user.id, "pushups", "UTC", as_of=as_of) == 5

    def test_total_for_week(self, habit_db, stats, user):
        _log(habit_db, user, "squats", 10, utc(2024, 6, 9, 23))   # Sunday, previous week
        _log(habit_db, user, "squats", 20, utc(2024, 6, 10, 1))   # Monday
        _log(habit_db, user, "squats", 30, utc(2024, 6, 16, 22))  # Sunday
        assert stats.total_for_week(user.id, "squats", "UTC", as_of=utc(2024, 6, 13)) == 50

    def test_unknown_timezone(self, stats, user):
        with pytest.raises(UnknownTimezoneError):
            stats.total_for_day(user.id, "pushups", "Bogus/Zone", as_of=utc(2024, 6, 13))


class TestGroupedTotals:
    def test_matches_per_habit_totals(self, habit_db, stats, user):
        _log(habit_db, user, "pushups", 10, utc(2024, 6, 13, 9))
        _log(habit_db, user, "squats", 20, utc(2024, 6, 13, 10))
        _log(habit_db, user, "pushups", 5, utc(2024, 6, 13, 11))
        _log(habit_db, user, "walking", 3, utc(2024, 6, 14, 11))
        start, end = utc(2024, 6, 13), utc(2024, 6, 14)
        grouped = stats.grouped_totals(user.id, start, end)
        assert grouped == {"pushups": 15, "squats": 20}
        for habit, total in grouped.items():
            assert stats.total_in_range(user.id, habit, start, end) == total
        assert "walking" not in grouped
        assert stats.total_in_range(user.id, "walking", start, end) == 0

    def test_empty(self, stats, user):
        assert stats.grouped_totals(user.id, utc(2024, 6, 13), utc(2024, 6, 14)) == {}

    def test_drops_zero_rows_from_store(self):
        store = MagicMock()
        store.grouped_log_sums.return_value = {"pushups": 0, "squats": 4}
        service = StatsService(store)
        assert service.grouped_totals(1, utc(2024, 6, 13), utc(2024, 6, 14)) == {"squats": 4}

    def test_daily_and_weekly_summary(self, habit_db, stats, user):
        _log(habit_db, user, "pushups", 10, utc(2024, 6, 11, 9))
        _log(habit_db, user, "pushups", 5, utc(2024, 6, 13, 9))
        as_of = utc(2024, 6, 13, 20)
        assert stats.daily_summary(user.id, "UTC", as_of=as_of) == {"pushups": 5}
        assert stats.weekly_summary(user.id, "UTC", as_of=as_of) == {"pushups": 15}


class TestUsersWithActivity:
    def test_distinct_users(self, habit_db, stats):
        a = habit_db.upsert_user_by_contact("1")
        b = habit_db.upsert_user_by_contact("2")
        _log(habit_db, a, "pushups", 1, utc(2024, 6, 13, 1))
        _log(habit_db, a, "pushups", 1, utc(2024, 6, 13, 2))
        _log(habit_db, b, "squats", 1, utc(2024, 6, 13, 3))
        assert stats.users_with_activity(utc(2024, 6, 13), utc(2024, 6, 14)) == [a.id, b.id]

    def test_users_active_today_and_week(self, habit_db, stats):
        a = habit_db.upsert_user_by_contact("1")
        b = habit_db.upsert_user_by_contact("2")
        _log(habit_db, a, "pushups", 1, utc(2024, 6, 13, 1))
        _log(habit_db, b, "squats", 1, utc(2024, 6, 11, 3))
        as_of = utc(2024, 6, 13, 12)
        assert stats.users_active_today("UTC", as_of=as_of) == [a.id]
        assert stats.users_active_this_week("UTC", as_of=as_of) == [a.id, b.id]

    def test_summary_candidates_include_users_near_date_boundary(self, habit_db, stats):
        # Logged at 10:00 local June 13 in Auckland = 22:00 UTC June 12
        kiwi = habit_db.upsert_user_by_contact("1", timezone_name="Pacific/Auckland")
        _log(habit_db, kiwi, "pushups", 1, utc(2024, 6, 12, 22))
        as_of = utc(2024, 6, 13, 5)
        assert stats.users_active_today("UTC", as_of=as_of) == []
        assert stats.summary_candidates("day", "UTC", as_of=as_of) == [kiwi.id]

    def test_summary_candidates_week(self, habit_db, stats):
        a = habit_db.upsert_user_by_contact("1")
        _log(habit_db, a, "pushups", 1, utc(2024, 6, 11, 3))
        assert stats.summary_candidates("week", "UTC", as_of=utc(2024, 6, 13)) == [a.id]

    def test_summary_candidates_unknown_period(self, stats):
        with pytest.raises(ValueError):
            stats.summary_candidates("month", "UTC", as_of=utc(2024, 6, 13))
