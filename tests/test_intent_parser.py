"""Tests for habitbot.core.intent_parser — heuristics and LLM fallback."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from habitbot.core.intent_parser import (
    ParsedIntent,
    _clean_llm_response,
    parse_heuristic,
    parse_intent,
    resolve_habit,
)


def _llm(reply=None, error=None, enabled=True):
    llm = MagicMock()
    llm.enabled = enabled
    llm.classify = AsyncMock(return_value=reply, side_effect=error)
    return llm


# ---------------------------------------------------------------------------
# Keyword heuristics
# ---------------------------------------------------------------------------


class TestParseHeuristic:
    def test_bare_number_logs_default_habit(self):
        assert parse_heuristic("30") == ParsedIntent(intent="LOG_HABIT", habit="pushups", count=30)

    def test_bare_number_custom_default(self):
        assert parse_heuristic(" 12 ", default_habit="walking").habit == "walking"

    def test_zero_is_unknown(self):
        assert parse_heuristic("0").intent == "UNKNOWN"

    def test_number_and_habit(self):
        result = parse_heuristic("20 squats")
        assert (result.intent, result.habit, result.count) == ("LOG_HABIT", "squats", 20)

    @pytest.mark.parametrize("word,habit", [
        ("push-ups", "pushups"),
        ("Sit-Up", "situps"),
        ("walk", "walking"),
        ("squat", "squats"),
    ])
    def test_habit_synonyms(self, word, habit):
        assert parse_heuristic(f"15 {word}").habit == habit

    def test_number_with_unknown_habit_is_unknown(self):
        assert parse_heuristic("10 burpees").intent == "UNKNOWN"

    def test_stats_today(self):
        result = parse_heuristic("How many squats today?")
        assert (result.intent, result.habit, result.period) == ("GET_STATS", "squats", "today")

    def test_stats_week(self):
        result = parse_heuristic("pushups stats this week")
        assert (result.intent, result.habit, result.period) == ("GET_STATS", "pushups", "week")

    def test_stats_default_habit(self):
        assert parse_heuristic("stats").habit == "pushups"

    def test_remind(self):
        result = parse_heuristic("remind me to do squats")
        assert (result.intent, result.habit) == ("SET_REMINDER", "squats")

    @pytest.mark.parametrize("text", ["", "   ", "hello there", "what's up"])
    def test_unknown(self, text):
        assert parse_heuristic(text).intent == "UNKNOWN"

    def test_resolve_habit(self):
        assert resolve_habit("pushup") == "pushups"
        assert resolve_habit("yoga") is None


# ---------------------------------------------------------------------------
# LLM fallback
# ---------------------------------------------------------------------------


class TestCleanLlmResponse:
    def test_strips_json_code_block(self):
        assert _clean_llm_response('```json\n{"intent": "UNKNOWN"}\n```') == '{"intent": "UNKNOWN"}'

    def test_plain(self):
        assert _clean_llm_response('  {"a": 1} ') == '{"a": 1}'


class TestParseIntent:
    @pytest.mark.asyncio
    async def test_heuristic_hit_skips_llm(self):
        llm = _llm('{"intent": "UNKNOWN"}')
        result = await parse_intent("30", llm=llm)
        assert result.intent == "LOG_HABIT"
        llm.classify.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_llm_returns_unknown(self):
        assert (await parse_intent("did a bunch of burpees")).intent == "UNKNOWN"

    @pytest.mark.asyncio
    async def test_disabled_llm_not_called(self):
        llm = _llm('{"intent": "LOG_HABIT"}', enabled=False)
        assert (await parse_intent("did a few burpees", llm=llm)).intent == "UNKNOWN"
        llm.classify.assert_not_called()

    @pytest.mark.asyncio
    async def test_llm_fallback_log(self):
        llm = _llm('```json\n{"intent": "LOG_HABIT", "habit": "Burpees", "count": 12}\n```')
        result = await parse_intent("did twelve burpees", llm=llm)
        assert (result.intent, result.habit, result.count) == ("LOG_HABIT", "burpees", 12)

    @pytest.mark.asyncio
    async def test_llm_log_without_count_is_unknown(self):
        llm = _llm('{"intent": "LOG_HABIT", "habit": "burpees"}')
        assert (await parse_intent("did burpees", llm=llm)).intent == "UNKNOWN"

    @pytest.mark.asyncio
    async def test_llm_garbage_is_unknown(self):
        llm = _llm("I think you did pushups!")
        assert (await parse_intent("blah", llm=llm)).intent == "UNKNOWN"

    @pytest.mark.asyncio
    async def test_llm_invalid_intent_is_unknown(self):
        llm = _llm('{"intent": "DANCE"}')
        assert (await parse_intent("blah", llm=llm)).intent == "UNKNOWN"

    @pytest.mark.asyncio
    async def test_llm_error_is_unknown(self):
        llm = _llm(error=RuntimeError("quota"))
        assert (await parse_intent("blah", llm=llm)).intent == "UNKNOWN"
