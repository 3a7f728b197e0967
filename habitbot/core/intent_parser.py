"""
HabitBot — Intent Parser.

Turns a short free-text message into a structured intent. Keyword
heuristics cover the common shapes ("30", "20 squats", "how many pushups
this week?"); when they give up and an LLM is configured, the model gets a
chance to classify the message before it is reported as UNKNOWN.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Literal

from pydantic import BaseModel, ValidationError

from habitbot.core.llm import LLMClient

logger = logging.getLogger(__name__)

IntentName = Literal["LOG_HABIT", "GET_STATS", "SET_REMINDER", "UNKNOWN"]
Period = Literal["today", "week"]


class ParsedIntent(BaseModel):
    """Structured intent extracted from a message.

    JSON example:
    {
        "intent": "LOG_HABIT",
        "habit": "squats",
        "count": 20,
        "period": null
    }
    """
    intent: IntentName = "UNKNOWN"
    habit: str | None = None
    count: int | None = None
    period: Period | None = None


UNKNOWN = ParsedIntent(intent="UNKNOWN")

HABIT_KEYWORDS: dict[str, str] = {
    "pushup": "pushups",
    "pushups": "pushups",
    "push-up": "pushups",
    "push-ups": "pushups",
    "squat": "squats",
    "squats": "squats",
    "situp": "situps",
    "situps": "situps",
    "sit-up": "situps",
    "sit-ups": "situps",
    "walk": "walking",
    "walking": "walking",
}

_NUMBER_ONLY_RE = re.compile(r"^\d+$")
_NUMBER_HABIT_RE = re.compile(r"(\d+)\s+([a-z-]+)")


def resolve_habit(token: str) -> str | None:
    return HABIT_KEYWORDS.get(token)


def _habit_from_text(text: str) -> str | None:
    for token in text.split():
        habit = resolve_habit(re.sub(r"[^\w-]", "", token))
        if habit:
            return habit
    return None


def parse_heuristic(text: str, default_habit: str = "pushups") -> ParsedIntent:
    """Keyword-based parsing. Never raises, never calls out."""
    sanitized = text.strip().lower()
    if not sanitized:
        return UNKNOWN

    # Bare number: log the default habit
    if _NUMBER_ONLY_RE.match(sanitized):
        count = int(sanitized)
        if count > 0:
            return ParsedIntent(intent="LOG_HABIT", habit=default_habit, count=count)
        return UNKNOWN

    match = _NUMBER_HABIT_RE.search(sanitized)
    if match:
        count = int(match.group(1))
        habit = resolve_habit(match.group(2))
        if habit and count > 0:
            return ParsedIntent(intent="LOG_HABIT", habit=habit, count=count)

    if "how many" in sanitized or "stats" in sanitized:
        period: Period = "week" if "week" in sanitized else "today"
        habit = _habit_from_text(sanitized) or default_habit
        return ParsedIntent(intent="GET_STATS", habit=habit, period=period)

    if "remind" in sanitized:
        return ParsedIntent(intent="SET_REMINDER", habit=_habit_from_text(sanitized))

    return UNKNOWN


# ---------------------------------------------------------------------------
# LLM fallback
# ---------------------------------------------------------------------------

_SYSTEM_PROMPT = """\
You classify short messages sent to a habit-tracking bot.
Return ONLY a JSON object with the keys "intent", "habit", "count", "period".

- intent: one of "LOG_HABIT", "GET_STATS", "SET_REMINDER", "UNKNOWN"
- habit: lower-case plural habit name (e.g. "pushups", "squats", "walking") or null
- count: positive integer for LOG_HABIT, otherwise null
- period: "today" or "week" for GET_STATS, otherwise null

If the message is not about habits, return {"intent": "UNKNOWN"}.
"""


def _clean_llm_response(raw: str) -> str:
    """Strip markdown code fences and whitespace from an LLM reply."""
    text = raw.strip()
    if text.startswith("```"):
        text = re.sub(r"^```(?:json)?\s*", "", text)
        text = re.sub(r"\s*```$", "", text)
    return text.strip()


async def _parse_with_llm(text: str, llm: LLMClient) -> ParsedIntent:
    try:
        raw = await llm.classify(_SYSTEM_PROMPT, text)
    except Exception as exc:
        logger.warning("LLM intent fallback failed: %s", exc)
        return UNKNOWN

    try:
        data = json.loads(_clean_llm_response(raw))
        parsed = ParsedIntent.model_validate(data)
    except (json.JSONDecodeError, ValidationError, TypeError) as exc:
        logger.warning("LLM returned an unusable intent %r: %s", raw, exc)
        return UNKNOWN

    if parsed.intent == "LOG_HABIT" and (not parsed.count or parsed.count <= 0):
        return UNKNOWN
    if parsed.habit:
        parsed.habit = parsed.habit.strip().lower()
    return parsed


async def parse_intent(
    text: str,
    default_habit: str = "pushups",
    llm: LLMClient | None = None,
) -> ParsedIntent:
    """Parse a message into an intent, consulting the LLM only as a fallback."""
    intent = parse_heuristic(text, default_habit)
    if intent.intent != "UNKNOWN" or llm is None or not llm.enabled or not text.strip():
        return intent
    return await _parse_with_llm(text, llm)
