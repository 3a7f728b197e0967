"""
HabitBot — LLM Intent Classifier.

``LLMClient.classify()`` sends one short message plus classification
instructions to the configured provider and returns the model's JSON reply
as text. Replies are capped at a few dozen tokens, sampled at temperature 0,
and requested in the provider's native JSON mode where one exists
(Anthropic has none, so its reply is prefilled with an opening brace).
Supports: gemini (default), anthropic, openai, cohere. Provider SDKs are
imported lazily so only the selected one needs to be installed.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

# An intent object is four short keys
CLASSIFY_MAX_TOKENS = 96

_ProviderFn = Callable[[str, str, str, str], Awaitable[str]]


async def _gemini(api_key: str, model: str, instructions: str, message: str) -> str:
    import google.generativeai as genai

    genai.configure(api_key=api_key)
    gm = genai.GenerativeModel(
        model_name=model,
        system_instruction=instructions,
        generation_config={
            "response_mime_type": "application/json",
            "temperature": 0,
            "max_output_tokens": CLASSIFY_MAX_TOKENS,
        },
    )
    response = await gm.generate_content_async(message)
    return response.text


async def _anthropic(api_key: str, model: str, instructions: str, message: str) -> str:
    import anthropic

    client = anthropic.AsyncAnthropic(api_key=api_key)
    response = await client.messages.create(
        model=model,
        max_tokens=CLASSIFY_MAX_TOKENS,
        temperature=0,
        system=instructions,
        messages=[
            {"role": "user", "content": message},
            {"role": "assistant", "content": "{"},
        ],
    )
    return "{" + response.content[0].text


async def _openai(api_key: str, model: str, instructions: str, message: str) -> str:
    from openai import AsyncOpenAI

    client = AsyncOpenAI(api_key=api_key)
    response = await client.chat.completions.create(
        model=model,
        max_tokens=CLASSIFY_MAX_TOKENS,
        temperature=0,
        response_format={"type": "json_object"},
        messages=[
            {"role": "system", "content": instructions},
            {"role": "user", "content": message},
        ],
    )
    return response.choices[0].message.content or ""


async def _cohere(api_key: str, model: str, instructions: str, message: str) -> str:
    import cohere

    client = cohere.AsyncClientV2(api_key=api_key)
    response = await client.chat(
        model=model,
        max_tokens=CLASSIFY_MAX_TOKENS,
        temperature=0,
        response_format={"type": "json_object"},
        messages=[
            {"role": "system", "content": instructions},
            {"role": "user", "content": message},
        ],
    )
    return response.message.content[0].text


PROVIDERS: dict[str, tuple[_ProviderFn, str]] = {
    "gemini":    (_gemini,    "gemini-2.0-flash"),
    "anthropic": (_anthropic, "claude-haiku-4-5-20251001"),
    "openai":    (_openai,    "gpt-4o-mini"),
    "cohere":    (_cohere,    "command-a-03-2025"),
}


class LLMClient:
    """A configured LLM provider. Disabled when no API key is given."""

    def __init__(self, provider: str = "gemini", api_key: str = "", model: str = "") -> None:
        name = provider.lower()
        if name not in PROVIDERS:
            raise ValueError(
                f"Unknown LLM_PROVIDER={name!r}. Supported: {', '.join(PROVIDERS)}"
            )
        self._fn, default_model = PROVIDERS[name]
        self.provider = name
        self.model = model or default_model
        self._api_key = api_key

    @classmethod
    def from_settings(cls) -> LLMClient:
        from habitbot.config import settings

        client = cls(settings.LLM_PROVIDER, settings.LLM_API_KEY, settings.LLM_MODEL)
        if client.enabled:
            logger.info("LLM fallback: %s, model: %s", client.provider, client.model)
        return client

    @property
    def enabled(self) -> bool:
        return bool(self._api_key) and not self._api_key.startswith("your-")

    async def classify(self, instructions: str, message: str) -> str:
        """Return the model's JSON reply for ``message``.

        Raises on API errors and when the client is disabled.
        """
        if not self.enabled:
            raise RuntimeError("LLM client has no API key configured")
        return await self._fn(self._api_key, self.model, instructions, message)
