"""Telegram notification adapter — implements NotificationPort.

Wraps a telegram.Bot instance to satisfy the NotificationPort protocol.
"""

from __future__ import annotations

import logging

from telegram import Bot
from telegram.error import TelegramError

from habitbot.ports.notification_port import NotificationError

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Telegram implementation of NotificationPort."""

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def send_message(self, contact: str, text: str) -> None:
        try:
            await self._bot.send_message(chat_id=contact, text=text)
        except TelegramError as exc:
            logger.error("Failed to send Telegram message to %s: %s", contact, exc)
            raise NotificationError(f"Telegram send to {contact} failed: {exc}") from exc
        logger.debug("Telegram message sent to %s", contact)
