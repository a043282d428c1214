"""Outbound message delivery with a plain-text fallback."""

from __future__ import annotations

from typing import Any

from loguru import logger
from telegram import Bot, Message
from telegram.constants import ParseMode
from telegram.error import BadRequest

# Fragments of Telegram's "Bad Request" text when it cannot parse HTML
MARKUP_ERROR_PATTERNS = (
    "can't parse entities",
    "can't find end tag",
    "unsupported start tag",
    "unexpected end tag",
    "unclosed start tag",
)


class DeliveryError(Exception):
    """Raised when both the HTML and the plain-text attempt failed."""


def is_markup_parse_error(err: Exception) -> bool:
    """Check whether Telegram rejected a message because of its markup.

    Telegram reports these as ``BadRequest`` with a free-form description, so
    this is the one place that pattern-matches it.
    """
    if not isinstance(err, BadRequest):
        return False
    msg = str(err).lower()
    return any(pattern in msg for pattern in MARKUP_ERROR_PATTERNS)


async def send_text(bot: Bot, chat_id: int | str, text: str, **kwargs: Any) -> Message:
    """Send *text* as HTML, resending it as plain text if the HTML is rejected.

    Errors unrelated to markup (network, rate limit, authorization) are not
    retried and propagate unchanged.
    """
    try:
        return await bot.send_message(
            chat_id=chat_id, text=text, parse_mode=ParseMode.HTML, **kwargs
        )
    except BadRequest as e:
        if not is_markup_parse_error(e):
            raise
        logger.warning(f"HTML send rejected, falling back to plain text: {e}")

    try:
        return await bot.send_message(chat_id=chat_id, text=text, parse_mode=None, **kwargs)
    except Exception as e:
        raise DeliveryError(f"Failed to deliver message to {chat_id}: {e}") from e
