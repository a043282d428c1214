"""Voice message handling with a confirm-before-run flow."""

from __future__ import annotations

import html as _html
from dataclasses import dataclass
from datetime import timedelta

import httpx
from loguru import logger
from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup, Message
from telegram.constants import ChatAction

from agenthq.channels.delivery import send_text
from agenthq.channels.progress_format import format_duration
from agenthq.voice.pending import PendingCommandStore
from agenthq.voice.transcribe import TranscriptionError, WhisperTranscriber

CONFIRM_PREFIX = "voice_confirm_"
CANCEL_PREFIX = "voice_cancel_"


@dataclass
class VoiceResult:
    """Transcribed voice note; *token* is set when it awaits confirmation."""

    text: str
    token: str | None = None


def _seconds(value: int | timedelta) -> int:
    if isinstance(value, timedelta):
        return int(value.total_seconds())
    return int(value)


def confirmation_keyboard(token: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([[
        InlineKeyboardButton("✅ Yes, proceed", callback_data=f"{CONFIRM_PREFIX}{token}"),
        InlineKeyboardButton("❌ Cancel", callback_data=f"{CANCEL_PREFIX}{token}"),
    ]])


class VoiceHandler:
    """Transcribe voice notes and stage them for confirmation."""

    def __init__(
        self,
        transcriber: WhisperTranscriber,
        store: PendingCommandStore,
        max_duration_s: int = 120,
        confirmation_required: bool = True,
    ) -> None:
        self.transcriber = transcriber
        self.store = store
        self.max_duration_s = max_duration_s
        self.confirmation_required = confirmation_required

    async def handle(self, bot: Bot, message: Message, caller_id: str) -> VoiceResult | None:
        """Process a voice message.

        Returns the transcription when it should run right away (no
        confirmation) or has been staged (with a token), and None when the
        user was told why nothing will happen.
        """
        voice = message.voice
        if voice is None:
            return None

        chat_id = message.chat_id
        duration = _seconds(voice.duration)
        if duration > self.max_duration_s:
            await send_text(
                bot,
                chat_id,
                f"⚠️ Voice message too long ({format_duration(duration)}). "
                f"Maximum is {format_duration(self.max_duration_s)}.",
            )
            return None

        try:
            await bot.send_chat_action(chat_id=chat_id, action=ChatAction.TYPING)
            status = await send_text(bot, chat_id, "🎤 Processing voice message...")

            tg_file = await bot.get_file(voice.file_id)
            audio = bytes(await tg_file.download_as_bytearray())
            result = await self.transcriber.transcribe(audio)

            await status.delete()
        except (TranscriptionError, httpx.HTTPError) as e:
            logger.error(f"Voice transcription failed: {e}")
            await send_text(
                bot, chat_id,
                "⚠️ Speech-to-text service temporarily unavailable. Please try again later.",
            )
            return None
        except Exception as e:
            logger.error(f"Voice processing error: {e}")
            await send_text(
                bot, chat_id, "⚠️ Could not process voice message. Please try again or use text."
            )
            return None

        if not result.text:
            await send_text(
                bot, chat_id,
                "⚠️ Could not understand voice message clearly. Please try again or use text.",
            )
            return None

        preview = result.text[:50] + ("..." if len(result.text) > 50 else "")
        logger.info(f"Voice transcribed ({format_duration(result.duration)}): \"{preview}\"")

        if not self.confirmation_required:
            return VoiceResult(text=result.text)

        token = self.store.store(caller_id, result.text)
        await send_text(
            bot,
            chat_id,
            f"🎤 <b>Voice transcribed:</b>\n\"{_html.escape(result.text, quote=False)}\"\n\n"
            "Is this correct?",
            reply_markup=confirmation_keyboard(token),
        )
        return VoiceResult(text=result.text, token=token)
