"""Telegram channel implementation using python-telegram-bot."""

from __future__ import annotations

import asyncio
import html as _html
import re

import httpx
from loguru import logger
from telegram import Bot, BotCommand, Update
from telegram.constants import ChatAction, ParseMode
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from agenthq.agent.base import Agent, AgentSession
from agenthq.channels.delivery import send_text
from agenthq.channels.progress import create_progress_tracker
from agenthq.channels.progress_format import StepStatus
from agenthq.config.schema import Config
from agenthq.markup.chunk import chunk_html
from agenthq.markup.markdown import render_reply
from agenthq.voice.handler import CANCEL_PREFIX, CONFIRM_PREFIX, VoiceHandler
from agenthq.voice.pending import PendingCommandStore
from agenthq.voice.transcribe import WhisperTranscriber

HELP_TEXT = "\n".join([
    "Agent HQ — Manage Plane tasks from Telegram\n",
    "Just type naturally! Examples:",
    '  "List my projects"',
    '  "What tasks are open in Verdandi?"',
    '  "Create a task in Verdandi about rate limiting"',
    '  "What workflow states does Style-swipe have?"\n',
    "Commands:",
    "/clear — Reset conversation",
    "/help — Show this message",
])

AGENT_QUESTION_MARKER = "Agent needs help"
GENERIC_ERROR = "⚠️ Something went wrong processing your message. Try again or /help for info."
PARTIAL_DELIVERY_NOTICE = "⚠️ Part of the reply could not be delivered."

_TASK_ID_RE = re.compile(r"([A-Z0-9]+-\d+)")


def extract_task_id(text: str) -> str | None:
    """Return the first task id (e.g. ``HQ-123``) in *text*."""
    m = _TASK_ID_RE.search(text)
    return m.group(1) if m else None


class TelegramChannel:
    """
    Telegram channel using long polling.

    Serves exactly one allowed user: text goes to the agent with a live
    progress message, voice notes are transcribed and confirmed first.
    """

    name = "telegram"

    # Commands registered with Telegram's command menu
    BOT_COMMANDS = [
        BotCommand("start", "Start the bot"),
        BotCommand("help", "Show available commands"),
        BotCommand("clear", "Reset conversation"),
    ]

    def __init__(
        self,
        config: Config,
        agent: Agent,
        pending: PendingCommandStore,
        transcriber: WhisperTranscriber | None = None,
    ):
        self.config = config
        self.agent = agent
        self.pending = pending
        self.voice: VoiceHandler | None = None
        if transcriber is not None and config.voice.enabled:
            self.voice = VoiceHandler(
                transcriber,
                pending,
                max_duration_s=config.voice.max_duration_s,
                confirmation_required=config.voice.confirmation_required,
            )
        self._app: Application | None = None
        self._running = False
        self._typing_tasks: dict[str, asyncio.Task] = {}  # chat_id -> typing loop task

    def is_allowed(self, user_id: int | str | None) -> bool:
        allowed = self.config.telegram.allowed_user_id
        return bool(allowed) and str(user_id) == allowed

    async def start(self) -> None:
        """Start the Telegram bot with long polling."""
        tg = self.config.telegram
        if not tg.token:
            logger.error("Telegram bot token not configured")
            return
        if not tg.allowed_user_id.isdigit():
            logger.error("Telegram allowed user id must be a numeric user id")
            return

        self._running = True

        builder = Application.builder().token(tg.token)
        if tg.proxy:
            builder = builder.proxy(tg.proxy).get_updates_proxy(tg.proxy)
        self._app = builder.build()

        # Only the allowed user reaches any handler
        user_filter = filters.User(user_id=int(tg.allowed_user_id))
        self._app.add_handler(CommandHandler("start", self._on_start, filters=user_filter))
        self._app.add_handler(CommandHandler("help", self._on_help, filters=user_filter))
        self._app.add_handler(CommandHandler("clear", self._on_clear, filters=user_filter))
        self._app.add_handler(
            MessageHandler(filters.TEXT & ~filters.COMMAND & user_filter, self._on_message)
        )
        self._app.add_handler(MessageHandler(filters.VOICE & user_filter, self._on_voice))
        self._app.add_handler(
            CallbackQueryHandler(
                self._on_callback, pattern=f"^({CONFIRM_PREFIX}|{CANCEL_PREFIX})"
            )
        )
        self._app.add_error_handler(self._on_error)

        logger.info("Starting Telegram bot (polling mode)...")

        await self._app.initialize()
        await self._app.start()

        bot_info = await self._app.bot.get_me()
        logger.info(f"Telegram bot @{bot_info.username} connected")

        try:
            await self._app.bot.set_my_commands(self.BOT_COMMANDS)
            logger.debug("Telegram bot commands registered")
        except Exception as e:
            logger.warning(f"Failed to register bot commands: {e}")

        self.pending.start()

        await self._app.updater.start_polling(
            allowed_updates=["message", "callback_query"],
            drop_pending_updates=True,  # Ignore old messages on startup
        )

        while self._running:
            await asyncio.sleep(1)

    async def stop(self) -> None:
        """Stop the Telegram bot."""
        self._running = False

        for chat_id in list(self._typing_tasks):
            await self.stop_typing(chat_id)

        await self.pending.stop()

        if self._app:
            logger.info("Stopping Telegram bot...")
            await self._app.updater.stop()
            await self._app.stop()
            await self._app.shutdown()
            self._app = None

    # -- request processing --------------------------------------------------

    async def process_text(self, bot: Bot, chat_id: int, user_id: str, text: str) -> None:
        """Run *text* through the agent and deliver the reply."""
        tracker = create_progress_tracker(bot, chat_id, self.config.progress)
        await self.start_typing(bot, chat_id)
        try:
            await tracker.start()
            await tracker.update("Parsing request", StepStatus.IN_PROGRESS)

            session = AgentSession(thread=str(chat_id), resource=user_id, progress=tracker)
            result = await self.agent.generate(text, session)

            reply = render_reply(result.text or "Done.") or "Done."
            chunks = chunk_html(reply)

            # First chunk replaces the progress message, the rest follow it
            await tracker.complete(chunks[0])
            await self._send_follow_ups(bot, chat_id, chunks[1:])
        except Exception as e:
            logger.error(f"Agent error for chat {chat_id}: {e}")
            await tracker.error(GENERIC_ERROR)
        finally:
            await self.stop_typing(chat_id)

    async def _send_follow_ups(self, bot: Bot, chat_id: int, chunks: list[str]) -> None:
        """Send the reply chunks after the first; the tracker is terminal by now."""
        try:
            for chunk in chunks:
                await send_text(bot, chat_id, chunk)
        except Exception as e:
            logger.error(f"Failed to deliver reply chunk to {chat_id}: {e}")
            try:
                await send_text(bot, chat_id, PARTIAL_DELIVERY_NOTICE)
            except Exception as e2:
                logger.error(f"Failed to send delivery notice to {chat_id}: {e2}")

    async def relay_answer(self, bot: Bot, chat_id: int, task_id: str, answer: str) -> None:
        """Forward a reply to an agent's question to the task runner."""
        url = f"{self.config.agent.runner_url}/answers/{task_id}"
        try:
            async with httpx.AsyncClient(timeout=15) as client:
                r = await client.post(url, json={"answer": answer})
        except httpx.HTTPError as e:
            logger.error(f"Failed to relay answer for {task_id}: {e}")
            await send_text(bot, chat_id, "⚠️ Failed to reach agent runner.")
            return

        if r.is_success:
            await send_text(bot, chat_id, f"✅ Answer relayed to agent working on {task_id}.")
        else:
            await send_text(bot, chat_id, "⚠️ Could not relay answer (agent may not be waiting).")

    # -- handlers ------------------------------------------------------------

    async def _on_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /start command."""
        if not update.message:
            return
        await update.message.reply_text(f"Welcome to Agent HQ!\n\n{HELP_TEXT}")

    async def _on_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /help command."""
        if not update.message:
            return
        await update.message.reply_text(HELP_TEXT)

    async def _on_clear(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /clear command."""
        if not update.message:
            return
        await update.message.reply_text(
            "Conversation cleared. Send a new message to start fresh.",
            parse_mode=ParseMode.HTML,
        )

    async def _on_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle text messages: answer relays first, everything else goes to the agent."""
        message = update.message
        if not message or not message.text or not update.effective_user:
            return

        text = message.text
        if text.startswith("/"):
            return

        reply_to = message.reply_to_message
        if (
            reply_to is not None
            and reply_to.text
            and AGENT_QUESTION_MARKER in reply_to.text
            and self.config.agent.runner_url
        ):
            task_id = extract_task_id(reply_to.text)
            if task_id:
                await self.relay_answer(context.bot, message.chat_id, task_id, text)
            return

        logger.debug(f"Telegram message from {update.effective_user.id}: {text[:50]}...")
        await self.process_text(context.bot, message.chat_id, str(update.effective_user.id), text)

    async def _on_voice(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle voice messages."""
        message = update.message
        if not message or not update.effective_user:
            return

        if self.voice is None:
            await send_text(context.bot, message.chat_id, "⚠️ Voice messages are not configured.")
            return

        user_id = str(update.effective_user.id)
        result = await self.voice.handle(context.bot, message, user_id)
        if result is not None and result.token is None:
            await self.process_text(context.bot, message.chat_id, user_id, result.text)

    async def _on_callback(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle the confirm / cancel buttons under a transcription."""
        query = update.callback_query
        if not query or not query.data:
            return
        if not self.is_allowed(query.from_user.id):
            await query.answer()
            return

        confirmed = query.data.startswith(CONFIRM_PREFIX)
        prefix = CONFIRM_PREFIX if confirmed else CANCEL_PREFIX
        token = query.data[len(prefix):]

        await query.answer()
        command = self.pending.consume(token)
        if command is None:
            await query.edit_message_text("⏱ This voice command has expired. Please send it again.")
            return

        user_id = str(query.from_user.id)
        if command.caller_id != user_id:
            logger.warning(f"Voice command {token} confirmed by {user_id}, not its caller")
            await query.edit_message_text("⚠️ This voice command belongs to someone else.")
            return

        if not confirmed:
            await query.edit_message_text("❌ Voice command cancelled.")
            return

        await query.edit_message_text(
            f"✅ Running: \"{_html.escape(command.text, quote=False)}\"",
            parse_mode=ParseMode.HTML,
        )
        chat_id = query.message.chat_id if query.message else query.from_user.id
        await self.process_text(context.bot, chat_id, user_id, command.text)

    async def _on_error(self, update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        logger.error(f"Telegram handler error: {context.error}")

    # -- typing indicator ----------------------------------------------------

    async def start_typing(self, bot: Bot, chat_id: int | str) -> None:
        """Start sending 'typing...' indicator for a chat."""
        key = str(chat_id)
        await self.stop_typing(key)
        self._typing_tasks[key] = asyncio.create_task(self._typing_loop(bot, key))

    async def stop_typing(self, chat_id: int | str) -> None:
        """Stop the typing indicator for a chat."""
        task = self._typing_tasks.pop(str(chat_id), None)
        if task and not task.done():
            task.cancel()

    async def _typing_loop(self, bot: Bot, chat_id: str) -> None:
        """Repeatedly send 'typing' action until cancelled."""
        try:
            while True:
                await bot.send_chat_action(chat_id=int(chat_id), action=ChatAction.TYPING)
                await asyncio.sleep(4)
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"Typing indicator stopped for {chat_id}: {e}")
