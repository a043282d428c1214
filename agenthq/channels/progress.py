"""Live progress message for in-flight requests.

A tracker posts a placeholder message, edits it in place as steps change
(at most once per update interval), and finally replaces it with the result
or an error. Progress reporting must never break the request it reports on,
so every Telegram failure here is logged and absorbed.
"""

from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from typing import Callable, Coroutine, Iterator, Protocol

from loguru import logger
from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import BadRequest, TelegramError

from agenthq.channels.delivery import send_text
from agenthq.channels.progress_format import (
    PLACEHOLDER,
    ProgressStep,
    StepStatus,
    format_error_message,
    format_final_message,
    format_progress_message,
)
from agenthq.config.schema import ProgressConfig

MAX_STEPS = 10


class ProgressReporter(Protocol):
    """What request handlers (and the agent) see of a progress tracker."""

    async def start(self) -> None: ...

    async def update(
        self, step: str, status: StepStatus | str, details: str | None = None
    ) -> None: ...

    async def complete(self, final_message: str) -> None: ...

    async def error(self, error_message: str) -> None: ...


class StepLog:
    """Ordered steps keyed by name, keeping only the most recent *max_steps*.

    Updating a known step keeps its position; a new step is appended and the
    oldest inserted step is evicted once the log is full.
    """

    def __init__(self, max_steps: int = MAX_STEPS) -> None:
        self.max_steps = max_steps
        self._steps: OrderedDict[str, ProgressStep] = OrderedDict()

    def upsert(self, step: ProgressStep) -> None:
        if step.name in self._steps:
            self._steps[step.name] = step
            return
        self._steps[step.name] = step
        while len(self._steps) > self.max_steps:
            self._steps.popitem(last=False)

    def __iter__(self) -> Iterator[ProgressStep]:
        return iter(self._steps.values())

    def __len__(self) -> int:
        return len(self._steps)

    def __contains__(self, name: object) -> bool:
        return name in self._steps


def _is_not_modified(err: Exception) -> bool:
    return isinstance(err, BadRequest) and "message is not modified" in str(err).lower()


class ProgressTracker:
    """Per-request progress message: idle -> active -> terminal."""

    def __init__(
        self,
        bot: Bot,
        chat_id: int | str,
        update_interval_ms: int = 2000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.bot = bot
        self.chat_id = chat_id
        self.update_interval = update_interval_ms / 1000
        self._clock = clock
        self._message_id: int | None = None
        self._steps = StepLog()
        self._started_at = clock()
        self._last_edit: float | None = None
        self._terminal = False
        self._tasks: set[asyncio.Task] = set()

    @property
    def message_id(self) -> int | None:
        return self._message_id

    @property
    def is_terminal(self) -> bool:
        return self._terminal

    @property
    def steps(self) -> list[ProgressStep]:
        return list(self._steps)

    def render(self) -> str:
        return format_progress_message(self._steps, self._clock() - self._started_at)

    async def start(self) -> None:
        """Post the placeholder message."""
        if self._terminal or self._message_id is not None:
            return
        try:
            msg = await send_text(self.bot, self.chat_id, PLACEHOLDER)
        except Exception as e:
            logger.warning(f"Failed to send initial progress message: {e}")
            return
        self._message_id = msg.message_id
        self._last_edit = self._clock()

    async def update(
        self, step: str, status: StepStatus | str, details: str | None = None
    ) -> None:
        """Record a step and schedule a rate-limited edit without waiting for it."""
        if self._terminal:
            return

        self._steps.upsert(ProgressStep(name=step, status=StepStatus(status), details=details))

        if self._message_id is None:
            return
        now = self._clock()
        if self._last_edit is not None and now - self._last_edit < self.update_interval:
            logger.debug(f"Progress edit for {self.chat_id} skipped (rate limited)")
            return
        self._last_edit = now
        self._spawn(self._edit(self.render()))

    async def complete(self, final_message: str) -> None:
        """Replace the progress message with the final result."""
        await self._finish(format_final_message(final_message), "final")

    async def error(self, error_message: str) -> None:
        """Replace the progress message with an error."""
        await self._finish(format_error_message(error_message), "error")

    # -- internals -----------------------------------------------------------

    def _spawn(self, coro: Coroutine) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"Progress update failed: {exc}")

    async def _edit_message(self, text: str) -> None:
        await self.bot.edit_message_text(
            text=text,
            chat_id=self.chat_id,
            message_id=self._message_id,
            parse_mode=ParseMode.HTML,
        )

    async def _edit(self, text: str) -> None:
        if self._message_id is None or self._terminal:
            return
        try:
            await self._edit_message(text)
            return
        except TelegramError as e:
            if _is_not_modified(e):
                return
            # Message too old or deleted: continue in a fresh message
            logger.warning(f"Failed to edit progress message: {e}")

        try:
            msg = await send_text(self.bot, self.chat_id, text)
        except Exception as e:
            logger.warning(f"Failed to send new progress message: {e}")
            return
        self._message_id = msg.message_id

    async def _finish(self, text: str, kind: str) -> None:
        if self._terminal:
            return
        self._terminal = True

        # A late progress edit must not overwrite the final render
        for task in list(self._tasks):
            task.cancel()

        if self._message_id is not None:
            try:
                await self._edit_message(text)
                return
            except TelegramError as e:
                if _is_not_modified(e):
                    return
                logger.warning(f"Failed to edit {kind} message: {e}")

        try:
            await send_text(self.bot, self.chat_id, text)
        except Exception as e:
            logger.error(f"Failed to send {kind} message: {e}")


class NullProgressTracker:
    """Tracker used when progress feedback is disabled.

    ``start`` and ``update`` do nothing. Without a placeholder to replace,
    the terminal message goes out as a new message, exactly as it would for
    a real tracker whose placeholder could not be sent. So ``complete`` and
    ``error`` are not side-effect free: the channel hands the first reply
    chunk to ``complete``, and a silent tracker would drop it. Constructed
    without a bot, every method is a no-op.
    """

    message_id = None

    def __init__(self, bot: Bot | None = None, chat_id: int | str | None = None) -> None:
        self.bot = bot
        self.chat_id = chat_id
        self._terminal = False

    @property
    def is_terminal(self) -> bool:
        return self._terminal

    @property
    def steps(self) -> list[ProgressStep]:
        return []

    async def start(self) -> None:
        return None

    async def update(
        self, step: str, status: StepStatus | str, details: str | None = None
    ) -> None:
        return None

    async def complete(self, final_message: str) -> None:
        await self._finish(format_final_message(final_message), "final")

    async def error(self, error_message: str) -> None:
        await self._finish(format_error_message(error_message), "error")

    async def _finish(self, text: str, kind: str) -> None:
        if self._terminal:
            return
        self._terminal = True
        if self.bot is None:
            return
        try:
            await send_text(self.bot, self.chat_id, text)
        except Exception as e:
            logger.error(f"Failed to send {kind} message: {e}")


def create_progress_tracker(
    bot: Bot,
    chat_id: int | str,
    config: ProgressConfig,
    clock: Callable[[], float] = time.monotonic,
) -> ProgressTracker | NullProgressTracker:
    if not config.enabled:
        return NullProgressTracker(bot, chat_id)
    return ProgressTracker(bot, chat_id, config.update_interval_ms, clock=clock)
