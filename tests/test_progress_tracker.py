"""Tests for agenthq.channels.progress — live progress message."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from telegram.constants import ParseMode
from telegram.error import BadRequest, NetworkError

from agenthq.channels.progress import (
    MAX_STEPS,
    NullProgressTracker,
    ProgressTracker,
    StepLog,
    create_progress_tracker,
)
from agenthq.channels.progress_format import PLACEHOLDER, ProgressStep, StepStatus
from agenthq.config.schema import ProgressConfig


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _bot(message_id: int = 42) -> MagicMock:
    bot = MagicMock()
    bot.send_message = AsyncMock(return_value=SimpleNamespace(message_id=message_id))
    bot.edit_message_text = AsyncMock()
    return bot


async def _drain() -> None:
    for _ in range(3):
        await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# StepLog
# ---------------------------------------------------------------------------

class TestStepLog:
    def test_new_steps_append(self):
        log = StepLog()
        log.upsert(ProgressStep("a", StepStatus.PENDING))
        log.upsert(ProgressStep("b", StepStatus.PENDING))
        assert [s.name for s in log] == ["a", "b"]

    def test_update_keeps_position(self):
        log = StepLog()
        for name in ("a", "b", "c"):
            log.upsert(ProgressStep(name, StepStatus.IN_PROGRESS))
        log.upsert(ProgressStep("a", StepStatus.COMPLETED))
        assert [s.name for s in log] == ["a", "b", "c"]
        assert next(iter(log)).status is StepStatus.COMPLETED

    def test_evicts_oldest_inserted(self):
        log = StepLog()
        for i in range(MAX_STEPS + 2):
            log.upsert(ProgressStep(f"s{i}", StepStatus.PENDING))
        assert len(log) == MAX_STEPS
        assert "s0" not in log and "s1" not in log
        assert [s.name for s in log][0] == "s2"

    def test_update_does_not_evict(self):
        log = StepLog(max_steps=2)
        log.upsert(ProgressStep("a", StepStatus.PENDING))
        log.upsert(ProgressStep("b", StepStatus.PENDING))
        log.upsert(ProgressStep("a", StepStatus.COMPLETED))
        assert [s.name for s in log] == ["a", "b"]

    def test_eviction_ignores_recent_update(self):
        """Eviction follows insertion order even if the oldest step was just updated."""
        log = StepLog(max_steps=2)
        log.upsert(ProgressStep("a", StepStatus.PENDING))
        log.upsert(ProgressStep("b", StepStatus.PENDING))
        log.upsert(ProgressStep("a", StepStatus.COMPLETED))
        log.upsert(ProgressStep("c", StepStatus.PENDING))
        assert [s.name for s in log] == ["b", "c"]


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

class TestStart:
    async def test_sends_placeholder(self):
        bot = _bot()
        tracker = ProgressTracker(bot, 7, clock=FakeClock())

        await tracker.start()

        bot.send_message.assert_called_once()
        kwargs = bot.send_message.call_args.kwargs
        assert kwargs["text"] == PLACEHOLDER
        assert kwargs["parse_mode"] == ParseMode.HTML
        assert tracker.message_id == 42

    async def test_start_failure_is_absorbed(self):
        bot = _bot()
        bot.send_message.side_effect = [NetworkError("down"), SimpleNamespace(message_id=7)]
        tracker = ProgressTracker(bot, 7, clock=FakeClock())

        await tracker.start()
        assert tracker.message_id is None

        await tracker.update("Step", "in_progress")
        await _drain()
        bot.edit_message_text.assert_not_called()

        await tracker.complete("done")
        assert bot.send_message.call_count == 2
        assert bot.send_message.call_args.kwargs["text"] == "done"


class TestUpdate:
    async def test_rate_limited_to_one_edit(self):
        clock = FakeClock()
        bot = _bot()
        tracker = ProgressTracker(bot, 7, update_interval_ms=2000, clock=clock)
        await tracker.start()

        await tracker.update("Fetch", "in_progress")
        await tracker.update("Fetch", "completed")
        await _drain()
        assert bot.edit_message_text.call_count == 0

        clock.now = 2.5
        await tracker.update("Parse", "in_progress")
        await tracker.update("Parse", "completed")
        await tracker.update("Write", "in_progress")
        await _drain()
        assert bot.edit_message_text.call_count == 1

    async def test_updates_recorded_even_when_not_rendered(self):
        tracker = ProgressTracker(_bot(), 7, clock=FakeClock())
        await tracker.start()
        await tracker.update("Fetch", "in_progress", "page 1")
        await tracker.update("Fetch", StepStatus.COMPLETED)
        steps = tracker.steps
        assert len(steps) == 1
        assert steps[0].status is StepStatus.COMPLETED

    async def test_edit_uses_rendered_steps(self):
        clock = FakeClock()
        bot = _bot()
        tracker = ProgressTracker(bot, 7, update_interval_ms=1000, clock=clock)
        await tracker.start()

        clock.now = 5
        await tracker.update("Search tasks", "in_progress", "Verdandi")
        await _drain()

        kwargs = bot.edit_message_text.call_args.kwargs
        assert kwargs["message_id"] == 42
        assert kwargs["chat_id"] == 7
        assert "🔄 Search tasks <i>(Verdandi)</i>" in kwargs["text"]
        assert "<i>Elapsed: 5s</i>" in kwargs["text"]

    async def test_edit_failure_posts_new_message(self):
        clock = FakeClock()
        bot = _bot()
        bot.send_message.side_effect = [
            SimpleNamespace(message_id=42),
            SimpleNamespace(message_id=43),
        ]
        bot.edit_message_text.side_effect = BadRequest("Message to edit not found")
        tracker = ProgressTracker(bot, 7, clock=clock)
        await tracker.start()

        clock.now = 10
        await tracker.update("Step", "in_progress")
        await _drain()

        assert tracker.message_id == 43
        assert bot.send_message.call_count == 2

    async def test_not_modified_is_ignored(self):
        clock = FakeClock()
        bot = _bot()
        bot.edit_message_text.side_effect = BadRequest("Message is not modified")
        tracker = ProgressTracker(bot, 7, clock=clock)
        await tracker.start()

        clock.now = 10
        await tracker.update("Step", "in_progress")
        await _drain()

        assert bot.send_message.call_count == 1
        assert tracker.message_id == 42

    async def test_update_never_raises(self):
        clock = FakeClock()
        bot = _bot()
        bot.edit_message_text.side_effect = NetworkError("unreachable")
        bot.send_message.side_effect = [SimpleNamespace(message_id=42), NetworkError("unreachable")]
        tracker = ProgressTracker(bot, 7, clock=clock)
        await tracker.start()

        clock.now = 10
        await tracker.update("Step", "in_progress")
        await _drain()
        assert tracker.message_id == 42


class TestTermination:
    async def test_complete_edits_placeholder(self):
        bot = _bot()
        tracker = ProgressTracker(bot, 7, clock=FakeClock())
        await tracker.start()

        await tracker.complete("All good")

        bot.edit_message_text.assert_called_once()
        assert bot.edit_message_text.call_args.kwargs["text"] == "All good"
        assert tracker.is_terminal

    async def test_complete_twice_renders_once(self):
        bot = _bot()
        tracker = ProgressTracker(bot, 7, clock=FakeClock())
        await tracker.start()

        await tracker.complete("first")
        await tracker.complete("second")
        await tracker.error("third")

        bot.edit_message_text.assert_called_once()
        assert bot.edit_message_text.call_args.kwargs["text"] == "first"

    async def test_complete_bypasses_rate_limit(self):
        clock = FakeClock()
        bot = _bot()
        tracker = ProgressTracker(bot, 7, update_interval_ms=60_000, clock=clock)
        await tracker.start()
        await tracker.update("Step", "in_progress")

        await tracker.complete("final")

        bot.edit_message_text.assert_called_once()

    async def test_updates_after_complete_ignored(self):
        clock = FakeClock()
        bot = _bot()
        tracker = ProgressTracker(bot, 7, clock=clock)
        await tracker.start()
        await tracker.update("Before", "completed")
        await tracker.complete("final")

        clock.now = 100
        await tracker.update("After", "in_progress")
        await _drain()

        assert [s.name for s in tracker.steps] == ["Before"]
        assert bot.edit_message_text.call_count == 1

    async def test_complete_without_placeholder_sends_message(self):
        bot = _bot()
        tracker = ProgressTracker(bot, 7, clock=FakeClock())

        await tracker.complete("result")

        bot.send_message.assert_called_once()
        assert bot.send_message.call_args.kwargs["text"] == "result"
        bot.edit_message_text.assert_not_called()

    async def test_complete_edit_failure_falls_back_to_send(self):
        bot = _bot()
        bot.edit_message_text.side_effect = BadRequest("Message can't be edited")
        tracker = ProgressTracker(bot, 7, clock=FakeClock())
        await tracker.start()

        await tracker.complete("result")

        assert bot.send_message.call_count == 2
        assert bot.send_message.call_args.kwargs["text"] == "result"

    async def test_error_wraps_with_header(self):
        bot = _bot()
        tracker = ProgressTracker(bot, 7, clock=FakeClock())
        await tracker.start()

        await tracker.error("boom")

        assert bot.edit_message_text.call_args.kwargs["text"] == "❌ <b>Error</b>\n\nboom"

    async def test_terminal_failures_absorbed(self):
        bot = _bot()
        bot.edit_message_text.side_effect = NetworkError("down")
        tracker = ProgressTracker(bot, 7, clock=FakeClock())
        await tracker.start()
        bot.send_message.side_effect = NetworkError("down")

        await tracker.error("boom")

        assert tracker.is_terminal

    async def test_complete_cancels_inflight_edit(self):
        clock = FakeClock()
        bot = _bot()
        gate = asyncio.Event()
        texts: list[str] = []

        async def edit(**kwargs):
            texts.append(kwargs["text"])
            if len(texts) == 1:
                await gate.wait()

        bot.edit_message_text = AsyncMock(side_effect=edit)
        tracker = ProgressTracker(bot, 7, clock=clock)
        await tracker.start()

        clock.now = 10
        await tracker.update("Slow", "in_progress")
        await _drain()
        assert len(texts) == 1

        await tracker.complete("done")
        await _drain()

        assert texts[-1] == "done"
        assert len(texts) == 2


# ---------------------------------------------------------------------------
# Disabled progress
# ---------------------------------------------------------------------------

class TestDisabled:
    async def test_factory_returns_null_tracker(self):
        tracker = create_progress_tracker(_bot(), 7, ProgressConfig(enabled=False))
        assert isinstance(tracker, NullProgressTracker)

    async def test_factory_returns_real_tracker(self):
        tracker = create_progress_tracker(_bot(), 7, ProgressConfig(update_interval_ms=500))
        assert isinstance(tracker, ProgressTracker)
        assert tracker.update_interval == 0.5

    async def test_null_tracker_posts_no_progress(self):
        bot = _bot()
        tracker = create_progress_tracker(bot, 7, ProgressConfig(enabled=False))

        await tracker.start()
        await tracker.update("Step", "in_progress")

        bot.send_message.assert_not_called()
        bot.edit_message_text.assert_not_called()
        assert tracker.steps == []

    async def test_null_tracker_delivers_final_once(self):
        bot = _bot()
        tracker = create_progress_tracker(bot, 7, ProgressConfig(enabled=False))

        await tracker.complete("answer")
        await tracker.complete("again")

        bot.send_message.assert_called_once()
        assert bot.send_message.call_args.kwargs["text"] == "answer"

    async def test_unbound_null_tracker_is_inert(self):
        tracker = NullProgressTracker()
        await tracker.start()
        await tracker.update("x", "pending")
        await tracker.complete("done")
        await tracker.error("err")
        assert tracker.is_terminal
