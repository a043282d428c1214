"""In-memory store for voice commands awaiting confirmation."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable
from uuid import uuid4

from loguru import logger

DEFAULT_TTL_S = 5 * 60
DEFAULT_SWEEP_INTERVAL_S = 60


@dataclass(frozen=True)
class PendingCommand:
    """A transcribed voice command waiting for the user to confirm it."""

    token: str
    caller_id: str
    text: str
    created_at: float


class PendingCommandStore:
    """Pending commands keyed by an opaque token, expiring after *ttl* seconds.

    All operations are synchronous, so none of them can interleave with
    another coroutine on the event loop: a token is consumed at most once.
    Construct one per process and hand it to the handlers that need it.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_S,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._commands: dict[str, PendingCommand] = {}
        self._sweep_task: asyncio.Task | None = None

    def __len__(self) -> int:
        return len(self._commands)

    def store(self, caller_id: str, text: str) -> str:
        """Store a command and return its token."""
        token = uuid4().hex
        self._commands[token] = PendingCommand(
            token=token, caller_id=caller_id, text=text, created_at=self._clock()
        )
        return token

    def consume(self, token: str) -> PendingCommand | None:
        """Remove and return the command for *token*.

        Unknown, already consumed and expired tokens all return None.
        """
        command = self._commands.pop(token, None)
        if command is None or self._is_expired(command, self._clock()):
            return None
        return command

    def sweep_expired(self) -> int:
        """Drop every expired command and return how many were removed."""
        now = self._clock()
        expired = [t for t, cmd in list(self._commands.items()) if self._is_expired(cmd, now)]
        for token in expired:
            self._commands.pop(token, None)
        if expired:
            logger.debug(f"Swept {len(expired)} expired voice command(s)")
        return len(expired)

    def _is_expired(self, command: PendingCommand, now: float) -> bool:
        return now - command.created_at > self.ttl

    # -- periodic sweep ------------------------------------------------------

    def start(self) -> None:
        """Start the background sweep loop on the running event loop."""
        if self._sweep_task and not self._sweep_task.done():
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        task, self._sweep_task = self._sweep_task, None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.sweep_expired()
