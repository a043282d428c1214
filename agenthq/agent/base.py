"""Boundary to the conversational agent runtime."""

from __future__ import annotations

import importlib
from dataclasses import dataclass, field
from typing import Any, Protocol

from agenthq.channels.progress import NullProgressTracker, ProgressReporter


@dataclass
class AgentSession:
    """Memory keys and progress reporter for one agent call."""

    thread: str  # chat id
    resource: str  # user id
    progress: ProgressReporter = field(default_factory=NullProgressTracker)


@dataclass
class AgentReply:
    text: str


class Agent(Protocol):
    """Anything that turns a user message into a reply.

    The tool-calling runtime (issue tracker, source hosting, task runner)
    lives behind this interface; the bot only reads the final text.
    """

    async def generate(self, text: str, session: AgentSession) -> AgentReply: ...


def load_agent(factory: str, **kwargs: Any) -> Agent:
    """Build an agent from a ``"package.module:callable"`` import path."""
    module_name, sep, attr = factory.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Agent factory must look like 'module:callable', got {factory!r}")
    module = importlib.import_module(module_name)
    return getattr(module, attr)(**kwargs)
