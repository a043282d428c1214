"""Agent boundary module."""

from agenthq.agent.base import Agent, AgentReply, AgentSession, load_agent

__all__ = [
    "Agent",
    "AgentReply",
    "AgentSession",
    "load_agent",
]
