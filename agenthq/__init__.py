"""Agent HQ: a Telegram front end for an issue-tracking agent."""

__version__ = "0.1.0"
