"""Configuration module."""

from agenthq.config.schema import (
    AgentConfig,
    Config,
    ProgressConfig,
    TelegramConfig,
    VoiceConfig,
    load_config,
)

__all__ = [
    "AgentConfig",
    "Config",
    "ProgressConfig",
    "TelegramConfig",
    "VoiceConfig",
    "load_config",
]
