"""Run the Agent HQ Telegram bot: ``python -m agenthq``."""

from __future__ import annotations

import asyncio
import sys

from loguru import logger

from agenthq.agent.base import load_agent
from agenthq.channels.telegram import TelegramChannel
from agenthq.config.schema import Config, load_config
from agenthq.voice.pending import PendingCommandStore
from agenthq.voice.transcribe import WhisperTranscriber


def build_channel(config: Config) -> TelegramChannel:
    agent = load_agent(config.agent.factory)
    pending = PendingCommandStore(
        ttl=config.voice.confirmation_ttl_s,
        sweep_interval=config.voice.sweep_interval_s,
    )
    transcriber = None
    if config.voice.enabled and config.voice.api_key:
        transcriber = WhisperTranscriber(
            api_key=config.voice.api_key,
            api_base=config.voice.api_base,
            model=config.voice.model,
        )
    return TelegramChannel(config, agent, pending, transcriber)


async def _run(config: Config) -> None:
    channel = build_channel(config)
    try:
        await channel.start()
    finally:
        await channel.stop()


def main() -> None:
    config = load_config()
    logger.remove()
    logger.add(sys.stderr, level=config.log_level.upper())

    if not config.agent.factory:
        logger.error("AGENTHQ_AGENT__FACTORY is not set (expected 'module:callable')")
        sys.exit(1)

    try:
        asyncio.run(_run(config))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
