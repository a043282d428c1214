"""Speech-to-text via an OpenAI-compatible Whisper endpoint."""

from __future__ import annotations

from dataclasses import dataclass

import httpx
from loguru import logger


class TranscriptionError(Exception):
    """Raised when the transcription service rejects a request."""


@dataclass
class Transcription:
    text: str
    duration: int  # seconds


class WhisperTranscriber:
    """
    Voice transcription using the ``/audio/transcriptions`` API.

    Works with OpenAI and with compatible providers (Groq) by changing
    *api_base* and *model*.
    """

    def __init__(
        self,
        api_key: str,
        api_base: str = "https://api.openai.com/v1",
        model: str = "whisper-1",
        timeout: float = 60.0,
    ):
        self.api_key = api_key
        self.api_url = f"{api_base.rstrip('/')}/audio/transcriptions"
        self.model = model
        self.timeout = timeout

    async def transcribe(self, audio: bytes, filename: str = "voice.ogg") -> Transcription:
        """Transcribe OGG/Opus audio bytes as sent by Telegram voice notes."""
        files = {"file": (filename, audio, "audio/ogg")}
        data = {"model": self.model, "response_format": "verbose_json"}

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                self.api_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                files=files,
                data=data,
            )

        if response.status_code != 200:
            raise TranscriptionError(
                f"Whisper API error: {response.status_code} {response.text[:200]}"
            )

        payload = response.json()
        result = Transcription(
            text=(payload.get("text") or "").strip(),
            duration=round(payload.get("duration") or 0),
        )
        logger.debug(f"Transcribed {len(audio)} bytes into {len(result.text)} chars")
        return result
