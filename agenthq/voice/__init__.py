"""Voice transcription and pending confirmations."""

from agenthq.voice.handler import VoiceHandler, VoiceResult
from agenthq.voice.pending import PendingCommand, PendingCommandStore
from agenthq.voice.transcribe import Transcription, TranscriptionError, WhisperTranscriber

__all__ = [
    "PendingCommand",
    "PendingCommandStore",
    "Transcription",
    "TranscriptionError",
    "VoiceHandler",
    "VoiceResult",
    "WhisperTranscriber",
]
