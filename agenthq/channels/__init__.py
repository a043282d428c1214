"""Outbound delivery and progress reporting for chat channels."""

from agenthq.channels.delivery import DeliveryError, is_markup_parse_error, send_text
from agenthq.channels.progress import (
    NullProgressTracker,
    ProgressReporter,
    ProgressTracker,
    StepLog,
    create_progress_tracker,
)
from agenthq.channels.progress_format import ProgressStep, StepStatus

__all__ = [
    "DeliveryError",
    "NullProgressTracker",
    "ProgressReporter",
    "ProgressStep",
    "ProgressTracker",
    "StepLog",
    "StepStatus",
    "create_progress_tracker",
    "is_markup_parse_error",
    "send_text",
]
