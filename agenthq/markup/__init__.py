"""Telegram markup conversion and message splitting."""

from agenthq.markup.chunk import TELEGRAM_MAX_LENGTH, chunk_html, chunk_text
from agenthq.markup.convert import SAFE_LENGTH, convert
from agenthq.markup.markdown import markdown_to_html, render_reply
from agenthq.markup.templates import (
    format_comment,
    format_creation_confirmation,
    format_task_details,
)

__all__ = [
    "TELEGRAM_MAX_LENGTH",
    "SAFE_LENGTH",
    "chunk_html",
    "chunk_text",
    "convert",
    "format_comment",
    "format_creation_confirmation",
    "format_task_details",
    "markdown_to_html",
    "render_reply",
]
