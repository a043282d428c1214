"""Progress step types and message rendering."""

from __future__ import annotations

import html as _html
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable


class StepStatus(str, Enum):
    """Status of a progress step."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ERROR = "error"


STATUS_GLYPHS = {
    StepStatus.PENDING: "⏳",
    StepStatus.IN_PROGRESS: "🔄",
    StepStatus.COMPLETED: "✅",
    StepStatus.ERROR: "❌",
}

PLACEHOLDER = "⏳ Processing your request..."


@dataclass
class ProgressStep:
    """One named step of a long-running request."""

    name: str
    status: StepStatus
    details: str | None = None
    timestamp: datetime = field(default_factory=datetime.now)


def format_duration(seconds: float) -> str:
    """Format a duration as ``Ns`` below a minute, else ``Nm Ss``."""
    total = max(int(seconds), 0)
    if total < 60:
        return f"{total}s"
    return f"{total // 60}m {total % 60}s"


def format_progress_message(steps: Iterable[ProgressStep], elapsed: float) -> str:
    lines = []
    for step in steps:
        line = f"{STATUS_GLYPHS[step.status]} {_html.escape(step.name, quote=False)}"
        if step.details:
            line += f" <i>({_html.escape(step.details, quote=False)})</i>"
        lines.append(line)

    if not lines:
        return PLACEHOLDER

    lines.append("")
    lines.append(f"<i>Elapsed: {format_duration(elapsed)}</i>")
    return "\n".join(lines)


def format_final_message(message: str) -> str:
    return message


def format_error_message(error: str) -> str:
    return f"❌ <b>Error</b>\n\n{error}"
