"""Telegram HTML templates for issue-tracker records."""

from __future__ import annotations

import html as _html
from datetime import datetime
from typing import Any, Literal

from agenthq.markup.convert import GLYPHS, convert


def _escape(text: str) -> str:
    return _html.escape(text, quote=False)


def _link(url: str, label: str) -> str:
    return f'<a href="{_html.escape(url, quote=True)}">{_escape(label)}</a>'


def _format_date(value: str) -> str:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return value


def format_task_details(task: dict[str, Any]) -> str:
    """Format a task (id, title, state, priority, description_html, url)."""
    parts = [f"<b>{GLYPHS['heading']} {_escape(task['id'])}: {_escape(task['title'])}</b>\n"]

    metadata = []
    if task.get("state"):
        metadata.append(f"State: <b>{_escape(task['state'])}</b>")
    if task.get("priority"):
        metadata.append(f"Priority: {_escape(task['priority'])}")
    if metadata:
        parts.append(" • ".join(metadata) + "\n")

    url = task.get("url")
    if task.get("description_html"):
        description = convert(task["description_html"], link_url=url, inject_glyphs=False)
        if description:
            parts.append(f"\n{description}\n")

    if url:
        parts.append(f"\n{GLYPHS['link']} {_link(url, 'View in Plane')}")

    return "".join(parts)


def format_comment(comment: dict[str, Any]) -> str:
    """Format a comment (author, comment_html, created_at)."""
    date = _format_date(comment.get("created_at", ""))
    body = convert(comment.get("comment_html", ""), inject_glyphs=False)
    return f"{GLYPHS['comment']} <b>{_escape(comment['author'])}</b> ({date})\n{body}"


def format_creation_confirmation(
    kind: Literal["github", "plane"],
    name: str,
    identifier: str | None = None,
    url: str | None = None,
) -> str:
    type_name = "GitHub repository" if kind == "github" else "Plane project"
    message = f"{GLYPHS['success']} Created {type_name}: <b>{_escape(name)}</b>"
    if identifier:
        message += f"\nIdentifier: <code>{_escape(identifier)}</code>"
    if url:
        site = "GitHub" if kind == "github" else "Plane"
        message += f"\n{GLYPHS['link']} {_link(url, f'View in {site}')}"
    return message
