"""Markdown front end for agent replies.

Agent replies are LLM markdown, sometimes with inline Telegram HTML mixed in.
Rendering them to HTML first lets :func:`agenthq.markup.convert.convert`
handle every reply the same way as issue-tracker HTML.
"""

from __future__ import annotations

from markdown_it import MarkdownIt

from agenthq.markup.convert import convert

_parser = MarkdownIt("commonmark", {"typographer": False, "html": True})
_parser.enable("strikethrough")


def markdown_to_html(md: str) -> str:
    """Render markdown to HTML, passing inline HTML through untouched."""
    if not md:
        return ""
    return _parser.render(md)


def render_reply(text: str) -> str:
    """Turn an agent reply into Telegram HTML, untruncated.

    Replies are split by the chunker afterwards, so no truncation or status
    glyphs are applied here.
    """
    return convert(markdown_to_html(text), inject_glyphs=False, limit=None)
