"""HTML to Telegram HTML converter.

Telegram's HTML parse mode supports a small tag subset:
  <b>bold</b>, <i>italic</i>, <code>inline code</code>, <pre>code block</pre>,
  <a href="url">link</a>

Issue descriptions and comments arrive as full HTML (headings, paragraphs,
lists, ``strong``/``em``). This module maps them onto the subset, escapes
everything else, adds a few status glyphs and truncates oversized output.
"""

from __future__ import annotations

import html as _html
import re
from html.parser import HTMLParser

from loguru import logger

from agenthq.markup.chunk import TELEGRAM_MAX_LENGTH, close_open_tags

TRUNCATION_BUFFER = 200  # Room for the truncation notice and closing tags
SAFE_LENGTH = TELEGRAM_MAX_LENGTH - TRUNCATION_BUFFER

GLYPHS = {
    "heading": "📋",
    "success": "✅",
    "warning": "⚠️",
    "comment": "💬",
    "link": "🔗",
}

_INLINE_TAGS = {
    "b": "b",
    "strong": "b",
    "i": "i",
    "em": "i",
    "code": "code",
    "pre": "pre",
}
_HEADINGS = {"h1", "h2", "h3", "h4", "h5", "h6"}
_LITERAL_TAGS = {"code", "pre"}

_BLANK_LINES_RE = re.compile(r"\n{3,}")
_ANY_TAG_RE = re.compile(r"<[^>]*>")
_SPLIT_TAGS_RE = re.compile(r"(<[^>]*>)")
_SUCCESS_RE = re.compile(r"\b(completed|done|success|passed)\b", re.IGNORECASE)
_WARNING_RE = re.compile(r"\b(error|warning|failed|blocked)\b", re.IGNORECASE)


def _escape(text: str) -> str:
    return _html.escape(text, quote=False)


def _escape_attr(value: str) -> str:
    return _html.escape(value, quote=True)


class _TelegramHTMLBuilder(HTMLParser):
    """Streams parsed HTML into Telegram-safe markup.

    Block elements (headings, paragraphs, list items) collect into their own
    buffer so their content can be trimmed and decorated when they close.
    Inline tags are tracked on a stack so the output is always balanced, even
    for mis-nested or unclosed input.
    """

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._buffers: list[list[str]] = [[]]
        self._blocks: list[str] = []
        self._floors: list[int] = []  # inline stack depth when each block opened
        self._lists: list[dict] = []
        self._inline: list[str] = []

    # -- helpers -------------------------------------------------------------

    def _emit(self, text: str) -> None:
        self._buffers[-1].append(text)

    def _open_block(self, tag: str) -> None:
        self._blocks.append(tag)
        self._floors.append(len(self._inline))
        self._buffers.append([])

    def _close_block(self) -> tuple[str, str]:
        tag = self._blocks.pop()
        # Inline tags opened inside the block must close inside it
        self._close_inline_to_depth(self._floors.pop())
        content = "".join(self._buffers.pop()).strip()
        return tag, content

    def _close_inline_to_depth(self, depth: int) -> None:
        while len(self._inline) > depth:
            self._emit(f"</{self._inline.pop()}>")

    def _current_floor(self) -> int:
        return self._floors[-1] if self._floors else 0

    # -- HTMLParser hooks ----------------------------------------------------

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in _HEADINGS or tag in ("p", "li"):
            self._open_block(tag)
        elif tag in ("ul", "ol"):
            self._lists.append({"ordered": tag == "ol", "index": 0, "depth": len(self._blocks)})
        elif tag == "br":
            self._emit("\n")
        elif tag in _INLINE_TAGS:
            name = _INLINE_TAGS[tag]
            self._inline.append(name)
            self._emit(f"<{name}>")
        elif tag == "a":
            href = dict(attrs).get("href")
            if href:
                self._inline.append("a")
                self._emit(f'<a href="{_escape_attr(href)}">')

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag == "br":
            self._emit("\n")

    def handle_endtag(self, tag: str) -> None:
        if tag in _HEADINGS or tag in ("p", "li"):
            if tag not in self._blocks:
                return
            while self._blocks[-1] != tag:
                self._finish_block()
            self._finish_block()
        elif tag in ("ul", "ol"):
            if self._lists:
                self._lists.pop()
                self._emit("\n")
        elif tag in _INLINE_TAGS or tag == "a":
            name = _INLINE_TAGS.get(tag, tag)
            if name in self._inline[self._current_floor():]:
                while self._inline[-1] != name:
                    self._emit(f"</{self._inline.pop()}>")
                self._emit(f"</{self._inline.pop()}>")

    def handle_data(self, data: str) -> None:
        # Whitespace between list items is source formatting, not content
        if self._lists and self._lists[-1]["depth"] == len(self._blocks) and not data.strip():
            return
        self._emit(_escape(data))

    # -- block output --------------------------------------------------------

    def _finish_block(self) -> None:
        tag, content = self._close_block()
        if tag in _HEADINGS:
            self._emit(f"<b>{GLYPHS['heading']} {content}</b>\n\n")
        elif tag == "p":
            self._emit(f"{content}\n\n")
        elif tag == "li":
            if self._lists:
                frame = self._lists[-1]
                frame["index"] += 1
                prefix = f"{frame['index']}." if frame["ordered"] else "•"
            else:
                prefix = "•"
            self._emit(f"{prefix} {content}\n")

    def result(self) -> str:
        self.close()
        while self._blocks:
            self._finish_block()
        self._close_inline_to_depth(0)
        return "".join(self._buffers[0])


def _html_to_telegram(source: str) -> str:
    builder = _TelegramHTMLBuilder()
    builder.feed(source)
    result = builder.result()
    result = _BLANK_LINES_RE.sub("\n\n", result)
    # Only trim leading whitespace, keep intentional trailing newlines
    return result.lstrip()


def add_glyphs(text: str) -> str:
    """Prefix status words with a success or warning glyph.

    Only text between tags is touched; tag attributes and the contents of
    ``code``/``pre`` blocks are left alone.
    """
    parts = _SPLIT_TAGS_RE.split(text)
    literal_depth = 0
    for idx, part in enumerate(parts):
        if idx % 2:
            m = re.match(r"<(/?)(code|pre)\b", part, re.IGNORECASE)
            if m:
                literal_depth += -1 if m.group(1) else 1
                literal_depth = max(literal_depth, 0)
            continue
        if literal_depth or not part:
            continue
        part = _SUCCESS_RE.sub(lambda w: f"{GLYPHS['success']} {w.group(0)}", part)
        part = _WARNING_RE.sub(lambda w: f"{GLYPHS['warning']} {w.group(0)}", part)
        parts[idx] = part
    return "".join(parts)


def truncate(text: str, limit: int = SAFE_LENGTH, link_url: str | None = None) -> str:
    """Cut *text* down to *limit* and append a truncation notice.

    Prefers the last paragraph boundary past the middle of the limit, else
    cuts exactly at the limit. The cut never leaves a broken tag behind.
    """
    if len(text) <= limit:
        return text

    cut = text.rfind("\n\n", 0, limit)
    if cut <= limit // 2:
        cut = limit
    truncated = close_open_tags(text[:cut])

    notice = "\n\n... (content truncated)"
    if link_url:
        notice += (
            f"\n\n{GLYPHS['link']} "
            f'<a href="{_escape_attr(link_url)}">Read full details in Plane</a>'
        )
    return truncated + notice


def _plain_fallback(source: str) -> str:
    text = _html.unescape(_ANY_TAG_RE.sub("", source))
    return _BLANK_LINES_RE.sub("\n\n", _escape(text)).strip()


def convert(
    source: str,
    link_url: str | None = None,
    inject_glyphs: bool = True,
    limit: int | None = SAFE_LENGTH,
) -> str:
    """Convert HTML into Telegram HTML ready for ``parse_mode="HTML"``.

    Args:
        source: HTML from the issue tracker or rendered agent markdown.
        link_url: Link offered in the truncation notice, if any.
        inject_glyphs: Prefix status words with ✅ / ⚠️.
        limit: Truncate beyond this many characters; ``None`` disables
            truncation (the caller chunks instead).

    Never raises. Malformed markup degrades to escaped plain text.
    """
    if not source or not source.strip():
        return ""

    try:
        formatted = _html_to_telegram(source)
        if inject_glyphs:
            formatted = add_glyphs(formatted)
    except Exception as e:
        logger.warning(f"HTML conversion failed, falling back to plain text: {e}")
        formatted = _plain_fallback(source)

    if not formatted.strip():
        return ""
    if limit is not None:
        formatted = truncate(formatted, limit, link_url)
    return formatted
