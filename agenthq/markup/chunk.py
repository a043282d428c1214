"""Message splitting with Telegram HTML awareness."""

from __future__ import annotations

import re

TELEGRAM_MAX_LENGTH = 4096

# Tags Telegram renders; everything else has been stripped by the converter.
_TAG_RE = re.compile(r"<(/?)(b|i|code|pre|a)\b[^>]*>", re.IGNORECASE)
_TOKEN_RE = re.compile(r"<[^>]*>|&#?[a-zA-Z0-9]+;")
_PARTIAL_TOKEN_RE = re.compile(r"(?:<[^>]*|&#?[a-zA-Z0-9]*)$")

OpenTag = tuple[str, str]  # (tag name, literal opening tag)


class _TagLayout:
    """Token spans and open-tag stacks for the head of an HTML string."""

    def __init__(self, text: str, limit: int) -> None:
        self._tokens: list[tuple[int, int]] = []
        self._stacks: list[tuple[int, tuple[OpenTag, ...]]] = [(0, ())]
        stack: list[OpenTag] = []
        for m in _TOKEN_RE.finditer(text):
            if m.start() > limit:
                break
            self._tokens.append((m.start(), m.end()))
            tag = _TAG_RE.fullmatch(m.group(0))
            if not tag:
                continue
            name = tag.group(2).lower()
            if tag.group(1):
                # Close the innermost matching tag and anything opened inside it
                for idx in range(len(stack) - 1, -1, -1):
                    if stack[idx][0] == name:
                        del stack[idx:]
                        break
            else:
                stack.append((name, m.group(0)))
            self._stacks.append((m.end(), tuple(stack)))

    def inside_token(self, pos: int) -> bool:
        return any(start < pos < end for start, end in self._tokens)

    def open_tags(self, pos: int) -> tuple[OpenTag, ...]:
        current: tuple[OpenTag, ...] = ()
        for start, stack in self._stacks:
            if start > pos:
                break
            current = stack
        return current

    def is_safe(self, pos: int) -> bool:
        return not self.inside_token(pos) and not self.open_tags(pos)


def _closing(tags: tuple[OpenTag, ...]) -> str:
    return "".join(f"</{name}>" for name, _ in reversed(tags))


def _opening(tags: tuple[OpenTag, ...]) -> str:
    return "".join(literal for _, literal in tags)


def _find_boundary(text: str, max_len: int) -> int | None:
    """Return the preferred newline cut position, or None for a hard cut.

    A boundary only counts when it lies past the midpoint of the window, so
    chunks never shrink below half the limit just to land on a newline.
    """
    half = max_len // 2
    pos = text.rfind("\n\n", 0, max_len + 2)
    if pos > half:
        return pos
    pos = text.rfind("\n", 0, max_len + 1)
    if pos > half:
        return pos
    return None


def _split_plain(text: str, max_len: int) -> tuple[str, str]:
    pos = _find_boundary(text, max_len)
    if pos is None:
        return text[:max_len], text[max_len:]
    return text[:pos].rstrip(), text[pos:].lstrip()


def chunk_text(text: str, max_len: int = TELEGRAM_MAX_LENGTH) -> list[str]:
    """Split text into chunks of at most *max_len* characters.

    Split priority: paragraph boundary (\\n\\n) > newline (\\n) > hard cut.
    Whitespace around a newline cut is trimmed; hard cuts keep every
    character so the pieces concatenate back to the input.
    """
    if max_len <= 0:
        raise ValueError("max_len must be positive")
    if len(text) <= max_len:
        return [text]

    chunks: list[str] = []
    remaining = text
    while len(remaining) > max_len:
        head, remaining = _split_plain(remaining, max_len)
        if head:
            chunks.append(head)
    if remaining:
        chunks.append(remaining)
    return chunks or [""]


def _last_safe(
    text: str, layout: _TagLayout, needle: str, end: int, floor: int
) -> int | None:
    """Last position of *needle* before *end* that is safe to cut at, past *floor*."""
    pos = text.rfind(needle, 0, end)
    while pos > floor:
        if layout.is_safe(pos):
            return pos
        pos = text.rfind(needle, 0, pos)
    return None


def _reopen_cut(
    text: str, layout: _TagLayout, pos: int, max_len: int, skip: int = 0
) -> tuple[str, str] | None:
    if layout.inside_token(pos):
        return None
    tags = layout.open_tags(pos)
    closing, opening = _closing(tags), _opening(tags)
    # The reopened tags must not outgrow what was consumed
    if pos + len(closing) <= max_len and pos > len(opening):
        return text[:pos] + closing, opening + text[pos + skip:]
    return None


def split_html(text: str, max_len: int) -> tuple[str, str]:
    """Cut Telegram HTML into a head of at most *max_len* and the rest.

    The head never ends inside a tag or entity and never leaves a tag pair
    open. A safe paragraph or line boundary past the midpoint wins over a
    hard cut; after that come any safe newline and any safe position. When
    a single tag pair is longer than *max_len*, the open tags are closed in
    the head and reopened in the rest, preferably at a line break.
    """
    layout = _TagLayout(text, max_len + 2)
    half = max_len // 2

    for needle, end in (("\n\n", max_len + 2), ("\n", max_len + 1)):
        pos = _last_safe(text, layout, needle, end, half)
        if pos is not None:
            return text[:pos].rstrip(), text[pos:].lstrip()
    if layout.is_safe(max_len):
        return text[:max_len], text[max_len:]

    pos = _last_safe(text, layout, "\n", max_len + 1, 0)
    if pos is not None:
        return text[:pos].rstrip(), text[pos:].lstrip()

    for pos in range(max_len - 1, 0, -1):
        if layout.is_safe(pos):
            return text[:pos], text[pos:]

    # Inside an oversized pair: break at a line end (dropping the newline)
    for pos in range(max_len - 1, 0, -1):
        if text[pos] == "\n":
            cut = _reopen_cut(text, layout, pos, max_len, skip=1)
            if cut:
                return cut
    for pos in range(max_len - 1, 0, -1):
        cut = _reopen_cut(text, layout, pos, max_len)
        if cut:
            return cut

    return text[:max_len], text[max_len:]


def chunk_html(text: str, max_len: int = TELEGRAM_MAX_LENGTH) -> list[str]:
    """Split converted Telegram HTML without breaking its markup."""
    if max_len <= 0:
        raise ValueError("max_len must be positive")
    if len(text) <= max_len:
        return [text]

    chunks: list[str] = []
    remaining = text
    while len(remaining) > max_len:
        head, remaining = split_html(remaining, max_len)
        if head:
            chunks.append(head)
    if remaining:
        chunks.append(remaining)
    return chunks or [""]


def close_open_tags(html: str) -> str:
    """Drop a trailing partial tag or entity and close tags left open."""
    html = _PARTIAL_TOKEN_RE.sub("", html)
    layout = _TagLayout(html, len(html))
    return html + _closing(layout.open_tags(len(html)))
