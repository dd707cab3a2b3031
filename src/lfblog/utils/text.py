"""Text helpers for turning rendered HTML back into plain snippets."""

from __future__ import annotations

import html
import re

_TAG_RE = re.compile(r"<[^>]+>")
_RAW_BLOCK_RE = re.compile(r"<(script|style)\b[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)
_WS_RE = re.compile(r"\s+")


def strip_tags(markup: str) -> str:
    """Drop HTML tags (and script/style bodies), unescape entities and collapse whitespace."""
    text = _RAW_BLOCK_RE.sub(" ", markup)
    text = html.unescape(_TAG_RE.sub(" ", text))
    return _WS_RE.sub(" ", text).strip()


def extract_snippet(content: str, query: str, *, context: int = 60) -> str:
    """Return a short plain-text excerpt of ``content`` around ``query``.

    Falls back to the start of the text when the query only matched markup.
    """
    text = strip_tags(content)
    if not text:
        return ""

    pos = text.lower().find(query.lower()) if query else -1
    if pos < 0:
        snippet = text[: context * 2]
        return snippet + ("..." if len(text) > len(snippet) else "")

    start = max(pos - context, 0)
    end = min(pos + len(query) + context, len(text))
    snippet = text[start:end]
    if start > 0:
        snippet = "..." + snippet
    if end < len(text):
        snippet = snippet + "..."
    return snippet
