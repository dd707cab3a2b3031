"""Frontmatter and markdown parsing.

Documents may start with a YAML block delimited by ``---`` lines. The rest of
the document is converted to HTML with Python-Markdown.
"""

from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import markdown
import yaml

from lfblog.errors import ParseError
from lfblog.utils.files import read_bytes
from lfblog.utils.text import strip_tags

FRONTMATTER_DELIMITER = "---"
MARKDOWN_EXTENSIONS = ["extra", "sane_lists"]

_H1_RE = re.compile(r"<h1[^>]*>(.*?)</h1>", re.IGNORECASE | re.DOTALL)
_KNOWN_KEYS = ("title", "date", "time", "author", "tags", "description")


def _as_text(value: Any) -> Optional[str]:
    # YAML turns bare dates into date/datetime objects; keep them as strings.
    if value is None:
        return None
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    return str(value)


def _as_tags(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(tag) for tag in value if tag is not None]
    return [str(value)]


@dataclass(slots=True)
class Frontmatter:
    """Metadata block of a markdown document."""

    title: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    author: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    description: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Frontmatter":
        return cls(
            title=_as_text(data.get("title")),
            date=_as_text(data.get("date")),
            time=_as_text(data.get("time")),
            author=_as_text(data.get("author")),
            tags=_as_tags(data.get("tags")),
            description=_as_text(data.get("description")),
            extra={str(k): v for k, v in data.items() if k not in _KNOWN_KEYS},
        )


def parse_date(value: str) -> Optional[dt.datetime]:
    """Parse an RFC3339 timestamp or a bare ``YYYY-MM-DD`` date.

    RFC3339 values are converted to naive UTC. Anything else yields ``None``.
    """
    value = value.strip()
    if "T" in value.upper() or " " in value:
        try:
            parsed = dt.datetime.fromisoformat(value)
        except ValueError:
            parsed = None
        if parsed is not None and parsed.tzinfo is not None:
            return parsed.astimezone(dt.timezone.utc).replace(tzinfo=None)
    try:
        return dt.datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return None


@dataclass(slots=True)
class ParsedMarkdown:
    frontmatter: Frontmatter
    html_content: str
    raw_content: str

    def get_title(self) -> str:
        if self.frontmatter.title is not None:
            return self.frontmatter.title

        for match in _H1_RE.finditer(self.html_content):
            heading = strip_tags(match.group(1))
            if heading:
                return heading

        for line in self.raw_content.splitlines():
            if line.strip():
                return line.strip()
        return "Untitled"

    def get_date(self) -> Optional[dt.datetime]:
        value = self.frontmatter.time if self.frontmatter.time is not None else self.frontmatter.date
        if not value:
            return None
        return parse_date(value)


def split_frontmatter(text: str) -> Tuple[Dict[str, Any], str]:
    """Split ``text`` into the raw frontmatter mapping and the markdown body."""
    text = text.lstrip("\ufeff")
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip() != FRONTMATTER_DELIMITER:
        return {}, text

    for index in range(1, len(lines)):
        if lines[index].rstrip() == FRONTMATTER_DELIMITER:
            block = "".join(lines[1:index])
            body = "".join(lines[index + 1 :]).lstrip()
            break
    else:
        raise ParseError("No closing frontmatter delimiter")

    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        raise ParseError(f"Invalid frontmatter: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ParseError("Frontmatter must be a key-value mapping")
    return data, body


def render_markdown(body: str) -> str:
    md = markdown.Markdown(extensions=MARKDOWN_EXTENSIONS)
    return md.convert(body)


def parse_markdown(text: str) -> ParsedMarkdown:
    data, body = split_frontmatter(text)
    return ParsedMarkdown(
        frontmatter=Frontmatter.from_mapping(data),
        html_content=render_markdown(body),
        raw_content=body,
    )


def parse_markdown_file(path: Path) -> ParsedMarkdown:
    raw = read_bytes(path)
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(f"{path} is not valid UTF-8: {exc}") from exc
    try:
        return parse_markdown(text)
    except ParseError as exc:
        raise ParseError(f"{path}: {exc.message}") from exc


def replace_attachment_links(html: str, attachment_map: Sequence[Tuple[str, str]]) -> str:
    """Point ``attachment/<original>`` references at generated filenames.

    Both ``./attachment/<name>`` and ``attachment/<name>`` are rewritten to
    ``attachment/<new_name>``. Names are tried longest first so that
    ``photo.png`` never matches inside ``photo.png.bak``, and the rewrite is a
    single pass so a generated name is never rewritten again.
    """
    if not attachment_map:
        return html

    replacements = dict(attachment_map)
    names = sorted(replacements, key=len, reverse=True)
    pattern = re.compile(
        r"(?:\./)?attachment/(" + "|".join(re.escape(name) for name in names) + ")"
    )
    return pattern.sub(lambda match: f"attachment/{replacements[match.group(1)]}", html)
