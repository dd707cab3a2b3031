"""Content tree scanner.

Layout::

    content/<category>/index.md
    content/<category>/<item_dir>/<name>.md
    content/<category>/<item_dir>/attachment/*
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from lfblog.errors import ParseError
from lfblog.ingestion.markdown import parse_markdown_file
from lfblog.models import Attachment, Category, ContentItem, SiteContent
from lfblog.utils.files import (
    get_mime_type,
    is_hidden,
    iter_markdown_paths,
    iter_visible_dirs,
    read_bytes,
    sorted_entries,
)

LOGGER = logging.getLogger(__name__)

INDEX_FILENAME = "index.md"
ATTACHMENT_DIR = "attachment"


def sort_items(items: List[ContentItem]) -> List[ContentItem]:
    """Newest dated items first, then undated items by name."""
    dated = sorted((i for i in items if i.date is not None), key=lambda i: i.date, reverse=True)
    undated = sorted((i for i in items if i.date is None), key=lambda i: i.item_name)
    return dated + undated


def generate_attachment_name(stem: str, extension: str, counter: int) -> str:
    if extension:
        return f"{stem}_{counter}.{extension}"
    return f"{stem}_{counter}"


class Scanner:
    """Builds a :class:`SiteContent` tree from a content directory."""

    def __init__(self, content_dir: Path) -> None:
        self.content_dir = Path(content_dir)

    def scan(self) -> SiteContent:
        if not self.content_dir.exists():
            LOGGER.warning("Content directory does not exist: %s", self.content_dir)
            return SiteContent()

        categories: List[Category] = []
        for path in iter_visible_dirs(self.content_dir):
            category = self._scan_category(path)
            if category is not None:
                categories.append(category)

        categories.sort(key=lambda c: c.name)
        return SiteContent(categories=categories)

    def _scan_category(self, category_path: Path) -> Optional[Category]:
        name = category_path.name
        index_path = category_path / INDEX_FILENAME
        description = None

        if index_path.is_file():
            try:
                description = parse_markdown_file(index_path).frontmatter.description
            except ParseError as exc:
                LOGGER.warning("Ignoring unreadable category index %s: %s", index_path, exc)

        items: List[ContentItem] = []
        for item_dir in iter_visible_dirs(category_path):
            if item_dir.name == ATTACHMENT_DIR:
                continue
            for md_path in iter_markdown_paths(item_dir):
                items.append(self._scan_item(md_path, name, item_dir))

        if not items and not index_path.exists():
            LOGGER.debug("Skipping empty category %s", name)
            return None

        return Category(
            name=name,
            url=name,
            index_path=index_path,
            items=sort_items(items),
            description=description,
        )

    def _scan_item(self, md_path: Path, category_name: str, item_dir: Path) -> ContentItem:
        parsed = parse_markdown_file(md_path)
        item_name = md_path.stem
        date = parsed.get_date()

        return ContentItem(
            category=category_name,
            item_name=item_name,
            dir_name=item_dir.name,
            url=f"{category_name}-{item_name}",
            file_path=md_path,
            title=parsed.get_title(),
            date=date.strftime("%Y-%m-%d") if date is not None else None,
            author=parsed.frontmatter.author,
            description=parsed.frontmatter.description,
            html_content=parsed.html_content,
            attachments=self._scan_attachments(item_dir),
            tags=list(parsed.frontmatter.tags),
        )

    def _scan_attachments(self, item_dir: Path) -> List[Attachment]:
        attachment_dir = item_dir / ATTACHMENT_DIR
        if not attachment_dir.is_dir():
            return []

        attachments: List[Attachment] = []
        used_names: set[str] = set()
        counter = 0

        for path in sorted_entries(attachment_dir):
            if path.is_dir() or is_hidden(path):
                continue

            extension = path.suffix[1:]
            counter += 1
            new_name = generate_attachment_name(item_dir.name, extension, counter)
            while new_name in used_names:
                counter += 1
                new_name = generate_attachment_name(item_dir.name, extension, counter)
            used_names.add(new_name)

            data = read_bytes(path)
            attachments.append(
                Attachment(
                    original_name=path.name,
                    new_name=new_name,
                    file_type=extension,
                    path=f"{ATTACHMENT_DIR}/{new_name}",
                    file_data=data,
                    file_size=len(data),
                    mime_type=get_mime_type(extension),
                )
            )

        return attachments
