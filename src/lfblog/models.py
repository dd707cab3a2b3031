"""Core lfblog data models."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


@dataclass(slots=True)
class Attachment:
    """Binary file found in an item's ``attachment`` directory."""

    original_name: str
    new_name: str
    file_type: str
    path: str
    file_data: bytes
    file_size: int
    mime_type: str


@dataclass(slots=True)
class ContentItem:
    category: str
    item_name: str
    dir_name: str
    url: str
    file_path: Path
    title: str
    date: Optional[str] = None
    author: Optional[str] = None
    description: Optional[str] = None
    html_content: str = ""
    attachments: List[Attachment] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)

    def attachment_map(self) -> list[tuple[str, str]]:
        """Pairs of (original name, generated name) for link rewriting."""
        return [(a.original_name, a.new_name) for a in self.attachments]


@dataclass(slots=True)
class Category:
    name: str
    url: str
    index_path: Path
    items: List[ContentItem] = field(default_factory=list)
    description: Optional[str] = None


@dataclass(slots=True)
class SiteContent:
    """Content tree produced by a single scan."""

    categories: List[Category] = field(default_factory=list)

    @property
    def total_items(self) -> int:
        return sum(len(category.items) for category in self.categories)

    @property
    def total_attachments(self) -> int:
        return sum(
            len(item.attachments) for category in self.categories for item in category.items
        )


class PageType(str, Enum):
    INDEX = "index"
    CATEGORY = "category"
    ITEM = "item"


@dataclass(slots=True)
class Page:
    """Rendered page as persisted in storage."""

    id: str
    slug: str
    page_type: PageType
    title: str
    content: str
    category: Optional[str]
    updated_at: str

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["page_type"] = self.page_type.value
        return data


@dataclass(slots=True)
class StoredAttachment:
    """Attachment row as persisted in storage."""

    id: str
    slug: str
    filename: str
    original_name: str
    mime_type: str
    file_data: bytes
    file_size: int
    updated_at: str

    def to_dict(self, *, include_data: bool = False) -> Dict[str, Any]:
        data = asdict(self)
        if not include_data:
            data.pop("file_data")
        return data


@dataclass(slots=True)
class SiteStats:
    total_categories: int = 0
    total_items: int = 0
    total_attachments: int = 0
    last_compiled: Optional[str] = None


@dataclass(slots=True)
class CompileResult:
    success: bool = True
    total_categories: int = 0
    total_items: int = 0
    total_attachments: int = 0
    total_pages: int = 0
    pruned_pages: int = 0
    pruned_attachments: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
