"""Full-text search over compiled pages."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from lfblog.index.storage import SQLiteStorage
from lfblog.utils.text import extract_snippet


@dataclass(slots=True)
class SearchResult:
    slug: str
    title: str
    page_type: str
    category: Optional[str]
    snippet: str
    updated_at: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class Searcher:
    """High-level API to query the page store."""

    def __init__(self, store: SQLiteStorage) -> None:
        self.store = store

    def search(self, query: str, *, limit: int = 20) -> List[SearchResult]:
        query = query.strip()
        if not query:
            return []
        pages = self.store.search_pages(query, limit)
        return [
            SearchResult(
                slug=page.slug,
                title=page.title,
                page_type=page.page_type.value,
                category=page.category,
                snippet=extract_snippet(page.content, query),
                updated_at=page.updated_at,
            )
            for page in pages
        ]

    def count(self, query: str) -> int:
        query = query.strip()
        if not query:
            return 0
        return self.store.search_pages_count(query)
