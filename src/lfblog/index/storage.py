"""SQLite snapshot store for compiled pages and attachments."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Mapping, Optional, Sequence, Union

from lfblog.errors import StorageError
from lfblog.models import Page, PageType, SiteStats, StoredAttachment

MEMORY_DB = ":memory:"
LAST_COMPILED_KEY = "last_compiled"

_Params = Union[Sequence[Any], Mapping[str, Any]]

_PAGE_COLUMNS = "id, slug, page_type, title, content, category, updated_at"
_ATTACHMENT_COLUMNS = (
    "id, slug, filename, original_name, mime_type, file_data, file_size, updated_at"
)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_page(row: sqlite3.Row) -> Page:
    try:
        page_type = PageType(row["page_type"])
    except ValueError as exc:
        raise StorageError(
            f"Page {row['slug']!r} has unknown page_type {row['page_type']!r}"
        ) from exc
    return Page(
        id=row["id"],
        slug=row["slug"],
        page_type=page_type,
        title=row["title"],
        content=row["content"],
        category=row["category"],
        updated_at=row["updated_at"],
    )


def _row_to_attachment(row: sqlite3.Row) -> StoredAttachment:
    return StoredAttachment(
        id=row["id"],
        slug=row["slug"],
        filename=row["filename"],
        original_name=row["original_name"],
        mime_type=row["mime_type"],
        file_data=bytes(row["file_data"]),
        file_size=row["file_size"],
        updated_at=row["updated_at"],
    )


class SQLiteStorage:
    """Persistence layer for pages, attachments and site metadata.

    Pages are keyed by ``slug`` and attachments by ``filename``; every write
    is an insert-or-replace on that key.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = db_path if str(db_path) == MEMORY_DB else Path(db_path)
        self._depth = 0
        try:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
            if self.db_path != MEMORY_DB:
                self._conn.execute("PRAGMA journal_mode=WAL;")
                self._conn.execute("PRAGMA synchronous=NORMAL;")
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to open storage database {db_path}: {exc}") from exc
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Group writes into one commit.

        Nested blocks join the outermost one; only the outermost block
        commits, and any exception rolls the whole transaction back.
        """
        outermost = self._depth == 0
        self._depth += 1
        try:
            yield self._conn
            if outermost:
                self._conn.commit()
        except sqlite3.Error as exc:
            if outermost:
                self._conn.rollback()
            raise StorageError(f"Transaction failed: {exc}") from exc
        except Exception:
            if outermost:
                self._conn.rollback()
            raise
        finally:
            self._depth -= 1

    def _fetchall(self, sql: str, params: _Params = ()) -> List[sqlite3.Row]:
        try:
            return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"Query failed: {exc}") from exc

    def _fetchone(self, sql: str, params: _Params = ()) -> Optional[sqlite3.Row]:
        try:
            return self._conn.execute(sql, params).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Query failed: {exc}") from exc

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS pages (
                    id TEXT PRIMARY KEY,
                    slug TEXT NOT NULL UNIQUE,
                    page_type TEXT NOT NULL,
                    title TEXT NOT NULL,
                    content TEXT NOT NULL,
                    category TEXT,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_pages_type ON pages(page_type)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_pages_category ON pages(category)")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS attachments (
                    id TEXT PRIMARY KEY,
                    slug TEXT NOT NULL,
                    filename TEXT NOT NULL UNIQUE,
                    original_name TEXT NOT NULL,
                    mime_type TEXT NOT NULL,
                    file_data BLOB NOT NULL,
                    file_size INTEGER NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_attachments_slug ON attachments(slug)"
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS site_metadata (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "INSERT OR IGNORE INTO site_metadata (key, value) VALUES (?, ?)",
                (LAST_COMPILED_KEY, ""),
            )

    # Pages

    def _upsert_pages(self, pages: Iterable[Page]) -> None:
        self._conn.executemany(
            f"INSERT OR REPLACE INTO pages ({_PAGE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
            [
                (
                    page.id,
                    page.slug,
                    page.page_type.value,
                    page.title,
                    page.content,
                    page.category,
                    page.updated_at or utc_now(),
                )
                for page in pages
            ],
        )

    def save_page(self, page: Page) -> None:
        with self.transaction():
            self._upsert_pages([page])

    def save_pages_batch(self, pages: Sequence[Page]) -> None:
        """Upsert all ``pages`` in a single transaction."""
        with self.transaction():
            self._upsert_pages(pages)

    def get_page(self, slug: str) -> Optional[Page]:
        row = self._fetchone(f"SELECT {_PAGE_COLUMNS} FROM pages WHERE slug = ?", (slug,))
        return _row_to_page(row) if row else None

    def get_all_pages(self) -> List[Page]:
        rows = self._fetchall(f"SELECT {_PAGE_COLUMNS} FROM pages ORDER BY slug")
        return [_row_to_page(row) for row in rows]

    def get_pages_by_type(self, page_type: PageType) -> List[Page]:
        rows = self._fetchall(
            f"SELECT {_PAGE_COLUMNS} FROM pages WHERE page_type = ? ORDER BY slug",
            (PageType(page_type).value,),
        )
        return [_row_to_page(row) for row in rows]

    def get_items_by_category(self, category: str) -> List[Page]:
        rows = self._fetchall(
            f"""
            SELECT {_PAGE_COLUMNS} FROM pages
            WHERE page_type = 'item' AND category = ?
            ORDER BY slug
            """,
            (category,),
        )
        return [_row_to_page(row) for row in rows]

    def delete_page(self, slug: str) -> bool:
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM pages WHERE slug = ?", (slug,))
        return cursor.rowcount > 0

    def clear_pages(self) -> None:
        with self.transaction() as conn:
            conn.execute("DELETE FROM pages")

    # Attachments

    def _upsert_attachments(self, attachments: Iterable[StoredAttachment]) -> None:
        self._conn.executemany(
            f"""
            INSERT OR REPLACE INTO attachments ({_ATTACHMENT_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    attachment.id,
                    attachment.slug,
                    attachment.filename,
                    attachment.original_name,
                    attachment.mime_type,
                    sqlite3.Binary(attachment.file_data),
                    attachment.file_size,
                    attachment.updated_at or utc_now(),
                )
                for attachment in attachments
            ],
        )

    def save_attachment(self, attachment: StoredAttachment) -> None:
        with self.transaction():
            self._upsert_attachments([attachment])

    def save_attachments_batch(self, attachments: Sequence[StoredAttachment]) -> None:
        """Upsert all ``attachments`` in a single transaction."""
        with self.transaction():
            self._upsert_attachments(attachments)

    def get_attachment(self, filename: str) -> Optional[StoredAttachment]:
        row = self._fetchone(
            f"SELECT {_ATTACHMENT_COLUMNS} FROM attachments WHERE filename = ?", (filename,)
        )
        return _row_to_attachment(row) if row else None

    def get_attachments_by_slug(self, slug: str) -> List[StoredAttachment]:
        rows = self._fetchall(
            f"SELECT {_ATTACHMENT_COLUMNS} FROM attachments WHERE slug = ? ORDER BY filename",
            (slug,),
        )
        return [_row_to_attachment(row) for row in rows]

    def get_all_attachments(self) -> List[StoredAttachment]:
        rows = self._fetchall(
            f"SELECT {_ATTACHMENT_COLUMNS} FROM attachments ORDER BY slug, filename"
        )
        return [_row_to_attachment(row) for row in rows]

    def delete_attachment(self, filename: str) -> bool:
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM attachments WHERE filename = ?", (filename,))
        return cursor.rowcount > 0

    def delete_attachments_by_slug(self, slug: str) -> int:
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM attachments WHERE slug = ?", (slug,))
        return cursor.rowcount

    def clear_attachments(self) -> None:
        with self.transaction() as conn:
            conn.execute("DELETE FROM attachments")

    # Metadata

    def set_metadata(self, key: str, value: str) -> None:
        with self.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO site_metadata (key, value) VALUES (?, ?)", (key, value)
            )

    def get_metadata(self, key: str) -> Optional[str]:
        row = self._fetchone("SELECT value FROM site_metadata WHERE key = ?", (key,))
        return row["value"] if row else None

    def update_compile_time(self, timestamp: str | None = None) -> str:
        timestamp = timestamp or utc_now()
        self.set_metadata(LAST_COMPILED_KEY, timestamp)
        return timestamp

    def get_last_compiled(self) -> Optional[str]:
        """Timestamp of the last successful compile, ``None`` before the first."""
        return self.get_metadata(LAST_COMPILED_KEY) or None

    # Search

    def search_pages(self, query: str, limit: int = 20) -> List[Page]:
        """Substring search over titles and content, index page excluded.

        Exact title matches rank first, title prefix matches second, and the
        rest follow by most recent update.
        """
        if limit <= 0:
            return []
        escaped = _escape_like(query)
        rows = self._fetchall(
            f"""
            SELECT {_PAGE_COLUMNS} FROM pages
            WHERE (title LIKE :pattern ESCAPE '\\' OR content LIKE :pattern ESCAPE '\\')
              AND page_type != 'index'
            ORDER BY
                CASE
                    WHEN lower(title) = lower(:query) THEN 2
                    WHEN title LIKE :prefix ESCAPE '\\' THEN 1
                    ELSE 0
                END DESC,
                updated_at DESC,
                slug
            LIMIT :limit
            """,
            {
                "pattern": f"%{escaped}%",
                "prefix": f"{escaped}%",
                "query": query,
                "limit": limit,
            },
        )
        return [_row_to_page(row) for row in rows]

    def search_pages_count(self, query: str) -> int:
        pattern = f"%{_escape_like(query)}%"
        row = self._fetchone(
            """
            SELECT COUNT(*) FROM pages
            WHERE (title LIKE ? ESCAPE '\\' OR content LIKE ? ESCAPE '\\')
              AND page_type != 'index'
            """,
            (pattern, pattern),
        )
        return int(row[0]) if row else 0

    # Maintenance

    def get_stats(self) -> SiteStats:
        def count(sql: str) -> int:
            row = self._fetchone(sql)
            return int(row[0]) if row else 0

        return SiteStats(
            total_categories=count("SELECT COUNT(*) FROM pages WHERE page_type = 'category'"),
            total_items=count("SELECT COUNT(*) FROM pages WHERE page_type = 'item'"),
            total_attachments=count("SELECT COUNT(*) FROM attachments"),
            last_compiled=self.get_last_compiled(),
        )

    def prune(self, keep_slugs: Iterable[str], keep_filenames: Iterable[str]) -> tuple[int, int]:
        """Delete pages and attachments that are not in the given key sets.

        Returns the number of removed pages and attachments.
        """
        keep_slugs = set(keep_slugs)
        keep_filenames = set(keep_filenames)
        with self.transaction() as conn:
            stale_pages = [
                (row["slug"],)
                for row in conn.execute("SELECT slug FROM pages").fetchall()
                if row["slug"] not in keep_slugs
            ]
            stale_attachments = [
                (row["filename"],)
                for row in conn.execute("SELECT filename FROM attachments").fetchall()
                if row["filename"] not in keep_filenames
            ]
            conn.executemany("DELETE FROM pages WHERE slug = ?", stale_pages)
            conn.executemany("DELETE FROM attachments WHERE filename = ?", stale_attachments)
        return len(stale_pages), len(stale_attachments)

    def clear_all(self) -> None:
        with self.transaction() as conn:
            conn.execute("DELETE FROM pages")
            conn.execute("DELETE FROM attachments")
            conn.execute("DELETE FROM site_metadata")
            conn.execute(
                "INSERT OR IGNORE INTO site_metadata (key, value) VALUES (?, ?)",
                (LAST_COMPILED_KEY, ""),
            )
