"""Site compilation pipeline."""

from __future__ import annotations

import logging
import threading
import weakref
from pathlib import Path
from typing import Dict, List, Tuple

from lfblog.config import AppConfig
from lfblog.index.storage import MEMORY_DB, SQLiteStorage, utc_now
from lfblog.ingestion.markdown import replace_attachment_links
from lfblog.ingestion.scanner import Scanner
from lfblog.models import (
    Category,
    CompileResult,
    ContentItem,
    Page,
    PageType,
    SiteContent,
    StoredAttachment,
)
from lfblog.render.renderer import Renderer, TemplateRenderer

LOGGER = logging.getLogger(__name__)

_COMPILE_LOCKS: Dict[str, threading.Lock] = {}
_MEMORY_LOCKS: weakref.WeakKeyDictionary[SQLiteStorage, threading.Lock] = weakref.WeakKeyDictionary()
_COMPILE_LOCKS_GUARD = threading.Lock()


def _compile_lock(store: SQLiteStorage) -> threading.Lock:
    """One lock per storage database, shared by every Compiler writing to it."""
    with _COMPILE_LOCKS_GUARD:
        # In-memory databases are private to their connection.
        if store.db_path == MEMORY_DB:
            return _MEMORY_LOCKS.setdefault(store, threading.Lock())
        key = str(Path(store.db_path).resolve())
        return _COMPILE_LOCKS.setdefault(key, threading.Lock())


class Compiler:
    """Turns the content tree into a stored snapshot of pages and attachments."""

    def __init__(
        self,
        scanner: Scanner,
        renderer: Renderer,
        store: SQLiteStorage,
        *,
        site_title: str = "My Collections",
        prune: bool = False,
    ) -> None:
        self.scanner = scanner
        self.renderer = renderer
        self.store = store
        self.site_title = site_title
        self.prune = prune
        self._lock = _compile_lock(store)

    @classmethod
    def from_config(
        cls, config: AppConfig, store: SQLiteStorage, *, base_dir: Path | None = None
    ) -> "Compiler":
        scanner = Scanner(config.resolve_content_dir(base_dir))
        renderer = TemplateRenderer(config, templates_dir=config.resolve_templates_dir(base_dir))
        return cls(scanner, renderer, store, site_title=config.site_title, prune=config.prune)

    def compile(self) -> CompileResult:
        """Scan, render and persist the whole site.

        Concurrent calls against the same database wait for each other. Any
        error aborts the run before the storage transaction commits.
        """
        with self._lock:
            return self._compile()

    def _compile(self) -> CompileResult:
        LOGGER.info("Starting compilation...")
        site = self.scanner.scan()
        LOGGER.info("Found %d categories", len(site.categories))

        now = utc_now()
        pages, attachments = self.build_snapshot(site, now)

        pruned_pages = pruned_attachments = 0
        with self.store.transaction():
            self.store.save_pages_batch(pages)
            self.store.save_attachments_batch(attachments)
            if self.prune:
                pruned_pages, pruned_attachments = self.store.prune(
                    {page.slug for page in pages},
                    {attachment.filename for attachment in attachments},
                )
            self.store.update_compile_time(now)

        LOGGER.info("Saved %d pages and %d attachments", len(pages), len(attachments))
        if self.prune:
            LOGGER.info(
                "Pruned %d stale pages and %d stale attachments", pruned_pages, pruned_attachments
            )

        return CompileResult(
            success=True,
            total_categories=len(site.categories),
            total_items=site.total_items,
            total_attachments=len(attachments),
            total_pages=len(pages),
            pruned_pages=pruned_pages,
            pruned_attachments=pruned_attachments,
        )

    def build_snapshot(
        self, site: SiteContent, now: str
    ) -> Tuple[List[Page], List[StoredAttachment]]:
        """Render every page of ``site`` without touching storage."""
        pages: List[Page] = [self._index_page(site, now)]
        attachments: List[StoredAttachment] = []
        # generated filename -> (category, item directory, slug) that produced it
        owners: Dict[str, Tuple[str, str, str]] = {}
        LOGGER.info("Compiled index page")

        for category in site.categories:
            pages.append(self._category_page(category, now))
            LOGGER.info("Compiled category: %s", category.name)

            for item in category.items:
                pages.append(self._item_page(item, now))
                attachments.extend(self._stored_attachments(item, now))
                self._check_attachment_owners(item, owners)
                LOGGER.info(
                    "Compiled item: %s (%d attachments)", item.title, len(item.attachments)
                )

        return pages, attachments

    @staticmethod
    def _check_attachment_owners(
        item: ContentItem, owners: Dict[str, Tuple[str, str, str]]
    ) -> None:
        """Warn when two item directories generate the same attachment filename.

        Items sharing one directory share its attachments, so only a different
        source directory counts as a clash. The later row replaces the earlier one.
        """
        source = (item.category, item.dir_name)
        for attachment in item.attachments:
            previous = owners.get(attachment.new_name)
            if previous is not None and previous[:2] != source:
                LOGGER.warning(
                    "Attachment %s of %s overwrites the one generated for %s",
                    attachment.new_name,
                    item.url,
                    previous[2],
                )
            owners[attachment.new_name] = (*source, item.url)

    def _index_page(self, site: SiteContent, now: str) -> Page:
        return Page(
            id="index",
            slug="index",
            page_type=PageType.INDEX,
            title=self.site_title,
            content=self.renderer.render_index(site),
            category=None,
            updated_at=now,
        )

    def _category_page(self, category: Category, now: str) -> Page:
        return Page(
            id=f"category-{category.url}",
            slug=category.url,
            page_type=PageType.CATEGORY,
            title=category.name,
            content=self.renderer.render_category(category),
            category=None,
            updated_at=now,
        )

    def _item_page(self, item: ContentItem, now: str) -> Page:
        html = replace_attachment_links(self.renderer.render_item(item), item.attachment_map())
        return Page(
            id=f"item-{item.url}",
            slug=item.url,
            page_type=PageType.ITEM,
            title=item.title,
            content=html,
            category=item.category,
            updated_at=now,
        )

    @staticmethod
    def _stored_attachments(item: ContentItem, now: str) -> List[StoredAttachment]:
        return [
            StoredAttachment(
                id=f"attachment-{attachment.new_name}",
                slug=item.url,
                filename=attachment.new_name,
                original_name=attachment.original_name,
                mime_type=attachment.mime_type,
                file_data=attachment.file_data,
                file_size=attachment.file_size,
                updated_at=now,
            )
            for attachment in item.attachments
        ]
