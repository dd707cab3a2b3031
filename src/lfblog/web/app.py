"""FastAPI application serving the compiled snapshot."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.responses import HTMLResponse, Response
from pydantic import BaseModel

from lfblog.config import AppConfig
from lfblog.errors import LfBlogError
from lfblog.index.compiler import Compiler
from lfblog.index.search import Searcher
from lfblog.index.storage import SQLiteStorage
from lfblog.models import CompileResult

LOGGER = logging.getLogger(__name__)

MAX_SEARCH_LIMIT = 50


class RecompilePayload(BaseModel):
    prune: bool | None = None


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def create_app(config: AppConfig | None = None) -> FastAPI:
    config = config if config is not None else AppConfig.load()

    app = FastAPI(title="lfblog", version="0.1.0")
    app.state.config = config

    def _open_store() -> SQLiteStorage:
        resolved_db = config.resolve_db_path(Path.cwd())
        _ensure_db_parent(resolved_db)
        return SQLiteStorage(resolved_db)

    def _run_compile(prune: bool | None = None) -> CompileResult:
        store = _open_store()
        try:
            compiler = Compiler.from_config(config, store, base_dir=Path.cwd())
            if prune is not None:
                compiler.prune = prune
            return compiler.compile()
        finally:
            store.close()

    def _page_response(slug: str) -> HTMLResponse:
        store = _open_store()
        try:
            page = store.get_page(slug)
        finally:
            store.close()
        if page is None:
            raise HTTPException(status_code=404, detail=f"Page not found: {slug}")
        return HTMLResponse(content=page.content)

    @app.on_event("startup")
    async def startup_event() -> None:
        logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
        LOGGER.info("Performing initial compilation...")
        try:
            result = await asyncio.to_thread(_run_compile)
        except LfBlogError:
            # Keep serving whatever snapshot is already stored.
            LOGGER.exception("Initial compilation failed")
            return
        LOGGER.info(
            "Initial compilation successful: %d categories, %d items, %d attachments",
            result.total_categories,
            result.total_items,
            result.total_attachments,
        )

    @app.get("/api/health")
    async def health_check() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/recompile")
    async def recompile(payload: RecompilePayload | None = None) -> dict[str, Any]:
        LOGGER.info("Received recompile request")
        prune = payload.prune if payload is not None else None
        try:
            result = await asyncio.to_thread(_run_compile, prune)
        except LfBlogError as exc:
            LOGGER.error("Recompilation failed: %s", exc)
            raise HTTPException(status_code=500, detail=exc.to_dict()) from exc
        return {"status": "ok", "result": result.to_dict()}

    @app.get("/api/search")
    async def search_pages(q: str = "", limit: int = 20) -> dict[str, Any]:
        query = q.strip()
        if not query:
            raise HTTPException(status_code=400, detail="Empty query")

        limit = max(1, min(limit, MAX_SEARCH_LIMIT))
        store = _open_store()
        try:
            searcher = Searcher(store)
            results = searcher.search(query, limit=limit)
            total = searcher.count(query)
        finally:
            store.close()
        return {
            "query": query,
            "total": total,
            "results": [result.to_dict() for result in results],
        }

    @app.get("/api/stats")
    async def site_stats() -> dict[str, Any]:
        store = _open_store()
        try:
            stats = store.get_stats()
        finally:
            store.close()
        return {
            "total_categories": stats.total_categories,
            "total_items": stats.total_items,
            "total_attachments": stats.total_attachments,
            "last_compiled": stats.last_compiled,
        }

    @app.get("/attachment/{filename}")
    async def serve_attachment(filename: str) -> Response:
        store = _open_store()
        try:
            attachment = store.get_attachment(filename)
        finally:
            store.close()
        if attachment is None:
            raise HTTPException(status_code=404, detail=f"Attachment not found: {filename}")
        return Response(content=attachment.file_data, media_type=attachment.mime_type)

    @app.get("/", response_class=HTMLResponse)
    async def index() -> HTMLResponse:
        return _page_response("index")

    @app.get("/{slug}", response_class=HTMLResponse)
    async def serve_page(slug: str) -> HTMLResponse:
        return _page_response(slug)

    return app


app = create_app()
