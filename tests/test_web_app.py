"""Tests for the FastAPI web application."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from lfblog.config import AppConfig
from lfblog.index.storage import SQLiteStorage
from lfblog.web.app import _ensure_db_parent, create_app


@pytest.fixture
def content_dir(tmp_path: Path) -> Path:
    root = tmp_path / "content"
    item_dir = root / "fruit" / "apple"
    (item_dir / "attachment").mkdir(parents=True)
    (root / "fruit" / "index.md").write_text("---\ndescription: Fresh fruit\n---\n", encoding="utf-8")
    (item_dir / "apple.md").write_text(
        "---\ntitle: Apple\n---\n\nA crunchy apple.\n\n![pic](attachment/pic.png)\n",
        encoding="utf-8",
    )
    (item_dir / "attachment" / "pic.png").write_bytes(b"\x89PNG")
    return root


@pytest.fixture
def config(tmp_path: Path, content_dir: Path) -> AppConfig:
    return AppConfig(
        content_dir=content_dir,
        templates_dir=tmp_path / "no-templates",
        db_path=tmp_path / "data" / "site.db",
    )


@pytest.fixture
def client(config: AppConfig):
    """Client with startup compilation already run."""
    with TestClient(create_app(config)) as test_client:
        yield test_client


class TestHelperFunctions:
    """Tests for helper functions."""

    def test_ensure_db_parent_creates_directory(self, tmp_path: Path) -> None:
        """Creates parent directory if it doesn't exist."""
        db_path = tmp_path / "subdir" / "test.db"
        assert not db_path.parent.exists()
        _ensure_db_parent(db_path)
        assert db_path.parent.exists()


class TestStartup:
    """Tests for compilation on startup."""

    def test_startup_compiles_site(self, client: TestClient, config: AppConfig) -> None:
        """Pages are available as soon as the app has started."""
        store = SQLiteStorage(config.db_path)
        try:
            assert store.get_page("fruit-apple") is not None
            assert store.get_last_compiled() is not None
        finally:
            store.close()

    def test_startup_failure_keeps_serving(self, config: AppConfig, content_dir: Path) -> None:
        """A broken content tree does not stop the server."""
        (content_dir / "fruit" / "apple" / "apple.md").write_text("---\ntitle: x\n", encoding="utf-8")

        with TestClient(create_app(config)) as client:
            assert client.get("/api/health").json() == {"status": "ok"}
            assert client.get("/").status_code == 404


class TestPageRoutes:
    """Tests for HTML page routes."""

    def test_index(self, client: TestClient) -> None:
        response = client.get("/")

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert 'href="/fruit"' in response.text

    def test_category_page(self, client: TestClient) -> None:
        response = client.get("/fruit")

        assert response.status_code == 200
        assert "Fresh fruit" in response.text

    def test_item_page_has_rewritten_links(self, client: TestClient) -> None:
        response = client.get("/fruit-apple")

        assert response.status_code == 200
        assert "attachment/apple_1.png" in response.text
        assert "attachment/pic.png" not in response.text

    def test_unknown_page(self, client: TestClient) -> None:
        response = client.get("/nope")

        assert response.status_code == 404
        assert "Page not found" in response.json()["detail"]


class TestAttachmentRoute:
    """Tests for GET /attachment/{filename}."""

    def test_serves_bytes_with_mime_type(self, client: TestClient) -> None:
        response = client.get("/attachment/apple_1.png")

        assert response.status_code == 200
        assert response.content == b"\x89PNG"
        assert response.headers["content-type"] == "image/png"

    def test_missing_attachment(self, client: TestClient) -> None:
        response = client.get("/attachment/missing.png")

        assert response.status_code == 404


class TestSearchEndpoint:
    """Tests for GET /api/search."""

    def test_search_empty_query(self, client: TestClient) -> None:
        """Returns 400 for empty query."""
        response = client.get("/api/search", params={"q": "   "})

        assert response.status_code == 400
        assert "Empty query" in response.json()["detail"]

    def test_search_results(self, client: TestClient) -> None:
        response = client.get("/api/search", params={"q": "crunchy"})

        assert response.status_code == 200
        data = response.json()
        assert data["query"] == "crunchy"
        assert data["total"] == 1
        assert data["results"][0]["slug"] == "fruit-apple"
        assert "crunchy" in data["results"][0]["snippet"]

    def test_search_limit_is_clamped(self, client: TestClient) -> None:
        response = client.get("/api/search", params={"q": "fruit", "limit": 0})

        assert response.status_code == 200
        assert len(response.json()["results"]) == 1


class TestApiEndpoints:
    """Tests for stats, health and recompile."""

    def test_health(self, client: TestClient) -> None:
        assert client.get("/api/health").json() == {"status": "ok"}

    def test_stats(self, client: TestClient) -> None:
        data = client.get("/api/stats").json()

        assert data["total_categories"] == 1
        assert data["total_items"] == 1
        assert data["total_attachments"] == 1
        assert data["last_compiled"] is not None

    def test_recompile(self, client: TestClient, content_dir: Path) -> None:
        """Picks up new content."""
        pear_dir = content_dir / "fruit" / "pear"
        pear_dir.mkdir()
        (pear_dir / "pear.md").write_text("# Pear\n", encoding="utf-8")

        response = client.post("/api/recompile")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["result"]["total_items"] == 2
        assert client.get("/fruit-pear").status_code == 200

    def test_recompile_with_prune(self, client: TestClient, content_dir: Path) -> None:
        item_dir = content_dir / "fruit" / "apple"
        (item_dir / "attachment" / "pic.png").unlink()
        (item_dir / "attachment").rmdir()
        (item_dir / "apple.md").unlink()
        item_dir.rmdir()

        response = client.post("/api/recompile", json={"prune": True})

        assert response.status_code == 200
        assert response.json()["result"]["pruned_pages"] == 1
        assert client.get("/fruit-apple").status_code == 404

    def test_recompile_failure(self, client: TestClient, content_dir: Path) -> None:
        """Returns the tagged error and keeps the old snapshot."""
        (content_dir / "fruit" / "apple" / "apple.md").write_text("---\ntitle: x\n", encoding="utf-8")

        response = client.post("/api/recompile")

        assert response.status_code == 500
        assert response.json()["detail"]["kind"] == "parse"
        assert client.get("/fruit-apple").status_code == 200
