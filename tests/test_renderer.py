"""Tests for the Jinja2 page renderer."""

from __future__ import annotations

from pathlib import Path

import pytest

from lfblog.config import AppConfig
from lfblog.errors import RenderError
from lfblog.models import Attachment, Category, ContentItem, SiteContent
from lfblog.render.renderer import TemplateRenderer


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        templates_dir=tmp_path / "no-templates",
        site_title="Shelf",
        site_description="Things I keep",
        site_author="Sam",
    )


@pytest.fixture
def item() -> ContentItem:
    return ContentItem(
        category="fruit",
        item_name="apple",
        dir_name="apple",
        url="fruit-apple",
        file_path=Path("apple.md"),
        title="Apple <Red>",
        date="2024-01-01",
        author="Ann",
        description="crunchy",
        html_content="<p>Body <strong>bold</strong></p>",
        attachments=[
            Attachment(
                original_name="pic.jpg",
                new_name="apple_1.jpg",
                file_type="jpg",
                path="attachment/apple_1.jpg",
                file_data=b"x",
                file_size=1,
                mime_type="image/jpeg",
            )
        ],
        tags=["red"],
    )


@pytest.fixture
def category(item: ContentItem) -> Category:
    return Category(
        name="fruit",
        url="fruit",
        index_path=Path("fruit/index.md"),
        items=[item],
        description="Fresh fruit",
    )


class TestBuiltinTemplates:
    """Test rendering with the shipped templates."""

    def test_render_index(self, config: AppConfig, category: Category) -> None:
        html = TemplateRenderer(config).render_index(SiteContent(categories=[category]))

        assert "<title>Shelf</title>" in html
        assert 'href="/fruit"' in html
        assert 'href="/fruit-apple"' in html
        assert "Things I keep" in html

    def test_render_empty_index(self, config: AppConfig) -> None:
        html = TemplateRenderer(config).render_index(SiteContent())

        assert "No content yet." in html

    def test_render_category(self, config: AppConfig, category: Category) -> None:
        html = TemplateRenderer(config).render_category(category)

        assert "<h1>fruit</h1>" in html
        assert "Fresh fruit" in html
        assert "2024-01-01" in html

    def test_render_item(self, config: AppConfig, item: ContentItem) -> None:
        """Should embed the markdown HTML unescaped and escape metadata."""
        html = TemplateRenderer(config).render_item(item)

        assert "<p>Body <strong>bold</strong></p>" in html
        assert "Apple &lt;Red&gt;" in html
        assert 'href="attachment/pic.jpg"' in html
        assert '<span class="tag">red</span>' in html
        assert "Sam" in html

    def test_rendering_is_deterministic(self, config: AppConfig, item: ContentItem) -> None:
        renderer = TemplateRenderer(config)

        assert renderer.render_item(item) == renderer.render_item(item)


class TestUserTemplates:
    """Test overriding templates from the configured directory."""

    def test_user_template_wins(self, tmp_path: Path, item: ContentItem) -> None:
        templates = tmp_path / "theme"
        templates.mkdir()
        (templates / "item.html").write_text(
            "CUSTOM {{ item.title }} {{ site.title }}", encoding="utf-8"
        )
        config = AppConfig(templates_dir=templates, site_title="Shelf")

        renderer = TemplateRenderer(config)

        assert renderer.render_item(item) == "CUSTOM Apple &lt;Red&gt; Shelf"
        assert "<!DOCTYPE html>" in renderer.render_index(SiteContent())

    def test_templates_dir_argument_overrides_config(self, tmp_path: Path, item: ContentItem) -> None:
        templates = tmp_path / "theme"
        templates.mkdir()
        (templates / "item.html").write_text("ARG", encoding="utf-8")

        renderer = TemplateRenderer(AppConfig(), templates_dir=templates)

        assert renderer.render_item(item) == "ARG"

    def test_template_error_becomes_render_error(self, tmp_path: Path, item: ContentItem) -> None:
        templates = tmp_path / "theme"
        templates.mkdir()
        (templates / "item.html").write_text("{% for x in %}", encoding="utf-8")

        with pytest.raises(RenderError, match="item.html"):
            TemplateRenderer(AppConfig(templates_dir=templates)).render_item(item)

    def test_undefined_filter_becomes_render_error(self, tmp_path: Path, item: ContentItem) -> None:
        templates = tmp_path / "theme"
        templates.mkdir()
        (templates / "item.html").write_text("{{ item.title | nosuchfilter }}", encoding="utf-8")

        with pytest.raises(RenderError):
            TemplateRenderer(AppConfig(templates_dir=templates)).render_item(item)
