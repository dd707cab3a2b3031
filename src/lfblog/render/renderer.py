"""Jinja2 page renderer.

Templates in the configured ``templates_dir`` take precedence over the
built-in ones shipped next to this module.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Protocol

from jinja2 import ChoiceLoader, Environment, FileSystemLoader, TemplateError, select_autoescape

from lfblog.config import AppConfig
from lfblog.errors import RenderError
from lfblog.models import Category, ContentItem, SiteContent

LOGGER = logging.getLogger(__name__)

BUILTIN_TEMPLATES_DIR = Path(__file__).with_name("templates")


class Renderer(Protocol):
    def render_index(self, site: SiteContent) -> str: ...

    def render_category(self, category: Category) -> str: ...

    def render_item(self, item: ContentItem) -> str: ...


class TemplateRenderer:
    """Renders index, category and item pages to HTML strings."""

    def __init__(self, config: AppConfig, *, templates_dir: Path | None = None) -> None:
        self.config = config
        user_dir = Path(templates_dir) if templates_dir is not None else config.templates_dir

        loaders = []
        if user_dir.is_dir():
            LOGGER.debug("Loading user templates from %s", user_dir)
            loaders.append(FileSystemLoader(str(user_dir)))
        loaders.append(FileSystemLoader(str(BUILTIN_TEMPLATES_DIR)))

        self.env = Environment(
            loader=ChoiceLoader(loaders),
            autoescape=select_autoescape(["html"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def _site_context(self) -> Dict[str, Any]:
        return {
            "title": self.config.site_title,
            "description": self.config.site_description,
            "url": self.config.site_url,
            "author": self.config.site_author,
        }

    def _render(self, template_name: str, **context: Any) -> str:
        try:
            template = self.env.get_template(template_name)
            return template.render(site=self._site_context(), **context)
        except TemplateError as exc:
            raise RenderError(f"Failed to render {template_name}: {exc}") from exc

    def render_index(self, site: SiteContent) -> str:
        return self._render("index.html", site_content=site)

    def render_category(self, category: Category) -> str:
        return self._render("category.html", category=category)

    def render_item(self, item: ContentItem) -> str:
        return self._render("item.html", item=item)
