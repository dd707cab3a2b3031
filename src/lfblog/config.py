"""Application configuration defaults."""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path("lf_blog.toml")

# (table, key) in the TOML file -> AppConfig field
_TOML_FIELDS = {
    ("server", "host"): "host",
    ("server", "port"): "port",
    ("paths", "content_dir"): "content_dir",
    ("paths", "templates_dir"): "templates_dir",
    ("paths", "storage_database_path"): "db_path",
    ("site", "title"): "site_title",
    ("site", "description"): "site_description",
    ("site", "url"): "site_url",
    ("site", "author"): "site_author",
    ("compile", "prune"): "prune",
}
_PATH_FIELDS = {"content_dir", "templates_dir", "db_path"}


def _get_default_db_path() -> Path:
    """Storage database location, overridable through ``LFBLOG_DB``."""
    env_db = os.environ.get("LFBLOG_DB")
    if env_db:
        return Path(env_db)
    return Path("storage.db")


@dataclass(slots=True)
class AppConfig:
    content_dir: Path = Path("content")
    templates_dir: Path = Path("templates")
    db_path: Path | None = None
    site_title: str = "My Collections"
    site_description: str = "A blog about my collections"
    site_url: str = "http://localhost:8080"
    site_author: str = ""
    host: str = "127.0.0.1"
    port: int = 8080
    prune: bool = False

    def __post_init__(self) -> None:
        if self.db_path is None:
            self.db_path = _get_default_db_path()
        self.content_dir = Path(self.content_dir)
        self.templates_dir = Path(self.templates_dir)
        self.db_path = Path(self.db_path)

    @classmethod
    def load(cls, path: Path | None = None) -> "AppConfig":
        """Read a TOML config file, falling back to defaults when it is missing."""
        path = Path(path) if path is not None else DEFAULT_CONFIG_FILE
        if not path.exists():
            LOGGER.debug("Config file %s not found, using defaults", path)
            return cls()

        try:
            with path.open("rb") as handle:
                data = tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:
            raise ValueError(f"Invalid config file {path}: {exc}") from exc

        values: Dict[str, Any] = {}
        for (table, key), name in _TOML_FIELDS.items():
            section = data.get(table)
            if isinstance(section, dict) and key in section:
                value = section[key]
                values[name] = Path(value) if name in _PATH_FIELDS else value

        return cls(**values)

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        if self.db_path is None:
            self.db_path = _get_default_db_path()
        if Path(self.db_path).is_absolute() or base_dir is None:
            return Path(self.db_path)
        return base_dir / self.db_path

    def resolve_content_dir(self, base_dir: Path | None = None) -> Path:
        if self.content_dir.is_absolute() or base_dir is None:
            return self.content_dir
        return base_dir / self.content_dir

    def resolve_templates_dir(self, base_dir: Path | None = None) -> Path:
        if self.templates_dir.is_absolute() or base_dir is None:
            return self.templates_dir
        return base_dir / self.templates_dir
