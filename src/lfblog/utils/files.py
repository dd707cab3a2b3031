"""Utility helpers for working with the content tree on disk."""

from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Iterator, List

from lfblog.errors import ContentIOError

MARKDOWN_SUFFIXES = (".md", ".markdown")

_MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "svg": "image/svg+xml",
    "webp": "image/webp",
    "pdf": "application/pdf",
    "zip": "application/zip",
    "mp4": "video/mp4",
    "mp3": "audio/mpeg",
    "txt": "text/plain",
    "css": "text/css",
    "js": "application/javascript",
    "html": "text/html",
}


def is_hidden(path: Path) -> bool:
    return path.name.startswith(".")


def sorted_entries(directory: Path) -> List[Path]:
    """Return the entries of ``directory`` sorted by name.

    Filesystems do not guarantee a stable listing order; everything that
    depends on position (attachment counters) goes through this helper.
    """
    try:
        return sorted(directory.iterdir(), key=lambda entry: entry.name)
    except OSError as exc:
        raise ContentIOError(f"Failed to read directory {directory}: {exc}") from exc


def iter_visible_dirs(directory: Path) -> Iterator[Path]:
    """Yield non-hidden subdirectories in name order."""
    for entry in sorted_entries(directory):
        if entry.is_dir() and not is_hidden(entry):
            yield entry


def iter_markdown_paths(directory: Path) -> Iterator[Path]:
    """Yield markdown files directly inside ``directory``."""
    for entry in sorted_entries(directory):
        if entry.is_file() and entry.suffix.lower() in MARKDOWN_SUFFIXES:
            yield entry


def read_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise ContentIOError(f"Failed to read {path}: {exc}") from exc


def get_mime_type(extension: str) -> str:
    """Map a file extension (without the dot) to a MIME type."""
    ext = extension.lower()
    if ext in _MIME_TYPES:
        return _MIME_TYPES[ext]
    guessed, _ = mimetypes.guess_type(f"file.{ext}") if ext else (None, None)
    return guessed or "application/octet-stream"
