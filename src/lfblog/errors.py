"""Error types raised by the compilation pipeline."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    IO = "io"
    PARSE = "parse"
    RENDER = "render"
    STORAGE = "storage"


class LfBlogError(Exception):
    """Base class for pipeline failures.

    Callers branch on ``kind`` (or the subclass) rather than on the message.
    """

    kind: ErrorKind

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind.value, "message": self.message}


class ContentIOError(LfBlogError):
    """A directory or file of the content tree could not be read."""

    kind = ErrorKind.IO


class ParseError(LfBlogError):
    """Frontmatter or markdown source could not be parsed."""

    kind = ErrorKind.PARSE


class RenderError(LfBlogError):
    """A page template failed to render."""

    kind = ErrorKind.RENDER


class StorageError(LfBlogError):
    """The storage database could not be opened or a transaction failed."""

    kind = ErrorKind.STORAGE
