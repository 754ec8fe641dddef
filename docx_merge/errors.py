"""Exception taxonomy shared by the loader, merge engine, and serializer."""
from __future__ import annotations

from typing import Optional


class DocxMergeError(Exception):
    """Base class for every failure raised by the library."""


class FormatError(DocxMergeError):
    """The input container is malformed or not a WordprocessingML package."""


class ValidationError(DocxMergeError):
    """Caller-supplied data violates a documented precondition."""


class StructuralError(DocxMergeError):
    """A document was used after release or with an index built for another document."""


class UnsupportedFormatError(DocxMergeError):
    """The requested save/export target is not implemented."""


class RenderError(DocxMergeError):
    """Wraps a failure raised by the render collaborator."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause
