"""Load documents from and save them to the supported output formats."""
from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional, Union

from docx_merge.errors import UnsupportedFormatError
from docx_merge.model.document_model import Document
from docx_merge.renderer.docx_writer import DocxWriter
from docx_merge.renderer.pdf_renderer import PdfRenderer, RenderCollaborator
from docx_merge.utils.logger import get_logger

LOGGER = get_logger(__name__)


class DocumentFormat(str, Enum):
    DOCX = "docx"
    TXT = "txt"
    PDF = "pdf"

    @classmethod
    def coerce(cls, value: Union["DocumentFormat", str]) -> "DocumentFormat":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower().lstrip("."))
        except ValueError:
            raise UnsupportedFormatError(f"Unsupported document format: {value!r}") from None

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "DocumentFormat":
        suffix = Path(path).suffix
        if not suffix:
            raise UnsupportedFormatError(f"Cannot infer a document format from {path}")
        return cls.coerce(suffix)


FormatLike = Union[DocumentFormat, str]


class Serializer:
    """Entry point for reading templates and writing merged documents.

    ``docx`` is the native format and round-trips through ``load``; ``txt``
    and ``pdf`` are derived, one-way exports.
    """

    def __init__(self, renderer: Optional[RenderCollaborator] = None) -> None:
        self._renderer = renderer or PdfRenderer()

    def load(self, source: Union[bytes, Path, str]) -> Document:
        return Document.load(source)

    def save(self, document: Document, fmt: FormatLike = DocumentFormat.DOCX) -> bytes:
        fmt = DocumentFormat.coerce(fmt)
        if fmt is DocumentFormat.DOCX:
            return DocxWriter().write(document)
        return self.export(document, fmt)

    def export(self, document: Document, fmt: FormatLike) -> bytes:
        fmt = DocumentFormat.coerce(fmt)
        if fmt is DocumentFormat.TXT:
            return document.get_plain_text().encode("utf-8")
        if fmt is DocumentFormat.PDF:
            return self._renderer.render(document)
        raise UnsupportedFormatError(f"{fmt.value} is not an export format; use save()")

    def save_to_file(self, document: Document, path: Union[str, Path], fmt: Optional[FormatLike] = None) -> Path:
        """Write ``document`` to ``path``; the format defaults to the file suffix."""
        path = Path(path)
        fmt = DocumentFormat.from_path(path) if fmt is None else DocumentFormat.coerce(fmt)
        payload = self.save(document, fmt)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(payload)
        LOGGER.debug("Saved %s (%d bytes) to %s", fmt.value, len(payload), path)
        return path
