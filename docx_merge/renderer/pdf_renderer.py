"""Render the document model into a PDF file using PyMuPDF."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol

import fitz  # PyMuPDF

from docx_merge.errors import DocxMergeError, RenderError
from docx_merge.model.document_model import Document
from docx_merge.model.elements import EmbeddedObject, TextRun
from docx_merge.utils.logger import get_logger
from docx_merge.utils.units import emu_to_points

LOGGER = get_logger(__name__)

# A4 portrait in points.
DEFAULT_PAGE_WIDTH = 595.0
DEFAULT_PAGE_HEIGHT = 842.0
DEFAULT_MARGIN = 72.0
DEFAULT_FONT = "helv"
DEFAULT_FONT_SIZE = 11.0
DEFAULT_LINE_SPACING = 1.4
TAB_SPACES = 4

_PDF_METADATA_KEYS = {"title": "title", "subject": "subject", "creator": "author", "description": "keywords"}


class RenderCollaborator(Protocol):
    """Converts a document into a derived binary format."""

    def render(self, document: Document) -> bytes:
        ...


@dataclass(slots=True)
class PdfRenderOptions:
    page_width: float = DEFAULT_PAGE_WIDTH
    page_height: float = DEFAULT_PAGE_HEIGHT
    margin: float = DEFAULT_MARGIN
    font_name: str = DEFAULT_FONT
    font_size: float = DEFAULT_FONT_SIZE
    line_spacing: float = DEFAULT_LINE_SPACING
    section_page_break: bool = True

    @property
    def content_width(self) -> float:
        return self.page_width - 2 * self.margin

    @property
    def content_height(self) -> float:
        return self.page_height - 2 * self.margin

    @property
    def line_height(self) -> float:
        return self.font_size * self.line_spacing


class _PageCursor:
    """Tracks the current page and vertical position while laying out."""

    def __init__(self, pdf: fitz.Document, options: PdfRenderOptions) -> None:
        self.pdf = pdf
        self.options = options
        self.page: Optional[fitz.Page] = None
        self.y = 0.0

    def new_page(self) -> None:
        self.page = self.pdf.new_page(width=self.options.page_width, height=self.options.page_height)
        self.y = self.options.margin

    @property
    def at_page_top(self) -> bool:
        return self.page is not None and self.y <= self.options.margin

    def reserve(self, height: float) -> float:
        """Return the top of a block of ``height``, starting a new page when needed."""
        bottom = self.options.page_height - self.options.margin
        if self.page is None or (self.y + height > bottom and not self.at_page_top):
            self.new_page()
        top = self.y
        self.y += height
        return top


class PdfRenderer:
    """Lays out paragraphs as wrapped lines of text and inline images."""

    def __init__(self, options: Optional[PdfRenderOptions] = None) -> None:
        self.options = options or PdfRenderOptions()

    def render(self, document: Document) -> bytes:
        pdf = fitz.open()
        try:
            self._render_into(pdf, document)
            return pdf.tobytes()
        except DocxMergeError:
            raise
        except Exception as exc:
            raise RenderError(f"PDF rendering failed: {exc}", exc) from exc
        finally:
            pdf.close()

    # ------------------------------------------------------------------
    # Layout
    def _render_into(self, pdf: fitz.Document, document: Document) -> None:
        cursor = _PageCursor(pdf, self.options)
        for position, section in enumerate(document.section_ids()):
            if position and self.options.section_page_break:
                cursor.new_page()
            elif position:
                cursor.reserve(self.options.line_height)
            for paragraph in document.paragraph_ids(section):
                self._render_paragraph(cursor, document, paragraph)
        if cursor.page is None:
            cursor.new_page()
        pdf.set_metadata(self._pdf_metadata(document))
        LOGGER.debug("Rendered %d PDF pages", pdf.page_count)

    def _render_paragraph(self, cursor: _PageCursor, document: Document, paragraph: int) -> None:
        text = ""
        wrote = False
        for item in document.inlines(paragraph):
            if isinstance(item, TextRun):
                text += item.text
            elif isinstance(item, EmbeddedObject):
                if text:
                    self._render_text(cursor, text)
                    text = ""
                wrote = self._render_image(cursor, item) or wrote
        if text or not wrote:
            self._render_text(cursor, text)

    def _render_text(self, cursor: _PageCursor, text: str) -> None:
        options = self.options
        for line in self._wrap(text, options.content_width):
            top = cursor.reserve(options.line_height)
            if line:
                cursor.page.insert_text(
                    fitz.Point(options.margin, top + options.font_size),
                    line,
                    fontname=options.font_name,
                    fontsize=options.font_size,
                )

    def _render_image(self, cursor: _PageCursor, obj: EmbeddedObject) -> bool:
        if obj.kind != "image":
            LOGGER.debug("Embedded object of kind %s not rendered", obj.kind)
            return False
        width = emu_to_points(obj.width_emu) if obj.width_emu else 72.0
        height = emu_to_points(obj.height_emu) if obj.height_emu else 72.0
        scale = min(1.0, self.options.content_width / width, self.options.content_height / height)
        width, height = width * scale, height * scale
        top = cursor.reserve(height)
        rect = fitz.Rect(self.options.margin, top, self.options.margin + width, top + height)
        cursor.page.insert_image(rect, stream=obj.payload)
        return True

    # ------------------------------------------------------------------
    # Text measurement
    def _measure(self, text: str) -> float:
        return fitz.get_text_length(text, fontname=self.options.font_name, fontsize=self.options.font_size)

    def _wrap(self, text: str, width: float) -> List[str]:
        """Greedy word wrap; explicit newlines always start a new line."""
        lines: List[str] = []
        for raw_line in text.replace("\t", " " * TAB_SPACES).split("\n"):
            current = ""
            for word in raw_line.split(" "):
                candidate = f"{current} {word}" if current else word
                if self._measure(candidate) <= width:
                    current = candidate
                    continue
                if current:
                    lines.append(current)
                current = ""
                for chunk in self._split_word(word, width):
                    if current:
                        lines.append(current)
                    current = chunk
            lines.append(current)
        return lines

    def _split_word(self, word: str, width: float) -> List[str]:
        chunks: List[str] = []
        current = ""
        for char in word:
            if current and self._measure(current + char) > width:
                chunks.append(current)
                current = ""
            current += char
        chunks.append(current)
        return chunks

    @staticmethod
    def _pdf_metadata(document: Document) -> dict:
        metadata = {"producer": "docx-merge"}
        for key, pdf_key in _PDF_METADATA_KEYS.items():
            if document.metadata.get(key):
                metadata[pdf_key] = document.metadata[key]
        return metadata
