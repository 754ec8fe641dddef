"""Tests for the PyMuPDF renderer."""
import base64
import unittest
from unittest.mock import patch

import fitz  # PyMuPDF

from docx_merge.errors import RenderError
from docx_merge.model.document_model import Document
from docx_merge.model.elements import EmbeddedObject
from docx_merge.renderer.pdf_renderer import PdfRenderer, PdfRenderOptions

PNG_1X1 = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


def page_texts(data: bytes):
    with fitz.open(stream=data, filetype="pdf") as pdf:
        return [page.get_text() for page in pdf]


class PdfRendererTest(unittest.TestCase):
    def test_empty_document_has_one_page(self) -> None:
        self.assertEqual(len(page_texts(PdfRenderer().render(Document.new_empty()))), 1)

    def test_text_and_unresolved_fields(self) -> None:
        document = Document.new_empty()
        paragraph = document.add_paragraph(document.add_section())
        document.append_text(paragraph, "Bonjour ")
        document.append_field(paragraph, "Prenom")
        document.append_text(paragraph, "!")

        (text,) = page_texts(PdfRenderer().render(document))
        self.assertIn("Bonjour !", text)
        self.assertNotIn("Prenom", text)

    def test_sections_start_new_pages(self) -> None:
        document = Document.new_empty()
        for label in ("First", "Second"):
            document.append_text(document.add_paragraph(document.add_section()), label)

        texts = page_texts(PdfRenderer().render(document))
        self.assertEqual(len(texts), 2)
        self.assertIn("Second", texts[1])

        options = PdfRenderOptions(section_page_break=False)
        self.assertEqual(len(page_texts(PdfRenderer(options).render(document))), 1)

    def test_long_text_wraps_and_paginates(self) -> None:
        document = Document.new_empty()
        section = document.add_section()
        for number in range(120):
            document.append_text(document.add_paragraph(section), f"Ligne {number} " + "mot " * 40)

        texts = page_texts(PdfRenderer().render(document))
        self.assertGreater(len(texts), 1)
        self.assertIn("Ligne 0", texts[0])
        self.assertIn("Ligne 119", texts[-1])

    def test_wrap_respects_width(self) -> None:
        renderer = PdfRenderer()
        lines = renderer._wrap("alpha beta gamma\nsupercalifragilistic", 60)
        self.assertGreater(len(lines), 3)
        for line in lines:
            self.assertLessEqual(renderer._measure(line), 60)

    def test_image_is_drawn(self) -> None:
        document = Document.new_empty()
        paragraph = document.add_paragraph(document.add_section())
        document.append_object(
            paragraph,
            EmbeddedObject(kind="image", payload=PNG_1X1, media_type="image/png", width_emu=914400, height_emu=914400),
        )
        with fitz.open(stream=PdfRenderer().render(document), filetype="pdf") as pdf:
            self.assertEqual(len(pdf[0].get_images()), 1)

    def test_metadata_is_copied(self) -> None:
        document = Document.new_empty()
        document.metadata.update({"title": "Lettre", "creator": "RH"})
        with fitz.open(stream=PdfRenderer().render(document), filetype="pdf") as pdf:
            self.assertEqual(pdf.metadata["title"], "Lettre")
            self.assertEqual(pdf.metadata["author"], "RH")

    def test_pymupdf_failure_raises_render_error(self) -> None:
        document = Document.new_empty()
        document.append_object(
            document.add_paragraph(document.add_section()),
            EmbeddedObject(kind="image", payload=PNG_1X1, media_type="image/png"),
        )
        with patch.object(fitz.Page, "insert_image", side_effect=RuntimeError("cannot decode")):
            with self.assertRaises(RenderError) as ctx:
                PdfRenderer().render(document)
        self.assertIsInstance(ctx.exception.cause, RuntimeError)
        self.assertIs(ctx.exception.__cause__, ctx.exception.cause)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
