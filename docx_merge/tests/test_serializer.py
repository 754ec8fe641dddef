"""Tests for the serializer's format dispatch."""
import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock

import fitz  # PyMuPDF

from docx_merge.errors import RenderError, UnsupportedFormatError
from docx_merge.model.document_model import Document
from docx_merge.serializer import DocumentFormat, Serializer


def build_document() -> Document:
    document = Document.new_empty()
    paragraph = document.add_paragraph(document.add_section())
    document.append_text(paragraph, "Société & Co. ")
    document.append_field(paragraph, "Poste")
    return document


class DocumentFormatTest(unittest.TestCase):
    def test_coerce(self) -> None:
        self.assertIs(DocumentFormat.coerce("PDF"), DocumentFormat.PDF)
        self.assertIs(DocumentFormat.coerce(".txt"), DocumentFormat.TXT)
        self.assertIs(DocumentFormat.coerce(DocumentFormat.DOCX), DocumentFormat.DOCX)
        with self.assertRaises(UnsupportedFormatError):
            DocumentFormat.coerce("odt")

    def test_from_path(self) -> None:
        self.assertIs(DocumentFormat.from_path("out/letter.docx"), DocumentFormat.DOCX)
        with self.assertRaises(UnsupportedFormatError):
            DocumentFormat.from_path("out/letter")


class SerializerTest(unittest.TestCase):
    def test_save_docx_round_trips(self) -> None:
        serializer = Serializer()
        original = build_document()
        loaded = serializer.load(serializer.save(original))
        self.assertEqual(loaded.snapshot(), original.snapshot())

    def test_export_txt(self) -> None:
        data = Serializer().export(build_document(), "txt")
        self.assertEqual(data.decode("utf-8"), "Société & Co. ")

    def test_save_delegates_derived_formats(self) -> None:
        serializer = Serializer()
        self.assertEqual(serializer.save(build_document(), "txt"), serializer.export(build_document(), "txt"))

    def test_export_docx_is_rejected(self) -> None:
        with self.assertRaises(UnsupportedFormatError):
            Serializer().export(build_document(), DocumentFormat.DOCX)

    def test_unknown_format_is_rejected(self) -> None:
        with self.assertRaises(UnsupportedFormatError):
            Serializer().save(build_document(), "rtf")

    def test_export_pdf_uses_renderer(self) -> None:
        renderer = Mock()
        renderer.render.return_value = b"%PDF-fake"
        document = build_document()
        self.assertEqual(Serializer(renderer).export(document, "pdf"), b"%PDF-fake")
        renderer.render.assert_called_once_with(document)

    def test_render_errors_propagate(self) -> None:
        renderer = Mock()
        renderer.render.side_effect = RenderError("broken", ValueError("bad"))
        with self.assertRaises(RenderError) as ctx:
            Serializer(renderer).export(build_document(), "pdf")
        self.assertIsInstance(ctx.exception.cause, ValueError)

    def test_export_pdf_with_default_renderer(self) -> None:
        data = Serializer().export(build_document(), "pdf")
        with fitz.open(stream=data, filetype="pdf") as pdf:
            self.assertEqual(pdf.page_count, 1)
            self.assertIn("Société & Co.", pdf[0].get_text())

    def test_save_to_file_infers_format(self) -> None:
        serializer = Serializer()
        with tempfile.TemporaryDirectory() as tmp:
            txt_path = serializer.save_to_file(build_document(), Path(tmp) / "nested" / "letter.txt")
            docx_path = serializer.save_to_file(build_document(), Path(tmp) / "letter.docx")

            self.assertEqual(txt_path.read_text(encoding="utf-8"), "Société & Co. ")
            self.assertEqual(serializer.load(docx_path).get_plain_text(), "Société & Co. ")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
