"""Tests for merge field indexing."""
import unittest

from docx_merge.errors import StructuralError
from docx_merge.merge.field_index import FieldIndex, scan
from docx_merge.model.document_model import Document
from docx_merge.model.elements import FieldLocation


def build_letter() -> Document:
    document = Document.new_empty()
    section = document.add_section()
    greeting = document.add_paragraph(section)
    document.append_text(greeting, "Bonjour ")
    document.append_field(greeting, "Prenom")
    document.append_text(greeting, " ")
    document.append_field(greeting, "Nom")
    closing = document.add_paragraph(document.add_section())
    document.append_text(closing, "Cordialement, ")
    document.append_field(closing, "Prenom")
    return document


class FieldIndexTest(unittest.TestCase):
    def test_names_keep_first_seen_order(self) -> None:
        index = FieldIndex.scan(build_letter())
        self.assertEqual(index.names, ["Prenom", "Nom"])
        self.assertEqual(len(index), 2)
        self.assertEqual(index.occurrence_count, 3)

    def test_locations_cover_every_occurrence(self) -> None:
        document = build_letter()
        index = scan(document)
        self.assertEqual(
            index.locations("Prenom"),
            (FieldLocation(0, 0, 1), FieldLocation(1, 1, 5)),
        )
        self.assertEqual(index.locations("Nom"), (FieldLocation(0, 0, 3),))
        self.assertEqual(index.locations("Absent"), ())

    def test_names_are_case_sensitive(self) -> None:
        document = Document.new_empty()
        paragraph = document.add_paragraph(document.add_section())
        document.append_field(paragraph, "Nom")
        document.append_field(paragraph, "nom")
        index = FieldIndex.scan(document)
        self.assertEqual(index.names, ["Nom", "nom"])
        self.assertIn("nom", index)
        self.assertNotIn("NOM", index)

    def test_document_without_fields(self) -> None:
        document = Document.new_empty()
        document.append_text(document.add_paragraph(document.add_section()), "Plain")
        index = FieldIndex.scan(document)
        self.assertEqual(index.names, [])
        self.assertEqual(list(index), [])

    def test_index_is_read_only(self) -> None:
        index = FieldIndex.scan(build_letter())
        with self.assertRaises(TypeError):
            index._entries["Poste"] = ()  # type: ignore[index]

    def test_binding_accepts_clones_and_rejects_others(self) -> None:
        document = build_letter()
        index = FieldIndex.scan(document)
        clone = document.clone()

        self.assertTrue(index.is_bound_to(document))
        self.assertTrue(index.is_bound_to(clone))
        self.assertFalse(index.is_bound_to(build_letter()))
        with self.assertRaises(StructuralError):
            index.check_bound(build_letter())

    def test_structural_edit_makes_index_stale(self) -> None:
        document = build_letter()
        index = FieldIndex.scan(document)
        document.append_field(document.add_paragraph(0), "Poste")
        self.assertFalse(index.is_bound_to(document))

    def test_diverged_clone_is_rejected(self) -> None:
        base = Document.new_empty()
        paragraph = base.add_paragraph(base.add_section())
        base.append_text(paragraph, "x")
        clone = base.clone()
        clone.append_field(paragraph, "A")
        base.append_field(paragraph, "B")
        index = FieldIndex.scan(base)

        self.assertEqual(clone.revision, base.revision)
        self.assertFalse(index.is_bound_to(clone))
        with self.assertRaises(StructuralError):
            index.check_bound(clone)

    def test_clone_of_clone_shares_binding_until_edited(self) -> None:
        document = build_letter()
        index = FieldIndex.scan(document)
        grandchild = document.clone().clone()
        self.assertTrue(index.is_bound_to(grandchild))
        grandchild.add_section()
        self.assertFalse(index.is_bound_to(grandchild))

    def test_released_document_is_rejected(self) -> None:
        document = build_letter()
        index = FieldIndex.scan(document)
        document.release()
        with self.assertRaises(StructuralError):
            index.check_bound(document)
        with self.assertRaises(StructuralError):
            FieldIndex.scan(document)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
