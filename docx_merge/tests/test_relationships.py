"""Tests for relationship parsing and writing."""
import unittest

from docx_merge.parser.rels_parser import (
    RELTYPE_IMAGE,
    RELTYPE_OFFICE_DOCUMENT,
    Relationship,
    Relationships,
    relationships_part,
)


package_rels_xml = """
<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">
  <Relationship Id="rId1" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument" Target="/word/main.xml"/>
</Relationships>
"""

doc_rels_xml = """
<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">
  <Relationship Id="rId3" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/image" Target="media/image1.png"/>
  <Relationship Id="rId5" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/hyperlink" Target="https://example.com" TargetMode="External"/>
</Relationships>
"""

header_rels_xml = """
<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">
  <Relationship Id="rId1" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/image" Target="../media/image2.png"/>
</Relationships>
"""


class RelationshipsTest(unittest.TestCase):
    """Validate relationship lookup and target resolution."""

    def setUp(self) -> None:
        self.parts = {
            "_rels/.rels": package_rels_xml.encode("utf-8"),
            "word/_rels/main.xml.rels": doc_rels_xml.encode("utf-8"),
            "word/_rels/header1.xml.rels": header_rels_xml.encode("utf-8"),
        }

    def test_main_document_part_follows_package_relationship(self) -> None:
        relationships = Relationships.from_package(self.parts)
        self.assertEqual(relationships.main_document_part(), "word/main.xml")

    def test_main_document_part_defaults(self) -> None:
        self.assertEqual(Relationships({}).main_document_part(), "word/document.xml")

    def test_part_lookup_normalizes_names(self) -> None:
        relationships = Relationships.from_package(self.parts)

        rel = relationships.find("word/header1.xml", "rId1")
        assert rel is not None
        self.assertEqual(rel.resolved_target, "word/media/image2.png")

        rel = relationships.find("word/_rels/header1.xml.rels", "rId1")
        assert rel is not None
        self.assertEqual(rel.resolved_target, "word/media/image2.png")
        self.assertEqual(rel.rel_type, RELTYPE_IMAGE)

    def test_external_targets_are_kept_verbatim(self) -> None:
        relationships = Relationships.from_package(self.parts)
        rel = relationships.find("word/main.xml", "rId5")
        assert rel is not None
        self.assertTrue(rel.is_external)
        self.assertEqual(rel.resolved_target, "https://example.com")

    def test_written_part_reads_back(self) -> None:
        payload = relationships_part(
            [
                Relationship("", "rId1", "word/document.xml", RELTYPE_OFFICE_DOCUMENT),
                Relationship("", "rId2", "https://example.com", "urn:link", is_external=True),
            ]
        )
        self.assertNotIn(b"ns0:", payload)
        relationships = Relationships.from_package({"_rels/.rels": payload})
        self.assertEqual(relationships.main_document_part(), "word/document.xml")
        self.assertTrue(relationships.find("", "rId2").is_external)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
