"""Test cases for media lookup functionality."""

import unittest

from docx_merge.parser.media_extractor import MediaResolver, extension_for, media_type_for
from docx_merge.parser.rels_parser import Relationships

DOC_RELS = b"""<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">
  <Relationship Id="rId1" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/image" Target="media/image1.jpeg"/>
  <Relationship Id="rId2" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/image" Target="https://example.com/a.png" TargetMode="External"/>
  <Relationship Id="rId3" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/image" Target="media/gone.png"/>
</Relationships>"""


class MediaResolverTest(unittest.TestCase):
    """Test media resolution through package relationships."""

    def setUp(self):
        self.parts = {
            "word/_rels/document.xml.rels": DOC_RELS,
            "word/media/image1.jpeg": b"\xff\xd8\xff\xe0jpeg",
            "word/document.xml": b"<w:document/>",
        }
        self.resolver = MediaResolver(Relationships.from_package(self.parts), self.parts)

    def test_resolve_embedded_image(self):
        media = self.resolver.resolve("word/document.xml", "rId1")
        self.assertIsNotNone(media)
        self.assertEqual(media.target_path, "word/media/image1.jpeg")
        self.assertEqual(media.media_type, "image/jpeg")
        self.assertEqual(media.data, b"\xff\xd8\xff\xe0jpeg")

    def test_external_and_missing_targets(self):
        self.assertIsNone(self.resolver.resolve("word/document.xml", "rId2"))
        self.assertIsNone(self.resolver.resolve("word/document.xml", "rId3"))
        self.assertIsNone(self.resolver.resolve("word/document.xml", "rId9"))


class MediaTypeTest(unittest.TestCase):
    def test_media_type_for_extension(self):
        self.assertEqual(media_type_for("media/image1.PNG"), "image/png")
        self.assertEqual(media_type_for("media/unknown.zzz"), "application/octet-stream")

    def test_extension_for_media_type(self):
        self.assertEqual(extension_for("image/png"), "png")
        self.assertEqual(extension_for("image/jpeg"), "jpeg")
        self.assertEqual(extension_for("application/x-unknown-thing"), "bin")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
