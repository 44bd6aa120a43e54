"""Tests for relationship parsing, indexing and writing."""
import unittest

from lxml import etree

from docx_assembler.parser.rels_parser import (
    RELTYPE_IMAGE,
    RelationshipPartWriter,
    Relationships,
    relative_target,
    rels_part_for,
)


doc_rels_xml = """
<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">
  <Relationship Id="rId1" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/header" Target="header1.xml"/>
  <Relationship Id="rId2" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/footer" Target="footer1.xml"/>
  <Relationship Id="rId3" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/image" Target="media/image1.png"/>
  <Relationship Id="rId4" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/numbering" Target="numbering.xml"/>
  <Relationship Id="rId5" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/hyperlink" Target="https://example.com" TargetMode="External"/>
  <Relationship Id="rId12" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/image" Target="/word/media/logo.png"/>
</Relationships>
""".strip()

header_rels_xml = """
<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">
  <Relationship Id="rId1" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/image" Target="../media/image2.png"/>
</Relationships>
""".strip()

RELS = {"rel": "http://schemas.openxmlformats.org/package/2006/relationships"}


class RelationshipsTest(unittest.TestCase):
    """Validate relationship lookup and target resolution."""

    def setUp(self) -> None:
        self.parts = {
            "word/_rels/document.xml.rels": doc_rels_xml.encode("utf-8"),
            "word/_rels/header1.xml.rels": header_rels_xml.encode("utf-8"),
        }

    def test_document_targets_resolve(self) -> None:
        relationships = Relationships.from_package(self.parts)

        header = relationships.find("word/document.xml", "rId1")
        image = relationships.find("word/document.xml", "rId3")
        link = relationships.find("word/document.xml", "rId5")
        absolute = relationships.find("word/document.xml", "rId12")

        self.assertEqual(header.resolved_target, "word/header1.xml")
        self.assertEqual(image.resolved_target, "word/media/image1.png")
        self.assertEqual(image.rel_type, RELTYPE_IMAGE)
        self.assertTrue(link.is_external)
        self.assertEqual(link.resolved_target, "https://example.com")
        self.assertEqual(absolute.resolved_target, "word/media/logo.png")

    def test_part_lookup_normalizes_names(self) -> None:
        relationships = Relationships.from_package(self.parts)

        by_part = relationships.find("word/header1.xml", "rId1")
        by_rels_part = relationships.find("word/_rels/header1.xml.rels", "rId1")

        self.assertEqual(by_part.resolved_target, "word/media/image2.png")
        self.assertEqual(by_rels_part, by_part)
        self.assertIsNone(relationships.find("word/document.xml", "rId99"))

    def test_unreadable_rels_part_is_ignored(self) -> None:
        parts = dict(self.parts)
        parts["word/_rels/footer1.xml.rels"] = b"<Relationships"

        relationships = Relationships.from_package(parts)

        self.assertIsNone(relationships.find("word/footer1.xml", "rId1"))
        self.assertIsNotNone(relationships.find("word/document.xml", "rId3"))


class RelationshipPartWriterTest(unittest.TestCase):
    """New relationships get ids that do not collide with existing ones."""

    def test_add_allocates_after_highest_id(self) -> None:
        writer = RelationshipPartWriter(doc_rels_xml.encode("utf-8"))

        first = writer.add(RELTYPE_IMAGE, "media/exhibit1_image1.png")
        second = writer.add(RELTYPE_IMAGE, "https://example.com/logo.png", external=True)

        self.assertEqual((first, second), ("rId13", "rId14"))
        self.assertTrue(writer.modified)

        root = etree.fromstring(writer.to_bytes())
        added = root.findall("rel:Relationship", RELS)[-1]
        self.assertEqual(added.get("TargetMode"), "External")
        self.assertIsNone(root.prefix)

    def test_missing_part_is_created(self) -> None:
        writer = RelationshipPartWriter(None)
        self.assertFalse(writer.modified)

        self.assertEqual(writer.add(RELTYPE_IMAGE, "media/a.png"), "rId1")
        root = etree.fromstring(writer.to_bytes())
        self.assertEqual(len(root.findall("rel:Relationship", RELS)), 1)

    def test_part_name_helpers(self) -> None:
        self.assertEqual(rels_part_for("word/document.xml"), "word/_rels/document.xml.rels")
        self.assertEqual(relative_target("word/document.xml", "word/media/a.png"), "media/a.png")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
