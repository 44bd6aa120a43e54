"""Tests for classifying and editing the document body."""
import unittest

from lxml import etree

from docx_fixtures import W_NS, document_xml, page_break, paragraph, section_break_paragraph, table

from docx_assembler.errors import MalformedContent
from docx_assembler.model.elements import NodeKind
from docx_assembler.parser.body_parser import (
    BodyParser,
    is_page_break_paragraph,
    make_page_break_paragraph,
    strip_section_breaks,
)


def _parse(xml: str):
    return BodyParser(xml.encode("utf-8"), source="test").parse()


class BodyParserTest(unittest.TestCase):
    """Body nodes come back as tagged variants in document order."""

    def test_nodes_are_classified(self) -> None:
        body = _parse(
            document_xml(
                paragraph("Intro"),
                table("Cell"),
                page_break(),
                '<w:bookmarkStart w:id="0" w:name="end"/>',
            )
        )

        kinds = [node.kind for node in body.nodes]
        self.assertEqual(
            kinds,
            [NodeKind.PARAGRAPH, NodeKind.TABLE, NodeKind.PAGE_BREAK, NodeKind.OTHER, NodeKind.SECTION_PROPERTIES],
        )
        self.assertEqual(body.nodes[0].text, "Intro")
        self.assertEqual(body.nodes[1].text, "Cell")

    def test_missing_body_is_malformed(self) -> None:
        with self.assertRaises(MalformedContent) as ctx:
            _parse(f'<w:document xmlns:w="{W_NS}"/>')

        self.assertEqual(ctx.exception.source, "test")

    def test_invalid_xml_is_malformed(self) -> None:
        with self.assertRaises(MalformedContent):
            _parse("<w:document><w:body>")

    def test_insert_before_layout_keeps_section_properties_last(self) -> None:
        body = _parse(document_xml(paragraph("Intro")))

        body.insert_before_layout(make_page_break_paragraph())

        kinds = [node.kind for node in body.nodes]
        self.assertEqual(kinds, [NodeKind.PARAGRAPH, NodeKind.PAGE_BREAK, NodeKind.SECTION_PROPERTIES])

    def test_trailing_comment_does_not_hide_layout(self) -> None:
        xml = document_xml(paragraph("Intro")).replace("</w:sectPr></w:body>", "</w:sectPr><!-- end --></w:body>")
        body = _parse(xml)

        for number in range(200):
            element = etree.fromstring(paragraph(str(number)).replace("<w:p>", f'<w:p xmlns:w="{W_NS}">', 1))
            body.insert_before_layout(element)

        self.assertIsNotNone(body.section_properties)
        self.assertEqual(body.nodes[-1].kind, NodeKind.SECTION_PROPERTIES)
        self.assertEqual(body.nodes[1].text, "0")
        self.assertEqual(len(body.nodes), 202)

    def test_nested_section_breaks_are_stripped(self) -> None:
        body = _parse(document_xml(section_break_paragraph("Part one"), paragraph("Part two")))
        copied = body.nodes[0].element

        self.assertEqual(strip_section_breaks(copied), 1)
        self.assertIsNone(copied.find(f"{{{W_NS}}}pPr/{{{W_NS}}}sectPr"))
        self.assertEqual(strip_section_breaks(body.section_properties), 0)

    def test_insert_without_layout_appends(self) -> None:
        body = _parse(document_xml(paragraph("Intro"), trailing_layout=False))
        self.assertIsNone(body.section_properties)

        body.insert_before_layout(make_page_break_paragraph())

        self.assertEqual(body.nodes[-1].kind, NodeKind.PAGE_BREAK)

    def test_serialization_keeps_prefixes_and_declarations(self) -> None:
        body = _parse(document_xml(paragraph("Intro")))
        body.insert_before_layout(make_page_break_paragraph())

        output = body.to_bytes()

        self.assertTrue(output.startswith(b"<?xml"))
        self.assertIn(b"<w:body>", output)
        self.assertIn(b'mc:Ignorable="w14"', output)
        self.assertIn(b"xmlns:w14=", output)
        self.assertIn(b'<w:br w:type="page"/>', output)


class PageBreakParagraphTest(unittest.TestCase):
    """Recognizing paragraphs that only force a new page."""

    def _paragraph(self, inner: str) -> etree._Element:
        return etree.fromstring(f'<w:p xmlns:w="{W_NS}">{inner}</w:p>')

    def test_generated_marker_is_recognized(self) -> None:
        self.assertTrue(is_page_break_paragraph(make_page_break_paragraph()))

    def test_break_with_text_is_content(self) -> None:
        paragraph_el = self._paragraph('<w:r><w:br w:type="page"/><w:t>Text</w:t></w:r>')
        self.assertFalse(is_page_break_paragraph(paragraph_el))

    def test_line_break_is_not_page_break(self) -> None:
        self.assertFalse(is_page_break_paragraph(self._paragraph("<w:r><w:br/></w:r>")))

    def test_properties_do_not_matter(self) -> None:
        paragraph_el = self._paragraph('<w:pPr><w:spacing w:after="0"/></w:pPr><w:r><w:rPr><w:b/></w:rPr><w:br w:type="page"/></w:r>')
        self.assertTrue(is_page_break_paragraph(paragraph_el))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
