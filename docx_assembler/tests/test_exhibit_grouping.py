"""Tests for exhibit classification and grouped-mode filtering."""
import unittest
from typing import Optional

from lxml import etree

from docx_fixtures import W_NS, paragraph, table

from docx_assembler.assembler.exhibit_grouping import (
    TITLE_SHADING,
    ContentFilter,
    classify_exhibit,
    is_not_included_label,
    make_title_paragraph,
)
from docx_assembler.model.elements import BodyNode, Exhibit, ExhibitCategory, NodeKind
from docx_assembler.utils.text_normalizer import TextNormalizer

paragraph_text = TextNormalizer().paragraph_text


def _parse(xml: str) -> etree._Element:
    head, rest = xml.split(">", 1)
    return etree.fromstring(f'{head} xmlns:w="{W_NS}">{rest}')


def _paragraph_node(text: str, style: Optional[str] = None) -> BodyNode:
    element = _parse(paragraph(text, style=style))
    return BodyNode(kind=NodeKind.PARAGRAPH, element=element, text=paragraph_text(element))


class ExhibitClassificationTest(unittest.TestCase):
    """Names and explicit categories decide the group an exhibit lands in."""

    def test_not_included_spellings(self) -> None:
        for name in (
            "Slack to Teams - Not Included",
            "notincluded",
            "Features NOT-INCLUDED",
            "Box not include",
            "Dropbox not migrating include",
        ):
            with self.subTest(name=name):
                self.assertTrue(is_not_included_label(name))

    def test_included_names(self) -> None:
        for name in ("Slack to Teams - Included", "Notes - included", "Box to Box", "", None):
            with self.subTest(name=name):
                self.assertFalse(is_not_included_label(name))

    def test_explicit_category_wins_over_name(self) -> None:
        exhibit = Exhibit(data=b"", name="Features not included", category="Included")
        self.assertIs(classify_exhibit(exhibit), ExhibitCategory.INCLUDED)

        exhibit = Exhibit(data=b"", name="Channels", category="not_included")
        self.assertIs(classify_exhibit(exhibit), ExhibitCategory.NOT_INCLUDED)

    def test_unknown_category_falls_back_to_name(self) -> None:
        exhibit = Exhibit(data=b"", name="Chat - Not Included", category="misc")
        self.assertIs(classify_exhibit(exhibit), ExhibitCategory.NOT_INCLUDED)


class ContentFilterTest(unittest.TestCase):
    """Banners inherited from exhibit templates are removed in grouped mode."""

    def test_included_exhibit_drops_not_included_markers(self) -> None:
        content_filter = ContentFilter(ExhibitCategory.INCLUDED)

        self.assertTrue(content_filter.keep(_paragraph_node("Channels and messages")))
        self.assertFalse(content_filter.keep(_paragraph_node("Refer to Exhibit 2 for exclusions")))
        self.assertFalse(content_filter.keep(_paragraph_node("Features not included")))

    def test_not_included_exhibit_drops_first_heading_only(self) -> None:
        content_filter = ContentFilter(ExhibitCategory.NOT_INCLUDED)

        self.assertFalse(content_filter.keep(_paragraph_node("Exhibit 2", style="Heading1")))
        self.assertTrue(content_filter.keep(_paragraph_node("Audit logs", style="Heading2")))

    def test_not_included_exhibit_drops_included_banners(self) -> None:
        content_filter = ContentFilter(ExhibitCategory.NOT_INCLUDED)
        content_filter.keep(_paragraph_node("Not included", style="Title"))

        self.assertFalse(content_filter.keep(_paragraph_node("Features included", style="Heading2")))
        self.assertTrue(content_filter.keep(_paragraph_node("Exhibit 1 included features", style="Heading2")))
        self.assertTrue(content_filter.keep(_paragraph_node("Short included note")))

    def test_tables_are_never_filtered(self) -> None:
        element = _parse(table("Exhibit 2 not included"))
        node = BodyNode(kind=NodeKind.TABLE, element=element, text=paragraph_text(element))

        self.assertTrue(ContentFilter(ExhibitCategory.INCLUDED).keep(node))


class TitleParagraphTest(unittest.TestCase):
    """Group titles are shaded, centered, bold headings."""

    def test_title_structure(self) -> None:
        title = make_title_paragraph("Exhibit 1 - INCLUDED IN MIGRATION")
        ns = {"w": W_NS}

        self.assertEqual(title.find("w:pPr/w:pStyle", ns).get(f"{{{W_NS}}}val"), "Heading1")
        self.assertEqual(title.find("w:pPr/w:shd", ns).get(f"{{{W_NS}}}fill"), TITLE_SHADING)
        self.assertEqual(title.find("w:pPr/w:jc", ns).get(f"{{{W_NS}}}val"), "center")
        self.assertIsNotNone(title.find("w:r/w:rPr/w:b", ns))
        self.assertEqual(title.findtext("w:r/w:t", namespaces=ns), "Exhibit 1 - INCLUDED IN MIGRATION")
        self.assertEqual(
            [etree.QName(child).localname for child in title.find("w:pPr", ns)],
            ["pStyle", "shd", "spacing", "jc"],
        )


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
