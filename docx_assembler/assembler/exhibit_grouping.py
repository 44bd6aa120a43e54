"""Included / not-included classification and filtering for grouped exhibits."""
from __future__ import annotations

import re
from typing import Optional

from lxml import etree

from docx_assembler.model.elements import BodyNode, Exhibit, ExhibitCategory, NodeKind
from docx_assembler.utils.text_normalizer import normalize_label
from docx_assembler.utils.xml_utils import Namespaces, find_attr, w_tag

INCLUDED_TITLE = "Exhibit 1 - INCLUDED IN MIGRATION"
NOT_INCLUDED_TITLE = "Exhibit 2 - NOT INCLUDED IN MIGRATION FEATURES"

TITLE_SHADING = "D9E1F2"

_NOT_INCLUDED_NAME_PATTERNS = (
    re.compile(r"not\s+included"),
    re.compile(r"not\s+include(?!d)"),
    re.compile(r"not\s*-\s*include(?!d)"),
    re.compile(r"not\s*-\s*included"),
    re.compile(r"notincluded"),
    re.compile(r"notinclude(?!d)"),
    re.compile(r"not\s*-\s*include\b"),
)

NOT_INCLUDED_MARKERS = (
    "not included",
    "not include",
    "notincluded",
    "notinclude",
    "not-include",
    "not-included",
    "exhibit 2",
)

_CATEGORY_ALIASES = {
    "included": ExhibitCategory.INCLUDED,
    "include": ExhibitCategory.INCLUDED,
    "notincluded": ExhibitCategory.NOT_INCLUDED,
    "not-included": ExhibitCategory.NOT_INCLUDED,
    "not included": ExhibitCategory.NOT_INCLUDED,
    "not_included": ExhibitCategory.NOT_INCLUDED,
}


def is_not_included_label(name: Optional[str]) -> bool:
    """Whether an exhibit name reads as a "not included" feature list."""
    label = normalize_label(name)
    if "not" not in label or "include" not in label:
        return False
    if any(pattern.search(label) for pattern in _NOT_INCLUDED_NAME_PATTERNS):
        return True
    # "not ... include" with words in between still counts unless it says "included".
    not_index = label.find("not")
    include_index = label.find("include")
    return not_index < include_index and not label[include_index + len("include"):].startswith("d")


def classify_exhibit(exhibit: Exhibit) -> ExhibitCategory:
    """Explicit category first, then the exhibit name."""
    if exhibit.category:
        category = _CATEGORY_ALIASES.get(normalize_label(exhibit.category))
        if category is not None:
            return category
    if is_not_included_label(exhibit.name):
        return ExhibitCategory.NOT_INCLUDED
    return ExhibitCategory.INCLUDED


def has_not_included_marker(text: str) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in NOT_INCLUDED_MARKERS)


def is_heading(paragraph: etree._Element) -> bool:
    """Paragraph styled as a heading or title."""
    style = paragraph.find("w:pPr/w:pStyle", Namespaces.WORD)
    value = (find_attr(style, "w:val") or "").lower()
    return "heading" in value or "title" in value


class ContentFilter:
    """Decides which exhibit paragraphs survive grouped assembly.

    Exhibit templates carry their own "included" / "not included" banners;
    once the assembler adds the group titles those banners would repeat or
    contradict the group they landed in.
    """

    LONG_PARAGRAPH = 50

    def __init__(self, category: ExhibitCategory) -> None:
        self.category = category
        self._skipped_heading = False

    def keep(self, node: BodyNode) -> bool:
        if node.kind is not NodeKind.PARAGRAPH:
            return True

        text = node.text.lower()
        heading = is_heading(node.element)

        if self.category is ExhibitCategory.INCLUDED:
            return not has_not_included_marker(text)

        if not self._skipped_heading and (heading or has_not_included_marker(text)):
            self._skipped_heading = True
            return False

        if heading or len(text) > self.LONG_PARAGRAPH:
            if "included" in text and "not included" not in text and "exhibit 1" not in text:
                return False
        return True


def make_title_paragraph(title: str) -> etree._Element:
    """Centered, shaded Heading1 banner introducing an exhibit group."""
    paragraph = etree.Element(w_tag("p"), nsmap=Namespaces.WORD)
    p_pr = etree.SubElement(paragraph, w_tag("pPr"))

    etree.SubElement(p_pr, w_tag("pStyle")).set(w_tag("val"), "Heading1")
    shading = etree.SubElement(p_pr, w_tag("shd"))
    shading.set(w_tag("val"), "clear")
    shading.set(w_tag("color"), "auto")
    shading.set(w_tag("fill"), TITLE_SHADING)
    spacing = etree.SubElement(p_pr, w_tag("spacing"))
    spacing.set(w_tag("before"), "240")
    spacing.set(w_tag("after"), "120")
    etree.SubElement(p_pr, w_tag("jc")).set(w_tag("val"), "center")

    run = etree.SubElement(paragraph, w_tag("r"))
    r_pr = etree.SubElement(run, w_tag("rPr"))
    etree.SubElement(r_pr, w_tag("b"))
    etree.SubElement(r_pr, w_tag("caps"))
    text = etree.SubElement(run, w_tag("t"))
    text.text = title
    return paragraph
