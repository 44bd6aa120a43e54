"""Parse the primary content part into an ordered list of body nodes."""
from __future__ import annotations

from typing import List, Optional

from lxml import etree

from docx_assembler.errors import MalformedContent
from docx_assembler.model.elements import BodyNode, NodeKind
from docx_assembler.utils.logger import get_logger
from docx_assembler.utils.text_normalizer import TextNormalizer
from docx_assembler.utils.xml_utils import Namespaces, find_attr, local_name, parse_xml, serialize_xml, w_tag

LOGGER = get_logger(__name__)

# Elements a paragraph may carry alongside the break without rendering anything.
_INVISIBLE_RUN_CHILDREN = {"rPr", "lastRenderedPageBreak"}


class DocumentBody:
    """Mutable ``w:body`` of one primary content part."""

    def __init__(self, tree: etree._ElementTree, body: etree._Element, source: str) -> None:
        self.tree = tree
        self.body = body
        self.source = source
        self._normalizer = TextNormalizer()

    @property
    def nodes(self) -> List[BodyNode]:
        """Classify every element child of the body, in document order."""
        return [self.classify(child) for child in self.body if isinstance(child.tag, str)]

    @property
    def section_properties(self) -> Optional[etree._Element]:
        """The trailing ``w:sectPr`` governing the page layout, if any."""
        for child in reversed(self.body):
            if isinstance(child.tag, str):
                return child if child.tag == w_tag("sectPr") else None
        return None

    def classify(self, element: etree._Element) -> BodyNode:
        tag = local_name(element.tag)
        if tag == "sectPr":
            return BodyNode(NodeKind.SECTION_PROPERTIES, element)
        if tag == "tbl":
            return BodyNode(NodeKind.TABLE, element, self._normalizer.paragraph_text(element))
        if tag == "p":
            if is_page_break_paragraph(element):
                return BodyNode(NodeKind.PAGE_BREAK, element)
            return BodyNode(NodeKind.PARAGRAPH, element, self._normalizer.paragraph_text(element))
        return BodyNode(NodeKind.OTHER, element)

    def insert_before_layout(self, element: etree._Element) -> None:
        """Insert a node right before the trailing ``w:sectPr`` (or at the end)."""
        sect_pr = self.section_properties
        if sect_pr is None:
            self.body.append(element)
        else:
            sect_pr.addprevious(element)

    def to_bytes(self) -> bytes:
        return serialize_xml(self.tree)


class BodyParser:
    """Turns primary content part bytes into a :class:`DocumentBody`."""

    def __init__(self, payload: bytes, source: str = "<memory>") -> None:
        self._payload = payload
        self._source = source

    def parse(self) -> DocumentBody:
        try:
            tree = parse_xml(self._payload)
        except etree.XMLSyntaxError as exc:
            raise MalformedContent(f"primary content part is not well-formed XML ({exc})", source=self._source) from exc

        body = tree.getroot().find("w:body", Namespaces.WORD)
        if body is None:
            raise MalformedContent("primary content part has no w:body element", source=self._source)

        LOGGER.debug("%s: parsed body with %d children", self._source, len(body))
        return DocumentBody(tree, body, self._source)


def make_page_break_paragraph() -> etree._Element:
    """Build ``<w:p><w:r><w:br w:type="page"/></w:r></w:p>``."""
    paragraph = etree.Element(w_tag("p"), nsmap=Namespaces.WORD)
    run = etree.SubElement(paragraph, w_tag("r"))
    br = etree.SubElement(run, w_tag("br"))
    br.set(w_tag("type"), "page")
    return paragraph


def strip_section_breaks(element: etree._Element) -> int:
    """Remove section properties nested in ``element`` (``w:pPr/w:sectPr``).

    Returns how many were removed.
    """
    nested = [sect_pr for sect_pr in element.iter(w_tag("sectPr")) if sect_pr is not element]
    for sect_pr in nested:
        sect_pr.getparent().remove(sect_pr)
    return len(nested)


def is_page_break_paragraph(paragraph: etree._Element) -> bool:
    """Whether a paragraph holds nothing but forced page-break runs."""
    saw_break = False
    for child in paragraph:
        tag = local_name(child.tag)
        if tag == "pPr" or not tag:
            continue
        if tag != "r":
            return False
        for run_child in child:
            run_tag = local_name(run_child.tag)
            if run_tag == "br" and find_attr(run_child, "w:type") == "page":
                saw_break = True
            elif run_tag not in _INVISIBLE_RUN_CHILDREN and run_tag:
                return False
    return saw_break
