"""Helper functions to work with XML namespaces, parsing and serialization."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from lxml import etree


@dataclass(frozen=True)
class Namespaces:
    """Common OpenXML namespace prefixes used across parsers."""

    WORD: Dict[str, str] = None  # type: ignore[assignment]
    RELS: Dict[str, str] = None  # type: ignore[assignment]
    CONTENT_TYPES: Dict[str, str] = None  # type: ignore[assignment]

    def __post_init__(self) -> None:  # pragma: no cover
        raise RuntimeError("Namespaces should not be instantiated")


W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
R_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
PKG_RELS_NS = "http://schemas.openxmlformats.org/package/2006/relationships"
CT_NS = "http://schemas.openxmlformats.org/package/2006/content-types"

Namespaces.WORD = {"w": W_NS}  # type: ignore[attr-defined]
Namespaces.RELS = {"rel": PKG_RELS_NS}  # type: ignore[attr-defined]
Namespaces.CONTENT_TYPES = {"ct": CT_NS}  # type: ignore[attr-defined]

# Entity resolution and network access stay off for untrusted uploads.
_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, remove_blank_text=False)


def w_tag(local_name: str) -> str:
    """Return the Clark-notation tag for a WordprocessingML element."""
    return f"{{{W_NS}}}{local_name}"


def local_name(tag: object) -> str:
    """Strip the namespace from an element tag; comments and PIs yield ''."""
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def parse_xml(data: bytes) -> etree._ElementTree:
    """Parse XML from raw bytes with sane defaults.

    Raises ``lxml.etree.XMLSyntaxError`` on malformed input.
    """
    return etree.ElementTree(etree.fromstring(data, parser=_PARSER))


def serialize_xml(tree: etree._ElementTree) -> bytes:
    """Serialize a part back to bytes the way Word writes it."""
    return etree.tostring(tree, xml_declaration=True, encoding="UTF-8", standalone=True)


def find_attr(element: Optional[etree._Element], name: str, namespaces: Optional[Dict[str, str]] = None) -> Optional[str]:
    """Return a prefixed attribute (``w:val``) from an element if present."""
    if element is None:
        return None
    prefix, _, attr = name.partition(":")
    namespace = (namespaces or Namespaces.WORD).get(prefix)
    if namespace is None:
        return element.get(name)
    return element.get(f"{{{namespace}}}{attr}")
