"""Carry parts referenced by exhibit nodes over into the main package."""
from __future__ import annotations

import mimetypes
import posixpath
from typing import Dict, List, Optional, Tuple

from lxml import etree

from docx_assembler.errors import MalformedPackage, UnsupportedPart
from docx_assembler.parser.docx_loader import CONTENT_TYPES_PATH, DocxPackage
from docx_assembler.parser.rels_parser import (
    RELTYPE_HYPERLINK,
    RELTYPE_IMAGE,
    Relationship,
    RelationshipPartWriter,
    Relationships,
    relative_target,
    rels_part_for,
)
from docx_assembler.utils.logger import get_logger
from docx_assembler.utils.xml_utils import (
    CT_NS,
    R_NS,
    Namespaces,
    find_attr,
    local_name,
    parse_xml,
    serialize_xml,
)

LOGGER = get_logger(__name__)

MEDIA_DIR = "word/media"

# Removing one of these drops the embedded object but keeps the text around it.
_EMBED_CONTAINERS = {"drawing", "object", "pict", "altChunk", "headerReference", "footerReference"}

_RELOCATABLE_TYPES = {RELTYPE_IMAGE, RELTYPE_HYPERLINK}

# ``w:id`` references into footnotes.xml, endnotes.xml and comments.xml of the exhibit.
_NOTE_REFERENCES = {
    "footnoteReference",
    "endnoteReference",
    "commentReference",
    "commentRangeStart",
    "commentRangeEnd",
}


class MediaRelocator:
    """Rewrites ``r:*`` references of copied exhibit nodes against the main package.

    Images are copied under a fresh name in ``word/media`` and external links
    are re-registered. Anything else cannot follow the node and is stripped,
    with the reason returned to the caller as :class:`UnsupportedPart`. Note
    and comment anchors are always stripped, since their parts stay behind.
    """

    def __init__(self, main: DocxPackage, enabled: bool = True) -> None:
        self._main = main
        self._enabled = enabled
        self._rels_part = rels_part_for(main.main_part_name)
        try:
            self._rels_writer = RelationshipPartWriter(main.get_part(self._rels_part))
        except etree.XMLSyntaxError as exc:
            raise MalformedPackage(f"{self._rels_part} is not well-formed ({exc})", source=main.name) from exc
        self._new_parts: Dict[str, bytes] = {}
        self._id_map: Dict[Tuple[int, str], str] = {}
        self._content_types: Optional[etree._ElementTree] = None
        self._content_types_modified = False
        self.relocated_parts: List[str] = []

    def relocate(
        self,
        element: etree._Element,
        exhibit: DocxPackage,
        relationships: Relationships,
        index: int,
    ) -> Tuple[Optional[etree._Element], List[UnsupportedPart]]:
        """Fix references inside a detached copy.

        Returns the element (``None`` when the node itself had to be dropped)
        and the references that could not be carried over.
        """
        issues: List[UnsupportedPart] = []
        references = [
            (node, attr, value)
            for node in element.iter()
            if isinstance(node.tag, str)
            for attr, value in node.attrib.items()
            if attr.startswith(f"{{{R_NS}}}")
        ]
        for node, attr, r_id in references:
            if not self._is_attached(node, element):
                continue
            try:
                node.set(attr, self._relocate_reference(exhibit, relationships, index, r_id))
            except UnsupportedPart as issue:
                issues.append(issue)
                container = self._find_container(node)
                if container is None:
                    del node.attrib[attr]
                elif container is element:
                    return None, issues
                elif container.getparent() is not None:
                    container.getparent().remove(container)

        for node in [node for node in element.iter() if local_name(node.tag) in _NOTE_REFERENCES]:
            kind = local_name(node.tag)
            issues.append(
                UnsupportedPart(
                    f"{kind} {find_attr(node, 'w:id')} points into a notes or comments part that is not merged",
                    source=exhibit.name,
                )
            )
            if node is element:
                return None, issues
            node.getparent().remove(node)
        return element, issues

    def finish(self) -> Dict[str, bytes]:
        """Parts of the main package that need to be added or replaced."""
        updates = dict(self._new_parts)
        if self._rels_writer.modified:
            updates[self._rels_part] = self._rels_writer.to_bytes()
        if self._content_types_modified and self._content_types is not None:
            updates[CONTENT_TYPES_PATH] = serialize_xml(self._content_types)
        return updates

    # ------------------------------------------------------------------
    # Internal helpers
    def _relocate_reference(self, exhibit: DocxPackage, relationships: Relationships, index: int, r_id: str) -> str:
        key = (index, r_id)
        if key in self._id_map:
            return self._id_map[key]

        rel = relationships.find(exhibit.main_part_name, r_id)
        if rel is None:
            raise UnsupportedPart(f"reference {r_id} has no relationship", source=exhibit.name, r_id=r_id)
        if not self._enabled:
            raise UnsupportedPart(f"media relocation disabled, dropping {rel.target}", source=exhibit.name, r_id=r_id)
        if rel.rel_type not in _RELOCATABLE_TYPES:
            raise UnsupportedPart(
                f"cannot merge {posixpath.basename(rel.rel_type)} part {rel.target}", source=exhibit.name, r_id=r_id
            )

        if rel.is_external:
            new_id = self._rels_writer.add(rel.rel_type, rel.target, external=True)
        elif rel.rel_type == RELTYPE_IMAGE:
            new_id = self._copy_image(exhibit, rel, index)
        else:
            raise UnsupportedPart(f"internal hyperlink target {rel.target}", source=exhibit.name, r_id=r_id)

        self._id_map[key] = new_id
        return new_id

    def _copy_image(self, exhibit: DocxPackage, rel: Relationship, index: int) -> str:
        source_name = rel.resolved_target or ""
        data = exhibit.get_part(source_name)
        if data is None:
            raise UnsupportedPart(f"image part {source_name} is missing", source=exhibit.name, r_id=rel.r_id)

        part_name = self._unique_part_name(f"exhibit{index + 1}_{posixpath.basename(source_name)}")
        self._new_parts[part_name] = data
        self._register_content_type(part_name, exhibit)
        self.relocated_parts.append(part_name)
        LOGGER.debug("Copied %s from %s as %s", source_name, exhibit.name, part_name)
        return self._rels_writer.add(RELTYPE_IMAGE, relative_target(self._main.main_part_name, part_name))

    def _unique_part_name(self, file_name: str) -> str:
        stem, ext = posixpath.splitext(file_name)
        candidate = f"{MEDIA_DIR}/{file_name}"
        counter = 1
        while candidate in self._main.raw_parts or candidate in self._new_parts:
            candidate = f"{MEDIA_DIR}/{stem}_{counter}{ext}"
            counter += 1
        return candidate

    def _register_content_type(self, part_name: str, exhibit: DocxPackage) -> None:
        extension = posixpath.splitext(part_name)[1].lstrip(".").lower()
        if not extension:
            return
        tree = self._main_content_types()
        if tree is None:
            LOGGER.warning("%s has no %s; %s left unregistered", self._main.name, CONTENT_TYPES_PATH, part_name)
            return
        if extension in self._default_extensions(tree):
            return

        content_type = self._exhibit_content_type(exhibit, extension)
        default_el = etree.SubElement(tree.getroot(), f"{{{CT_NS}}}Default")
        default_el.set("Extension", extension)
        default_el.set("ContentType", content_type)
        self._content_types_modified = True

    def _main_content_types(self) -> Optional[etree._ElementTree]:
        if self._content_types is None:
            payload = self._main.get_part(CONTENT_TYPES_PATH)
            if payload is not None:
                try:
                    self._content_types = parse_xml(payload)
                except etree.XMLSyntaxError as exc:
                    raise MalformedPackage(f"{CONTENT_TYPES_PATH} is not well-formed ({exc})", source=self._main.name) from exc
        return self._content_types

    @staticmethod
    def _default_extensions(tree: etree._ElementTree) -> Dict[str, str]:
        return {
            default_el.get("Extension", "").lower(): default_el.get("ContentType", "")
            for default_el in tree.iterfind("ct:Default", Namespaces.CONTENT_TYPES)
        }

    def _exhibit_content_type(self, exhibit: DocxPackage, extension: str) -> str:
        payload = exhibit.get_part(CONTENT_TYPES_PATH)
        if payload is not None:
            try:
                known = self._default_extensions(parse_xml(payload)).get(extension)
            except etree.XMLSyntaxError:
                known = None
            if known:
                return known
        guessed, _ = mimetypes.guess_type(f"file.{extension}")
        return guessed or "application/octet-stream"

    @staticmethod
    def _is_attached(node: etree._Element, root: etree._Element) -> bool:
        current: Optional[etree._Element] = node
        while current is not None:
            if current is root:
                return True
            current = current.getparent()
        return False

    @staticmethod
    def _find_container(node: etree._Element) -> Optional[etree._Element]:
        current: Optional[etree._Element] = node
        while current is not None:
            if local_name(current.tag) in _EMBED_CONTAINERS:
                return current
            current = current.getparent()
        return None
