"""Utilities for reading and extending Open Packaging Convention relationship parts."""
from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Dict, Mapping, Optional, Tuple

from lxml import etree

from docx_assembler.utils.logger import get_logger
from docx_assembler.utils.xml_utils import PKG_RELS_NS, Namespaces, parse_xml, serialize_xml

LOGGER = get_logger(__name__)

WORD_REL_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"

RELTYPE_IMAGE = f"{WORD_REL_NS}/image"
RELTYPE_HYPERLINK = f"{WORD_REL_NS}/hyperlink"

_RID_PATTERN = re.compile(r"^rId(\d+)$")


@dataclass(frozen=True)
class Relationship:
    """Represents a single OPC relationship."""

    source_part: str
    r_id: str
    target: str
    rel_type: str
    is_external: bool = False
    resolved_target: Optional[str] = None


def rels_part_for(source_part: str) -> str:
    """Return the ``.rels`` part name that holds relationships of ``source_part``."""
    source = PurePosixPath(source_part)
    return (source.parent / "_rels" / f"{source.name}.rels").as_posix()


def relative_target(source_part: str, part_name: str) -> str:
    """Express ``part_name`` relative to the folder of ``source_part``."""
    base_dir = posixpath.dirname(source_part)
    return posixpath.relpath(part_name, base_dir or ".")


class Relationships:
    """Aggregated relationship mappings for the DOCX package."""

    def __init__(self, relationships: Dict[str, Dict[str, Relationship]]) -> None:
        self._by_source = relationships

    @classmethod
    def from_package(cls, parts: Mapping[str, bytes]) -> "Relationships":
        """Collect relationships from all known .rels parts within the package."""
        by_source: Dict[str, Dict[str, Relationship]] = {}
        for name, payload in parts.items():
            if not name.endswith(".rels"):
                continue
            source, base_dir = cls._source_and_base_from_rel_part(name)
            try:
                tree = parse_xml(payload)
            except etree.XMLSyntaxError:
                LOGGER.warning("Ignoring unreadable relationship part %s", name)
                continue
            parsed = cls._parse_relationship_part(source, base_dir, tree)
            if parsed:
                by_source[source] = parsed
        return cls(by_source)

    def find(self, part_name: str, r_id: str) -> Optional[Relationship]:
        """Return a relationship by part and id if present."""
        source = self._normalize_source(part_name)
        return self._by_source.get(source, {}).get(r_id)

    @classmethod
    def _parse_relationship_part(
        cls, source_part: str, base_dir: PurePosixPath, tree: etree._ElementTree
    ) -> Dict[str, Relationship]:
        result: Dict[str, Relationship] = {}
        for rel_el in tree.iterfind(".//rel:Relationship", Namespaces.RELS):
            r_id = rel_el.get("Id")
            if not r_id:
                continue
            target = rel_el.get("Target", "")
            is_external = rel_el.get("TargetMode") == "External"
            result[r_id] = Relationship(
                source_part=source_part,
                r_id=r_id,
                target=target,
                rel_type=rel_el.get("Type", ""),
                is_external=is_external,
                resolved_target=cls._resolve_target_path(base_dir, target, is_external),
            )
        return result

    @staticmethod
    def _source_and_base_from_rel_part(rel_part: str) -> Tuple[str, PurePosixPath]:
        rel_path = PurePosixPath(rel_part)
        base_dir = rel_path.parent
        if rel_part == "_rels/.rels":
            return "", base_dir
        if "/_rels/" in rel_part:
            folder, suffix = rel_part.split("/_rels/", 1)
            return f"{folder}/{suffix[:-5]}", base_dir
        if rel_part.startswith("_rels/"):
            return rel_part[len("_rels/") : -5], base_dir
        return rel_part[:-5], base_dir

    @staticmethod
    def _resolve_target_path(base_dir: PurePosixPath, target: str, is_external: bool) -> Optional[str]:
        if not target:
            return None
        if is_external:
            return target
        if target.startswith("/"):
            return target.lstrip("/")
        resolved = base_dir.joinpath(target)
        normalized = posixpath.normpath(resolved.as_posix())
        normalized = normalized.replace("/_rels/", "/")
        if normalized.startswith("_rels/"):
            normalized = normalized[len("_rels/") :]
        return normalized

    @classmethod
    def _normalize_source(cls, part_name: str) -> str:
        if part_name.endswith(".rels"):
            source, _ = cls._source_and_base_from_rel_part(part_name)
            return source
        return part_name


class RelationshipPartWriter:
    """Appends relationships to one ``.rels`` part, creating it when absent."""

    def __init__(self, payload: Optional[bytes]) -> None:
        if payload is None:
            root = etree.Element(f"{{{PKG_RELS_NS}}}Relationships", nsmap={None: PKG_RELS_NS})
            self._tree = etree.ElementTree(root)
        else:
            self._tree = parse_xml(payload)
        self._used_ids = {
            rel_el.get("Id") for rel_el in self._tree.iterfind("rel:Relationship", Namespaces.RELS)
        }
        self._next_index = 1 + max(
            (int(match.group(1)) for match in map(_RID_PATTERN.match, filter(None, self._used_ids)) if match),
            default=0,
        )
        self.modified = False

    def add(self, rel_type: str, target: str, *, external: bool = False) -> str:
        """Register a relationship and return its freshly allocated id."""
        r_id = f"rId{self._next_index}"
        while r_id in self._used_ids:
            self._next_index += 1
            r_id = f"rId{self._next_index}"
        self._next_index += 1
        self._used_ids.add(r_id)

        rel_el = etree.SubElement(self._tree.getroot(), f"{{{PKG_RELS_NS}}}Relationship")
        rel_el.set("Id", r_id)
        rel_el.set("Type", rel_type)
        rel_el.set("Target", target)
        if external:
            rel_el.set("TargetMode", "External")
        self.modified = True
        return r_id

    def to_bytes(self) -> bytes:
        return serialize_xml(self._tree)
