"""DOCX package loader responsible for unpacking and repacking archive parts."""
from __future__ import annotations

import io
import zipfile
import zlib
from dataclasses import dataclass
from typing import Dict, Optional

from lxml import etree

from docx_assembler.errors import MalformedPackage
from docx_assembler.utils.logger import get_logger
from docx_assembler.utils.xml_utils import Namespaces, parse_xml

LOGGER = get_logger(__name__)

CONTENT_TYPES_PATH = "[Content_Types].xml"
PACKAGE_REL_PATH = "_rels/.rels"
DOCUMENT_XML_PATH = "word/document.xml"

RELTYPE_OFFICE_DOCUMENT = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument"


@dataclass(slots=True)
class DocxPackage:
    """Ordered archive of named parts extracted from a DOCX file."""

    raw_parts: Dict[str, bytes]
    name: str = "<memory>"
    main_part_name: str = DOCUMENT_XML_PATH

    @classmethod
    def from_bytes(cls, data: bytes, name: str = "<memory>") -> "DocxPackage":
        """Open a DOCX archive held in memory."""
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as docx_zip:
                parts = {info.filename: docx_zip.read(info) for info in docx_zip.infolist() if not info.is_dir()}
        except (
            zipfile.BadZipFile,
            zipfile.LargeZipFile,
            zlib.error,
            EOFError,
            NotImplementedError,
            RuntimeError,
            ValueError,
        ) as exc:
            # Encrypted members raise RuntimeError, unknown compression methods NotImplementedError.
            raise MalformedPackage(f"archive cannot be opened ({exc})", source=name) from exc

        LOGGER.debug("Loaded %d parts from %s", len(parts), name)

        package = cls(raw_parts=parts, name=name)
        package.main_part_name = package._resolve_main_part()
        if package.main_part_name not in parts:
            raise MalformedPackage(f"primary content part {package.main_part_name} is missing", source=name)
        return package

    # ------------------------------------------------------------------
    # Public helpers
    def require_document_xml(self) -> bytes:
        data = self.raw_parts.get(self.main_part_name)
        if data is None:
            raise MalformedPackage(f"primary content part {self.main_part_name} is missing", source=self.name)
        return data

    def get_part(self, name: str) -> Optional[bytes]:
        return self.raw_parts.get(name)

    def with_parts(self, updates: Dict[str, bytes]) -> "DocxPackage":
        """Return a copy with some parts replaced or added; this package is left as is."""
        parts = dict(self.raw_parts)
        parts.update(updates)
        return DocxPackage(
            raw_parts=parts,
            name=self.name,
            main_part_name=self.main_part_name,
        )

    def to_bytes(self, compression: int = zipfile.ZIP_DEFLATED) -> bytes:
        """Pack the parts into a new archive, keeping their original order."""
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=compression) as docx_zip:
            for name, data in self.raw_parts.items():
                docx_zip.writestr(name, data)
        return buffer.getvalue()

    # ------------------------------------------------------------------
    # Internal bootstrap
    def _resolve_main_part(self) -> str:
        data = self.raw_parts.get(PACKAGE_REL_PATH)
        if data is None:
            return DOCUMENT_XML_PATH
        try:
            tree = parse_xml(data)
        except etree.XMLSyntaxError:
            LOGGER.warning("%s: unreadable %s, assuming %s", self.name, PACKAGE_REL_PATH, DOCUMENT_XML_PATH)
            return DOCUMENT_XML_PATH
        for rel_el in tree.getroot().iterfind("rel:Relationship", Namespaces.RELS):
            if rel_el.get("Type") == RELTYPE_OFFICE_DOCUMENT and rel_el.get("TargetMode") != "External":
                return rel_el.get("Target", DOCUMENT_XML_PATH).lstrip("/")
        return DOCUMENT_XML_PATH
