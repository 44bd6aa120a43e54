"""Parser for the page setup carried by section properties."""
from __future__ import annotations

from typing import Optional

from lxml import etree

from docx_assembler.model.elements import PageLayout
from docx_assembler.utils.logger import get_logger
from docx_assembler.utils.xml_utils import Namespaces, find_attr

LOGGER = get_logger(__name__)


class SectionParser:
    """Read page size and orientation from a ``w:sectPr`` element."""

    def parse_layout(self, sect_pr: Optional[etree._Element]) -> PageLayout:
        if sect_pr is None:
            return PageLayout()

        pg_sz = sect_pr.find("w:pgSz", Namespaces.WORD)
        if pg_sz is None:
            return PageLayout()

        return PageLayout(
            page_width=self._get_int_attr(pg_sz, "w:w"),
            page_height=self._get_int_attr(pg_sz, "w:h"),
            orientation=find_attr(pg_sz, "w:orient"),
        )

    @staticmethod
    def _get_int_attr(element: etree._Element, name: str) -> Optional[int]:
        value = find_attr(element, name)
        if value is None:
            return None
        try:
            # Some producers write decimal twips ("12240.0").
            return int(float(value))
        except ValueError:
            LOGGER.debug("Ignoring non-numeric %s=%r", name, value)
            return None
