"""In-memory representation of body nodes, exhibits and merge outcomes."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from lxml import etree


class NodeKind(str, Enum):
    """Tagged variant of a block-level child of ``w:body``."""

    PARAGRAPH = "paragraph"
    TABLE = "table"
    PAGE_BREAK = "page_break"
    SECTION_PROPERTIES = "section_properties"
    OTHER = "other"


@dataclass(slots=True)
class BodyNode:
    """A block-level node together with the element that backs it."""

    kind: NodeKind
    element: etree._Element
    text: str = ""


@dataclass(slots=True)
class PageLayout:
    """Page setup read from a ``w:sectPr`` node, in twips."""

    page_width: Optional[int] = None
    page_height: Optional[int] = None
    orientation: Optional[str] = None

    @property
    def effective_orientation(self) -> str:
        if self.orientation:
            return self.orientation
        if self.page_width and self.page_height and self.page_width > self.page_height:
            return "landscape"
        return "portrait"

    def matches(self, other: "PageLayout") -> bool:
        """Whether two layouts render on the same page shape."""
        return (
            self.page_width == other.page_width
            and self.page_height == other.page_height
            and self.effective_orientation == other.effective_orientation
        )

    def describe(self) -> str:
        return f"{self.page_width}x{self.page_height} {self.effective_orientation}"


class ExhibitCategory(str, Enum):
    """Placement group of an exhibit in grouped assembly."""

    INCLUDED = "included"
    NOT_INCLUDED = "notincluded"


@dataclass(slots=True)
class Exhibit:
    """Exhibit package bytes plus the metadata used for grouping and reporting."""

    data: bytes
    name: str = ""
    category: Optional[str] = None


@dataclass(slots=True)
class ExhibitOutcome:
    """What happened to one exhibit during a merge."""

    index: int
    name: str
    merged: bool
    node_count: int = 0
    dropped_count: int = 0
    reason: Optional[str] = None
    category: Optional[str] = None


@dataclass(slots=True)
class MergeReport:
    """Per-call record of the assembly, consumed by logs and the CLI."""

    exhibits: List[ExhibitOutcome] = field(default_factory=list)
    page_breaks: int = 0
    relocated_parts: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def merged_count(self) -> int:
        return sum(1 for outcome in self.exhibits if outcome.merged)

    @property
    def skipped(self) -> List[ExhibitOutcome]:
        return [outcome for outcome in self.exhibits if not outcome.merged]


@dataclass(slots=True)
class AssemblyResult:
    """Assembled package bytes with the report describing how they were built."""

    data: bytes
    report: MergeReport
