"""Merge a main agreement package with exhibit packages into one DOCX."""
from __future__ import annotations

import copy
import zipfile
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Union

from docx_assembler.assembler.exhibit_grouping import (
    INCLUDED_TITLE,
    NOT_INCLUDED_TITLE,
    ContentFilter,
    classify_exhibit,
    make_title_paragraph,
)
from docx_assembler.assembler.media_relocator import MediaRelocator
from docx_assembler.errors import MalformedContent, MalformedPackage
from docx_assembler.model.elements import (
    AssemblyResult,
    BodyNode,
    Exhibit,
    ExhibitCategory,
    ExhibitOutcome,
    MergeReport,
    NodeKind,
    PageLayout,
)
from docx_assembler.parser.body_parser import (
    BodyParser,
    DocumentBody,
    make_page_break_paragraph,
    strip_section_breaks,
)
from docx_assembler.parser.docx_loader import DocxPackage
from docx_assembler.parser.rels_parser import Relationships
from docx_assembler.parser.section_parser import SectionParser
from docx_assembler.utils.logger import get_logger

LOGGER = get_logger(__name__)

MAIN_SOURCE = "main"

ExhibitInput = Union[bytes, Exhibit]


class ErrorPolicy(str, Enum):
    """What to do with an exhibit whose package or body is malformed."""

    ABORT = "abort"
    SKIP = "skip"


@dataclass(slots=True)
class AssemblyOptions:
    """Knobs for one assembly call."""

    on_exhibit_error: ErrorPolicy = ErrorPolicy.ABORT
    group_exhibits: bool = False
    included_title: str = INCLUDED_TITLE
    not_included_title: str = NOT_INCLUDED_TITLE
    relocate_media: bool = True
    check_page_layout: bool = True
    compression: int = zipfile.ZIP_DEFLATED


@dataclass(slots=True)
class _LoadedExhibit:
    index: int
    exhibit: Exhibit
    package: DocxPackage
    body: DocumentBody
    outcome: ExhibitOutcome


class DocumentAssembler:
    """Appends exhibit bodies to the main body, one page break before each."""

    def __init__(self, options: Optional[AssemblyOptions] = None) -> None:
        self.options = options or AssemblyOptions()
        self._sections = SectionParser()

    def assemble(self, main: bytes, exhibits: Sequence[ExhibitInput]) -> bytes:
        """Return the merged package bytes."""
        return self.assemble_with_report(main, exhibits).data

    def assemble_with_report(self, main: bytes, exhibits: Sequence[ExhibitInput]) -> AssemblyResult:
        """Merge and also return a :class:`MergeReport` describing the run."""
        items = [self._as_exhibit(value, index) for index, value in enumerate(exhibits)]
        if not items:
            LOGGER.info("No exhibits to merge, returning main document unchanged")
            return AssemblyResult(data=main, report=MergeReport())

        LOGGER.info("Merging %d exhibit(s) into main document (%d bytes)", len(items), len(main))
        main_package = DocxPackage.from_bytes(main, name=MAIN_SOURCE)
        main_body = BodyParser(main_package.require_document_xml(), source=MAIN_SOURCE).parse()
        if main_body.section_properties is None:
            LOGGER.warning("Main document has no trailing section properties; exhibits are appended at the end")
        main_layout = self._sections.parse_layout(main_body.section_properties)

        report = MergeReport()
        loaded = self._load_exhibits(items, report)
        relocator = MediaRelocator(main_package, enabled=self.options.relocate_media)

        if self.options.group_exhibits:
            self._merge_grouped(main_body, loaded, main_layout, relocator, report)
        else:
            for item in loaded:
                self._merge_exhibit(main_body, item, main_layout, relocator, report)

        updates = relocator.finish()
        updates[main_package.main_part_name] = main_body.to_bytes()
        report.relocated_parts.extend(relocator.relocated_parts)
        data = main_package.with_parts(updates).to_bytes(self.options.compression)

        LOGGER.info(
            "DOCX merge complete: %d merged, %d skipped, %d page break(s), %d bytes",
            report.merged_count,
            len(report.skipped),
            report.page_breaks,
            len(data),
        )
        return AssemblyResult(data=data, report=report)

    # ------------------------------------------------------------------
    # Loading
    def _load_exhibits(self, items: List[Exhibit], report: MergeReport) -> List[_LoadedExhibit]:
        loaded: List[_LoadedExhibit] = []
        for index, exhibit in enumerate(items):
            outcome = ExhibitOutcome(index=index, name=exhibit.name, merged=False)
            report.exhibits.append(outcome)
            try:
                package = DocxPackage.from_bytes(exhibit.data, name=exhibit.name)
                body = BodyParser(package.require_document_xml(), source=exhibit.name).parse()
            except (MalformedPackage, MalformedContent) as exc:
                if self.options.on_exhibit_error is ErrorPolicy.ABORT:
                    LOGGER.error("Aborting merge, exhibit %d (%s) is unusable: %s", index + 1, exhibit.name, exc.reason)
                    raise
                outcome.reason = exc.reason
                LOGGER.warning("Skipping exhibit %d (%s): %s", index + 1, exhibit.name, exc.reason)
                continue
            loaded.append(_LoadedExhibit(index, exhibit, package, body, outcome))
        return loaded

    @staticmethod
    def _as_exhibit(value: ExhibitInput, index: int) -> Exhibit:
        if isinstance(value, Exhibit):
            if not value.name:
                return Exhibit(data=value.data, name=f"exhibit {index + 1}", category=value.category)
            return value
        return Exhibit(data=bytes(value), name=f"exhibit {index + 1}")

    # ------------------------------------------------------------------
    # Merging
    def _merge_grouped(
        self,
        main_body: DocumentBody,
        loaded: List[_LoadedExhibit],
        main_layout: PageLayout,
        relocator: MediaRelocator,
        report: MergeReport,
    ) -> None:
        groups: Dict[ExhibitCategory, List[_LoadedExhibit]] = {
            ExhibitCategory.INCLUDED: [],
            ExhibitCategory.NOT_INCLUDED: [],
        }
        for item in loaded:
            category = classify_exhibit(item.exhibit)
            item.outcome.category = category.value
            groups[category].append(item)
            LOGGER.debug("[%d] %r -> %s", item.index, item.exhibit.name, category.value)

        titles = {
            ExhibitCategory.INCLUDED: self.options.included_title,
            ExhibitCategory.NOT_INCLUDED: self.options.not_included_title,
        }
        for category, members in groups.items():
            if not members:
                continue
            self._insert_page_break(main_body, report)
            main_body.insert_before_layout(make_title_paragraph(titles[category]))
            for item in members:
                self._merge_exhibit(
                    main_body,
                    item,
                    main_layout,
                    relocator,
                    report,
                    content_filter=ContentFilter(category),
                    page_break=False,
                )

    def _merge_exhibit(
        self,
        main_body: DocumentBody,
        item: _LoadedExhibit,
        main_layout: PageLayout,
        relocator: MediaRelocator,
        report: MergeReport,
        content_filter: Optional[ContentFilter] = None,
        page_break: bool = True,
    ) -> None:
        if page_break:
            self._insert_page_break(main_body, report)
        if self.options.check_page_layout:
            self._check_layout(item, main_layout, report)

        relationships = Relationships.from_package(item.package.raw_parts)
        outcome = item.outcome
        for node in item.body.nodes:
            if node.kind is NodeKind.SECTION_PROPERTIES:
                continue
            if content_filter is not None and not content_filter.keep(node):
                LOGGER.debug("Dropping %s paragraph: %.50s", item.exhibit.name, node.text)
                outcome.dropped_count += 1
                continue
            if self._copy_node(main_body, node, item, relationships, relocator, report):
                outcome.node_count += 1
            else:
                outcome.dropped_count += 1

        outcome.merged = True
        LOGGER.info("Exhibit %d (%s) merged: %d node(s)", item.index + 1, item.exhibit.name, outcome.node_count)

    def _copy_node(
        self,
        main_body: DocumentBody,
        node: BodyNode,
        item: _LoadedExhibit,
        relationships: Relationships,
        relocator: MediaRelocator,
        report: MergeReport,
    ) -> bool:
        copied = copy.deepcopy(node.element)
        if strip_section_breaks(copied):
            message = f"{item.exhibit.name}: section break removed; main layout applies"
            LOGGER.warning("%s", message)
            report.warnings.append(message)

        element, issues = relocator.relocate(copied, item.package, relationships, item.index)
        for issue in issues:
            LOGGER.warning("Unsupported part skipped: %s", issue)
            report.warnings.append(str(issue))
        if element is None:
            return False
        main_body.insert_before_layout(element)
        return True

    @staticmethod
    def _insert_page_break(main_body: DocumentBody, report: MergeReport) -> None:
        main_body.insert_before_layout(make_page_break_paragraph())
        report.page_breaks += 1

    def _check_layout(self, item: _LoadedExhibit, main_layout: PageLayout, report: MergeReport) -> None:
        exhibit_layout = self._sections.parse_layout(item.body.section_properties)
        if exhibit_layout.page_width is None or main_layout.page_width is None:
            return
        if exhibit_layout.matches(main_layout):
            return
        message = (
            f"{item.exhibit.name}: page layout {exhibit_layout.describe()} differs from main "
            f"{main_layout.describe()}; main layout applies"
        )
        LOGGER.warning("%s", message)
        report.warnings.append(message)


def assemble(main: bytes, exhibits: Sequence[ExhibitInput], options: Optional[AssemblyOptions] = None) -> bytes:
    """Merge ``exhibits`` into ``main`` and return the new DOCX bytes."""
    return DocumentAssembler(options).assemble(main, exhibits)
