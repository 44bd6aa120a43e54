"""Entry-point for assembling an agreement with its exhibits."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from docx_assembler.assembler.document_assembler import AssemblyOptions, DocumentAssembler, ErrorPolicy
from docx_assembler.errors import AssemblyError
from docx_assembler.model.elements import AssemblyResult, Exhibit
from docx_assembler.utils.debug import DebugDumper
from docx_assembler.utils.logger import get_logger, set_verbosity

LOGGER = get_logger(__name__)


def assemble_files(
    main_path: Path,
    exhibit_paths: Sequence[Path],
    output_path: Path,
    options: Optional[AssemblyOptions] = None,
) -> AssemblyResult:
    """Read the inputs from disk, merge them and write the result."""
    main_path = Path(main_path).resolve()
    if not main_path.exists():
        raise FileNotFoundError(f"DOCX file not found: {main_path}")

    exhibits: List[Exhibit] = []
    for path in map(Path, exhibit_paths):
        if not path.exists():
            raise FileNotFoundError(f"Exhibit not found: {path}")
        exhibits.append(Exhibit(data=path.read_bytes(), name=path.stem))

    result = DocumentAssembler(options).assemble_with_report(main_path.read_bytes(), exhibits)

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(result.data)
    LOGGER.info("Wrote %s", output_path)
    return result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Append exhibit documents to a main DOCX, one page break before each")
    parser.add_argument("docx_file", help="Path to the main .docx file")
    parser.add_argument("exhibits", nargs="*", help="Exhibit .docx files, in output order")
    parser.add_argument("-o", "--output", help="Where to write the merged document (default: <main>_merged.docx)")
    parser.add_argument("--skip-malformed", action="store_true", help="Skip unreadable exhibits instead of failing")
    parser.add_argument("--group", action="store_true", help="Group exhibits under included / not included titles")
    parser.add_argument("--no-media", action="store_true", help="Do not copy images referenced by exhibits")
    parser.add_argument("--debug-dir", help="Directory to write the merge report JSON into")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def cli(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    set_verbosity(args.verbose)

    main_path = Path(args.docx_file)
    output = Path(args.output) if args.output else main_path.with_name(f"{main_path.stem}_merged.docx")
    options = AssemblyOptions(
        on_exhibit_error=ErrorPolicy.SKIP if args.skip_malformed else ErrorPolicy.ABORT,
        group_exhibits=args.group,
        relocate_media=not args.no_media,
    )

    try:
        result = assemble_files(main_path, [Path(p) for p in args.exhibits], output, options)
    except (AssemblyError, FileNotFoundError) as exc:
        print(f"Could not assemble {main_path.name}: {exc}", file=sys.stderr)
        return 1

    for outcome in result.report.skipped:
        print(f"Skipped {outcome.name}: {outcome.reason}", file=sys.stderr)
    if args.debug_dir:
        DebugDumper(Path(args.debug_dir)).dump(result.report)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(cli())
