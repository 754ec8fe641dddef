"""Entry-point for the docx mail-merge pipeline."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from docx_merge.errors import DocxMergeError, ValidationError
from docx_merge.merge.engine import MergeEngine
from docx_merge.merge.field_index import FieldIndex
from docx_merge.merge.resources import FileResourceResolver
from docx_merge.model.document_model import Document
from docx_merge.model.records import ImageValue, RecordTable
from docx_merge.serializer import DocumentFormat, Serializer
from docx_merge.utils.debug import DebugDumper
from docx_merge.utils.logger import get_logger, set_level

LOGGER = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fill MERGEFIELDs of a DOCX template from records")
    parser.add_argument("template", help="Path to the input .docx template")
    parser.add_argument("--records", help="CSV or JSON file with one record per row")
    parser.add_argument(
        "--set",
        dest="values",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Value for a single record (repeatable)",
    )
    parser.add_argument(
        "--image-field",
        dest="image_fields",
        action="append",
        default=[],
        metavar="NAME",
        help="Field whose value is an image path (repeatable)",
    )
    parser.add_argument("--output", help="Directory to write generated documents")
    parser.add_argument("--pdf", action="store_true", help="Also export every document as PDF")
    parser.add_argument("--txt", action="store_true", help="Also export every document as plain text")
    parser.add_argument("--combined", action="store_true", help="Write all rows into one document")
    parser.add_argument("--list-fields", action="store_true", help="Print the template's merge fields and exit")
    parser.add_argument("--debug", action="store_true", help="Dump the template model as JSON")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def parse_assignments(assignments: Sequence[str], image_fields: Sequence[str] = ()) -> Dict[str, object]:
    """Turn ``NAME=VALUE`` strings into a record."""
    record: Dict[str, object] = {}
    for assignment in assignments:
        name, sep, value = assignment.partition("=")
        if not sep or not name:
            raise ValidationError(f"Expected NAME=VALUE, got {assignment!r}")
        record[name] = ImageValue(value) if name in image_fields else value
    return record


def write_outputs(serializer: Serializer, document: Document, stem: Path, formats: List[DocumentFormat]) -> List[Path]:
    """Save ``document`` next to ``stem`` in every requested format."""
    written = []
    for fmt in formats:
        written.append(serializer.save_to_file(document, stem.with_suffix(f".{fmt.value}"), fmt))
    return written


def run(args: argparse.Namespace) -> int:
    template_path = Path(args.template).resolve()
    serializer = Serializer()
    template = serializer.load(template_path)
    index = FieldIndex.scan(template)

    if args.list_fields:
        for name in index.names:
            print(name)
        return 0

    output_dir = Path(args.output).resolve() if args.output else template_path.parent / f"{template_path.stem}_merged"
    if args.debug:
        DebugDumper(output_dir / "debug").dump(template, index)

    formats = [DocumentFormat.DOCX]
    if args.pdf:
        formats.append(DocumentFormat.PDF)
    if args.txt:
        formats.append(DocumentFormat.TXT)

    resolver_base = Path(args.records).resolve().parent if args.records else template_path.parent
    engine = MergeEngine(FileResourceResolver(resolver_base))
    stem = output_dir / template_path.stem

    if args.records:
        table = RecordTable.from_file(args.records, args.image_fields)
    else:
        table = RecordTable([parse_assignments(args.values, args.image_fields)])

    LOGGER.info("Merging %d record(s) into %s", len(table), template_path.name)
    if args.combined:
        with engine.execute_combined(template, table, index) as combined:
            write_outputs(serializer, combined, stem, formats)
    else:
        width = len(str(len(table)))
        for row_number, merged in enumerate(engine.execute_batch(template, table, index), start=1):
            with merged:
                row_stem = stem.with_name(f"{stem.name}_{row_number:0{width}d}")
                write_outputs(serializer, merged, row_stem, formats)
    LOGGER.info("Outputs written to %s", output_dir)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the DOCX template -> merge -> output pipeline."""
    args = build_parser().parse_args(argv)
    if args.verbose:
        set_level(logging.DEBUG)
    try:
        return run(args)
    except DocxMergeError as exc:
        LOGGER.error("%s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
