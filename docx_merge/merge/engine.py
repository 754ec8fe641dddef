"""Substitute record values into merge fields."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from docx_merge.errors import ValidationError
from docx_merge.merge.field_index import FieldIndex
from docx_merge.merge.resources import FileResourceResolver, ResourceResolver
from docx_merge.model.document_model import Document
from docx_merge.model.elements import Inline, TextRun
from docx_merge.model.records import ImageValue, Record, validate_record
from docx_merge.utils.logger import get_logger

LOGGER = get_logger(__name__)


@dataclass(slots=True)
class MergeReport:
    """Outcome of merging one record into one document."""

    resolved: List[str] = field(default_factory=list)
    unresolved: List[str] = field(default_factory=list)
    ignored: List[str] = field(default_factory=list)
    substitutions: int = 0


class MergeEngine:
    """Resolve merge fields from single records or record tables."""

    def __init__(self, resolver: Optional[ResourceResolver] = None) -> None:
        self._resolver = resolver or FileResourceResolver()

    # ------------------------------------------------------------------
    # Public API
    def field_names(self, document: Document) -> List[str]:
        """Distinct merge field names of ``document`` in first-seen order."""
        return FieldIndex.scan(document).names

    def execute_single(self, document: Document, record: Record, index: Optional[FieldIndex] = None) -> MergeReport:
        """Merge ``record`` into ``document`` in place.

        Every value is resolved before the first rewrite, so a failing image
        leaves the document untouched.
        """
        record = validate_record(record)
        index = self._bind_index(document, index)
        values = self._resolve_values(index, record)

        report = MergeReport()
        for name in index.names:
            if name not in values:
                report.unresolved.append(name)
                continue
            report.resolved.append(name)
            for location in index.locations(name):
                if document.rewrite_field(location, values[name]):
                    report.substitutions += 1
        report.ignored = [key for key in record if key not in index]

        LOGGER.debug(
            "Merged record into %r: %d substitutions, unresolved=%s",
            document,
            report.substitutions,
            report.unresolved,
        )
        return report

    def execute_batch(
        self, document: Document, table: Iterable[Record], index: Optional[FieldIndex] = None
    ) -> Iterator[Document]:
        """Lazily yield one merged clone of ``document`` per row of ``table``.

        Rows are pulled from ``table`` one at a time and validated as they
        arrive. Each clone is taken from the pre-merge document and is fully
        merged before it is yielded. Stopping iteration early leaves every yielded
        document valid. The caller owns, and must release, every clone.
        """
        index = self._bind_index(document, index)
        return self._iter_batch(document, table, index)

    def execute_combined(
        self, document: Document, table: Iterable[Record], index: Optional[FieldIndex] = None
    ) -> Document:
        """Merge every row and concatenate the results into a single document."""
        combined = Document.new_empty()
        combined.metadata = dict(document.metadata)
        for merged in self.execute_batch(document, table, index):
            with merged:
                combined.append_document(merged)
        return combined

    # ------------------------------------------------------------------
    # Internal helpers
    def _iter_batch(self, document: Document, rows: Iterable[Record], index: FieldIndex) -> Iterator[Document]:
        produced = 0
        for row_number, row in enumerate(rows):
            clone = document.clone()
            try:
                self.execute_single(clone, row, index)
            except Exception:
                clone.release()
                LOGGER.error("Merge failed on row %d", row_number)
                raise
            produced += 1
            yield clone
        LOGGER.info("Batch merge produced %d documents", produced)

    def _bind_index(self, document: Document, index: Optional[FieldIndex]) -> FieldIndex:
        if index is None:
            return FieldIndex.scan(document)
        index.check_bound(document)
        return index

    def _resolve_values(self, index: FieldIndex, record: Record) -> Dict[str, Tuple[Inline, ...]]:
        values: Dict[str, Tuple[Inline, ...]] = {}
        for name in index.names:
            if name in record:
                values[name] = self._resolve_value(name, record[name])
        return values

    def _resolve_value(self, name: str, value: object) -> Tuple[Inline, ...]:
        if isinstance(value, ImageValue):
            try:
                resource = self._resolver.resolve(value)
            except ValidationError:
                raise
            except Exception as exc:
                raise ValidationError(f"Cannot resolve image for field {name!r}: {exc}") from exc
            return (resource.to_embedded_object(value.description),)
        if value is None:
            return (TextRun(""),)
        return (TextRun(str(value)),)
