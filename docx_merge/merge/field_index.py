"""Catalog of merge fields found in a document.

Field names are matched exactly: ``Nom`` and ``nom`` are two different
fields, as in Word. No normalization happens here.
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Tuple

from docx_merge.errors import StructuralError
from docx_merge.model.document_model import Document
from docx_merge.model.elements import FieldLocation, MergeField


class FieldIndex:
    """Read-only mapping from field name to every location referencing it."""

    def __init__(self, structure_key: Tuple[str, int], entries: Mapping[str, Tuple[FieldLocation, ...]]) -> None:
        self._structure_key = structure_key
        self._entries = MappingProxyType(dict(entries))

    @classmethod
    def scan(cls, document: Document) -> "FieldIndex":
        """Walk sections, paragraphs and inlines once, in document order."""
        collected: Dict[str, List[FieldLocation]] = {}
        for location, item in document.iter_inlines():
            if isinstance(item, MergeField):
                collected.setdefault(item.name, []).append(location)
        entries = {name: tuple(locations) for name, locations in collected.items()}
        return cls(document.structure_key, entries)

    @property
    def document_id(self) -> str:
        return self._structure_key[0]

    @property
    def names(self) -> List[str]:
        """Distinct field names in first-seen order."""
        return list(self._entries)

    def locations(self, name: str) -> Tuple[FieldLocation, ...]:
        return self._entries.get(name, ())

    def items(self) -> Iterator[Tuple[str, Tuple[FieldLocation, ...]]]:
        return iter(self._entries.items())

    @property
    def occurrence_count(self) -> int:
        return sum(len(locations) for locations in self._entries.values())

    def is_bound_to(self, document: Document) -> bool:
        """True when ``document`` still has the structure this index was computed from.

        An unmodified clone of the scanned document qualifies. A clone that
        was edited after the fork does not, even if its revision count
        matches.
        """
        return document.structure_key == self._structure_key

    def check_bound(self, document: Document) -> None:
        if document.released:
            raise StructuralError("Document has been released")
        if not self.is_bound_to(document):
            raise StructuralError(
                f"Field index was computed for document {self.document_id[:8]}, "
                f"not for {document.document_id[:8]} (or the document changed since)"
            )

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __repr__(self) -> str:
        return f"<FieldIndex {len(self._entries)} names, {self.occurrence_count} occurrences>"


def scan(document: Document) -> FieldIndex:
    return FieldIndex.scan(document)
