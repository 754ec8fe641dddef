"""Arena-backed document model: sections own paragraphs, paragraphs own inlines."""
from __future__ import annotations

import uuid
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

from docx_merge.errors import StructuralError, ValidationError
from docx_merge.model.elements import (
    EmbeddedObject,
    FieldLocation,
    Inline,
    MergeField,
    ParagraphNode,
    SectionNode,
    TextRun,
)

PARAGRAPH_BREAK = "\n"
SECTION_BREAK = "\n\n"

Snapshot = Tuple[Tuple[Tuple[Inline, ...], ...], ...]


class Document:
    """In-memory document tree.

    Paragraphs and inlines live in flat arenas addressed by integer ids, so a
    clone is a copy of a few lists rather than a walk over an object graph.
    Inline values are immutable and are shared freely between clones.
    """

    def __init__(self) -> None:
        self._sections: List[SectionNode] = []
        self._paragraphs: List[ParagraphNode] = []
        self._inlines: List[Inline] = []
        self.metadata: Dict[str, str] = {}
        self._document_id = uuid.uuid4().hex
        self._lineage: Tuple[str, ...] = ()
        self._revision = 0
        self._origin: Optional[Tuple[str, int]] = None
        self._fork_revision = 0
        self._released = False

    # ------------------------------------------------------------------
    # Construction
    @classmethod
    def new_empty(cls) -> "Document":
        return cls()

    @classmethod
    def load(cls, source: Union[bytes, Path, str]) -> "Document":
        """Load a WordprocessingML package from bytes or a file path."""
        from docx_merge.parser.document_parser import parse_document

        return parse_document(source)

    def add_section(self) -> int:
        self._check_alive()
        self._sections.append(SectionNode())
        self._revision += 1
        return len(self._sections) - 1

    def add_paragraph(self, section: int) -> int:
        self._check_alive()
        node = self._section(section)
        self._paragraphs.append(ParagraphNode(section=section))
        paragraph_id = len(self._paragraphs) - 1
        node.paragraphs.append(paragraph_id)
        self._revision += 1
        return paragraph_id

    def append_text(self, paragraph: int, text: str) -> int:
        if not isinstance(text, str):
            raise ValidationError(f"Text must be a string, got {type(text).__name__}")
        return self._append_inline(paragraph, TextRun(text))

    def append_field(self, paragraph: int, name: str) -> int:
        if not isinstance(name, str) or not name:
            raise ValidationError("Merge field name must be a non-empty string")
        return self._append_inline(paragraph, MergeField(name))

    def append_object(self, paragraph: int, obj: EmbeddedObject) -> int:
        if not isinstance(obj, EmbeddedObject):
            raise ValidationError(f"Expected an EmbeddedObject, got {type(obj).__name__}")
        return self._append_inline(paragraph, obj)

    def append_document(self, other: "Document") -> None:
        """Copy every section of ``other`` after the existing sections."""
        self._check_alive()
        other._check_alive()
        for section in other._sections:
            section_id = self.add_section()
            for paragraph_id in section.paragraphs:
                new_paragraph = self.add_paragraph(section_id)
                for inline_id in other._paragraphs[paragraph_id].inlines:
                    self._append_inline(new_paragraph, other._inlines[inline_id])

    # ------------------------------------------------------------------
    # Identity and lifecycle
    @property
    def document_id(self) -> str:
        return self._document_id

    @property
    def lineage(self) -> Tuple[str, ...]:
        """Ids of the documents this one was cloned from, oldest first."""
        return self._lineage

    @property
    def revision(self) -> int:
        """Counter bumped by every structural builder call."""
        return self._revision

    @property
    def structure_key(self) -> Tuple[str, int]:
        """Identity of the current structure.

        A clone shares its parent's key until its first builder call, after
        which the key is its own. Documents with equal keys keep every
        unsubstituted merge field at the same location.
        """
        if self._origin is not None and self._revision == self._fork_revision:
            return self._origin
        return (self._document_id, self._revision)

    @property
    def released(self) -> bool:
        return self._released

    def clone(self) -> "Document":
        """Return an independent structural copy of this document."""
        self._check_alive()
        copy = Document()
        copy._sections = [SectionNode(list(node.paragraphs)) for node in self._sections]
        copy._paragraphs = [ParagraphNode(node.section, list(node.inlines)) for node in self._paragraphs]
        copy._inlines = list(self._inlines)
        copy.metadata = dict(self.metadata)
        copy._lineage = self._lineage + (self._document_id,)
        copy._revision = self._revision
        copy._origin = self.structure_key
        copy._fork_revision = self._revision
        return copy

    def release(self) -> None:
        """Drop the document's content; further use raises StructuralError."""
        self._sections = []
        self._paragraphs = []
        self._inlines = []
        self._released = True

    def __enter__(self) -> "Document":
        self._check_alive()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()

    # ------------------------------------------------------------------
    # Read access
    def section_ids(self) -> List[int]:
        self._check_alive()
        return list(range(len(self._sections)))

    def paragraph_ids(self, section: int) -> List[int]:
        self._check_alive()
        return list(self._section(section).paragraphs)

    def inlines(self, paragraph: int) -> Tuple[Inline, ...]:
        self._check_alive()
        node = self._paragraph(paragraph)
        return tuple(self._inlines[inline_id] for inline_id in node.inlines)

    def iter_inlines(self) -> Iterator[Tuple[FieldLocation, Inline]]:
        """Yield every inline with its location, in document order."""
        self._check_alive()
        for section_id, section in enumerate(self._sections):
            for paragraph_id in section.paragraphs:
                for inline_id in self._paragraphs[paragraph_id].inlines:
                    yield FieldLocation(section_id, paragraph_id, inline_id), self._inlines[inline_id]

    def snapshot(self) -> Snapshot:
        """Nested tuples of inline values; equal snapshots mean equivalent documents."""
        self._check_alive()
        return tuple(
            tuple(self.inlines(paragraph_id) for paragraph_id in section.paragraphs)
            for section in self._sections
        )

    def get_plain_text(self) -> str:
        """Concatenate resolved text in document order."""
        self._check_alive()
        sections = []
        for section in self._sections:
            paragraphs = [text_of(self.inlines(paragraph_id)) for paragraph_id in section.paragraphs]
            sections.append(PARAGRAPH_BREAK.join(paragraphs))
        return SECTION_BREAK.join(sections)

    # ------------------------------------------------------------------
    # Rewrite (merge engine only)
    def rewrite_field(self, location: FieldLocation, replacements: Sequence[Inline]) -> bool:
        """Replace the merge field at ``location`` with ``replacements``.

        Returns False when the field is no longer present, i.e. it was already
        substituted by an earlier merge.
        """
        self._check_alive()
        node = self._paragraph(location.paragraph)
        try:
            position = node.inlines.index(location.inline)
        except ValueError:
            return False
        if not isinstance(self._inlines[location.inline], MergeField):
            raise StructuralError(f"Inline {location.inline} is not a merge field")
        new_ids = []
        for item in replacements:
            self._inlines.append(item)
            new_ids.append(len(self._inlines) - 1)
        node.inlines[position : position + 1] = new_ids
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    def _append_inline(self, paragraph: int, item: Inline) -> int:
        self._check_alive()
        node = self._paragraph(paragraph)
        self._inlines.append(item)
        inline_id = len(self._inlines) - 1
        node.inlines.append(inline_id)
        self._revision += 1
        return inline_id

    def _section(self, section: int) -> SectionNode:
        if not 0 <= section < len(self._sections):
            raise StructuralError(f"Unknown section id {section}")
        return self._sections[section]

    def _paragraph(self, paragraph: int) -> ParagraphNode:
        if not 0 <= paragraph < len(self._paragraphs):
            raise StructuralError(f"Unknown paragraph id {paragraph}")
        return self._paragraphs[paragraph]

    def _check_alive(self) -> None:
        if self._released:
            raise StructuralError("Document has been released")

    def __repr__(self) -> str:
        state = "released" if self._released else f"{len(self._sections)} sections"
        return f"<Document {self._document_id[:8]} {state}>"


def text_of(inlines: Optional[Sequence[Inline]]) -> str:
    """Plain text of a sequence of inlines."""
    return "".join(item.text for item in inlines or () if isinstance(item, TextRun))
