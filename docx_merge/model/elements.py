"""Inline variants and arena nodes that make up the document model."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, List, Optional, Union


@dataclass(frozen=True, slots=True)
class TextRun:
    """A contiguous piece of literal text."""

    text: str

    resolved: ClassVar[bool] = True


@dataclass(frozen=True, slots=True)
class MergeField:
    """Named placeholder waiting to be substituted by the merge engine."""

    name: str

    resolved: ClassVar[bool] = False


@dataclass(frozen=True, slots=True)
class EmbeddedObject:
    """Binary object (usually an image) embedded inline in a paragraph."""

    kind: str
    payload: bytes = field(repr=False)
    media_type: str = "application/octet-stream"
    description: Optional[str] = None
    width_emu: Optional[int] = None
    height_emu: Optional[int] = None

    resolved: ClassVar[bool] = True


Inline = Union[TextRun, MergeField, EmbeddedObject]


@dataclass(slots=True)
class SectionNode:
    """Section entry in the arena: ordered paragraph ids."""

    paragraphs: List[int] = field(default_factory=list)


@dataclass(slots=True)
class ParagraphNode:
    """Paragraph entry in the arena: owning section and ordered inline ids."""

    section: int
    inlines: List[int] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class FieldLocation:
    """Address of a merge field inline inside a document arena."""

    section: int
    paragraph: int
    inline: int
