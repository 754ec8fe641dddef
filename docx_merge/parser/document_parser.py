"""Parse document.xml into the arena document model."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union
from xml.etree import ElementTree as ET

from docx_merge.model.document_model import Document
from docx_merge.model.elements import EmbeddedObject
from docx_merge.parser.docx_loader import DocxPackage
from docx_merge.parser.media_extractor import MediaResolver
from docx_merge.utils.logger import get_logger
from docx_merge.utils.xml_utils import Namespaces, local_name, qn

LOGGER = get_logger(__name__)

MERGEFIELD_RE = re.compile(
    r'^\s*MERGEFIELD\b\s*(?:"(?P<quoted>(?:\\.|[^"\\])*)"|(?P<bare>[^\s\\]+))?', re.IGNORECASE
)
_ESCAPED_CHAR_RE = re.compile(r"\\(.)")

# Elements whose children are inline content of the enclosing paragraph.
_INLINE_CONTAINERS = {"hyperlink", "smartTag", "ins", "sdt", "sdtContent", "customXml", "moveTo"}
_SKIPPED_INLINE = {"pPr", "bookmarkStart", "bookmarkEnd", "proofErr", "del", "moveFrom", "permStart", "permEnd"}
_BLOCK_CONTAINERS = {"sdt", "sdtContent", "customXml"}


def parse_merge_instruction(instruction: str) -> Optional[str]:
    """Return the field name of a MERGEFIELD instruction, or None for other fields.

    An empty string means a MERGEFIELD without a usable name. Inside a quoted
    name, ``\\"`` and ``\\\\`` stand for a literal quote and backslash.
    """
    match = MERGEFIELD_RE.match(instruction or "")
    if match is None:
        return None
    quoted = match.group("quoted")
    if quoted is not None:
        name = _ESCAPED_CHAR_RE.sub(r"\1", quoted)
        return name if name.strip() else ""
    return match.group("bare") or ""


@dataclass(slots=True)
class _FieldFrame:
    """A complex field (fldChar begin ... end) being read."""

    instruction: List[str] = field(default_factory=list)
    separated: bool = False

    @property
    def merge_name(self) -> Optional[str]:
        return parse_merge_instruction("".join(self.instruction))


class _ParagraphBuilder:
    """Collects the inlines of one paragraph while walking its XML."""

    def __init__(self, document: Document, paragraph: int) -> None:
        self.document = document
        self.paragraph = paragraph
        self.fields: List[_FieldFrame] = []

    @property
    def suppressed(self) -> bool:
        """True inside a field instruction or the displayed result of a merge field."""
        return any(not frame.separated or frame.merge_name is not None for frame in self.fields)

    def add_text(self, text: str) -> None:
        if not self.suppressed:
            self.document.append_text(self.paragraph, text)

    def add_object(self, obj: EmbeddedObject) -> None:
        if not self.suppressed:
            self.document.append_object(self.paragraph, obj)

    def add_field(self, name: str) -> None:
        if not name:
            LOGGER.warning("Skipping MERGEFIELD without a name")
            return
        self.document.append_field(self.paragraph, name)

    def begin_field(self) -> None:
        self.fields.append(_FieldFrame())

    def separate_field(self) -> None:
        if self.fields:
            self.fields[-1].separated = True

    def end_field(self) -> None:
        if not self.fields:
            LOGGER.debug("Unbalanced fldChar end ignored")
            return
        frame = self.fields.pop()
        name = frame.merge_name
        if name is not None and not self.suppressed:
            self.add_field(name)

    def finish(self) -> None:
        while self.fields:
            LOGGER.debug("Closing field left open at paragraph end")
            self.end_field()


class DocumentParser:
    """Transforms Word body XML into a Document."""

    def __init__(self, package: DocxPackage) -> None:
        self._package = package
        self._media = MediaResolver(package.relationships, package.raw_parts)

    def parse(self) -> Document:
        """Parse the document body into sections, paragraphs and inlines."""
        document = Document.new_empty()
        document.metadata.update(self._package.core_properties())

        root = self._package.require_document_xml().getroot()
        body = root.find("w:body", Namespaces.WORD)
        if body is None:
            LOGGER.warning("document.xml missing body element")
            return document

        self._parse_blocks(list(body), document, None)
        LOGGER.debug("Parsed %d sections", len(document.section_ids()))
        return document

    def _parse_blocks(self, elements: List[ET.Element], document: Document, section: Optional[int]) -> Optional[int]:
        """Walk block-level elements; returns the section left open."""
        for child in elements:
            tag = local_name(child.tag)
            if tag == "p":
                if section is None:
                    section = document.add_section()
                if self._parse_paragraph(child, document, section):
                    section = None
            elif tag == "tbl":
                if section is None:
                    section = document.add_section()
                # Tables are flattened into the section's paragraph stream.
                for paragraph_el in child.iter(qn("w:p")):
                    self._parse_paragraph(paragraph_el, document, section)
            elif tag == "sectPr":
                if section is None:
                    section = document.add_section()
                section = None
            elif tag in _BLOCK_CONTAINERS:
                section = self._parse_blocks(list(child), document, section)
            else:
                LOGGER.debug("Skipping unsupported element: %s", tag)
        return section

    def _parse_paragraph(self, paragraph_el: ET.Element, document: Document, section: int) -> bool:
        """Append a paragraph; True when it carries a section break."""
        paragraph = document.add_paragraph(section)
        builder = _ParagraphBuilder(document, paragraph)
        self._parse_inline_children(paragraph_el, builder)
        builder.finish()

        ppr = paragraph_el.find("w:pPr", Namespaces.WORD)
        return ppr is not None and ppr.find("w:sectPr", Namespaces.WORD) is not None

    def _parse_inline_children(self, parent: ET.Element, builder: _ParagraphBuilder) -> None:
        for child in list(parent):
            tag = local_name(child.tag)
            if tag == "r":
                self._parse_run(child, builder)
            elif tag == "fldSimple":
                self._parse_simple_field(child, builder)
            elif tag in _INLINE_CONTAINERS:
                self._parse_inline_children(child, builder)
            elif tag in _SKIPPED_INLINE:
                continue
            else:
                LOGGER.debug("Skipping paragraph child element: %s", tag)

    def _parse_simple_field(self, field_el: ET.Element, builder: _ParagraphBuilder) -> None:
        name = parse_merge_instruction(field_el.attrib.get(qn("w:instr"), ""))
        if name is None:
            # Other fields keep their displayed result.
            self._parse_inline_children(field_el, builder)
        elif not builder.suppressed:
            builder.add_field(name)

    def _parse_run(self, run_el: ET.Element, builder: _ParagraphBuilder) -> None:
        """Parse a run element, handling text, fields and drawings."""
        current_text = ""
        has_text = False

        for child in list(run_el):
            tag = local_name(child.tag)

            if tag == "t":
                current_text += child.text or ""
                has_text = True
            elif tag == "tab":
                current_text += "\t"
                has_text = True
            elif tag in ("br", "cr"):
                current_text += "\n"
                has_text = True
            elif tag == "noBreakHyphen":
                current_text += "-"
                has_text = True
            elif tag == "drawing":
                if has_text:
                    builder.add_text(current_text)
                    current_text, has_text = "", False
                drawing = self._parse_drawing(child)
                if drawing is not None:
                    builder.add_object(drawing)
            elif tag == "fldChar":
                if has_text:
                    builder.add_text(current_text)
                    current_text, has_text = "", False
                field_type = child.attrib.get(qn("w:fldCharType"))
                if field_type == "begin":
                    builder.begin_field()
                elif field_type == "separate":
                    builder.separate_field()
                elif field_type == "end":
                    builder.end_field()
            elif tag == "instrText":
                if builder.fields:
                    builder.fields[-1].instruction.append(child.text or "")
            elif tag in ("rPr", "softHyphen", "lastRenderedPageBreak"):
                continue
            else:
                LOGGER.debug("Skipping run child element: %s", tag)

        if has_text:
            builder.add_text(current_text)

    def _parse_drawing(self, drawing_el: ET.Element) -> Optional[EmbeddedObject]:
        """Resolve the image referenced by a drawing element."""
        blip = drawing_el.find(".//a:blip", Namespaces.DRAWING)
        r_id = blip.attrib.get(qn("r:embed")) if blip is not None else None
        if not r_id:
            LOGGER.debug("Drawing without embedded picture skipped")
            return None

        media = self._media.resolve(self._package.document_part, r_id)
        if media is None:
            LOGGER.warning("Image %s referenced by the document is missing from the package", r_id)
            return None

        extent = drawing_el.find(".//wp:extent", Namespaces.DRAWING)
        doc_pr = drawing_el.find(".//wp:docPr", Namespaces.DRAWING)
        description = doc_pr.attrib.get("descr") if doc_pr is not None else None
        return EmbeddedObject(
            kind="image",
            payload=media.data,
            media_type=media.media_type,
            description=description or None,
            width_emu=self._int_attr(extent, "cx"),
            height_emu=self._int_attr(extent, "cy"),
        )

    @staticmethod
    def _int_attr(element: Optional[ET.Element], name: str) -> Optional[int]:
        if element is None:
            return None
        try:
            return int(element.attrib[name])
        except (KeyError, ValueError):
            return None


def parse_document(source: Union[bytes, Path, str]) -> Document:
    """Load a package and parse it into a Document."""
    package = DocxPackage.load(source)
    return DocumentParser(package).parse()
