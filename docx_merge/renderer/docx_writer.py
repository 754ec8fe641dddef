"""Write the document model back into a WordprocessingML package."""
from __future__ import annotations

import io
import re
import zipfile
from typing import Dict, List, Optional, Tuple
from xml.etree import ElementTree as ET

from docx_merge.errors import UnsupportedFormatError
from docx_merge.model.document_model import Document
from docx_merge.model.elements import EmbeddedObject, Inline, MergeField, TextRun
from docx_merge.parser.docx_loader import (
    CONTENT_TYPES_PATH,
    CORE_PROPS_PATH,
    DOCUMENT_RELS_PATH,
    DOCUMENT_XML_PATH,
    METADATA_FIELDS,
    PACKAGE_REL_PATH,
    STYLES_XML_PATH,
)
from docx_merge.parser.media_extractor import extension_for
from docx_merge.parser.rels_parser import (
    MAIN_DOCUMENT_PART,
    RELTYPE_CORE_PROPERTIES,
    RELTYPE_IMAGE,
    RELTYPE_OFFICE_DOCUMENT,
    RELTYPE_STYLES,
    Relationship,
    relationships_part,
)
from docx_merge.utils.logger import get_logger
from docx_merge.utils.units import EMU_PER_INCH
from docx_merge.utils.xml_utils import CT_NS, default_namespace_root, qn, to_bytes

LOGGER = get_logger(__name__)

PICTURE_URI = "http://schemas.openxmlformats.org/drawingml/2006/picture"
DOCUMENT_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml"
STYLES_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.styles+xml"
CORE_CONTENT_TYPE = "application/vnd.openxmlformats-package.core-properties+xml"
RELS_CONTENT_TYPE = "application/vnd.openxmlformats-package.relationships+xml"

# A4 portrait with one-inch margins, in twips.
PAGE_WIDTH_TWIPS = 11906
PAGE_HEIGHT_TWIPS = 16838
PAGE_MARGIN_TWIPS = 1440

_BREAKS = re.compile(r"(\r\n|\r|\n|\t)")
_ILLEGAL_XML_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")


class DocxWriter:
    """Serialize a Document into .docx bytes."""

    def __init__(self) -> None:
        self._media: List[Tuple[str, str, bytes]] = []
        self._media_types: Dict[str, str] = {}
        self._drawing_id = 0

    def write(self, document: Document) -> bytes:
        self._media = []
        self._media_types = {}
        self._drawing_id = 0

        document_xml = self._build_document(document)
        parts = {
            CONTENT_TYPES_PATH: self._build_content_types(),
            PACKAGE_REL_PATH: relationships_part(
                [
                    Relationship("", "rId1", MAIN_DOCUMENT_PART, RELTYPE_OFFICE_DOCUMENT),
                    Relationship("", "rId2", CORE_PROPS_PATH, RELTYPE_CORE_PROPERTIES),
                ]
            ),
            DOCUMENT_XML_PATH: to_bytes(document_xml),
            DOCUMENT_RELS_PATH: relationships_part(self._document_relationships()),
            STYLES_XML_PATH: to_bytes(self._build_styles()),
            CORE_PROPS_PATH: to_bytes(self._build_core_properties(document.metadata)),
        }
        for _, target, data in self._media:
            parts[f"word/{target}"] = data

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as docx_zip:
            for name, payload in parts.items():
                docx_zip.writestr(name, payload)
        LOGGER.debug("Wrote %d parts (%d media)", len(parts), len(self._media))
        return buffer.getvalue()

    # ------------------------------------------------------------------
    # document.xml
    def _build_document(self, document: Document) -> ET.Element:
        root = ET.Element(qn("w:document"))
        body = ET.SubElement(root, qn("w:body"))
        section_ids = document.section_ids()
        for position, section in enumerate(section_ids):
            is_last = position == len(section_ids) - 1
            paragraph_els = [self._build_paragraph(document, pid) for pid in document.paragraph_ids(section)]
            if not is_last:
                if not paragraph_els:
                    paragraph_els.append(ET.Element(qn("w:p")))
                self._attach_section_break(paragraph_els[-1])
            body.extend(paragraph_els)
        if section_ids:
            body.append(self._section_properties())
        return root

    def _attach_section_break(self, paragraph_el: ET.Element) -> None:
        ppr = ET.Element(qn("w:pPr"))
        sect_pr = self._section_properties()
        ET.SubElement(sect_pr, qn("w:type"), {qn("w:val"): "nextPage"})
        ppr.append(sect_pr)
        paragraph_el.insert(0, ppr)

    def _section_properties(self) -> ET.Element:
        sect_pr = ET.Element(qn("w:sectPr"))
        ET.SubElement(sect_pr, qn("w:pgSz"), {qn("w:w"): str(PAGE_WIDTH_TWIPS), qn("w:h"): str(PAGE_HEIGHT_TWIPS)})
        margin = str(PAGE_MARGIN_TWIPS)
        ET.SubElement(
            sect_pr,
            qn("w:pgMar"),
            {qn("w:top"): margin, qn("w:right"): margin, qn("w:bottom"): margin, qn("w:left"): margin},
        )
        return sect_pr

    def _build_paragraph(self, document: Document, paragraph: int) -> ET.Element:
        paragraph_el = ET.Element(qn("w:p"))
        for item in document.inlines(paragraph):
            paragraph_el.extend(self._build_inline(item))
        return paragraph_el

    def _build_inline(self, item: Inline) -> List[ET.Element]:
        if isinstance(item, TextRun):
            return [self._text_run(item.text)]
        if isinstance(item, MergeField):
            return self._merge_field_runs(item.name)
        if isinstance(item, EmbeddedObject):
            return [self._drawing_run(item)]
        raise UnsupportedFormatError(f"Cannot serialize inline of type {type(item).__name__}")

    def _text_run(self, text: str) -> ET.Element:
        run = ET.Element(qn("w:r"))
        text = _ILLEGAL_XML_CHARS.sub("", text)
        pieces = [piece for piece in _BREAKS.split(text) if piece]
        if not pieces:
            ET.SubElement(run, qn("w:t"))
        for piece in pieces:
            if piece == "\t":
                ET.SubElement(run, qn("w:tab"))
            elif piece in ("\r\n", "\r", "\n"):
                ET.SubElement(run, qn("w:br"))
            else:
                t_el = ET.SubElement(run, qn("w:t"), {qn("xml:space"): "preserve"})
                t_el.text = piece
        return run

    def _merge_field_runs(self, name: str) -> List[ET.Element]:
        """Complex field: begin, instruction, separate, displayed «name», end."""
        quoted = name
        if re.search(r'[\s\\"]', name):
            escaped = name.replace("\\", "\\\\").replace('"', '\\"')
            quoted = f'"{escaped}"'
        runs = []
        for kind in ("begin", "instr", "separate", "result", "end"):
            run = ET.Element(qn("w:r"))
            if kind == "instr":
                instr = ET.SubElement(run, qn("w:instrText"), {qn("xml:space"): "preserve"})
                instr.text = f" MERGEFIELD {quoted} \\* MERGEFORMAT "
            elif kind == "result":
                t_el = ET.SubElement(run, qn("w:t"))
                t_el.text = f"«{name}»"
            else:
                ET.SubElement(run, qn("w:fldChar"), {qn("w:fldCharType"): kind})
            runs.append(run)
        return runs

    def _drawing_run(self, obj: EmbeddedObject) -> ET.Element:
        if obj.kind != "image":
            raise UnsupportedFormatError(f"Cannot store embedded object of kind {obj.kind!r} in a DOCX package")
        r_id = self._register_media(obj)
        self._drawing_id += 1
        cx = str(obj.width_emu or EMU_PER_INCH)
        cy = str(obj.height_emu or EMU_PER_INCH)
        name = f"Picture {self._drawing_id}"

        run = ET.Element(qn("w:r"))
        drawing = ET.SubElement(run, qn("w:drawing"))
        inline = ET.SubElement(drawing, qn("wp:inline"), {"distT": "0", "distB": "0", "distL": "0", "distR": "0"})
        ET.SubElement(inline, qn("wp:extent"), {"cx": cx, "cy": cy})
        doc_pr = {"id": str(self._drawing_id), "name": name}
        if obj.description:
            doc_pr["descr"] = obj.description
        ET.SubElement(inline, qn("wp:docPr"), doc_pr)
        graphic = ET.SubElement(inline, qn("a:graphic"))
        graphic_data = ET.SubElement(graphic, qn("a:graphicData"), {"uri": PICTURE_URI})
        pic = ET.SubElement(graphic_data, qn("pic:pic"))
        nv_pic_pr = ET.SubElement(pic, qn("pic:nvPicPr"))
        ET.SubElement(nv_pic_pr, qn("pic:cNvPr"), {"id": "0", "name": name})
        ET.SubElement(nv_pic_pr, qn("pic:cNvPicPr"))
        blip_fill = ET.SubElement(pic, qn("pic:blipFill"))
        ET.SubElement(blip_fill, qn("a:blip"), {qn("r:embed"): r_id})
        stretch = ET.SubElement(blip_fill, qn("a:stretch"))
        ET.SubElement(stretch, qn("a:fillRect"))
        sp_pr = ET.SubElement(pic, qn("pic:spPr"))
        xfrm = ET.SubElement(sp_pr, qn("a:xfrm"))
        ET.SubElement(xfrm, qn("a:off"), {"x": "0", "y": "0"})
        ET.SubElement(xfrm, qn("a:ext"), {"cx": cx, "cy": cy})
        geometry = ET.SubElement(sp_pr, qn("a:prstGeom"), {"prst": "rect"})
        ET.SubElement(geometry, qn("a:avLst"))
        return run

    def _register_media(self, obj: EmbeddedObject) -> str:
        extension = extension_for(obj.media_type)
        self._media_types[extension] = obj.media_type
        index = len(self._media) + 1
        r_id = f"rIdImg{index}"
        self._media.append((r_id, f"media/image{index}.{extension}", obj.payload))
        return r_id

    def _document_relationships(self) -> List[Relationship]:
        rels = [Relationship(MAIN_DOCUMENT_PART, "rId1", "styles.xml", RELTYPE_STYLES)]
        for r_id, target, _ in self._media:
            rels.append(Relationship(MAIN_DOCUMENT_PART, r_id, target, RELTYPE_IMAGE))
        return rels

    # ------------------------------------------------------------------
    # Package plumbing
    def _build_content_types(self) -> bytes:
        root = default_namespace_root("Types", CT_NS)
        defaults = {"rels": RELS_CONTENT_TYPE, "xml": "application/xml"}
        defaults.update(self._media_types)
        for extension, content_type in defaults.items():
            ET.SubElement(root, "Default", {"Extension": extension, "ContentType": content_type})
        for part, content_type in (
            (DOCUMENT_XML_PATH, DOCUMENT_CONTENT_TYPE),
            (STYLES_XML_PATH, STYLES_CONTENT_TYPE),
            (CORE_PROPS_PATH, CORE_CONTENT_TYPE),
        ):
            ET.SubElement(root, "Override", {"PartName": f"/{part}", "ContentType": content_type})
        return to_bytes(root)

    def _build_styles(self) -> ET.Element:
        styles = ET.Element(qn("w:styles"))
        defaults = ET.SubElement(styles, qn("w:docDefaults"))
        rpr_default = ET.SubElement(defaults, qn("w:rPrDefault"))
        rpr = ET.SubElement(rpr_default, qn("w:rPr"))
        ET.SubElement(rpr, qn("w:sz"), {qn("w:val"): "22"})
        normal = ET.SubElement(
            styles, qn("w:style"), {qn("w:type"): "paragraph", qn("w:default"): "1", qn("w:styleId"): "Normal"}
        )
        ET.SubElement(normal, qn("w:name"), {qn("w:val"): "Normal"})
        ET.SubElement(normal, qn("w:qFormat"))
        return styles

    def _build_core_properties(self, metadata: Optional[Dict[str, str]]) -> ET.Element:
        root = ET.Element(qn("cp:coreProperties"))
        for key in METADATA_FIELDS:
            value = (metadata or {}).get(key)
            if value:
                ET.SubElement(root, qn(f"dc:{key}")).text = _ILLEGAL_XML_CHARS.sub("", value)
        return root
