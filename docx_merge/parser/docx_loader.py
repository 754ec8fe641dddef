"""DOCX package loader responsible for unpacking XML parts."""
from __future__ import annotations

import io
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional, Union
from xml.etree import ElementTree as ET

from docx_merge.errors import FormatError
from docx_merge.parser.rels_parser import Relationships
from docx_merge.utils.logger import get_logger
from docx_merge.utils.xml_utils import local_name, parse_xml

LOGGER = get_logger(__name__)

CONTENT_TYPES_PATH = "[Content_Types].xml"
PACKAGE_REL_PATH = "_rels/.rels"
DOCUMENT_XML_PATH = "word/document.xml"
DOCUMENT_RELS_PATH = "word/_rels/document.xml.rels"
STYLES_XML_PATH = "word/styles.xml"
CORE_PROPS_PATH = "docProps/core.xml"

METADATA_FIELDS = ("title", "subject", "creator", "description")


@dataclass(slots=True)
class DocxPackage:
    """Container for the parts extracted from a DOCX archive."""

    raw_parts: Mapping[str, bytes]
    xml_cache: Dict[str, ET.ElementTree] = field(default_factory=dict)

    document_part: str = DOCUMENT_XML_PATH
    document_xml: Optional[ET.ElementTree] = None
    core_properties_xml: Optional[ET.ElementTree] = None

    relationships: Relationships = field(init=False)

    @classmethod
    def load(cls, source: Union[bytes, Path, str]) -> "DocxPackage":
        """Open a DOCX archive from a path or raw bytes."""
        if isinstance(source, (bytes, bytearray)):
            stream: Union[io.BytesIO, Path] = io.BytesIO(bytes(source))
            label = f"<{len(source)} bytes>"
        else:
            stream = Path(source)
            label = stream.name
        try:
            with zipfile.ZipFile(stream) as docx_zip:
                parts = {name: docx_zip.read(name) for name in docx_zip.namelist()}
        except zipfile.BadZipFile as exc:
            raise FormatError(f"Not a DOCX package: {label}") from exc
        except OSError as exc:
            raise FormatError(f"Cannot read DOCX package {label}: {exc}") from exc

        LOGGER.debug("Loaded %d parts from %s", len(parts), label)

        package = cls(raw_parts=parts)
        package._initialize_caches()
        return package

    # ------------------------------------------------------------------
    # Public helpers
    def require_document_xml(self) -> ET.ElementTree:
        if self.document_xml is None:
            raise FormatError("Primary document part missing from package")
        return self.document_xml

    def get_xml_part(self, name: str) -> Optional[ET.ElementTree]:
        if name in self.xml_cache:
            return self.xml_cache[name]
        data = self.raw_parts.get(name)
        if data is None:
            return None
        tree = parse_xml(data)
        self.xml_cache[name] = tree
        return tree

    def core_properties(self) -> Dict[str, str]:
        """Title, subject, creator and description from docProps/core.xml."""
        if self.core_properties_xml is None:
            return {}
        properties: Dict[str, str] = {}
        for child in self.core_properties_xml.getroot():
            name = local_name(child.tag)
            if name in METADATA_FIELDS and child.text:
                properties[name] = child.text
        return properties

    # ------------------------------------------------------------------
    # Internal bootstrap
    def _initialize_caches(self) -> None:
        if CONTENT_TYPES_PATH not in self.raw_parts:
            raise FormatError(f"Required DOCX part missing: {CONTENT_TYPES_PATH}")
        self.relationships = Relationships.from_package(self.raw_parts)
        self.document_part = self.relationships.main_document_part()
        self.document_xml = self._parse_required(self.document_part)
        self.core_properties_xml = self.get_xml_part(CORE_PROPS_PATH)

    def _parse_required(self, name: str) -> ET.ElementTree:
        tree = self.get_xml_part(name)
        if tree is None:
            raise FormatError(f"Required DOCX part missing: {name}")
        return tree
