"""Helper functions to work with XML namespaces and parsing."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict
from xml.etree import ElementTree as ET

from docx_merge.errors import FormatError

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
R_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
WP_NS = "http://schemas.openxmlformats.org/drawingml/2006/wordprocessingDrawing"
A_NS = "http://schemas.openxmlformats.org/drawingml/2006/main"
PIC_NS = "http://schemas.openxmlformats.org/drawingml/2006/picture"
PKG_REL_NS = "http://schemas.openxmlformats.org/package/2006/relationships"
CT_NS = "http://schemas.openxmlformats.org/package/2006/content-types"
CP_NS = "http://schemas.openxmlformats.org/package/2006/metadata/core-properties"
DC_NS = "http://purl.org/dc/elements/1.1/"
XML_NS = "http://www.w3.org/XML/1998/namespace"


@dataclass(frozen=True)
class Namespaces:
    """Common OpenXML namespace prefixes used across parsers."""

    WORD: Dict[str, str] = None  # type: ignore[assignment]
    RELS: Dict[str, str] = None  # type: ignore[assignment]
    DRAWING: Dict[str, str] = None  # type: ignore[assignment]

    def __post_init__(self) -> None:  # pragma: no cover
        raise RuntimeError("Namespaces should not be instantiated")


Namespaces.WORD = {"w": W_NS, "r": R_NS}  # type: ignore[attr-defined]
Namespaces.RELS = {"rel": PKG_REL_NS}  # type: ignore[attr-defined]
Namespaces.DRAWING = {  # type: ignore[attr-defined]
    "a": A_NS,
    "wp": WP_NS,
    "pic": PIC_NS,
}

_PREFIXES = {
    "w": W_NS,
    "r": R_NS,
    "wp": WP_NS,
    "a": A_NS,
    "pic": PIC_NS,
    "cp": CP_NS,
    "dc": DC_NS,
}
for _prefix, _uri in _PREFIXES.items():
    ET.register_namespace(_prefix, _uri)


def qn(tag: str) -> str:
    """Expand a ``prefix:local`` name into Clark notation."""
    prefix, local = tag.split(":", 1)
    if prefix == "xml":
        return f"{{{XML_NS}}}{local}"
    return f"{{{_PREFIXES[prefix]}}}{local}"


def local_name(tag: str) -> str:
    """Strip the namespace part of a Clark-notation tag."""
    return tag.split("}", 1)[-1]


def parse_xml(data: bytes) -> ET.ElementTree:
    """Parse XML from raw bytes with sane defaults."""
    try:
        return ET.ElementTree(ET.fromstring(data))
    except ET.ParseError as exc:
        raise FormatError(f"Malformed XML part: {exc}") from exc


def to_bytes(element: ET.Element) -> bytes:
    """Serialize an element as a standalone UTF-8 XML part."""
    return ET.tostring(element, encoding="utf-8", xml_declaration=True)


def default_namespace_root(tag: str, namespace: str) -> ET.Element:
    """Root element of a package part whose namespace is the default one.

    Children are created with plain tag names; the ``xmlns`` attribute is
    written verbatim, so no prefix is emitted.
    """
    return ET.Element(tag, {"xmlns": namespace})
