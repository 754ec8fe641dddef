"""Reading and writing Open Packaging Convention relationship parts."""
from __future__ import annotations

import posixpath
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Dict, Iterable, Mapping, Optional, Tuple
from xml.etree import ElementTree as ET

from docx_merge.utils.xml_utils import PKG_REL_NS, Namespaces, default_namespace_root, parse_xml, to_bytes

OFFICE_REL_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"

RELTYPE_OFFICE_DOCUMENT = f"{OFFICE_REL_NS}/officeDocument"
RELTYPE_IMAGE = f"{OFFICE_REL_NS}/image"
RELTYPE_STYLES = f"{OFFICE_REL_NS}/styles"
RELTYPE_CORE_PROPERTIES = "http://schemas.openxmlformats.org/package/2006/relationships/metadata/core-properties"

MAIN_DOCUMENT_PART = "word/document.xml"


@dataclass(frozen=True)
class Relationship:
    """Represents a single OPC relationship."""

    source_part: str
    r_id: str
    target: str
    rel_type: str
    is_external: bool = False
    resolved_target: Optional[str] = None


class Relationships:
    """Relationship mappings of a package, grouped by source part."""

    def __init__(self, relationships: Dict[str, Dict[str, Relationship]]) -> None:
        self._by_source = relationships

    @classmethod
    def from_package(cls, parts: Mapping[str, bytes]) -> "Relationships":
        """Collect relationships from all .rels parts within the package."""
        by_source: Dict[str, Dict[str, Relationship]] = {}
        for name, payload in parts.items():
            if not name.endswith(".rels"):
                continue
            source, base_dir = cls._source_and_base_from_rel_part(name)
            tree = parse_xml(payload)
            parsed = cls._parse_relationship_part(source, base_dir, tree)
            if parsed:
                by_source[source] = parsed
        return cls(by_source)

    def find(self, part_name: str, r_id: str) -> Optional[Relationship]:
        """Return a relationship by part and id if present."""
        source = self._normalize_source(part_name)
        return self._by_source.get(source, {}).get(r_id)

    def main_document_part(self) -> str:
        """Target of the package-level officeDocument relationship."""
        for rel in self._by_source.get("", {}).values():
            if rel.rel_type == RELTYPE_OFFICE_DOCUMENT and rel.resolved_target:
                return rel.resolved_target
        return MAIN_DOCUMENT_PART

    @classmethod
    def _parse_relationship_part(
        cls, source_part: str, base_dir: PurePosixPath, tree: ET.ElementTree
    ) -> Dict[str, Relationship]:
        result: Dict[str, Relationship] = {}
        for rel_el in tree.getroot().iter(f"{{{Namespaces.RELS['rel']}}}Relationship"):
            r_id = rel_el.attrib.get("Id")
            if not r_id:
                continue
            target = rel_el.attrib.get("Target", "")
            is_external = rel_el.attrib.get("TargetMode") == "External"
            result[r_id] = Relationship(
                source_part=source_part,
                r_id=r_id,
                target=target,
                rel_type=rel_el.attrib.get("Type", ""),
                is_external=is_external,
                resolved_target=cls._resolve_target_path(base_dir, target, is_external),
            )
        return result

    @staticmethod
    def _source_and_base_from_rel_part(rel_part: str) -> Tuple[str, PurePosixPath]:
        rel_path = PurePosixPath(rel_part)
        base_dir = rel_path.parent
        if rel_part == "_rels/.rels":
            return "", base_dir
        if "/_rels/" in rel_part:
            folder, suffix = rel_part.split("/_rels/", 1)
            return f"{folder}/{suffix[:-5]}", base_dir
        if rel_part.startswith("_rels/"):
            return rel_part[len("_rels/") : -5], base_dir
        return rel_part[:-5], base_dir

    @staticmethod
    def _resolve_target_path(base_dir: PurePosixPath, target: str, is_external: bool) -> Optional[str]:
        if not target:
            return None
        if is_external:
            return target
        if target.startswith("/"):
            return target.lstrip("/")
        resolved = base_dir.joinpath(target)
        normalized = posixpath.normpath(resolved.as_posix())
        normalized = normalized.replace("/_rels/", "/")
        if normalized.startswith("_rels/"):
            normalized = normalized[len("_rels/") :]
        return normalized

    @classmethod
    def _normalize_source(cls, part_name: str) -> str:
        if part_name.endswith(".rels"):
            source, _ = cls._source_and_base_from_rel_part(part_name)
            return source
        return part_name


def relationships_part(relationships: Iterable[Relationship]) -> bytes:
    """Serialize relationships of one source part into a .rels payload."""
    root = default_namespace_root("Relationships", PKG_REL_NS)
    for rel in relationships:
        attrib = {"Id": rel.r_id, "Type": rel.rel_type, "Target": rel.target}
        if rel.is_external:
            attrib["TargetMode"] = "External"
        ET.SubElement(root, "Relationship", attrib)
    return to_bytes(root)
