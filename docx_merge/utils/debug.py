"""Helpers to persist intermediate representations for debugging."""
from __future__ import annotations

import json
from dataclasses import fields, is_dataclass
from pathlib import Path
from typing import Any, Optional

from docx_merge.merge.field_index import FieldIndex
from docx_merge.model.document_model import Document


class DebugDumper:
    """Writes intermediate artifacts onto disk for inspection."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def dump(self, document: Document, index: Optional[FieldIndex] = None) -> Path:
        """Persist the document structure and its merge fields as JSON."""
        self.directory.mkdir(parents=True, exist_ok=True)
        index = index or FieldIndex.scan(document)
        payload = {
            "document_id": document.document_id,
            "revision": document.revision,
            "metadata": dict(document.metadata),
            "fields": {
                name: [self._serialize(location) for location in locations] for name, locations in index.items()
            },
            "sections": self._serialize(document.snapshot()),
        }
        target = self.directory / "document_model.json"
        target.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        return target

    def _serialize(self, value: Any) -> Any:
        if is_dataclass(value):
            data = {"type": type(value).__name__}
            for item in fields(value):
                if item.name == "payload":
                    data["payload_size"] = len(getattr(value, item.name))
                else:
                    data[item.name] = self._serialize(getattr(value, item.name))
            return data
        if isinstance(value, dict):
            return {k: self._serialize(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._serialize(v) for v in value]
        return value
