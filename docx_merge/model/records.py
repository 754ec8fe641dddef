"""Record sources feeding the merge engine: single records and record tables."""
from __future__ import annotations

from collections.abc import Mapping as MappingABC
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Union

import pandas as pd

from docx_merge.errors import ValidationError

Record = Mapping[str, object]


@dataclass(frozen=True, slots=True)
class ImageValue:
    """Field value explicitly marked as an image resource.

    ``source`` is either a filesystem path or the raw image bytes. The merge
    engine never guesses that a plain string is an image; only values wrapped
    in this type are handed to the resource resolver.
    """

    source: Union[str, Path, bytes]
    media_type: Optional[str] = None
    description: Optional[str] = None


def validate_record(record: object) -> Record:
    """Ensure ``record`` is a mapping with string keys."""
    if not isinstance(record, MappingABC):
        raise ValidationError(f"A record must be a mapping, got {type(record).__name__}")
    for key in record:
        if not isinstance(key, str):
            raise ValidationError(f"Record keys must be strings, got {key!r}")
    return record


def record_from_arrays(names: Sequence[str], values: Sequence[object]) -> Dict[str, object]:
    """Build a record from parallel name/value arrays."""
    if len(names) != len(values):
        raise ValidationError(f"Got {len(names)} field names but {len(values)} values")
    return validate_record(dict(zip(names, values)))  # type: ignore[return-value]


class RecordTable:
    """Ordered rows sharing a common column schema."""

    def __init__(self, rows: Iterable[Record] = (), columns: Optional[Sequence[str]] = None) -> None:
        self._rows: List[Dict[str, object]] = [dict(validate_record(row)) for row in rows]
        if columns is None:
            seen: Dict[str, None] = {}
            for row in self._rows:
                for key in row:
                    seen.setdefault(key, None)
            columns = list(seen)
        self._columns = list(columns)

    @property
    def columns(self) -> List[str]:
        return list(self._columns)

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[Dict[str, object]]:
        return iter(self._rows)

    def __getitem__(self, index: int) -> Dict[str, object]:
        return self._rows[index]

    def append(self, row: Record) -> None:
        row = dict(validate_record(row))
        for key in row:
            if key not in self._columns:
                self._columns.append(key)
        self._rows.append(row)

    # ------------------------------------------------------------------
    # pandas-backed constructors
    @classmethod
    def from_dataframe(cls, frame: pd.DataFrame, image_fields: Iterable[str] = ()) -> "RecordTable":
        """Convert each DataFrame row into a record; missing cells become empty strings."""
        image_fields = set(image_fields)
        columns = [str(column) for column in frame.columns]
        rows = []
        for _, series in frame.iterrows():
            row: Dict[str, object] = {}
            for column, value in zip(columns, series.tolist()):
                text = "" if pd.isna(value) else str(value)
                if column in image_fields and text:
                    row[column] = ImageValue(text)
                else:
                    row[column] = text
            rows.append(row)
        return cls(rows, columns=columns)

    @classmethod
    def from_csv(cls, path: Union[str, Path], image_fields: Iterable[str] = ()) -> "RecordTable":
        frame = _read_csv_with_fallbacks(Path(path))
        return cls.from_dataframe(frame, image_fields)

    @classmethod
    def from_json(cls, path: Union[str, Path], image_fields: Iterable[str] = ()) -> "RecordTable":
        try:
            frame = pd.read_json(Path(path), orient="records", dtype=False)
        except (OSError, ValueError) as exc:
            raise ValidationError(f"Cannot read records from {path}: {exc}") from exc
        return cls.from_dataframe(frame, image_fields)

    @classmethod
    def from_file(cls, path: Union[str, Path], image_fields: Iterable[str] = ()) -> "RecordTable":
        """Dispatch on the file extension (.csv or .json)."""
        path = Path(path)
        suffix = path.suffix.lower()
        if suffix == ".csv":
            return cls.from_csv(path, image_fields)
        if suffix == ".json":
            return cls.from_json(path, image_fields)
        raise ValidationError(f"Unsupported record file extension: {suffix or path.name}")


def _read_csv_with_fallbacks(path: Path) -> pd.DataFrame:
    encodings = ["utf-8", "utf-8-sig", "cp1252", "latin1"]
    last_err: Optional[Exception] = None
    for encoding in encodings:
        try:
            return pd.read_csv(path, dtype=str, encoding=encoding, keep_default_na=False)
        except UnicodeDecodeError as exc:
            last_err = exc
        except (OSError, pd.errors.ParserError) as exc:
            raise ValidationError(f"Cannot read records from {path}: {exc}") from exc
    raise ValidationError(f"Failed to decode {path} with common encodings: {last_err}")
