"""Resolve image field values into embeddable payloads."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol, Union

from docx_merge.errors import ValidationError
from docx_merge.model.elements import EmbeddedObject
from docx_merge.model.records import ImageValue
from docx_merge.parser.media_extractor import image_dimensions, sniff_image_type
from docx_merge.utils.logger import get_logger
from docx_merge.utils.units import EMU_PER_INCH, pixels_to_emu

LOGGER = get_logger(__name__)

IMAGE_KIND = "image"


@dataclass(frozen=True, slots=True)
class ResolvedResource:
    """Raw bytes plus declared media kind for an image value."""

    data: bytes = field(repr=False)
    media_type: str
    width: Optional[int] = None
    height: Optional[int] = None

    def to_embedded_object(self, description: Optional[str] = None) -> EmbeddedObject:
        if self.width and self.height:
            width_emu, height_emu = pixels_to_emu(self.width), pixels_to_emu(self.height)
        else:
            width_emu = height_emu = EMU_PER_INCH
        return EmbeddedObject(
            kind=IMAGE_KIND,
            payload=self.data,
            media_type=self.media_type,
            description=description,
            width_emu=width_emu,
            height_emu=height_emu,
        )


class ResourceResolver(Protocol):
    """Turns an ``ImageValue`` into bytes and a media type."""

    def resolve(self, value: ImageValue) -> ResolvedResource:
        ...


class FileResourceResolver:
    """Reads image values from disk (or takes their bytes as-is) and validates them."""

    def __init__(self, base_dir: Optional[Union[str, Path]] = None) -> None:
        self._base_dir = Path(base_dir) if base_dir is not None else None

    def resolve(self, value: ImageValue) -> ResolvedResource:
        data = self._read(value.source)
        detected = sniff_image_type(data)
        if detected is None:
            raise ValidationError(f"Resource {self._describe(value.source)} is not a decodable image")
        if value.media_type and value.media_type != detected:
            raise ValidationError(
                f"Resource {self._describe(value.source)} was declared as {value.media_type} but contains {detected}"
            )
        width, height = image_dimensions(data)
        LOGGER.debug("Resolved %s as %s (%sx%s)", self._describe(value.source), detected, width, height)
        return ResolvedResource(data=data, media_type=detected, width=width, height=height)

    def _read(self, source: Union[str, Path, bytes]) -> bytes:
        if isinstance(source, (bytes, bytearray)):
            if not source:
                raise ValidationError("Image resource is empty")
            return bytes(source)
        path = Path(source)
        if not path.is_absolute() and self._base_dir is not None:
            path = self._base_dir / path
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise ValidationError(f"Image resource not found: {path}") from exc
        if not data:
            raise ValidationError(f"Image resource is empty: {path}")
        return data

    @staticmethod
    def _describe(source: Union[str, Path, bytes]) -> str:
        if isinstance(source, (bytes, bytearray)):
            return f"<{len(source)} bytes>"
        return str(source)
