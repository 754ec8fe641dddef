"""
Media helpers for DOCX packages.

Image payloads are recognized by their signature; embedded media is found
through the package relationships.
"""
from __future__ import annotations

import mimetypes
import struct
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Mapping, Optional, Tuple

from docx_merge.parser.rels_parser import Relationships

_MEDIA_TYPES = {
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.gif': 'image/gif',
    '.bmp': 'image/bmp',
    '.tiff': 'image/tiff',
    '.svg': 'image/svg+xml',
    '.emf': 'image/x-emf',
    '.wmf': 'image/x-wmf',
}

_EXTENSIONS = {
    'image/png': 'png',
    'image/jpeg': 'jpeg',
    'image/gif': 'gif',
    'image/bmp': 'bmp',
    'image/tiff': 'tiff',
    'image/svg+xml': 'svg',
    'image/x-emf': 'emf',
    'image/x-wmf': 'wmf',
}

_JPEG_SOF_MARKERS = {0xC0, 0xC1, 0xC2, 0xC3, 0xC5, 0xC6, 0xC7, 0xC9, 0xCA, 0xCB, 0xCD, 0xCE, 0xCF}


def media_type_for(path: str) -> str:
    """Determine MIME type from file extension."""
    ext = PurePosixPath(path).suffix.lower()
    if ext in _MEDIA_TYPES:
        return _MEDIA_TYPES[ext]
    mime_type, _ = mimetypes.guess_type(path)
    return mime_type or 'application/octet-stream'


def extension_for(media_type: str) -> str:
    """File extension (without dot) used when storing media of this type."""
    if media_type in _EXTENSIONS:
        return _EXTENSIONS[media_type]
    guessed = mimetypes.guess_extension(media_type)
    return guessed.lstrip('.') if guessed else 'bin'


def sniff_image_type(data: bytes) -> Optional[str]:
    """Return the MIME type of a supported raster image, or None."""
    if data.startswith(b'\x89PNG\r\n\x1a\n'):
        return 'image/png'
    if data.startswith(b'\xff\xd8\xff'):
        return 'image/jpeg'
    if data[:6] in (b'GIF87a', b'GIF89a'):
        return 'image/gif'
    if data.startswith(b'BM') and len(data) >= 26:
        return 'image/bmp'
    return None


def image_dimensions(data: bytes) -> Tuple[Optional[int], Optional[int]]:
    """Pixel width and height read from the image header, if recognizable."""
    kind = sniff_image_type(data)
    if kind == 'image/png' and len(data) >= 24:
        # IHDR chunk holds the dimensions at bytes 16-24
        width, height = struct.unpack('>II', data[16:24])
        return width, height
    if kind == 'image/gif' and len(data) >= 10:
        width, height = struct.unpack('<HH', data[6:10])
        return width, height
    if kind == 'image/bmp':
        width, height = struct.unpack('<ii', data[18:26])
        return width, abs(height)
    if kind == 'image/jpeg':
        return _jpeg_dimensions(data)
    return None, None


def _jpeg_dimensions(data: bytes) -> Tuple[Optional[int], Optional[int]]:
    offset = 2
    while offset + 4 <= len(data):
        if data[offset] != 0xFF:
            offset += 1
            continue
        marker = data[offset + 1]
        if marker == 0xFF:
            offset += 1
            continue
        if marker in (0xD8, 0x01) or 0xD0 <= marker <= 0xD7:
            offset += 2
            continue
        (length,) = struct.unpack('>H', data[offset + 2:offset + 4])
        if marker in _JPEG_SOF_MARKERS and offset + 9 <= len(data):
            height, width = struct.unpack('>HH', data[offset + 5:offset + 9])
            return width, height
        offset += 2 + length
    return None, None


@dataclass(frozen=True, slots=True)
class MediaPayload:
    """Binary media part resolved from a relationship id."""

    target_path: str
    media_type: str
    data: bytes


class MediaResolver:
    """Maps relationship identifiers to actual media payloads."""

    def __init__(self, relationships: Relationships, parts: Mapping[str, bytes]) -> None:
        self._relationships = relationships
        self._parts = parts

    def resolve(self, part_name: str, r_id: str) -> Optional[MediaPayload]:
        """Return the media referenced by ``r_id`` from ``part_name``, if embedded."""
        rel = self._relationships.find(part_name, r_id)
        if rel is None or rel.is_external:
            return None
        target = rel.resolved_target or rel.target
        data = self._parts.get(target)
        if data is None:
            return None
        return MediaPayload(target_path=target, media_type=media_type_for(target), data=data)
