"""Unit conversion helpers for WordprocessingML measurements."""
from __future__ import annotations

EMU_PER_INCH = 914400
EMU_PER_PIXEL = 9525  # at 96 dpi
POINTS_PER_INCH = 72


def emu_to_points(value: int) -> float:
    """Convert English Metric Units to typographic points."""
    return (value / EMU_PER_INCH) * POINTS_PER_INCH


def pixels_to_emu(value: int) -> int:
    """Convert screen pixels (96 dpi) to English Metric Units."""
    return int(value) * EMU_PER_PIXEL
