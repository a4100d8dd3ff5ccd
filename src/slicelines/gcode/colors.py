"""Colour helpers shared by the segment bucketer and the preview renderer."""

from __future__ import annotations

from typing import Final

import numpy as np

Color = tuple[int, int, int, int]

__all__ = [
    "Color",
    "EXTRUDE_COLOR",
    "TRAVEL_COLOR",
    "hsv_to_rgba",
    "speed_bin_color",
    "speed_bin_fraction",
    "stable_tag_hash",
    "tag_color",
    "tag_hue",
]

TRAVEL_COLOR: Final[Color] = (70, 130, 180, 255)
"""Steel blue used for non-extruding moves when coloring by type."""

EXTRUDE_COLOR: Final[Color] = (255, 165, 0, 255)
"""Orange used for extruding moves when coloring by type."""


_INT32_MASK = 0xFFFFFFFF
_INT32_SIGN = 0x80000000

_F32 = np.float32


def hsv_to_rgba(hue: float, saturation: float, value: float) -> Color:
    """Convert *hue* (degrees, 0-360) and unit *saturation*/*value* to RGBA bytes.

    Arithmetic is carried out in single precision so channels that land on a
    rounding tie resolve the same way on every platform.
    """

    hue, saturation, value = _F32(hue), _F32(saturation), _F32(value)
    chroma = value * saturation
    x = chroma * (_F32(1) - abs(np.fmod(hue / _F32(60), _F32(2)) - _F32(1)))
    m = value - chroma
    zero = _F32(0)

    if hue < 60:
        r, g, b = chroma, x, zero
    elif hue < 120:
        r, g, b = x, chroma, zero
    elif hue < 180:
        r, g, b = zero, chroma, x
    elif hue < 240:
        r, g, b = zero, x, chroma
    elif hue < 300:
        r, g, b = x, zero, chroma
    else:
        r, g, b = chroma, zero, x

    return (_to_byte(r + m), _to_byte(g + m), _to_byte(b + m), 255)


def stable_tag_hash(tag: str) -> int:
    """Return the signed 32-bit rolling hash of *tag*.

    The value is an observable output (it drives tag colours), so it must
    stay identical across runs and platforms.
    """

    h = 23
    for char in tag:
        h = (h * 31 + ord(char)) & _INT32_MASK
    if h & _INT32_SIGN:
        h -= 1 << 32
    return h


def tag_hue(tag: str) -> int:
    # abs() of a truncated remainder equals the remainder of abs()
    return abs(stable_tag_hash(tag)) % 360


def tag_color(tag: str) -> Color:
    """Return the deterministic colour assigned to *tag*."""

    return hsv_to_rgba(float(tag_hue(tag)), 0.8, 0.95)


def speed_bin_color(index: int, bins: int) -> Color:
    """Return the blue-to-red gradient colour of speed bin *index*."""

    fraction = _F32(0) if bins <= 1 else _F32(index) / _F32(bins - 1)
    return hsv_to_rgba(_F32(240) - _F32(240) * fraction, 0.9, 0.95)


def speed_bin_fraction(index: int, bins: int) -> float:
    """Return the position of bin *index* along the 0-1 gradient."""

    if bins <= 1:
        return 0.0
    return index / (bins - 1)


def _to_byte(component: np.float32) -> int:
    # Round half to even on the single-precision product.
    scaled = float(component * _F32(255))
    return int(round(max(0.0, min(255.0, scaled))))
