from __future__ import annotations

import math
from collections.abc import Mapping, Sequence

from PIL import Image, ImageDraw, ImageFont

from .buckets import LineItem
from .colors import Color
from .pipeline import BuildResult, filter_through_layer

__all__ = [
    "DEFAULT_LAYER_PREVIEW_SIZE",
    "GCodePreviewError",
    "LayerPreviewRenderer",
    "layer_legend",
]

DEFAULT_LAYER_PREVIEW_SIZE: tuple[int, int] = (768, 512)
"""Default pixel dimensions for generated layer previews."""


class GCodePreviewError(RuntimeError):
    """Raised when a layer preview cannot be produced."""


class LayerPreviewRenderer:
    """Render layered line buckets into a top-down 2D preview image."""

    def __init__(
        self,
        *,
        background: Color = (12, 16, 22, 255),
        axis_color: Color = (200, 200, 210, 160),
        text_color: Color = (240, 240, 240, 255),
        pixels_per_thickness: float = 1.5,
    ) -> None:
        self._background = background
        self._axis_color = axis_color
        self._text_color = text_color
        self._pixels_per_thickness = pixels_per_thickness

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def render(
        self,
        result: BuildResult,
        *,
        through_layer: int | None = None,
        size: tuple[int, int] = DEFAULT_LAYER_PREVIEW_SIZE,
    ) -> Image.Image:
        """Return a Pillow image of *result* showing layers up to *through_layer*."""

        top_layer = result.max_layer if through_layer is None else through_layer
        layers = filter_through_layer(result.layers, top_layer)
        items = [item for layer in sorted(layers) for item in layers[layer]]
        if not items:
            raise GCodePreviewError("No geometry is visible at or below the requested layer.")

        width, height = size
        width = max(1, int(width))
        height = max(1, int(height))
        image = Image.new("RGBA", (width, height), self._background)
        draw = ImageDraw.Draw(image, "RGBA")

        min_x, min_y, max_x, max_y = _xy_bounds(items)
        if math.isclose(max_x, min_x):
            max_x += 1.0
            min_x -= 1.0
        if math.isclose(max_y, min_y):
            max_y += 1.0
            min_y -= 1.0

        padding = max(24, min(width, height) // 12)
        available_width = max(1.0, width - padding * 2)
        available_height = max(1.0, height - padding * 2)
        scale = available_width / (max_x - min_x)
        if (max_y - min_y) * scale > available_height:
            scale = available_height / (max_y - min_y)
        scale = max(scale, 1e-6)

        def project(x: float, y: float) -> tuple[float, float]:
            px = padding + (x - min_x) * scale
            py = height - (padding + (y - min_y) * scale)
            return px, py

        # Draw axes for reference.
        if min_x <= 0 <= max_x:
            draw.line([project(0.0, min_y), project(0.0, max_y)], fill=self._axis_color, width=1)
        if min_y <= 0 <= max_y:
            draw.line([project(min_x, 0.0), project(max_x, 0.0)], fill=self._axis_color, width=1)

        # Lower layers first so upper layers paint over them.
        for item in items:
            stroke = max(1, int(round(item.thickness * self._pixels_per_thickness)))
            starts, ends = item.geometry.endpoints()
            for start, end in zip(starts, ends):
                draw.line([project(start[0], start[1]), project(end[0], end[1])], fill=item.color, width=stroke)

        font = ImageFont.load_default()
        segments = sum(item.segment_count for item in items)
        lines = [
            f"Layers: {min(layers)} to {max(layers)} of {result.max_layer}",
            f"Segments: {segments}  Buckets: {len(items)}",
        ]
        y = padding // 2
        for line in lines:
            draw.text((padding, y), line, fill=self._text_color, font=font)
            y += _measure_text_height(font, line) + 2

        swatch = 8
        for name, color in layer_legend(layers).items():
            draw.rectangle([padding, y + 1, padding + swatch, y + 1 + swatch], fill=color)
            draw.text((padding + swatch + 4, y), name, fill=self._text_color, font=font)
            y += max(swatch, _measure_text_height(font, name)) + 2

        return image


def _xy_bounds(items: Sequence[LineItem]) -> tuple[float, float, float, float]:
    min_x = min_y = math.inf
    max_x = max_y = -math.inf
    for item in items:
        bounds = item.geometry.bounds()
        if bounds is None:
            continue
        lower, upper = bounds
        min_x = min(min_x, float(lower[0]))
        min_y = min(min_y, float(lower[1]))
        max_x = max(max_x, float(upper[0]))
        max_y = max(max_y, float(upper[1]))
    if not math.isfinite(min_x):
        return 0.0, 0.0, 0.0, 0.0
    return min_x, min_y, max_x, max_y


def _measure_text_height(font: ImageFont.ImageFont, text: str) -> int:
    bbox = font.getbbox(text)
    return int(bbox[3] - bbox[1])


def layer_legend(layers: Mapping[int, Sequence[LineItem]]) -> dict[str, Color]:
    """Return the colour of each bucket name present in *layers*."""

    legend: dict[str, Color] = {}
    for items in layers.values():
        for item in items:
            legend.setdefault(item.name, item.color)
    return legend
