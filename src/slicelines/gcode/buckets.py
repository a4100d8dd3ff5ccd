"""Classify motion events into per-layer, colored segment buckets."""

from __future__ import annotations

import math
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Final

from .colors import (
    EXTRUDE_COLOR,
    TRAVEL_COLOR,
    Color,
    speed_bin_color,
    speed_bin_fraction,
    tag_color,
)
from .geometry import LineGeometry, LineGeometryBuilder
from .interpreter import MotionEvent
from .scanner import FeedRange

__all__ = [
    "DEFAULT_EXTRUDE_TAG",
    "DEFAULT_TRAVEL_TAG",
    "Bucket",
    "ColorMode",
    "LineItem",
    "SegmentBucketer",
    "speed_bin_index",
    "speed_bin_name",
]

DEFAULT_EXTRUDE_TAG: Final[str] = "__DEFAULT_EXTRUDE__"
DEFAULT_TRAVEL_TAG: Final[str] = "__DEFAULT_TRAVEL__"

TRAVEL_THICKNESS: Final[float] = 0.6
EXTRUDE_THICKNESS: Final[float] = 1.2
TAG_TRAVEL_THICKNESS: Final[float] = 0.7

_RANGE_EPSILON = 1e-6


class ColorMode(StrEnum):
    """How motion segments are grouped and colored."""

    BY_TYPE = "by-type"
    BY_SPEED = "by-speed"
    BY_TAG = "by-tag"

    @property
    def requires_feed_range(self) -> bool:
        return self is ColorMode.BY_SPEED

    @classmethod
    def parse(cls, value: ColorMode | str) -> ColorMode:
        """Return the mode named by *value* (``"ByType"``, ``"by_speed"``...)."""

        if isinstance(value, cls):
            return value
        text = str(value).strip().lower().replace("_", "").replace("-", "")
        for mode in cls:
            if mode.value.replace("-", "") == text:
                return mode
        raise ValueError(f"Unknown color mode: {value!r}")


@dataclass(slots=True)
class Bucket:
    """Segments of one layer sharing a classification."""

    layer: int
    name: str
    color: Color
    thickness: float
    builder: LineGeometryBuilder = field(default_factory=LineGeometryBuilder, repr=False)

    def add(self, event: MotionEvent) -> None:
        self.builder.add_line(event.start, event.end)

    def finalize(self) -> LineItem | None:
        """Return the finished :class:`LineItem`, or ``None`` when empty."""

        geometry = self.builder.build()
        if geometry.is_empty:
            return None
        return LineItem(
            layer=self.layer,
            name=self.name,
            color=self.color,
            thickness=self.thickness,
            geometry=geometry,
        )


@dataclass(frozen=True, slots=True)
class LineItem:
    """A finalized, colored polyline bucket ready for rendering."""

    layer: int
    name: str
    color: Color
    thickness: float
    geometry: LineGeometry

    @property
    def segment_count(self) -> int:
        return self.geometry.segment_count


def speed_bin_index(feed: float, feed_range: FeedRange, bins: int) -> int:
    """Return the speed bin of *feed* clamped to ``[0, bins - 1]``."""

    bins = max(1, int(bins))
    if feed_range.is_degenerate:
        feed = feed_range.minimum
    scaled = (feed - feed_range.minimum) / max(_RANGE_EPSILON, feed_range.span) * bins
    return max(0, min(bins - 1, math.floor(scaled)))


def speed_bin_name(index: int) -> str:
    return f"SPEED_{index}"


class SegmentBucketer:
    """Route motion events into lazily created buckets.

    Static buckets (by type and by speed) are instantiated for a whole
    layer the first time that layer needs one. Tag buckets are created per
    distinct tag and keyed case-insensitively.
    """

    def __init__(
        self,
        mode: ColorMode | str,
        *,
        speed_bins: int = 8,
        feed_range: FeedRange | None = None,
    ) -> None:
        self.mode = ColorMode.parse(mode)
        self.speed_bins = max(1, int(speed_bins))
        if self.mode.requires_feed_range and feed_range is None:
            raise ValueError("Speed coloring requires a feed range")
        self.feed_range = feed_range or FeedRange()
        self._static: dict[tuple[int, str], Bucket] = {}
        self._dynamic: dict[tuple[int, str], Bucket] = {}

    def __len__(self) -> int:
        return len(self._static) + len(self._dynamic)

    def buckets(self) -> Iterator[Bucket]:
        """Iterate static buckets first, then tag buckets, in creation order."""

        yield from self._static.values()
        yield from self._dynamic.values()

    def resolve(self, event: MotionEvent) -> Bucket:
        """Return the bucket owning *event*, creating it when absent."""

        if self.mode is ColorMode.BY_TAG:
            return self._tag_bucket(event)

        if self.mode is ColorMode.BY_TYPE:
            name = "EXTRUDE" if event.is_extrusion else "TRAVEL"
        else:
            name = speed_bin_name(speed_bin_index(event.feed, self.feed_range, self.speed_bins))

        key = (event.layer, name)
        bucket = self._static.get(key)
        if bucket is None:
            for template in self._layer_templates(event.layer):
                self._static.setdefault((template.layer, template.name), template)
            bucket = self._static[key]
        return bucket

    def add(self, event: MotionEvent) -> Bucket:
        bucket = self.resolve(event)
        bucket.add(event)
        return bucket

    def finalize(self) -> dict[int, list[LineItem]]:
        """Return non-empty buckets grouped by layer in ascending layer order."""

        layers: dict[int, list[LineItem]] = {}
        for bucket in self.buckets():
            item = bucket.finalize()
            if item is None:
                continue
            layers.setdefault(item.layer, []).append(item)
        return dict(sorted(layers.items()))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _layer_templates(self, layer: int) -> list[Bucket]:
        if self.mode is ColorMode.BY_TYPE:
            return [
                Bucket(layer, "TRAVEL", TRAVEL_COLOR, TRAVEL_THICKNESS),
                Bucket(layer, "EXTRUDE", EXTRUDE_COLOR, EXTRUDE_THICKNESS),
            ]

        templates = []
        for index in range(self.speed_bins):
            fraction = speed_bin_fraction(index, self.speed_bins)
            templates.append(
                Bucket(
                    layer,
                    speed_bin_name(index),
                    speed_bin_color(index, self.speed_bins),
                    0.9 + 0.3 * fraction,
                )
            )
        return templates

    def _tag_bucket(self, event: MotionEvent) -> Bucket:
        tag = event.source_tag or (DEFAULT_EXTRUDE_TAG if event.is_extrusion else DEFAULT_TRAVEL_TAG)
        key = (event.layer, tag.casefold())
        bucket = self._dynamic.get(key)
        if bucket is None:
            thickness = EXTRUDE_THICKNESS if event.is_extrusion else TAG_TRAVEL_THICKNESS
            bucket = Bucket(event.layer, tag, tag_color(tag), thickness)
            self._dynamic[key] = bucket
        return bucket
