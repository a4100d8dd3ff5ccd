"""Growable line-segment buffers and the immutable geometry they produce."""

from __future__ import annotations

from array import array
from collections.abc import Iterator
from dataclasses import dataclass

import numpy as np

__all__ = ["LineGeometry", "LineGeometryBuilder"]

Point = tuple[float, float, float]


@dataclass(frozen=True, slots=True)
class LineGeometry:
    """Indexed line list: every consecutive index pair is one segment."""

    positions: np.ndarray
    indices: np.ndarray

    @property
    def segment_count(self) -> int:
        return int(self.indices.size // 2)

    @property
    def is_empty(self) -> bool:
        return self.indices.size == 0

    def segments(self) -> Iterator[tuple[np.ndarray, np.ndarray]]:
        """Yield ``(start, end)`` vertex pairs in insertion order."""

        for index in range(0, self.indices.size - 1, 2):
            yield self.positions[self.indices[index]], self.positions[self.indices[index + 1]]

    def endpoints(self) -> tuple[np.ndarray, np.ndarray]:
        """Return the start and end vertices of all segments as ``(M, 3)`` arrays."""

        pairs = self.indices[: self.segment_count * 2].reshape(-1, 2)
        return self.positions[pairs[:, 0]], self.positions[pairs[:, 1]]

    def bounds(self) -> tuple[np.ndarray, np.ndarray] | None:
        if self.positions.size == 0:
            return None
        return self.positions.min(axis=0), self.positions.max(axis=0)


class LineGeometryBuilder:
    """Accumulate segments for one bucket.

    Vertices are never shared between segments; each call to
    :meth:`add_line` appends two vertices and one index pair.
    """

    __slots__ = ("_positions", "_indices")

    def __init__(self) -> None:
        self._positions = array("d")
        self._indices = array("l")

    def __len__(self) -> int:
        return len(self._indices) // 2

    def add_line(self, start: Point, end: Point) -> None:
        base = len(self._positions) // 3
        self._positions.extend(start)
        self._positions.extend(end)
        self._indices.append(base)
        self._indices.append(base + 1)

    def build(self) -> LineGeometry:
        """Return an immutable snapshot of the accumulated segments."""

        positions = np.array(self._positions, dtype=np.float64).reshape(-1, 3)
        indices = np.array(self._indices, dtype=np.int32)
        positions.setflags(write=False)
        indices.setflags(write=False)
        return LineGeometry(positions=positions, indices=indices)
