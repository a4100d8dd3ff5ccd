"""Extrude line buckets into merged, capped-cylinder tube meshes."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Final

import numpy as np
import trimesh

from .buckets import LineItem
from .colors import Color
from .geometry import LineGeometry

__all__ = [
    "DEFAULT_TUBE_RADIUS",
    "DEFAULT_TUBE_SECTIONS",
    "MIN_SEGMENT_LENGTH_SQUARED",
    "TubeItem",
    "build_tube_mesh",
    "build_tube_meshes",
    "merge_tube_meshes",
]

logger = logging.getLogger(__name__)

DEFAULT_TUBE_RADIUS: Final[float] = 0.2
DEFAULT_TUBE_SECTIONS: Final[int] = 8

MIN_SEGMENT_LENGTH_SQUARED: Final[float] = 1e-12
"""Segments whose squared length is not above this value produce no cylinder."""


@dataclass(frozen=True, slots=True)
class TubeItem:
    """Solid mesh covering every segment of one line bucket."""

    layer: int
    name: str
    color: Color
    mesh: trimesh.Trimesh

    @property
    def is_empty(self) -> bool:
        return len(self.mesh.faces) == 0


def build_tube_meshes(
    layers: Mapping[int, Sequence[LineItem]],
    *,
    radius: float = DEFAULT_TUBE_RADIUS,
    sections: int = DEFAULT_TUBE_SECTIONS,
) -> dict[int, list[TubeItem]]:
    """Return one :class:`TubeItem` per line bucket, grouped like *layers*."""

    _validate(radius, sections)
    tubes: dict[int, list[TubeItem]] = {}
    for layer, items in layers.items():
        tubes[layer] = [
            TubeItem(
                layer=layer,
                name=item.name,
                color=item.color,
                mesh=build_tube_mesh(item.geometry, radius=radius, sections=sections, color=item.color),
            )
            for item in items
        ]
    logger.debug("Built tube meshes for %d layers", len(tubes))
    return tubes


def build_tube_mesh(
    geometry: LineGeometry,
    *,
    radius: float = DEFAULT_TUBE_RADIUS,
    sections: int = DEFAULT_TUBE_SECTIONS,
    color: Color | None = None,
) -> trimesh.Trimesh:
    """Return a single mesh of capped cylinders around *geometry*'s segments."""

    _validate(radius, sections)
    starts, ends = geometry.endpoints()
    axis = ends - starts
    lengths_squared = np.einsum("ij,ij->i", axis, axis)
    keep = lengths_squared > MIN_SEGMENT_LENGTH_SQUARED
    starts, ends, axis = starts[keep], ends[keep], axis[keep]

    if not len(starts):
        return trimesh.Trimesh(
            vertices=np.zeros((0, 3), dtype=np.float64),
            faces=np.zeros((0, 3), dtype=np.int64),
            process=False,
        )

    directions = axis / np.sqrt(lengths_squared[keep])[:, None]
    vertices, faces = _cylinders(starts, ends, directions, float(radius), int(sections))
    mesh = trimesh.Trimesh(vertices=vertices, faces=faces, process=False)
    if color is not None:
        mesh.visual.face_colors = np.array(color, dtype=np.uint8)
    return mesh


def merge_tube_meshes(tubes: Mapping[int, Sequence[TubeItem]]) -> trimesh.Trimesh:
    """Concatenate every non-empty tube mesh in *tubes* into one mesh."""

    meshes = [item.mesh for items in tubes.values() for item in items if not item.is_empty]
    if not meshes:
        return trimesh.Trimesh()
    return trimesh.util.concatenate(meshes)


def _cylinders(
    starts: np.ndarray,
    ends: np.ndarray,
    directions: np.ndarray,
    radius: float,
    sections: int,
) -> tuple[np.ndarray, np.ndarray]:
    count = len(starts)

    # Any vector not parallel to the axis seeds an orthonormal frame.
    helper = np.zeros_like(directions)
    use_x = np.abs(directions[:, 0]) < 0.9
    helper[use_x, 0] = 1.0
    helper[~use_x, 1] = 1.0
    normal = np.cross(directions, helper)
    normal /= np.linalg.norm(normal, axis=1)[:, None]
    binormal = np.cross(directions, normal)

    angles = np.linspace(0.0, 2.0 * np.pi, sections, endpoint=False)
    offsets = radius * (
        np.cos(angles)[None, :, None] * normal[:, None, :] + np.sin(angles)[None, :, None] * binormal[:, None, :]
    )

    # Per cylinder: bottom ring, top ring, bottom centre, top centre.
    stride = 2 * sections + 2
    vertices = np.empty((count, stride, 3), dtype=np.float64)
    vertices[:, :sections] = starts[:, None, :] + offsets
    vertices[:, sections : 2 * sections] = ends[:, None, :] + offsets
    vertices[:, 2 * sections] = starts
    vertices[:, 2 * sections + 1] = ends

    ring = np.arange(sections)
    following = (ring + 1) % sections
    bottom, top = ring, ring + sections
    bottom_next, top_next = following, following + sections
    bottom_centre = np.full(sections, 2 * sections)
    top_centre = np.full(sections, 2 * sections + 1)

    template = np.concatenate(
        [
            np.stack([bottom, bottom_next, top_next], axis=1),
            np.stack([bottom, top_next, top], axis=1),
            np.stack([bottom_centre, bottom_next, bottom], axis=1),
            np.stack([top_centre, top, top_next], axis=1),
        ]
    )
    faces = template[None, :, :] + (np.arange(count) * stride)[:, None, None]
    return vertices.reshape(-1, 3), faces.reshape(-1, 3).astype(np.int64)


def _validate(radius: float, sections: int) -> None:
    if not radius > 0:
        raise ValueError("Tube radius must be positive")
    if int(sections) < 3:
        raise ValueError("Tube sections must be at least 3")
