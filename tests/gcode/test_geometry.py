from __future__ import annotations

import numpy as np
import pytest

from slicelines.gcode import LineGeometryBuilder


def test_builder_appends_unshared_vertex_pairs() -> None:
    builder = LineGeometryBuilder()
    builder.add_line((0.0, 0.0, 0.0), (1.0, 0.0, 0.0))
    builder.add_line((1.0, 0.0, 0.0), (1.0, 1.0, 0.0))

    geometry = builder.build()

    assert len(builder) == 2
    assert geometry.segment_count == 2
    assert geometry.positions.shape == (4, 3)
    assert geometry.indices.tolist() == [0, 1, 2, 3]
    starts, ends = geometry.endpoints()
    np.testing.assert_allclose(starts, [[0, 0, 0], [1, 0, 0]])
    np.testing.assert_allclose(ends, [[1, 0, 0], [1, 1, 0]])


def test_built_geometry_is_read_only() -> None:
    builder = LineGeometryBuilder()
    builder.add_line((0.0, 0.0, 0.0), (2.0, 3.0, 4.0))
    geometry = builder.build()

    with pytest.raises(ValueError):
        geometry.positions[0, 0] = 5.0

    lower, upper = geometry.bounds()
    np.testing.assert_allclose(lower, [0, 0, 0])
    np.testing.assert_allclose(upper, [2, 3, 4])


def test_empty_builder_yields_empty_geometry() -> None:
    geometry = LineGeometryBuilder().build()

    assert geometry.is_empty is True
    assert geometry.segment_count == 0
    assert geometry.positions.shape == (0, 3)
    assert geometry.bounds() is None
    assert list(geometry.segments()) == []
