from __future__ import annotations

import pytest

from slicelines.gcode import ColorMode, FeedRange, MotionEvent, SegmentBucketer, speed_bin_index
from slicelines.gcode.buckets import DEFAULT_EXTRUDE_TAG, DEFAULT_TRAVEL_TAG
from slicelines.gcode.colors import EXTRUDE_COLOR, TRAVEL_COLOR, speed_bin_color, tag_color


def make_event(
    *,
    layer: int = 0,
    extrude: bool = True,
    feed: float = 1200.0,
    tag: str | None = None,
    x: float = 1.0,
) -> MotionEvent:
    return MotionEvent(
        start=(0.0, 0.0, 0.2),
        end=(x, 0.0, 0.2),
        is_extrusion=extrude,
        feed=feed,
        extrusion_delta=0.1 if extrude else 0.0,
        z=0.2,
        layer=layer,
        source_tag=tag,
    )


@pytest.mark.parametrize(
    ("value", "expected"),
    [("ByType", ColorMode.BY_TYPE), ("by_speed", ColorMode.BY_SPEED), ("BY-TAG", ColorMode.BY_TAG)],
)
def test_color_mode_parse(value: str, expected: ColorMode) -> None:
    assert ColorMode.parse(value) is expected


def test_color_mode_parse_rejects_unknown() -> None:
    with pytest.raises(ValueError):
        ColorMode.parse("rainbow")


def test_by_type_routes_travel_and_extrusion() -> None:
    bucketer = SegmentBucketer(ColorMode.BY_TYPE)

    extrude = bucketer.add(make_event(extrude=True))
    travel = bucketer.add(make_event(extrude=False))

    assert extrude.name == "EXTRUDE"
    assert extrude.color == EXTRUDE_COLOR
    assert extrude.thickness == pytest.approx(1.2)
    assert travel.name == "TRAVEL"
    assert travel.color == TRAVEL_COLOR
    assert travel.thickness == pytest.approx(0.6)


def test_static_templates_created_once_per_layer() -> None:
    bucketer = SegmentBucketer(ColorMode.BY_TYPE)

    first = bucketer.add(make_event(layer=2))
    second = bucketer.add(make_event(layer=2, x=3.0))

    assert first is second
    assert len(bucketer) == 2
    assert {bucket.name for bucket in bucketer.buckets()} == {"TRAVEL", "EXTRUDE"}


def test_finalize_prunes_empty_buckets_and_groups_by_layer() -> None:
    bucketer = SegmentBucketer(ColorMode.BY_TYPE)
    bucketer.add(make_event(layer=3))
    bucketer.add(make_event(layer=1, extrude=False))
    bucketer.add(make_event(layer=1, extrude=False, x=2.0))

    layers = bucketer.finalize()

    assert list(layers) == [1, 3]
    assert [(item.name, item.segment_count) for item in layers[1]] == [("TRAVEL", 2)]
    assert [(item.name, item.segment_count) for item in layers[3]] == [("EXTRUDE", 1)]
    # Finalizing again yields the same pruned result.
    assert {layer: [item.name for item in items] for layer, items in bucketer.finalize().items()} == {
        1: ["TRAVEL"],
        3: ["EXTRUDE"],
    }


def test_speed_bin_index_boundaries() -> None:
    feed_range = FeedRange(600.0, 3000.0)

    assert speed_bin_index(600.0, feed_range, 8) == 0
    assert speed_bin_index(3000.0, feed_range, 8) == 7
    assert speed_bin_index(1800.0, feed_range, 8) == 4
    assert speed_bin_index(9000.0, feed_range, 8) == 7
    assert speed_bin_index(0.0, feed_range, 8) == 0


def test_speed_bin_index_degenerate_range() -> None:
    feed_range = FeedRange(900.0, 900.0)

    assert speed_bin_index(900.0, feed_range, 4) == 0
    assert speed_bin_index(5000.0, feed_range, 4) == 0


def test_speed_bin_index_single_bin() -> None:
    assert speed_bin_index(2000.0, FeedRange(100.0, 3000.0), 1) == 0
    assert speed_bin_index(2000.0, FeedRange(100.0, 3000.0), 0) == 0


def test_by_speed_requires_feed_range() -> None:
    with pytest.raises(ValueError):
        SegmentBucketer(ColorMode.BY_SPEED)


def test_by_speed_buckets_use_gradient() -> None:
    bucketer = SegmentBucketer(ColorMode.BY_SPEED, speed_bins=4, feed_range=FeedRange(1000.0, 2000.0))

    slow = bucketer.add(make_event(feed=1000.0))
    fast = bucketer.add(make_event(feed=2000.0))

    assert slow.name == "SPEED_0"
    assert fast.name == "SPEED_3"
    assert slow.color == speed_bin_color(0, 4)
    assert fast.color == speed_bin_color(3, 4)
    assert slow.thickness == pytest.approx(0.9)
    assert fast.thickness == pytest.approx(1.2)
    assert len(bucketer) == 4


def test_by_tag_creates_case_insensitive_buckets() -> None:
    bucketer = SegmentBucketer(ColorMode.BY_TAG)

    outer = bucketer.add(make_event(tag="WALL-OUTER"))
    again = bucketer.add(make_event(tag="wall-outer"))
    other_layer = bucketer.add(make_event(tag="WALL-OUTER", layer=1))

    assert outer is again
    assert outer.name == "WALL-OUTER"
    assert outer.color == tag_color("WALL-OUTER")
    assert other_layer is not outer
    assert other_layer.color == outer.color


def test_by_tag_defaults_for_untagged_events() -> None:
    bucketer = SegmentBucketer(ColorMode.BY_TAG)

    extrude = bucketer.add(make_event(extrude=True))
    travel = bucketer.add(make_event(extrude=False))

    assert extrude.name == DEFAULT_EXTRUDE_TAG
    assert extrude.thickness == pytest.approx(1.2)
    assert travel.name == DEFAULT_TRAVEL_TAG
    assert travel.thickness == pytest.approx(0.7)
    assert travel.color == tag_color(DEFAULT_TRAVEL_TAG)


def test_color_mode_renders_as_its_value() -> None:
    assert str(ColorMode.BY_SPEED) == "by-speed"
    assert f"{ColorMode.BY_TAG}" == "by-tag"
