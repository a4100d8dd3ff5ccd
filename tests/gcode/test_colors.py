from __future__ import annotations

import pytest

from slicelines.gcode.colors import (
    hsv_to_rgba,
    speed_bin_color,
    stable_tag_hash,
    tag_color,
    tag_hue,
)


@pytest.mark.parametrize(
    ("hue", "expected"),
    [
        (0.0, (255, 0, 0, 255)),
        (120.0, (0, 255, 0, 255)),
        (240.0, (0, 0, 255, 255)),
        (60.0, (255, 255, 0, 255)),
    ],
)
def test_hsv_primaries(hue: float, expected: tuple[int, int, int, int]) -> None:
    assert hsv_to_rgba(hue, 1.0, 1.0) == expected


def test_hsv_gray_when_unsaturated() -> None:
    assert hsv_to_rgba(200.0, 0.0, 0.5) == (128, 128, 128, 255)


def test_stable_tag_hash_small_value() -> None:
    assert stable_tag_hash("") == 23
    assert stable_tag_hash("A") == 23 * 31 + 65
    assert tag_hue("A") == 58


def test_stable_tag_hash_wraps_to_signed_32_bit() -> None:
    tag = "WALL-OUTER" * 8
    expected = 23
    for char in tag:
        expected = (expected * 31 + ord(char)) % (1 << 32)
    if expected >= 1 << 31:
        expected -= 1 << 32

    value = stable_tag_hash(tag)

    assert value == expected
    assert -(1 << 31) <= value < (1 << 31)
    assert 0 <= tag_hue(tag) < 360


def test_tag_color_is_deterministic() -> None:
    assert tag_color("A") == (242, 236, 48, 255)
    assert tag_color("WALL-OUTER") == tag_color("WALL-OUTER")
    assert tag_color("WALL-OUTER") != tag_color("WALL-INNER")


def test_speed_gradient_runs_blue_to_red() -> None:
    assert speed_bin_color(0, 8) == hsv_to_rgba(240.0, 0.9, 0.95)
    assert speed_bin_color(7, 8) == hsv_to_rgba(0.0, 0.9, 0.95)
    assert speed_bin_color(0, 1) == speed_bin_color(0, 8)


@pytest.mark.parametrize(
    ("tag", "hue", "expected"),
    [
        ("A", 58, (242, 236, 48, 255)),
        ("ES", 205, (48, 161, 242, 255)),
    ],
)
def test_tag_color_pins_known_values(tag: str, hue: int, expected: tuple[int, int, int, int]) -> None:
    assert tag_hue(tag) == hue
    assert tag_color(tag) == expected


def test_hsv_ties_resolve_in_single_precision() -> None:
    # (b + m) * 255 is 161.5 in double precision and just below it in single.
    assert hsv_to_rgba(155.0, 0.8, 0.95) == (48, 242, 161, 255)
    assert hsv_to_rgba(205.0, 0.8, 0.95) == (48, 161, 242, 255)
