from __future__ import annotations

import os

import pytest

from slicelines.config import (
    COLOR_MODE_ENV_VAR,
    DEFAULT_SPEED_BINS,
    DEFAULT_TUBE_RADIUS,
    SPEED_BINS_ENV_VAR,
    TUBE_RADIUS_ENV_VAR,
    AppConfig,
    configure,
    get_config,
)
from slicelines.gcode import ColorMode


def test_default_configuration() -> None:
    """Defaults should color by type with eight speed bins."""

    config = get_config()

    assert config.color_mode is ColorMode.BY_TYPE
    assert config.speed_bins == DEFAULT_SPEED_BINS
    assert config.tube_radius == DEFAULT_TUBE_RADIUS


def test_configure_overrides_values() -> None:
    """Explicit overrides should update the cached configuration."""

    configure(color_mode="ByTag", speed_bins=4, tube_radius=0.5)
    config = get_config()

    assert config.color_mode is ColorMode.BY_TAG
    assert config.speed_bins == 4
    assert config.tube_radius == 0.5


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    """Environment variables should control the defaults."""

    monkeypatch.setenv(COLOR_MODE_ENV_VAR, "by-speed")
    monkeypatch.setenv(SPEED_BINS_ENV_VAR, "12")
    monkeypatch.setenv(TUBE_RADIUS_ENV_VAR, "0.4")
    configure()

    config = get_config()
    assert config.color_mode is ColorMode.BY_SPEED
    assert config.speed_bins == 12
    assert config.tube_radius == pytest.approx(0.4)


def test_invalid_environment_value(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(SPEED_BINS_ENV_VAR, "many")

    with pytest.raises(ValueError, match=SPEED_BINS_ENV_VAR):
        configure()


def test_defaults_restored_after_invalid_environment() -> None:
    """The previous test leaves no invalid value behind for later tests."""

    assert SPEED_BINS_ENV_VAR not in os.environ
    assert get_config() == AppConfig()


@pytest.mark.parametrize(
    "overrides",
    [{"speed_bins": 0}, {"tube_radius": 0.0}, {"tube_sections": 2}, {"color_mode": "rainbow"}],
)
def test_invalid_values_rejected(overrides: dict[str, object]) -> None:
    with pytest.raises(ValueError):
        AppConfig(**overrides)
