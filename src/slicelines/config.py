"""Configuration helpers for slicelines."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Final

from .gcode.buckets import ColorMode

__all__ = [
    "AppConfig",
    "COLOR_MODE_ENV_VAR",
    "DEFAULT_COLOR_MODE",
    "DEFAULT_SPEED_BINS",
    "DEFAULT_TUBE_RADIUS",
    "DEFAULT_TUBE_SECTIONS",
    "SPEED_BINS_ENV_VAR",
    "TUBE_RADIUS_ENV_VAR",
    "TUBE_SECTIONS_ENV_VAR",
    "configure",
    "get_config",
]

COLOR_MODE_ENV_VAR: Final[str] = "SLICELINES_COLOR_MODE"
"""Environment variable that overrides the default coloring mode."""

SPEED_BINS_ENV_VAR: Final[str] = "SLICELINES_SPEED_BINS"
"""Environment variable that overrides the number of feed-rate bins."""

TUBE_RADIUS_ENV_VAR: Final[str] = "SLICELINES_TUBE_RADIUS"
"""Environment variable that overrides the extruded tube radius."""

TUBE_SECTIONS_ENV_VAR: Final[str] = "SLICELINES_TUBE_SECTIONS"
"""Environment variable that overrides the tube angular subdivision count."""

DEFAULT_COLOR_MODE: Final[ColorMode] = ColorMode.BY_TYPE
DEFAULT_SPEED_BINS: Final[int] = 8
DEFAULT_TUBE_RADIUS: Final[float] = 0.2
DEFAULT_TUBE_SECTIONS: Final[int] = 8


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Runtime configuration shared by the CLI and the import session."""

    color_mode: ColorMode = DEFAULT_COLOR_MODE
    speed_bins: int = DEFAULT_SPEED_BINS
    tube_radius: float = DEFAULT_TUBE_RADIUS
    tube_sections: int = DEFAULT_TUBE_SECTIONS

    def __post_init__(self) -> None:
        object.__setattr__(self, "color_mode", ColorMode.parse(self.color_mode))
        if int(self.speed_bins) < 1:
            raise ValueError("Speed bin count must be at least 1")
        if float(self.tube_radius) <= 0:
            raise ValueError("Tube radius must be positive")
        if int(self.tube_sections) < 3:
            raise ValueError("Tube sections must be at least 3")
        object.__setattr__(self, "speed_bins", int(self.speed_bins))
        object.__setattr__(self, "tube_radius", float(self.tube_radius))
        object.__setattr__(self, "tube_sections", int(self.tube_sections))


_CONFIG: AppConfig | None = None


def get_config() -> AppConfig:
    """Return the cached :class:`AppConfig` instance."""

    global _CONFIG
    if _CONFIG is None:
        _CONFIG = _build_config()
    return _CONFIG


def configure(
    *,
    color_mode: ColorMode | str | None = None,
    speed_bins: int | None = None,
    tube_radius: float | None = None,
    tube_sections: int | None = None,
) -> AppConfig:
    """Rebuild the global configuration with optional overrides."""

    global _CONFIG
    _CONFIG = _build_config(
        color_mode=color_mode,
        speed_bins=speed_bins,
        tube_radius=tube_radius,
        tube_sections=tube_sections,
    )
    return _CONFIG


def _build_config(
    *,
    color_mode: ColorMode | str | None = None,
    speed_bins: int | None = None,
    tube_radius: float | None = None,
    tube_sections: int | None = None,
) -> AppConfig:
    if color_mode is None:
        color_mode = os.environ.get(COLOR_MODE_ENV_VAR) or DEFAULT_COLOR_MODE
    if speed_bins is None:
        speed_bins = _env_number(SPEED_BINS_ENV_VAR, int, DEFAULT_SPEED_BINS)
    if tube_radius is None:
        tube_radius = _env_number(TUBE_RADIUS_ENV_VAR, float, DEFAULT_TUBE_RADIUS)
    if tube_sections is None:
        tube_sections = _env_number(TUBE_SECTIONS_ENV_VAR, int, DEFAULT_TUBE_SECTIONS)

    return AppConfig(
        color_mode=color_mode,
        speed_bins=speed_bins,
        tube_radius=tube_radius,
        tube_sections=tube_sections,
    )


def _env_number(name, kind, default):
    text = os.environ.get(name, "").strip()
    if not text:
        return default
    try:
        return kind(text)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {text!r}") from exc
