"""Pytest configuration helpers for slicelines tests."""

from __future__ import annotations

import sys
from collections.abc import Callable
from pathlib import Path

import pytest

try:  # pragma: no cover - dependency availability varies between environments
    from PySide6.QtWidgets import QApplication
except ImportError:  # pragma: no cover - used when Qt is unavailable
    QApplication = None  # type: ignore[assignment]

# Ensure the source directory is importable without requiring an editable install.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))


@pytest.fixture(autouse=True)
def reset_app_config(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure each test runs with the default application configuration."""

    from slicelines.config import (
        COLOR_MODE_ENV_VAR,
        SPEED_BINS_ENV_VAR,
        TUBE_RADIUS_ENV_VAR,
        TUBE_SECTIONS_ENV_VAR,
        configure,
    )

    names = (COLOR_MODE_ENV_VAR, SPEED_BINS_ENV_VAR, TUBE_RADIUS_ENV_VAR, TUBE_SECTIONS_ENV_VAR)
    for name in names:
        monkeypatch.delenv(name, raising=False)
    configure()
    yield
    # Tests may leave invalid values behind; clear them before rebuilding.
    for name in names:
        monkeypatch.delenv(name, raising=False)
    configure()


@pytest.fixture()
def write_gcode(tmp_path: Path) -> Callable[[str], Path]:
    """Return a helper that writes G-code text to a temporary file."""

    def _write(text: str, name: str = "program.gcode") -> Path:
        target = tmp_path / name
        target.write_bytes(text.encode("utf-8"))
        return target

    return _write


@pytest.fixture(scope="session")
def qapp():
    """Provide a ``QApplication`` instance for Qt-oriented tests."""

    if QApplication is None:
        pytest.skip("PySide6 is unavailable in this environment")

    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    yield app
