"""Modal G-code interpreter that turns slicer output into motion events."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

__all__ = [
    "EXTRUSION_EPSILON",
    "RETRACT_TAG",
    "GCodeInterpreter",
    "LayerContext",
    "MotionEvent",
    "ToolState",
    "iter_motion_events",
]

logger = logging.getLogger(__name__)

EXTRUSION_EPSILON: Final[float] = 1e-6
"""Minimum extrusion delta that marks a move as depositing material."""

RETRACT_TAG: Final[str] = "RETRACT"
"""Tag applied when a comment mentions a retraction."""

Point = tuple[float, float, float]

_MOTION_COMMANDS = frozenset({"G0", "G1"})


@dataclass(slots=True)
class ToolState:
    """Running tool position and positioning modes for one pass."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    e: float = 0.0
    f: float = 0.0
    absolute_axes: bool = True
    absolute_extrusion: bool = True
    units: str = "mm"

    @property
    def position(self) -> Point:
        return (self.x, self.y, self.z)


@dataclass(slots=True)
class LayerContext:
    """Layer index and labels set by slicer comment markers."""

    layer: int = 0
    tag: str | None = None
    z_override: float | None = None


@dataclass(frozen=True, slots=True)
class MotionEvent:
    """A single motion segment produced by a ``G0``/``G1`` command."""

    start: Point
    end: Point
    is_extrusion: bool
    feed: float
    extrusion_delta: float
    z: float
    layer: int
    source_tag: str | None = None

    @property
    def tag(self) -> str:
        """Return the marker tag, or ``EXTRUDE``/``TRAVEL`` when none is set."""

        if self.source_tag:
            return self.source_tag
        return "EXTRUDE" if self.is_extrusion else "TRAVEL"


@dataclass(slots=True)
class GCodeInterpreter:
    """Interpret G-code one line at a time.

    The interpreter keeps the modal state (positioning modes, last position
    and feed rate) together with the layer context set by slicer comments.
    Each call to :meth:`feed` mutates that state and returns the motion
    event produced by the line, if any.
    """

    state: ToolState = field(default_factory=ToolState)
    context: LayerContext = field(default_factory=LayerContext)
    _warned_units: bool = field(default=False, init=False, repr=False)

    def reset(self) -> None:
        """Restore the start-of-pass state."""

        self.state = ToolState()
        self.context = LayerContext()
        self._warned_units = False

    def feed(self, line: str) -> MotionEvent | None:
        """Consume *line* and return the resulting :class:`MotionEvent`."""

        code, separator, comment = line.partition(";")
        if separator:
            self._apply_marker(comment.strip())

        tokens = code.split()
        if not tokens:
            return None

        command = _normalize_command(tokens[0])
        state = self.state
        if command in _MOTION_COMMANDS:
            return self._move(tokens[1:])
        if command == "G90":
            state.absolute_axes = True
        elif command == "G91":
            state.absolute_axes = False
        elif command == "M82":
            state.absolute_extrusion = True
        elif command == "M83":
            state.absolute_extrusion = False
        elif command == "G20":
            state.units = "inch"
            if not self._warned_units:
                logger.warning("Inch units selected; coordinates are interpreted as millimeters")
                self._warned_units = True
        elif command == "G21":
            state.units = "mm"
        return None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _apply_marker(self, comment: str) -> None:
        if not comment:
            return

        context = self.context
        upper = comment.upper()
        if upper.startswith("LAYER:"):
            layer = _parse_number(comment[6:], int)
            if layer is not None:
                context.layer = layer
        elif upper.startswith("Z:"):
            z = _parse_number(comment[2:], float)
            if z is not None:
                context.z_override = z
                self.state.z = z
        elif upper.startswith("TYPE:"):
            context.tag = comment[5:].strip() or None
        elif "RETRACT" in upper:
            context.tag = RETRACT_TAG

    def _move(self, words: list[str]) -> MotionEvent | None:
        state = self.state
        x, y, z, e = state.x, state.y, state.z, state.e
        new_x, new_y, new_z, new_e, new_f = x, y, z, e, state.f

        for word in words:
            if len(word) < 2:
                continue
            value = _parse_number(word[1:], float)
            if value is None:
                continue
            letter = word[0].upper()
            if letter == "X":
                new_x = value if state.absolute_axes else x + value
            elif letter == "Y":
                new_y = value if state.absolute_axes else y + value
            elif letter == "Z":
                new_z = value if state.absolute_axes else z + value
            elif letter == "E":
                new_e = value if state.absolute_extrusion else e + value
            elif letter == "F":
                new_f = value

        feed = new_f if new_f != 0 else state.f
        delta = new_e - e
        event: MotionEvent | None = None
        if new_x != x or new_y != y or new_z != z:
            event = MotionEvent(
                start=(x, y, z),
                end=(new_x, new_y, new_z),
                is_extrusion=delta > EXTRUSION_EPSILON,
                feed=feed,
                extrusion_delta=delta,
                z=new_z,
                layer=self.context.layer,
                source_tag=self.context.tag,
            )

        state.x, state.y, state.z, state.e, state.f = new_x, new_y, new_z, new_e, feed
        return event


def iter_motion_events(path: Path) -> Iterator[MotionEvent]:
    """Yield every motion event in the G-code file at *path*.

    Each call opens the file again and interprets it with fresh state.
    """

    interpreter = GCodeInterpreter()
    with Path(path).open("r", encoding="utf-8-sig", errors="ignore") as handle:
        for line in handle:
            event = interpreter.feed(line)
            if event is not None:
                yield event


def _normalize_command(token: str) -> str:
    command = token.upper()
    if len(command) > 2 and command[0] in "GM" and command[1:].isdigit():
        return f"{command[0]}{int(command[1:])}"
    return command


def _parse_number(text: str, kind):
    try:
        value = kind(text.strip())
    except ValueError:
        return None
    if kind is float and not math.isfinite(value):
        return None
    return value
