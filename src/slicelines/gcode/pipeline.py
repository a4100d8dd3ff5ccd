"""Cancellable one- or two-pass build of layered line geometry from G-code."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from os import PathLike
from pathlib import Path
from typing import TypeVar

from .buckets import ColorMode, LineItem, SegmentBucketer
from .interpreter import GCodeInterpreter
from .scanner import FeedRange, FeedRangeScanner

__all__ = [
    "BuildOutcome",
    "BuildResult",
    "BuildState",
    "CancellationToken",
    "GCodeBuildCancelled",
    "GCodeBuildError",
    "GCodeBuildPipeline",
    "ProgressSink",
    "ProgressSnapshot",
    "ThrottledProgress",
    "build_layered_lines",
    "filter_through_layer",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MEGABYTE = 1024 * 1024


class GCodeBuildError(RuntimeError):
    """Raised when a build outcome without a result is unwrapped."""


class GCodeBuildCancelled(GCodeBuildError):
    """Raised when a cancelled build outcome is unwrapped."""


class BuildState(Enum):
    """Lifecycle of a :class:`GCodeBuildPipeline` invocation."""

    IDLE = "idle"
    SCANNING_SPEED_RANGE = "scanning-speed-range"
    BUILDING_BUCKETS = "building-buckets"
    FINALIZING = "finalizing"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in {BuildState.DONE, BuildState.CANCELLED, BuildState.FAILED}


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and a pipeline."""

    __slots__ = ("_event",)

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True, slots=True)
class ProgressSnapshot:
    """Progress of a pipeline pass after one consumed line."""

    bytes_read: int
    total_bytes: int
    layers_parsed: int
    segments_parsed: int
    pass_number: int

    @property
    def fraction(self) -> float:
        if self.total_bytes <= 0:
            return 0.0
        return min(1.0, self.bytes_read / self.total_bytes)

    def describe(self) -> str:
        """Return a one-line status message for this snapshot."""

        return (
            f"Pass {self.pass_number}: {self.bytes_read / _MEGABYTE:.1f} MB / "
            f"{self.total_bytes / _MEGABYTE:.1f} MB - Layers: {self.layers_parsed}  "
            f"Segments: {self.segments_parsed}"
        )


ProgressSink = Callable[[ProgressSnapshot], None]


class ThrottledProgress:
    """Coalesce per-line snapshots before forwarding them to *sink*.

    The first snapshot of every pass is forwarded, then only snapshots that
    advance the completed fraction by at least *step*, plus the last line of
    the file. :meth:`flush` forwards the most recent snapshot if it was held
    back.
    """

    def __init__(self, sink: ProgressSink, *, step: float = 0.01) -> None:
        self._sink = sink
        self._step = max(0.0, float(step))
        self._last: ProgressSnapshot | None = None
        self._pending: ProgressSnapshot | None = None

    def __call__(self, snapshot: ProgressSnapshot) -> None:
        self._pending = snapshot
        last = self._last
        if (
            last is None
            or snapshot.pass_number != last.pass_number
            or snapshot.fraction - last.fraction >= self._step
            or snapshot.bytes_read >= snapshot.total_bytes
        ):
            self._forward(snapshot)

    def flush(self) -> None:
        if self._pending is not None and self._pending is not self._last:
            self._forward(self._pending)

    def _forward(self, snapshot: ProgressSnapshot) -> None:
        self._last = snapshot
        self._sink(snapshot)


@dataclass(frozen=True, slots=True)
class BuildResult:
    """Layer-indexed line geometry produced by a successful build."""

    layers: dict[int, list[LineItem]]
    max_layer: int
    segment_count: int = 0
    feed_range: FeedRange | None = None

    @property
    def layer_count(self) -> int:
        return len(self.layers)

    def items(self) -> list[LineItem]:
        return [item for items in self.layers.values() for item in items]

    def visible_through(self, layer: int) -> dict[int, list[LineItem]]:
        """Return the layers at or below *layer*."""

        return filter_through_layer(self.layers, layer)


@dataclass(frozen=True, slots=True)
class BuildOutcome:
    """Terminal state of a pipeline run with its result or diagnostic."""

    state: BuildState
    result: BuildResult | None = None
    message: str = ""

    @property
    def succeeded(self) -> bool:
        return self.state is BuildState.DONE

    @property
    def cancelled(self) -> bool:
        return self.state is BuildState.CANCELLED

    @property
    def failed(self) -> bool:
        return self.state is BuildState.FAILED

    def unwrap(self) -> BuildResult:
        """Return the result or raise :class:`GCodeBuildError`."""

        if self.state is BuildState.CANCELLED:
            raise GCodeBuildCancelled(self.message or "G-code build was cancelled")
        if self.result is None:
            raise GCodeBuildError(self.message or f"G-code build ended in state {self.state.value}")
        return self.result


@dataclass(slots=True)
class _Counters:
    layers_parsed: int = 0
    segments_parsed: int = 0


@dataclass(slots=True)
class GCodeBuildPipeline:
    """Build layered line geometry from one G-code file.

    A pipeline instance runs once. Speed coloring needs a first pass over
    the file to find the feed-rate range; every pass reopens the file and
    interprets it with fresh state. Progress is delivered synchronously
    after every consumed line and the cancellation token is checked before
    every line.
    """

    path: Path
    mode: ColorMode
    speed_bins: int = 8
    progress: ProgressSink | None = None
    cancel: CancellationToken = field(default_factory=CancellationToken)
    state: BuildState = field(default=BuildState.IDLE, init=False)

    def __post_init__(self) -> None:
        self.path = Path(self.path).expanduser()
        self.mode = ColorMode.parse(self.mode)
        self.speed_bins = max(1, int(self.speed_bins))

    def run(self) -> BuildOutcome:
        """Execute the pipeline and return its :class:`BuildOutcome`."""

        if self.state is not BuildState.IDLE:
            raise RuntimeError("A GCodeBuildPipeline instance can only run once")

        logger.info("Building %s geometry for %s", self.mode.value, self.path)
        try:
            total_bytes = self.path.stat().st_size
            if not self.path.is_file():
                raise IsADirectoryError(f"{self.path!s} is not a file")

            feed_range: FeedRange | None = None
            pass_number = 1
            if self.mode.requires_feed_range:
                self.state = BuildState.SCANNING_SPEED_RANGE
                feed_range = self._scan_feed_range(total_bytes)
                if feed_range is None:
                    return self._cancelled()
                logger.debug("Feed range for %s: %s", self.path, feed_range)
                pass_number = 2

            self.state = BuildState.BUILDING_BUCKETS
            bucketer = SegmentBucketer(self.mode, speed_bins=self.speed_bins, feed_range=feed_range)
            counters = self._build_buckets(bucketer, pass_number, total_bytes)
            if counters is None:
                return self._cancelled()

            self.state = BuildState.FINALIZING
            layers = bucketer.finalize()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to build G-code geometry for %s: %s", self.path, exc)
            self.state = BuildState.FAILED
            return BuildOutcome(BuildState.FAILED, message=_describe_error(self.path, exc))

        result = BuildResult(
            layers=layers,
            max_layer=max(layers, default=0),
            segment_count=counters.segments_parsed,
            feed_range=feed_range,
        )
        self.state = BuildState.DONE
        logger.info(
            "Built %d segments in %d layers for %s",
            result.segment_count,
            result.layer_count,
            self.path,
        )
        return BuildOutcome(BuildState.DONE, result=result)

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------
    def _scan_feed_range(self, total_bytes: int) -> FeedRange | None:
        interpreter = GCodeInterpreter()
        scanner = FeedRangeScanner()
        counters = _Counters()

        def consume(line: str) -> None:
            scanner.observe(interpreter.feed(line))

        if not self._stream(1, total_bytes, consume, counters):
            return None
        return scanner.result()

    def _build_buckets(
        self,
        bucketer: SegmentBucketer,
        pass_number: int,
        total_bytes: int,
    ) -> _Counters | None:
        interpreter = GCodeInterpreter()
        counters = _Counters()

        def consume(line: str) -> None:
            event = interpreter.feed(line)
            if interpreter.context.layer > counters.layers_parsed:
                counters.layers_parsed = interpreter.context.layer
            if event is not None:
                bucketer.add(event)
                counters.segments_parsed += 1

        if not self._stream(pass_number, total_bytes, consume, counters):
            return None
        logger.debug(
            "Pass %d produced %d segments in %d buckets",
            pass_number,
            counters.segments_parsed,
            len(bucketer),
        )
        return counters

    def _stream(
        self,
        pass_number: int,
        total_bytes: int,
        consume: Callable[[str], None],
        counters: _Counters,
    ) -> bool:
        if self.cancel.cancelled:
            return False

        bytes_read = 0
        with self.path.open("rb") as handle:
            for raw in handle:
                if self.cancel.cancelled:
                    return False
                bytes_read += len(raw)
                consume(raw.decode("utf-8-sig", errors="ignore"))
                if self.progress is not None:
                    self.progress(
                        ProgressSnapshot(
                            bytes_read=bytes_read,
                            total_bytes=total_bytes,
                            layers_parsed=counters.layers_parsed,
                            segments_parsed=counters.segments_parsed,
                            pass_number=pass_number,
                        )
                    )
        return True

    def _cancelled(self) -> BuildOutcome:
        logger.info("G-code build cancelled for %s", self.path)
        self.state = BuildState.CANCELLED
        return BuildOutcome(BuildState.CANCELLED, message="G-code build was cancelled")


def build_layered_lines(
    path: str | Path | PathLike[str],
    mode: ColorMode | str,
    speed_bins: int = 8,
    *,
    progress: ProgressSink | None = None,
    cancel: CancellationToken | None = None,
) -> BuildOutcome:
    """Build layered line geometry for *path* and return the outcome."""

    pipeline = GCodeBuildPipeline(
        Path(path),
        ColorMode.parse(mode),
        speed_bins=speed_bins,
        progress=progress,
        cancel=cancel or CancellationToken(),
    )
    return pipeline.run()


def filter_through_layer(layers: Mapping[int, list[T]], layer: int) -> dict[int, list[T]]:
    """Return the entries of *layers* whose key is at most *layer*."""

    return {key: items for key, items in layers.items() if key <= layer}


def _describe_error(path: Path, exc: Exception) -> str:
    if isinstance(exc, FileNotFoundError):
        return f"{path!s} does not exist"
    if isinstance(exc, OSError):
        return f"Unable to read {path!s}: {exc.strerror or exc}"
    return f"Unable to build geometry for {path!s}: {exc}"
