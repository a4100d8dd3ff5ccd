"""First-pass scan that finds the feed-rate range used for speed coloring."""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass

from .interpreter import GCodeInterpreter, MotionEvent

__all__ = ["FeedRange", "FeedRangeScanner", "scan_feed_range"]


@dataclass(frozen=True, slots=True)
class FeedRange:
    """Minimum and maximum strictly positive feed rate of a program."""

    minimum: float = 0.0
    maximum: float = 1.0

    @property
    def span(self) -> float:
        return self.maximum - self.minimum

    @property
    def is_degenerate(self) -> bool:
        return self.maximum <= self.minimum


class FeedRangeScanner:
    """Accumulate the feed-rate range over a stream of motion events."""

    def __init__(self) -> None:
        self._minimum = math.inf
        self._maximum = -math.inf

    def observe(self, event: MotionEvent | None) -> None:
        if event is None or event.feed <= 0:
            return
        if event.feed < self._minimum:
            self._minimum = event.feed
        if event.feed > self._maximum:
            self._maximum = event.feed

    def result(self) -> FeedRange:
        """Return the observed range, ``[0, 1]`` when no positive feed was seen."""

        if math.isinf(self._minimum):
            return FeedRange(0.0, 1.0)
        return FeedRange(self._minimum, self._maximum)


def scan_feed_range(lines: Iterable[str]) -> FeedRange:
    """Interpret *lines* once and return their :class:`FeedRange`."""

    interpreter = GCodeInterpreter()
    scanner = FeedRangeScanner()
    for line in lines:
        scanner.observe(interpreter.feed(line))
    return scanner.result()
