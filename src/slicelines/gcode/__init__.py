"""Interpret slicer G-code into layered line geometry and tube meshes."""

from .buckets import ColorMode, LineItem, SegmentBucketer, speed_bin_index
from .colors import hsv_to_rgba, stable_tag_hash, tag_color
from .geometry import LineGeometry, LineGeometryBuilder
from .interpreter import GCodeInterpreter, LayerContext, MotionEvent, ToolState, iter_motion_events
from .pipeline import (
    BuildOutcome,
    BuildResult,
    BuildState,
    CancellationToken,
    GCodeBuildCancelled,
    GCodeBuildError,
    GCodeBuildPipeline,
    ProgressSnapshot,
    ThrottledProgress,
    build_layered_lines,
    filter_through_layer,
)
from .scanner import FeedRange, FeedRangeScanner, scan_feed_range
from .tubes import TubeItem, build_tube_mesh, build_tube_meshes, merge_tube_meshes

__all__ = [
    "BuildOutcome",
    "BuildResult",
    "BuildState",
    "CancellationToken",
    "ColorMode",
    "FeedRange",
    "FeedRangeScanner",
    "GCodeBuildCancelled",
    "GCodeBuildError",
    "GCodeBuildPipeline",
    "GCodeInterpreter",
    "LayerContext",
    "LineGeometry",
    "LineGeometryBuilder",
    "LineItem",
    "MotionEvent",
    "ProgressSnapshot",
    "SegmentBucketer",
    "ThrottledProgress",
    "ToolState",
    "TubeItem",
    "build_layered_lines",
    "build_tube_mesh",
    "build_tube_meshes",
    "filter_through_layer",
    "hsv_to_rgba",
    "iter_motion_events",
    "merge_tube_meshes",
    "scan_feed_range",
    "speed_bin_index",
    "stable_tag_hash",
    "tag_color",
]
