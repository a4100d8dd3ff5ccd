"""Command-line entry point that builds layered geometry from a G-code file."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Final

from . import __version__
from .config import get_config
from .gcode import (
    BuildResult,
    CancellationToken,
    ColorMode,
    ProgressSnapshot,
    ThrottledProgress,
    build_layered_lines,
    build_tube_meshes,
    filter_through_layer,
    merge_tube_meshes,
)
from .gcode.preview import GCodePreviewError, LayerPreviewRenderer

EXIT_OK: Final[int] = 0
EXIT_FAILED: Final[int] = 1
EXIT_CANCELLED: Final[int] = 130

__all__ = ["EXIT_CANCELLED", "EXIT_FAILED", "EXIT_OK", "build_parser", "main"]

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    config = get_config()
    parser = argparse.ArgumentParser(
        prog="slicelines",
        description="Build layered, colored line geometry and tube meshes from slicer G-code.",
    )
    parser.add_argument("path", type=Path, help="G-code file to interpret")
    parser.add_argument(
        "--mode",
        type=ColorMode.parse,
        default=config.color_mode,
        help="coloring mode: by-type, by-speed or by-tag (default: %(default)s)",
    )
    parser.add_argument(
        "--bins",
        type=int,
        default=config.speed_bins,
        help="number of feed-rate bins for by-speed coloring (default: %(default)s)",
    )
    parser.add_argument("--through-layer", type=int, default=None, help="only keep layers up to this index")
    parser.add_argument("--preview", type=Path, default=None, help="write a top-down PNG preview here")
    parser.add_argument("--tubes", type=Path, default=None, help="export merged tube meshes here (STL, PLY, GLB...)")
    parser.add_argument("--radius", type=float, default=config.tube_radius, help="tube radius in millimeters")
    parser.add_argument("--sections", type=int, default=config.tube_sections, help="tube angular subdivisions")
    parser.add_argument("-q", "--quiet", action="store_true", help="do not report progress")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command-line interface and return its exit code."""

    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    cancel = CancellationToken()
    progress = None if args.quiet else ThrottledProgress(_print_progress, step=0.05)
    previous_handler = signal.signal(signal.SIGINT, lambda *_: cancel.cancel())
    try:
        outcome = build_layered_lines(
            args.path,
            args.mode,
            args.bins,
            progress=progress,
            cancel=cancel,
        )
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if progress is not None:
        progress.flush()
    if outcome.cancelled:
        logger.info("Cancelled")
        return EXIT_CANCELLED
    if outcome.failed or outcome.result is None:
        logger.error("%s", outcome.message)
        return EXIT_FAILED

    result = outcome.result
    through_layer = result.max_layer if args.through_layer is None else args.through_layer
    _print_summary(result, through_layer)

    if args.preview is not None:
        try:
            image = LayerPreviewRenderer().render(result, through_layer=through_layer)
        except GCodePreviewError as exc:
            logger.error("Unable to render preview: %s", exc)
            return EXIT_FAILED
        args.preview.parent.mkdir(parents=True, exist_ok=True)
        image.save(args.preview, format="PNG")
        logger.info("Preview written to %s", args.preview)

    if args.tubes is not None:
        try:
            tubes = build_tube_meshes(
                result.visible_through(through_layer),
                radius=args.radius,
                sections=args.sections,
            )
        except ValueError as exc:
            logger.error("Unable to build tubes: %s", exc)
            return EXIT_FAILED
        mesh = merge_tube_meshes(tubes)
        args.tubes.parent.mkdir(parents=True, exist_ok=True)
        mesh.export(args.tubes)
        logger.info("Tube mesh with %d faces written to %s", len(mesh.faces), args.tubes)

    return EXIT_OK


def _print_progress(snapshot: ProgressSnapshot) -> None:
    print(f"\r{snapshot.fraction:6.1%} {snapshot.describe()}", end="", file=sys.stderr, flush=True)
    if snapshot.bytes_read >= snapshot.total_bytes:
        print(file=sys.stderr)


def _print_summary(result: BuildResult, through_layer: int) -> None:
    visible = filter_through_layer(result.layers, through_layer)
    print(f"Layers: {result.layer_count} (max layer {result.max_layer})")
    print(f"Segments: {result.segment_count}")
    if result.feed_range is not None:
        print(f"Feed range: {result.feed_range.minimum:g} to {result.feed_range.maximum:g} mm/min")
    for layer, items in visible.items():
        buckets = ", ".join(f"{item.name}={item.segment_count}" for item in items)
        print(f"  layer {layer}: {buckets}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
