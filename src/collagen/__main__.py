from __future__ import annotations

import argparse
import asyncio
import os
import random
from pathlib import Path

from collagen.errors import CollageError
from collagen.models import PlacementConfig, SourceImage
from collagen.pipeline import Pipeline
from collagen.sources.local import load_sources
from collagen.sources.remote import fetch_manifest_sources


def _parse_canvas(value: str) -> tuple[int, int]:
    """Parse a 'WIDTHxHEIGHT' string into a (width, height) tuple."""
    parts = value.lower().split("x")
    if len(parts) != 2:
        raise argparse.ArgumentTypeError(f"canvas must be WIDTHxHEIGHT, got '{value}'")
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        raise argparse.ArgumentTypeError(f"canvas must be WIDTHxHEIGHT, got '{value}'") from None


async def _collect_sources(args: argparse.Namespace) -> list[SourceImage]:
    """Load local paths, then append images listed in the remote manifest, if any."""
    sources = load_sources(args.paths)
    if args.manifest_url:
        cache_dir = Path(os.environ.get("COLLAGEN_CACHE_DIR", "output/cache"))
        sources += await fetch_manifest_sources(args.manifest_url, args.base_url, cache_dir)
    return sources


async def _run(args: argparse.Namespace, config: PlacementConfig) -> None:
    sources = await _collect_sources(args)
    rng = random.Random(args.seed) if args.seed is not None else None
    pipeline = Pipeline(output_dir=args.output_dir, rng=rng)
    await pipeline.run(sources, config)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate a random photo-collage from a pool of images.",
    )
    parser.add_argument("paths", nargs="*", help="Image files or directories")
    parser.add_argument("--manifest-url", help="URL of a JSON array of image file names")
    parser.add_argument("--base-url", help="URL prefix for the file names in the manifest")
    parser.add_argument(
        "--canvas",
        type=_parse_canvas,
        default="1920x1080",
        help="Canvas size as WIDTHxHEIGHT (default: 1920x1080)",
    )
    parser.add_argument(
        "--count", type=int, default=30, help="Maximum number of images to place (default: 30)"
    )
    parser.add_argument(
        "--min-size", type=int, default=150, help="Minimum draw width in pixels (default: 150)"
    )
    parser.add_argument(
        "--max-size", type=int, default=400, help="Maximum draw width in pixels (default: 400)"
    )
    parser.add_argument(
        "--max-iou",
        type=float,
        default=0.2,
        help="Maximum IoU allowed between two placed images (default: 0.2)",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=100,
        help="Placement attempts per image before it is skipped (default: 100)",
    )
    parser.add_argument(
        "--rotation-min", type=float, default=-15.0, help="Minimum rotation in degrees (default: -15)"
    )
    parser.add_argument(
        "--rotation-max", type=float, default=15.0, help="Maximum rotation in degrees (default: 15)"
    )
    parser.add_argument(
        "--head-ratio",
        type=float,
        default=0.3,
        help="Fraction of each image's height protected from occlusion (default: 0.3)",
    )
    parser.add_argument(
        "--png-bottom",
        action="store_true",
        help="Place non-transparent PNGs on the bottom layer",
    )
    parser.add_argument(
        "--visualize-anchors",
        action="store_true",
        help="Outline placements and their head bands on the output",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible output")
    parser.add_argument(
        "--output-dir",
        default=None,
        help="Base output directory (default: $OUTPUT_DIR or 'output')",
    )
    return parser


def cli() -> None:
    """Entry point for the ``collagen`` console script."""
    parser = _build_parser()
    args = parser.parse_args()

    if not args.paths and not args.manifest_url:
        parser.error("provide image paths or --manifest-url")
    if args.manifest_url and not args.base_url:
        parser.error("--manifest-url requires --base-url")

    width, height = args.canvas
    config = PlacementConfig(
        canvas_width=width,
        canvas_height=height,
        image_count=args.count,
        min_size=args.min_size,
        max_size=args.max_size,
        max_iou=args.max_iou,
        max_attempts=args.max_attempts,
        rotation_min=args.rotation_min,
        rotation_max=args.rotation_max,
        head_ratio=args.head_ratio,
        non_transparent_png_bottom=args.png_bottom,
        visualize_anchors=args.visualize_anchors,
    )

    try:
        asyncio.run(_run(args, config))
    except CollageError as exc:
        parser.exit(1, f"error: {exc}\n")


if __name__ == "__main__":
    cli()
