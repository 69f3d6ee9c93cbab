"""Command line entry point for inspecting and downscaling image files."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from imageguard._version import __version__
from imageguard.backends.selection import get_backend, select_backend_kind
from imageguard.config import ImageConfig
from imageguard.exceptions import ImageGuardError
from imageguard.image_ops import get_image_metadata, resize_image
from imageguard.mime import sniff_mime


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="imageguard",
        description="Sniff, measure and downscale images the way tool results are sanitized",
    )
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "--backend",
        choices=["native", "pillow", "external-tool", "sips"],
        help="Force an image backend (default: IMAGEGUARD_IMAGE_BACKEND or auto)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to run")

    sniff_parser = subparsers.add_parser("sniff", help="Print the MIME type detected from file bytes")
    sniff_parser.add_argument("file", type=Path)

    probe_parser = subparsers.add_parser("probe", help="Print image width and height")
    probe_parser.add_argument("file", type=Path)

    resize_parser = subparsers.add_parser("resize", help="Downscale an image to fit a square")
    resize_parser.add_argument("file", type=Path)
    resize_parser.add_argument("output", type=Path)
    resize_parser.add_argument("--max-side", type=int, default=None, help="Longest output side (default: 2000)")
    resize_parser.add_argument("--quality", type=int, default=None, help="Lossy encoder quality 1-100 (default: 85)")

    return parser.parse_args(argv)


def _run(args: argparse.Namespace, config: ImageConfig) -> int:
    data = args.file.read_bytes()

    if args.command == "sniff":
        print(sniff_mime(data) or "unknown")
        return 0

    backend = get_backend(select_backend_kind(config), config)

    if args.command == "probe":
        meta = get_image_metadata(data, backend=backend)
        if meta is None:
            print(f"{args.file}: could not read image dimensions", file=sys.stderr)
            return 1
        print(f"{meta.width}x{meta.height}")
        return 0

    mime_type = sniff_mime(data) or "application/octet-stream"
    resized = resize_image(
        data,
        mime_type,
        max_side=args.max_side or config.max_dimension_px,
        quality=args.quality,
        config=config,
        backend=backend,
    )
    args.output.write_bytes(resized.data)
    print(f"{args.output} ({resized.mime_type}, {len(resized.data)} bytes)")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point for the ``imageguard`` command."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    config = ImageConfig.from_env()
    if args.backend:
        config = replace(config, backend=args.backend)

    try:
        return _run(args, config)
    except (ImageGuardError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
