"""Coloring Book Maker - command line entry point."""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from coloring import ImageProcessor
from config_manager import ConfigManager
from models import (
    CONFIG_FILE,
    MAX_TOP_K,
    ColoringError,
    DistanceMetric,
    MatchResult,
    ProcessingConfig,
)
from palette_loader import load_palette


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="coloring-book",
        description="Turn photos into printable line art and a matched pencil palette.",
    )
    parser.add_argument("--config", type=Path, default=CONFIG_FILE, help="Settings JSON file.")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Errors only.")

    commands = parser.add_subparsers(dest="command", required=True)

    lineart = commands.add_parser("lineart", help="Write black-on-white line art.")
    lineart.add_argument("input", type=Path)
    lineart.add_argument("-o", "--output", type=Path, required=True, help="PNG to write.")
    _add_line_art_options(lineart)

    colors = commands.add_parser("colors", help="Print dominant colors (and palette matches).")
    colors.add_argument("input", type=Path)
    _add_color_options(colors)

    process = commands.add_parser("process", help="Line art plus dominant colors in one run.")
    process.add_argument("input", type=Path)
    process.add_argument("-o", "--output", type=Path, required=True, help="PNG to write.")
    _add_line_art_options(process)
    _add_color_options(process)

    palette = commands.add_parser("palette", help="List entries of a palette file.")
    palette.add_argument("palette", type=Path)
    palette.add_argument("--set-size", help="Only entries in this tin size (e.g. 24).")
    palette.add_argument("--limit", type=int, default=10, help="Rows to print (0 = all).")

    return parser


def _add_line_art_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--intensity", type=int, help="Edge threshold knob, 30-38 works well.")
    parser.add_argument("--max-width", type=int, help="Output width cap in pixels.")


def _add_color_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-k", "--colors", type=int, help="Number of dominant colors.")
    parser.add_argument("--seed", type=int, help="Seed for reproducible clustering.")
    parser.add_argument("--palette", type=Path, help="Palette JSON to match colors against.")
    parser.add_argument("--set-size", help="Only match pencils in this tin size (e.g. 24).")
    parser.add_argument("--top-k", type=int, help=f"Matches per color (1-{MAX_TOP_K}).")
    parser.add_argument(
        "--metric",
        choices=[m.value for m in DistanceMetric],
        help="Color distance used for matching.",
    )


def apply_overrides(config: ProcessingConfig, args: argparse.Namespace) -> ProcessingConfig:
    """Copy CLI flags that were given onto the loaded settings."""
    overrides = {
        ("line_art", "intensity"): getattr(args, "intensity", None),
        ("line_art", "max_output_width"): getattr(args, "max_width", None),
        ("colors", "num_colors"): getattr(args, "colors", None),
        ("colors", "seed"): getattr(args, "seed", None),
        ("matching", "top_k"): getattr(args, "top_k", None),
        ("matching", "metric"): getattr(args, "metric", None),
        ("matching", "palette_path"): getattr(args, "palette", None),
        ("matching", "set_size"): getattr(args, "set_size", None),
    }
    for (section, name), value in overrides.items():
        if value is not None:
            setattr(getattr(config, section), name, str(value) if isinstance(value, Path) else value)
    return config


def format_matches(results: "list[MatchResult]") -> "list[str]":
    lines = []
    for result in results:
        ranked = ", ".join(
            f"{m.entry.id} {m.entry.name} {m.entry.hex} (dE {m.distance:.2f})" for m in result.matches
        )
        lines.append(f"{result.source_hex} -> {ranked}")
    return lines


def run(args: argparse.Namespace) -> int:
    config = apply_overrides(ConfigManager(args.config).load(), args)

    if args.command == "palette":
        entries = load_palette(args.palette, set_size=args.set_size)
        print(f"{len(entries)} palette entries")
        shown = entries if args.limit <= 0 else entries[: args.limit]
        for entry in shown:
            print(f"{entry.id:>4}  {entry.hex}  {entry.name}")
        return 0

    processor = ImageProcessor(config)
    matching = config.matching
    palette = None
    if args.command in ("colors", "process") and matching.palette_path:
        palette = load_palette(matching.palette_path, set_size=matching.set_size)

    if args.command == "lineart":
        buffer = processor.load_image(args.input)
        line_art = processor.line_art(buffer)
        processor.save_image(line_art, args.output)
        print(f"Wrote {line_art.width}x{line_art.height} line art to {args.output}")
        return 0

    if args.command == "colors":
        colors = processor.dominant_colors(processor.load_image(args.input))
        matches = processor.match_colors(colors, palette) if palette else []
    else:
        result = processor.process(args.input, palette=palette)
        processor.save_image(result.line_art, args.output)
        print(f"Wrote {result.line_art.width}x{result.line_art.height} line art to {args.output}")
        colors, matches = result.dominant_colors, result.matches

    for line in format_matches(matches) if matches else colors:
        print(line)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, configure logging and run the selected command."""
    args = build_parser().parse_args(argv)

    level = logging.INFO
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        return run(args)
    except ColoringError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
