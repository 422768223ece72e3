"""Command-line parsing and dispatch for the tilecut program."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable, Iterator, Sequence
from enum import Enum
from pathlib import Path
from typing import Any, Union

from tilecut.commands import cut as cut_command
from tilecut.commands import inspect as inspect_command
from tilecut.commands import stitch as stitch_command
from tilecut.commands import validate as validate_command
from tilecut.errors import render_error
from tilecut.manifest import GENERATOR_VERSION
from tilecut.options import (
    BackendKind,
    CutArgs,
    EdgeMode,
    InspectArgs,
    LayoutMode,
    ManifestMode,
    OutputFormat,
    StitchArgs,
    TileIndexMode,
    TileSizing,
    ValidateArgs,
    YAxis,
    parse_point2,
    parse_positive_float,
    parse_positive_int,
    parse_rgba_color,
)

CommandArgs = Union[InspectArgs, CutArgs, StitchArgs, ValidateArgs]

_FORMATTER = argparse.RawDescriptionHelpFormatter

_ROOT_DESCRIPTION = (
    "TileCut is an offline tile builder for large minimap images.\n\n"
    "Use `inspect` to preview the grid and backend recommendation, `cut` to generate "
    "tiles plus manifests, and `validate` to verify an existing output before shipping it."
)
_ROOT_EPILOG = (
    "Examples:\n"
    "  tilecut inspect map.png --tile-size 256\n"
    "  tilecut cut map.png --out out --tile-size 256\n"
    "  tilecut cut map.png --out out --skip-empty --manifest full --tile-index ndjson\n"
    "  tilecut validate out/manifest.json"
)

_INSPECT_DESCRIPTION = (
    "Inspect an input image without writing tiles.\n\n"
    "TileCut reports the source dimensions, tile grid size, estimated in-memory RGBA size, "
    "and which backend `auto` would choose for the requested tile settings."
)
_INSPECT_EPILOG = (
    "Examples:\n"
    "  tilecut inspect world_map.png --tile-size 256\n"
    "  tilecut inspect world_map.png --tile-width 512 --tile-height 256 --edge crop --json\n"
    "  tilecut inspect world_map.png --tile-size 256 --max-level 2 --json\n\n"
    "Notes:\n"
    "  - `pad` keeps a full tile at the image edges.\n"
    "  - `skip` ignores partial edge tiles entirely.\n"
    "  - `--max-level N` builds a standard 1/2 pyramid from level 0 through level N."
)

_CUT_DESCRIPTION = (
    "Cut an input image into tiles and write a build directory containing `manifest.json`, "
    "tile files, optional `tiles.ndjson`, optional `preview/overview.png`, and internal "
    "`.tilecut` resume metadata."
)
_CUT_EPILOG = (
    "Examples:\n"
    "  tilecut cut map.png --out out --tile-size 256\n"
    "  tilecut cut map.png --out out --max-level 2\n"
    "  tilecut cut map.png --out out --overview 1024\n"
    "  tilecut cut map.png --out out --world-origin=0,0 --units-per-pixel 1\n"
    "  tilecut cut map.png --out out --manifest full --tile-index ndjson --skip-empty\n"
    "  tilecut cut map.png --out out --format jpeg --flatten-alpha 0,0,0,255\n\n"
    "Notes:\n"
    "  - `compact` manifest mode stores tile rules and statistics, not every tile record.\n"
    "  - `full` manifest mode expands every tile and is easier to debug on smaller maps.\n"
    "  - `--max-level N` builds a standard 1/2 pyramid from level 0 through level N.\n"
    "  - `backend auto` chooses `image` for smaller inputs and prefers `vips` once the "
    "estimated RGBA size exceeds the memory budget."
)

_STITCH_DESCRIPTION = (
    "Read a TileCut manifest and reconstruct one output level as a single PNG image.\n\n"
    "This is primarily intended for verification and debugging so you can confirm that "
    "tile layout, edge handling, and skipped regions behave as expected."
)
_STITCH_EPILOG = (
    "Examples:\n"
    "  tilecut stitch build/minimap/manifest.json --out verify.png\n"
    "  tilecut stitch build/minimap/manifest.json --out level1.png --level 1\n\n"
    "Notes:\n"
    "  - Stitch currently writes PNG output only.\n"
    "  - When `tiles.ndjson` is present, omitted coordinates are treated as skipped tiles."
)

_VALIDATE_DESCRIPTION = (
    "Validate an existing TileCut output by checking the manifest schema, derived tile "
    "count, optional `tiles.ndjson`, on-disk files, and tile image dimensions."
)
_VALIDATE_EPILOG = (
    "Examples:\n"
    "  tilecut validate build/minimap/manifest.json\n"
    "  tilecut validate build/minimap/manifest.json --json\n\n"
    "Notes:\n"
    "  - Validation does not rebuild missing tiles.\n"
    "  - Use this before publishing a generated tileset or after a partial resume."
)


def _checked(parser: Callable[[str], Any]) -> Callable[[str], Any]:
    def convert(text: str) -> Any:
        try:
            return parser(text)
        except ValueError as err:
            raise argparse.ArgumentTypeError(str(err)) from None

    return convert


def _int_in_range(low: int, high: int | None = None) -> Callable[[str], int]:
    def convert(text: str) -> int:
        try:
            value = int(text.strip())
        except ValueError:
            raise argparse.ArgumentTypeError(f"invalid integer: {text!r}") from None
        if value < low or (high is not None and value > high):
            bound = f"{low}..={high}" if high is not None else f"{low}.."
            raise argparse.ArgumentTypeError(f"{value} is not in {bound}")
        return value

    return convert


def _choices(enum_type: type[Enum]) -> list[str]:
    return [member.value for member in enum_type]


def _add_tile_sizing(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("Tile sizing")
    positive = _int_in_range(1)
    group.add_argument(
        "--tile-size",
        metavar="PX",
        type=positive,
        help="Fallback tile size for both width and height. "
        "`--tile-width` and `--tile-height` override this shared default.",
    )
    group.add_argument("--tile-width", metavar="PX", type=positive, help="Explicit tile width in pixels.")
    group.add_argument(
        "--tile-height", metavar="PX", type=positive, help="Explicit tile height in pixels."
    )


def _tile_sizing(namespace: argparse.Namespace) -> TileSizing:
    return TileSizing(
        tile_size=namespace.tile_size,
        tile_width=namespace.tile_width,
        tile_height=namespace.tile_height,
    )


def _add_inspect_parser(subparsers: Any) -> None:
    parser = subparsers.add_parser(
        "inspect",
        help="Read image dimensions and preview the cut plan.",
        description=_INSPECT_DESCRIPTION,
        epilog=_INSPECT_EPILOG,
        formatter_class=_FORMATTER,
    )
    parser.add_argument("input", metavar="INPUT", type=Path, help="Input image to inspect.")
    _add_tile_sizing(parser)
    planning = parser.add_argument_group("Planning")
    planning.add_argument(
        "--edge",
        choices=_choices(EdgeMode),
        default=EdgeMode.PAD.value,
        help="How to handle partial edge tiles: `pad` fills with the pad color, "
        "`crop` writes smaller edge images, `skip` ignores partial edge tiles.",
    )
    planning.add_argument(
        "--max-level",
        metavar="N",
        type=_int_in_range(0),
        default=0,
        help="Build a 1/2 pyramid from level 0 through this level.",
    )
    planning.add_argument(
        "--max-in-memory-mib",
        metavar="MIB",
        type=_int_in_range(1),
        default=2048,
        help="Memory budget used by `backend auto`.",
    )
    output = parser.add_argument_group("Output")
    output.add_argument("--json", action="store_true", help="Print the inspection report as JSON.")
    parser.set_defaults(build_args=_inspect_args)


def _inspect_args(namespace: argparse.Namespace) -> InspectArgs:
    return InspectArgs(
        input=namespace.input,
        tile=_tile_sizing(namespace),
        edge=EdgeMode(namespace.edge),
        max_level=namespace.max_level,
        max_in_memory_mib=namespace.max_in_memory_mib,
        json=namespace.json,
    )


def _add_cut_parser(subparsers: Any) -> None:
    parser = subparsers.add_parser(
        "cut",
        help="Cut tiles, write manifests, and optionally generate previews.",
        description=_CUT_DESCRIPTION,
        epilog=_CUT_EPILOG,
        formatter_class=_FORMATTER,
    )
    parser.add_argument("input", metavar="INPUT", type=Path, help="Source image file to cut into tiles.")

    layout = parser.add_argument_group("Output & layout")
    layout.add_argument(
        "--out",
        metavar="DIR",
        type=Path,
        required=True,
        help="Output directory for `manifest.json`, `tiles/`, and optional previews.",
    )
    layout.add_argument(
        "--format",
        choices=_choices(OutputFormat),
        default=OutputFormat.PNG.value,
        help="Image format used for generated tiles.",
    )
    layout.add_argument(
        "--quality",
        metavar="1-100",
        type=_int_in_range(1, 100),
        default=90,
        help="Compression quality for `jpeg` and `webp` output.",
    )
    layout.add_argument(
        "--edge",
        choices=_choices(EdgeMode),
        default=EdgeMode.PAD.value,
        help="How to handle partial edge tiles: `pad` writes full-size edge tiles, "
        "`crop` writes smaller edge images, `skip` omits partial edge tiles completely.",
    )
    layout.add_argument(
        "--pad-color",
        metavar="R,G,B,A",
        type=_checked(parse_rgba_color),
        default=parse_rgba_color("0,0,0,0"),
        help="RGBA color used when `--edge pad` needs to fill unused pixels.",
    )
    layout.add_argument(
        "--layout",
        choices=_choices(LayoutMode),
        default=LayoutMode.FLAT.value,
        help="Directory layout for generated tiles.",
    )
    layout.add_argument(
        "--overview",
        metavar="PX",
        type=_int_in_range(1),
        help="Write `preview/overview.png` with this maximum edge length.",
    )
    layout.add_argument(
        "--flatten-alpha",
        metavar="R,G,B,A",
        type=_checked(parse_rgba_color),
        help="Background color for alpha flattening when `--format jpeg` is used. "
        "If omitted, transparent pixels cause the build to fail.",
    )

    _add_tile_sizing(parser)

    planning = parser.add_argument_group("Planning")
    planning.add_argument(
        "--max-level",
        metavar="N",
        type=_int_in_range(0),
        default=0,
        help="Build a 1/2 pyramid from level 0 through this level.",
    )

    indexing = parser.add_argument_group("Manifest & indexing")
    indexing.add_argument(
        "--manifest",
        choices=_choices(ManifestMode),
        default=ManifestMode.COMPACT.value,
        help="Manifest verbosity: `compact` stores tile rules and statistics, "
        "`full` expands every tile record.",
    )
    indexing.add_argument(
        "--tile-index",
        choices=_choices(TileIndexMode),
        default=TileIndexMode.NONE.value,
        help="Optional sidecar tile index format.",
    )
    indexing.add_argument(
        "--skip-empty",
        action="store_true",
        help="Skip tiles whose every pixel alpha is at or below the threshold.",
    )
    indexing.add_argument(
        "--empty-alpha-threshold",
        metavar="0-255",
        type=_int_in_range(0, 255),
        help="Alpha threshold used by `--skip-empty`.",
    )

    world = parser.add_argument_group("World mapping")
    world.add_argument(
        "--world-origin",
        metavar="X,Y",
        type=_checked(parse_point2),
        help="World-space coordinate for the top-left pixel of the source image.",
    )
    world.add_argument(
        "--units-per-pixel",
        metavar="VALUE",
        type=_checked(parse_positive_float),
        help="World-space units represented by one source pixel.",
    )
    world.add_argument(
        "--y-axis",
        choices=_choices(YAxis),
        default=YAxis.DOWN.value,
        help="Whether world-space Y grows down or up.",
    )

    resuming = parser.add_argument_group("Resuming & overwrite")
    resuming.add_argument(
        "--overwrite",
        action="store_true",
        help="Replace an existing output directory with a fresh build.",
    )
    resuming.add_argument(
        "--resume",
        action="store_true",
        help="Reuse an existing output directory and only rebuild missing files.",
    )

    performance = parser.add_argument_group("Backend & performance")
    performance.add_argument(
        "--backend",
        choices=_choices(BackendKind),
        default=BackendKind.AUTO.value,
        help="Tile backend to use.",
    )
    performance.add_argument(
        "--threads",
        metavar="N",
        type=_checked(parse_positive_int),
        help="Number of worker threads used while writing tiles.",
    )
    performance.add_argument(
        "--max-in-memory-mib",
        metavar="MIB",
        type=_int_in_range(1),
        default=2048,
        help="Memory budget used when `--backend auto` chooses between `image` and `vips`.",
    )

    debugging = parser.add_argument_group("Advanced & debugging")
    debugging.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the resolved plan and selected backend without writing files.",
    )
    parser.set_defaults(build_args=_cut_args)


def _cut_args(namespace: argparse.Namespace) -> CutArgs:
    return CutArgs(
        input=namespace.input,
        out=namespace.out,
        tile=_tile_sizing(namespace),
        format=OutputFormat(namespace.format),
        quality=namespace.quality,
        edge=EdgeMode(namespace.edge),
        pad_color=namespace.pad_color,
        layout=LayoutMode(namespace.layout),
        max_level=namespace.max_level,
        overview=namespace.overview,
        flatten_alpha=namespace.flatten_alpha,
        manifest=ManifestMode(namespace.manifest),
        tile_index=TileIndexMode(namespace.tile_index),
        skip_empty=namespace.skip_empty,
        empty_alpha_threshold=namespace.empty_alpha_threshold,
        world_origin=namespace.world_origin,
        units_per_pixel=namespace.units_per_pixel,
        y_axis=YAxis(namespace.y_axis),
        overwrite=namespace.overwrite,
        resume=namespace.resume,
        backend=BackendKind(namespace.backend),
        threads=namespace.threads,
        max_in_memory_mib=namespace.max_in_memory_mib,
        dry_run=namespace.dry_run,
    )


def _add_stitch_parser(subparsers: Any) -> None:
    parser = subparsers.add_parser(
        "stitch",
        help="Rebuild a stitched PNG for a specific manifest level.",
        description=_STITCH_DESCRIPTION,
        epilog=_STITCH_EPILOG,
        formatter_class=_FORMATTER,
    )
    parser.add_argument(
        "manifest", metavar="MANIFEST", type=Path, help="Path to the manifest file to stitch."
    )
    output = parser.add_argument_group("Output")
    output.add_argument("--out", metavar="PNG", type=Path, required=True, help="PNG file to write.")
    selection = parser.add_argument_group("Selection")
    selection.add_argument(
        "--level",
        metavar="N",
        type=_int_in_range(0),
        default=0,
        help="Which pyramid level to stitch.",
    )
    parser.set_defaults(build_args=_stitch_args)


def _stitch_args(namespace: argparse.Namespace) -> StitchArgs:
    return StitchArgs(manifest=namespace.manifest, out=namespace.out, level=namespace.level)


def _add_validate_parser(subparsers: Any) -> None:
    parser = subparsers.add_parser(
        "validate",
        help="Check a manifest and its tile output for consistency.",
        description=_VALIDATE_DESCRIPTION,
        epilog=_VALIDATE_EPILOG,
        formatter_class=_FORMATTER,
    )
    parser.add_argument(
        "manifest", metavar="MANIFEST", type=Path, help="Path to the manifest file to validate."
    )
    output = parser.add_argument_group("Output")
    output.add_argument("--json", action="store_true", help="Print the validation report as JSON.")
    parser.set_defaults(build_args=_validate_args)


def _validate_args(namespace: argparse.Namespace) -> ValidateArgs:
    return ValidateArgs(manifest=namespace.manifest, json=namespace.json)


def build_parser() -> argparse.ArgumentParser:
    """The argument parser for all tilecut commands."""
    parser = argparse.ArgumentParser(
        prog="tilecut",
        description=_ROOT_DESCRIPTION,
        epilog=_ROOT_EPILOG,
        formatter_class=_FORMATTER,
    )
    parser.add_argument("--version", action="version", version=f"tilecut {GENERATOR_VERSION}")
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    _add_inspect_parser(subparsers)
    _add_cut_parser(subparsers)
    _add_stitch_parser(subparsers)
    _add_validate_parser(subparsers)
    return parser


def _join_hyphen_values(argv: Sequence[str]) -> Iterator[str]:
    """Attach the value of ``--world-origin`` so values such as ``-10,20`` are accepted."""
    tokens = iter(argv)
    for token in tokens:
        if token == "--world-origin":
            value = next(tokens, None)
            yield token if value is None else f"{token}={value}"
        else:
            yield token


def _check_cut_relations(parser: argparse.ArgumentParser, namespace: argparse.Namespace) -> None:
    if namespace.resume and namespace.overwrite:
        parser.error("the argument '--resume' cannot be used with '--overwrite'")
    if namespace.world_origin is not None and namespace.units_per_pixel is None:
        parser.error(
            "the following required arguments were not provided: --units-per-pixel <VALUE>"
        )
    if namespace.units_per_pixel is not None and namespace.world_origin is None:
        parser.error("the following required arguments were not provided: --world-origin <X,Y>")
    if namespace.empty_alpha_threshold is not None and not namespace.skip_empty:
        parser.error("the following required arguments were not provided: --skip-empty")


def parse_args(argv: Sequence[str] | None = None) -> CommandArgs:
    """Parse a command line into the arguments of one command; exits on usage errors."""
    tokens = list(sys.argv[1:] if argv is None else argv)
    parser = build_parser()
    if not tokens:
        parser.print_help(sys.stderr)
        raise SystemExit(2)
    namespace = parser.parse_args(list(_join_hyphen_values(tokens)))
    if namespace.command is None:
        parser.print_help(sys.stderr)
        raise SystemExit(2)
    if namespace.command == "cut":
        _check_cut_relations(parser, namespace)
    return namespace.build_args(namespace)


_RUNNERS: dict[type, Callable[[Any], None]] = {
    InspectArgs: inspect_command.run,
    CutArgs: cut_command.run,
    StitchArgs: stitch_command.run,
    ValidateArgs: validate_command.run,
}


def run(argv: Sequence[str] | None = None) -> None:
    """Parse the command line and run the selected command."""
    args = parse_args(argv)
    _RUNNERS[type(args)](args)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point: run a command and report failures on stderr; returns the exit code."""
    try:
        run(argv)
    except Exception as err:  # every failure is reported to the user the same way
        print(render_error(err), file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())