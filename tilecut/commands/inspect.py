"""The inspect command: report the grid and backend choice without writing tiles."""

from __future__ import annotations

import json

from tilecut.backends.base import backend_support, inspect_source
from tilecut.options import InspectArgs
from tilecut.plan import build_inspect_report


def _flag(value: bool) -> str:
    return "true" if value else "false"


def run(args: InspectArgs) -> None:
    """Print an inspection report for ``args.input``."""
    source = inspect_source(args.input)
    report = build_inspect_report(args, source, backend_support())
    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
        return

    print(f"Source: {report.source.path}")
    print(f"Size: {report.source.width}x{report.source.height}")
    print(
        f"Tile: {report.tile_width}x{report.tile_height} "
        f"({report.edge_mode.value.capitalize()})"
    )
    print(f"Levels: {report.total_levels} ({report.total_tile_count} total tile slots)")
    print(f"Grid: {report.cols} cols x {report.rows} rows")
    print(f"Tile Count: {report.tile_count}")
    for level in report.levels:
        print(
            f"  Level {level.level}: scale {level.scale:.3f}, {level.width}x{level.height}, "
            f"grid {level.cols}x{level.rows}, tiles {level.tile_count}"
        )
    print(f"Estimated RGBA Memory: {report.estimated_rgba_mib:.2f} MiB")
    print(
        f"Recommended Backend: {report.backend.recommended.value.capitalize()} "
        f"(vips feature: {_flag(report.backend.vips_feature_enabled)}, "
        f"runtime: {_flag(report.backend.vips_runtime_available)})"
    )