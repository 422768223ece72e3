"""Tile file naming rules."""

from __future__ import annotations

from tilecut.options import LayoutMode, OutputFormat

_MIN_PAD_WIDTH = 4


def zero_pad_width(cols: int, rows: int) -> int:
    """Digits used for grid coordinates in file names (at least four)."""
    max_index = max(cols - 1, rows - 1, 0)
    return max(_MIN_PAD_WIDTH, len(str(max_index)))


def _level_prefix(level: int, multi_level: bool) -> str:
    return f"tiles/l{level:04d}/" if multi_level else "tiles/"


def render_rel_path(
    layout: LayoutMode,
    format: OutputFormat,
    pad_width: int,
    level: int,
    x: int,
    y: int,
    multi_level: bool,
) -> str:
    """Relative path of one tile, using forward slashes."""
    prefix = _level_prefix(level, multi_level)
    x_text = f"{x:0{pad_width}d}"
    y_text = f"{y:0{pad_width}d}"
    extension = OutputFormat(format).extension()
    if LayoutMode(layout) is LayoutMode.FLAT:
        return f"{prefix}x{x_text}_y{y_text}.{extension}"
    return f"{prefix}y{y_text}/x{x_text}.{extension}"


def path_template(layout: LayoutMode, format: OutputFormat, multi_level: bool) -> str:
    """Path template recorded in the manifest."""
    prefix = "tiles/l{level}/" if multi_level else "tiles/"
    extension = OutputFormat(format).extension()
    if LayoutMode(layout) is LayoutMode.FLAT:
        return prefix + "x{x}_y{y}." + extension
    return prefix + "y{y}/x{x}." + extension