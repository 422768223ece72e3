"""Cut planning: tile grids, pyramid levels, fingerprints and inspection reports."""

from __future__ import annotations

import hashlib
import math
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from tilecut.coords import WorldMapping, world_mapping_from_dict
from tilecut.naming import path_template, render_rel_path, zero_pad_width
from tilecut.options import (
    BackendKind,
    CutArgs,
    EdgeMode,
    InspectArgs,
    LayoutMode,
    ManifestMode,
    OutputFormat,
    TileIndexMode,
)

_HASH_CHUNK = 1024 * 1024
_MIB = 1024 * 1024


@dataclass(frozen=True)
class SourceInfo:
    """Facts about the source image."""

    path: str
    width: int
    height: int
    format: str
    file_size: int
    modified_unix_secs: int
    sha256: str

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation."""
        return {
            "path": self.path,
            "width": self.width,
            "height": self.height,
            "format": self.format,
            "file_size": self.file_size,
            "modified_unix_secs": self.modified_unix_secs,
            "sha256": self.sha256,
        }


@dataclass(frozen=True)
class Rect:
    """Axis-aligned pixel rectangle."""

    x: int
    y: int
    w: int
    h: int

    def to_dict(self) -> dict[str, int]:
        """JSON-ready representation."""
        return {"x": self.x, "y": self.y, "w": self.w, "h": self.h}


def rect_from_dict(data: dict[str, Any]) -> Rect:
    """Build a rectangle from its JSON representation."""
    return Rect(x=int(data["x"]), y=int(data["y"]), w=int(data["w"]), h=int(data["h"]))


@dataclass(frozen=True)
class TileSpec:
    """Output tile settings."""

    width: int
    height: int
    edge_mode: EdgeMode
    pad_color: tuple[int, int, int, int]
    format: OutputFormat
    quality: int
    flatten_alpha: tuple[int, int, int, int] | None = None


@dataclass(frozen=True)
class GridInfo:
    """Tile grid of one level."""

    cols: int
    rows: int
    zero_pad_width: int


@dataclass(frozen=True)
class TileCoord:
    """Grid position of a tile within a level."""

    level: int
    x: int
    y: int


@dataclass(frozen=True)
class TilePlan:
    """Where one tile comes from and where it is written."""

    coord: TileCoord
    src_rect: Rect
    content_rect: Rect
    out_rel_path: str


@dataclass
class LevelPlan:
    """All tiles of one pyramid level."""

    level: int
    scale: float
    width: int
    height: int
    grid: GridInfo
    naming_template: str
    tiles: list[TilePlan] = field(default_factory=list)


@dataclass(frozen=True)
class BuildFingerprint:
    """Settings that must match for a resumed build to reuse existing output."""

    source_sha256: str
    source_width: int
    source_height: int
    tile_width: int
    tile_height: int
    edge_mode: EdgeMode
    pad_color: tuple[int, int, int, int]
    format: OutputFormat
    quality: int
    flatten_alpha: tuple[int, int, int, int] | None
    layout: LayoutMode
    manifest_mode: ManifestMode
    tile_index_mode: TileIndexMode
    max_level: int
    skip_empty: bool
    empty_alpha_threshold: int
    overview: int | None
    world: WorldMapping | None

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation."""
        return {
            "source_sha256": self.source_sha256,
            "source_width": self.source_width,
            "source_height": self.source_height,
            "tile_width": self.tile_width,
            "tile_height": self.tile_height,
            "edge_mode": self.edge_mode.value,
            "pad_color": list(self.pad_color),
            "format": self.format.value,
            "quality": self.quality,
            "flatten_alpha": None if self.flatten_alpha is None else list(self.flatten_alpha),
            "layout": self.layout.value,
            "manifest_mode": self.manifest_mode.value,
            "tile_index_mode": self.tile_index_mode.value,
            "max_level": self.max_level,
            "skip_empty": self.skip_empty,
            "empty_alpha_threshold": self.empty_alpha_threshold,
            "overview": self.overview,
            "world": None if self.world is None else self.world.to_dict(),
        }


def _color(value: Any) -> tuple[int, int, int, int]:
    channels = tuple(int(channel) for channel in value)
    if len(channels) != 4:
        raise ValueError("expected four color channels")
    return channels  # type: ignore[return-value]


def fingerprint_from_dict(data: dict[str, Any]) -> BuildFingerprint:
    """Build a fingerprint from its JSON representation; raises ValueError if malformed."""
    try:
        flatten = data["flatten_alpha"]
        world = data.get("world")
        return BuildFingerprint(
            source_sha256=str(data["source_sha256"]),
            source_width=int(data["source_width"]),
            source_height=int(data["source_height"]),
            tile_width=int(data["tile_width"]),
            tile_height=int(data["tile_height"]),
            edge_mode=EdgeMode(data["edge_mode"]),
            pad_color=_color(data["pad_color"]),
            format=OutputFormat(data["format"]),
            quality=int(data["quality"]),
            flatten_alpha=None if flatten is None else _color(flatten),
            layout=LayoutMode(data["layout"]),
            manifest_mode=ManifestMode(data["manifest_mode"]),
            tile_index_mode=TileIndexMode(data["tile_index_mode"]),
            max_level=int(data["max_level"]),
            skip_empty=bool(data["skip_empty"]),
            empty_alpha_threshold=int(data["empty_alpha_threshold"]),
            overview=None if data.get("overview") is None else int(data["overview"]),
            world=None if world is None else world_mapping_from_dict(world),
        )
    except (KeyError, TypeError) as err:
        raise ValueError(f"invalid build fingerprint: {err}") from err


@dataclass
class CutPlan:
    """Everything needed to write a tileset."""

    source: SourceInfo
    tile: TileSpec
    grid: GridInfo
    levels: list[LevelPlan]
    layout: LayoutMode
    manifest_mode: ManifestMode
    tile_index_mode: TileIndexMode
    requested_backend: BackendKind
    max_in_memory_mib: int
    max_level: int
    overview: int | None
    skip_empty: bool
    empty_alpha_threshold: int
    world: WorldMapping | None
    naming_template: str

    def fingerprint(self) -> BuildFingerprint:
        """Settings recorded for resume checks."""
        return BuildFingerprint(
            source_sha256=self.source.sha256,
            source_width=self.source.width,
            source_height=self.source.height,
            tile_width=self.tile.width,
            tile_height=self.tile.height,
            edge_mode=self.tile.edge_mode,
            pad_color=self.tile.pad_color,
            format=self.tile.format,
            quality=self.tile.quality,
            flatten_alpha=self.tile.flatten_alpha,
            layout=self.layout,
            manifest_mode=self.manifest_mode,
            tile_index_mode=self.tile_index_mode,
            max_level=self.max_level,
            skip_empty=self.skip_empty,
            empty_alpha_threshold=self.empty_alpha_threshold,
            overview=self.overview,
            world=self.world,
        )

    def total_tile_slots(self) -> int:
        """Number of tile slots over all levels."""
        return sum(len(level.tiles) for level in self.levels)

    def level(self, level: int) -> LevelPlan | None:
        """The plan for one level, or None if it is not planned."""
        return next((candidate for candidate in self.levels if candidate.level == level), None)


@dataclass
class BuildState:
    """Progress record kept in the output directory."""

    complete: bool
    total_tiles: int
    written_tiles: int
    skipped_tiles: int
    updated_unix_secs: int

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation."""
        return asdict(self)


def new_build_state(total_tiles: int) -> BuildState:
    """A fresh, incomplete build state."""
    return BuildState(
        complete=False,
        total_tiles=total_tiles,
        written_tiles=0,
        skipped_tiles=0,
        updated_unix_secs=now_unix_secs(),
    )


@dataclass(frozen=True)
class InspectLevelReport:
    """Grid summary of one level."""

    level: int
    scale: float
    width: int
    height: int
    cols: int
    rows: int
    tile_count: int


@dataclass(frozen=True)
class BackendRecommendation:
    """Backend that `auto` would select, and what is available."""

    recommended: BackendKind
    vips_feature_enabled: bool
    vips_runtime_available: bool


@dataclass
class InspectReport:
    """Result of inspecting a source image against tile settings."""

    source: SourceInfo
    tile_width: int
    tile_height: int
    edge_mode: EdgeMode
    cols: int
    rows: int
    tile_count: int
    total_levels: int
    total_tile_count: int
    estimated_rgba_bytes: int
    estimated_rgba_mib: float
    levels: list[InspectLevelReport]
    backend: BackendRecommendation

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation."""
        return {
            "source": self.source.to_dict(),
            "tile_width": self.tile_width,
            "tile_height": self.tile_height,
            "edge_mode": self.edge_mode.value,
            "cols": self.cols,
            "rows": self.rows,
            "tile_count": self.tile_count,
            "total_levels": self.total_levels,
            "total_tile_count": self.total_tile_count,
            "estimated_rgba_bytes": self.estimated_rgba_bytes,
            "estimated_rgba_mib": self.estimated_rgba_mib,
            "levels": [asdict(level) for level in self.levels],
            "backend": {
                "recommended": self.backend.recommended.value,
                "vips_feature_enabled": self.backend.vips_feature_enabled,
                "vips_runtime_available": self.backend.vips_runtime_available,
            },
        }


def _round_half_away(value: float) -> int:
    return int(math.floor(value + 0.5)) if value >= 0 else -int(math.floor(-value + 0.5))


def _build_world(args: CutArgs) -> WorldMapping | None:
    origin, units = args.world_origin, args.units_per_pixel
    if origin is None and units is None:
        return None
    if origin is None or units is None:
        raise ValueError("--world-origin and --units-per-pixel must be provided together")
    if not units > 0.0:
        raise ValueError("units-per-pixel must be greater than 0")
    return WorldMapping(origin=(origin[0], origin[1]), units_per_pixel=units, y_axis=args.y_axis)


def _level_tiles(
    level: int, width: int, height: int, tile: TileSpec, grid: GridInfo,
    layout: LayoutMode, multi_level: bool,
):
    for y in range(grid.rows):
        for x in range(grid.cols):
            src_x = x * tile.width
            src_y = y * tile.height
            src_w = min(max(width - src_x, 0), tile.width)
            src_h = min(max(height - src_y, 0), tile.height)
            yield TilePlan(
                coord=TileCoord(level, x, y),
                src_rect=Rect(src_x, src_y, src_w, src_h),
                content_rect=Rect(0, 0, src_w, src_h),
                out_rel_path=render_rel_path(
                    layout, tile.format, grid.zero_pad_width, level, x, y, multi_level
                ),
            )


def _build_level_plans(
    source_width: int, source_height: int, tile: TileSpec, max_level: int,
    layout: LayoutMode, naming_template: str,
) -> list[LevelPlan]:
    multi_level = max_level > 0
    levels = []
    for level in range(max_level + 1):
        width, height = scaled_dimensions_for_level(source_width, source_height, level)
        grid = compute_grid(width, height, tile.width, tile.height, tile.edge_mode)
        levels.append(
            LevelPlan(
                level=level,
                scale=level_scale(level),
                width=width,
                height=height,
                grid=grid,
                naming_template=naming_template,
                tiles=list(_level_tiles(level, width, height, tile, grid, layout, multi_level)),
            )
        )
    return levels


def build_cut_plan(args: CutArgs, source: SourceInfo) -> CutPlan:
    """Resolve cut options against the source into a full plan."""
    tile_width = args.tile.width()
    tile_height = args.tile.height()
    if tile_width <= 0:
        raise ValueError("tile width must be greater than 0")
    if tile_height <= 0:
        raise ValueError("tile height must be greater than 0")

    tile = TileSpec(
        width=tile_width,
        height=tile_height,
        edge_mode=args.edge,
        pad_color=args.pad_color,
        format=args.format,
        quality=args.quality,
        flatten_alpha=args.flatten_alpha,
    )
    naming_template = path_template(args.layout, args.format, args.max_level > 0)
    world = _build_world(args)
    levels = _build_level_plans(
        source.width, source.height, tile, args.max_level, args.layout, naming_template
    )
    return CutPlan(
        source=source,
        tile=tile,
        grid=levels[0].grid,
        levels=levels,
        layout=args.layout,
        manifest_mode=args.manifest,
        tile_index_mode=effective_tile_index_mode(args.manifest, args.tile_index, args.skip_empty),
        requested_backend=args.backend,
        max_in_memory_mib=args.max_in_memory_mib,
        max_level=args.max_level,
        overview=args.overview,
        skip_empty=args.skip_empty,
        empty_alpha_threshold=args.empty_alpha_threshold or 0,
        world=world,
        naming_template=naming_template,
    )


def build_inspect_report(args: InspectArgs, source: SourceInfo, support: Any) -> InspectReport:
    """Preview the grid and backend choice; ``support`` tells what vips offers."""
    tile_width = args.tile.width()
    tile_height = args.tile.height()
    levels = []
    for level in range(args.max_level + 1):
        width, height = scaled_dimensions_for_level(source.width, source.height, level)
        grid = compute_grid(width, height, tile_width, tile_height, args.edge)
        levels.append(
            InspectLevelReport(
                level=level,
                scale=level_scale(level),
                width=width,
                height=height,
                cols=grid.cols,
                rows=grid.rows,
                tile_count=grid.cols * grid.rows,
            )
        )
    level0 = levels[0]
    estimated = estimated_rgba_bytes(source.width, source.height)
    recommended = (
        BackendKind.IMAGE if estimated <= args.max_in_memory_mib * _MIB else BackendKind.VIPS
    )
    return InspectReport(
        source=source,
        tile_width=tile_width,
        tile_height=tile_height,
        edge_mode=args.edge,
        cols=level0.cols,
        rows=level0.rows,
        tile_count=level0.tile_count,
        total_levels=len(levels),
        total_tile_count=sum(level.tile_count for level in levels),
        estimated_rgba_bytes=estimated,
        estimated_rgba_mib=estimated / _MIB,
        levels=levels,
        backend=BackendRecommendation(
            recommended=recommended,
            vips_feature_enabled=support.vips_feature_enabled,
            vips_runtime_available=support.vips_runtime_available,
        ),
    )


def compute_grid(
    width: int, height: int, tile_width: int, tile_height: int, edge_mode: EdgeMode
) -> GridInfo:
    """Columns and rows of tiles for an image; raises ValueError for an empty grid."""
    if tile_width <= 0 or tile_height <= 0:
        raise ValueError("tile dimensions must be greater than 0")
    if EdgeMode(edge_mode) is EdgeMode.SKIP:
        cols, rows = width // tile_width, height // tile_height
    else:
        cols, rows = -(-width // tile_width), -(-height // tile_height)
    if cols <= 0 or rows <= 0:
        raise ValueError("input produces zero tiles with the requested edge mode")
    return GridInfo(cols=cols, rows=rows, zero_pad_width=zero_pad_width(cols, rows))


def effective_tile_index_mode(
    manifest_mode: ManifestMode, requested: TileIndexMode, skip_empty: bool
) -> TileIndexMode:
    """Compact manifests with skipped tiles always get an ndjson index."""
    if manifest_mode is ManifestMode.COMPACT and skip_empty:
        return TileIndexMode.NDJSON
    return requested


def level_scale(level: int) -> float:
    """Scale factor of a pyramid level: 1 / 2**level."""
    return 1.0 / float(2**level)


def scaled_dimensions_for_level(width: int, height: int, level: int) -> tuple[int, int]:
    """Image size at a pyramid level, rounded and at least 1x1."""
    if level == 0:
        return (width, height)
    scale = level_scale(level)
    return (
        max(_round_half_away(width * scale), 1),
        max(_round_half_away(height * scale), 1),
    )


def estimated_rgba_bytes(width: int, height: int) -> int:
    """Bytes needed to hold the image decoded as RGBA8."""
    return width * height * 4


def now_unix_secs() -> int:
    """Current time in whole seconds since the Unix epoch."""
    return max(int(time.time()), 0)


def compute_sha256(path: str | Path) -> str:
    """Hex SHA-256 digest of a file's content."""
    digest = hashlib.sha256()
    with open(path, "rb") as handle:
        for chunk in iter(lambda: handle.read(_HASH_CHUNK), b""):
            digest.update(chunk)
    return digest.hexdigest()