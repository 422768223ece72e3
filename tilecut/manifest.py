"""Manifest model: building it from a cut plan and reading it back from JSON."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from tilecut.options import (
    EdgeMode,
    LayoutMode,
    ManifestMode,
    OutputFormat,
    TileIndexMode,
    YAxis,
)
from tilecut.plan import CutPlan, Rect, TilePlan

SCHEMA_VERSION = "2.0.0"
GENERATOR_NAME = "tilecut"
GENERATOR_VERSION = "0.1.0"
INDEX_FILE_NAME = "tiles.ndjson"

_U8_MAX = 255
_E = TypeVar("_E", bound=Enum)


def _field(data: Any, key: str) -> Any:
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    if key not in data:
        raise ValueError(f"missing field `{key}`")
    return data[key]


def _uint(data: Any, key: str, limit: int | None = None) -> int:
    value = _field(data, key)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"invalid value for `{key}`: expected a non-negative integer")
    if limit is not None and value > limit:
        raise ValueError(f"invalid value for `{key}`: expected at most {limit}")
    return value


def _float(data: Any, key: str) -> float:
    value = _field(data, key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"invalid value for `{key}`: expected a number")
    return float(value)


def _str(data: Any, key: str) -> str:
    value = _field(data, key)
    if not isinstance(value, str):
        raise ValueError(f"invalid value for `{key}`: expected a string")
    return value


def _bool(data: Any, key: str) -> bool:
    value = _field(data, key)
    if not isinstance(value, bool):
        raise ValueError(f"invalid value for `{key}`: expected a boolean")
    return value


def _enum(data: Any, key: str, enum_type: type[_E]) -> _E:
    value = _field(data, key)
    try:
        return enum_type(value)
    except ValueError:
        raise ValueError(f"unknown variant {value!r} for `{key}`") from None


def _color_value(value: Any, key: str) -> tuple[int, int, int, int]:
    if not isinstance(value, (list, tuple)) or len(value) != 4:
        raise ValueError(f"invalid value for `{key}`: expected four channels")
    channels = []
    for channel in value:
        if isinstance(channel, bool) or not isinstance(channel, int) or not 0 <= channel <= _U8_MAX:
            raise ValueError(f"invalid value for `{key}`: channels must be 0-255")
        channels.append(channel)
    return (channels[0], channels[1], channels[2], channels[3])


def _rect(data: Any, key: str) -> Rect:
    value = _field(data, key)
    return Rect(x=_uint(value, "x"), y=_uint(value, "y"), w=_uint(value, "w"), h=_uint(value, "h"))


@dataclass(frozen=True)
class GeneratorInfo:
    """Program that wrote the manifest."""

    name: str
    version: str

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "version": self.version}


@dataclass(frozen=True)
class ManifestSource:
    """Source image facts recorded in the manifest."""

    path: str
    width: int
    height: int
    format: str
    file_size: int
    sha256: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "width": self.width,
            "height": self.height,
            "format": self.format,
            "file_size": self.file_size,
            "sha256": self.sha256,
        }


@dataclass(frozen=True)
class ManifestTile:
    """Tile output settings."""

    width: int
    height: int
    format: OutputFormat
    quality: int
    edge_mode: EdgeMode
    pad_color: tuple[int, int, int, int]
    skip_empty: bool
    empty_alpha_threshold: int
    flatten_alpha: tuple[int, int, int, int] | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "width": self.width,
            "height": self.height,
            "format": self.format.value,
            "quality": self.quality,
            "edge_mode": self.edge_mode.value,
            "pad_color": list(self.pad_color),
            "skip_empty": self.skip_empty,
            "empty_alpha_threshold": self.empty_alpha_threshold,
        }
        if self.flatten_alpha is not None:
            result["flatten_alpha"] = list(self.flatten_alpha)
        return result


@dataclass(frozen=True)
class ManifestGrid:
    """Level 0 grid description."""

    origin: str
    zero_based: bool
    cols: int
    rows: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "origin": self.origin,
            "zero_based": self.zero_based,
            "cols": self.cols,
            "rows": self.rows,
        }


@dataclass(frozen=True)
class ManifestNaming:
    """How tile paths are formed."""

    coord_space: str
    layout: LayoutMode
    zero_pad_width: int
    path_template: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "coord_space": self.coord_space,
            "layout": self.layout.value,
            "zero_pad_width": self.zero_pad_width,
            "path_template": self.path_template,
        }


@dataclass(frozen=True)
class ManifestWorld:
    """World-space mapping of the source image."""

    enabled: bool
    origin: tuple[float, float]
    units_per_pixel: float
    y_axis: YAxis

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "origin": [self.origin[0], self.origin[1]],
            "units_per_pixel": self.units_per_pixel,
            "y_axis": self.y_axis.value,
        }


@dataclass(frozen=True)
class ManifestLevel:
    """Summary of one pyramid level."""

    level: int
    scale: float
    width: int
    height: int
    cols: int
    rows: int
    zero_pad_width: int
    tile_count: int
    skipped_count: int
    total_slots: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "scale": self.scale,
            "width": self.width,
            "height": self.height,
            "cols": self.cols,
            "rows": self.rows,
            "zero_pad_width": self.zero_pad_width,
            "tile_count": self.tile_count,
            "skipped_count": self.skipped_count,
            "total_slots": self.total_slots,
        }


@dataclass(frozen=True)
class ManifestStats:
    """Tile counts over all levels."""

    tile_count: int
    skipped_count: int
    total_slots: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "tile_count": self.tile_count,
            "skipped_count": self.skipped_count,
            "total_slots": self.total_slots,
        }


@dataclass(frozen=True)
class ManifestIndex:
    """Sidecar tile index reference."""

    mode: TileIndexMode
    path: str

    def to_dict(self) -> dict[str, Any]:
        return {"mode": self.mode.value, "path": self.path}


@dataclass(frozen=True)
class TileInventoryEntry:
    """One tile slot and whether it was written."""

    level: int
    x: int
    y: int
    path: str | None
    src_rect: Rect
    content_rect: Rect
    skipped: bool

    def sort_key(self) -> tuple[int, int, int]:
        """Ordering used in manifests and indexes: level, then row, then column."""
        return (self.level, self.y, self.x)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation; ``path`` is omitted when absent."""
        result: dict[str, Any] = {"level": self.level, "x": self.x, "y": self.y}
        if self.path is not None:
            result["path"] = self.path
        result["src_rect"] = self.src_rect.to_dict()
        result["content_rect"] = self.content_rect.to_dict()
        result["skipped"] = self.skipped
        return result


def inventory_entry_from_dict(data: Any) -> TileInventoryEntry:
    """Parse an inventory entry; raises ValueError if malformed."""
    path = data.get("path") if isinstance(data, dict) else None
    if path is not None and not isinstance(path, str):
        raise ValueError("invalid value for `path`: expected a string")
    return TileInventoryEntry(
        level=_uint(data, "level"),
        x=_uint(data, "x"),
        y=_uint(data, "y"),
        path=path,
        src_rect=_rect(data, "src_rect"),
        content_rect=_rect(data, "content_rect"),
        skipped=_bool(data, "skipped"),
    )


def inventory_entry_for_tile(tile: TilePlan, skipped: bool) -> TileInventoryEntry:
    """Inventory entry for a planned tile; skipped tiles carry no path."""
    return TileInventoryEntry(
        level=tile.coord.level,
        x=tile.coord.x,
        y=tile.coord.y,
        path=None if skipped else tile.out_rel_path,
        src_rect=tile.src_rect,
        content_rect=tile.content_rect,
        skipped=skipped,
    )


@dataclass(frozen=True)
class Manifest:
    """The manifest written next to a tileset."""

    schema_version: str
    generator: GeneratorInfo
    source: ManifestSource
    tile: ManifestTile
    grid: ManifestGrid
    naming: ManifestNaming
    world: ManifestWorld | None
    levels: list[ManifestLevel]
    stats: ManifestStats
    index: ManifestIndex | None = None
    tiles: list[TileInventoryEntry] | None = None

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation; absent optional sections are omitted."""
        result: dict[str, Any] = {
            "schema_version": self.schema_version,
            "generator": self.generator.to_dict(),
            "source": self.source.to_dict(),
            "tile": self.tile.to_dict(),
            "grid": self.grid.to_dict(),
            "naming": self.naming.to_dict(),
        }
        if self.world is not None:
            result["world"] = self.world.to_dict()
        result["levels"] = [level.to_dict() for level in self.levels]
        result["stats"] = self.stats.to_dict()
        if self.index is not None:
            result["index"] = self.index.to_dict()
        if self.tiles is not None:
            result["tiles"] = [tile.to_dict() for tile in self.tiles]
        return result


def _list(data: Any, key: str) -> list[Any]:
    value = _field(data, key)
    if not isinstance(value, list):
        raise ValueError(f"invalid value for `{key}`: expected a list")
    return value


def _parse_world(value: Any) -> ManifestWorld:
    origin = _field(value, "origin")
    if not isinstance(origin, list) or len(origin) != 2:
        raise ValueError("invalid value for `origin`: expected two numbers")
    coords = []
    for number in origin:
        if isinstance(number, bool) or not isinstance(number, (int, float)):
            raise ValueError("invalid value for `origin`: expected two numbers")
        coords.append(float(number))
    return ManifestWorld(
        enabled=_bool(value, "enabled"),
        origin=(coords[0], coords[1]),
        units_per_pixel=_float(value, "units_per_pixel"),
        y_axis=_enum(value, "y_axis", YAxis),
    )


def _parse_level(value: Any) -> ManifestLevel:
    return ManifestLevel(
        level=_uint(value, "level"),
        scale=_float(value, "scale"),
        width=_uint(value, "width"),
        height=_uint(value, "height"),
        cols=_uint(value, "cols"),
        rows=_uint(value, "rows"),
        zero_pad_width=_uint(value, "zero_pad_width"),
        tile_count=_uint(value, "tile_count"),
        skipped_count=_uint(value, "skipped_count"),
        total_slots=_uint(value, "total_slots"),
    )


def manifest_from_dict(data: Any) -> Manifest:
    """Parse a manifest from decoded JSON; raises ValueError if malformed."""
    generator = _field(data, "generator")
    source = _field(data, "source")
    tile = _field(data, "tile")
    grid = _field(data, "grid")
    naming = _field(data, "naming")
    stats = _field(data, "stats")

    flatten = tile.get("flatten_alpha") if isinstance(tile, dict) else None
    world = data.get("world")
    index = data.get("index")
    tiles = data.get("tiles")
    if tiles is not None and not isinstance(tiles, list):
        raise ValueError("invalid value for `tiles`: expected a list")

    return Manifest(
        schema_version=_str(data, "schema_version"),
        generator=GeneratorInfo(name=_str(generator, "name"), version=_str(generator, "version")),
        source=ManifestSource(
            path=_str(source, "path"),
            width=_uint(source, "width"),
            height=_uint(source, "height"),
            format=_str(source, "format"),
            file_size=_uint(source, "file_size"),
            sha256=_str(source, "sha256"),
        ),
        tile=ManifestTile(
            width=_uint(tile, "width"),
            height=_uint(tile, "height"),
            format=_enum(tile, "format", OutputFormat),
            quality=_uint(tile, "quality", _U8_MAX),
            edge_mode=_enum(tile, "edge_mode", EdgeMode),
            pad_color=_color_value(_field(tile, "pad_color"), "pad_color"),
            skip_empty=_bool(tile, "skip_empty"),
            empty_alpha_threshold=_uint(tile, "empty_alpha_threshold", _U8_MAX),
            flatten_alpha=None if flatten is None else _color_value(flatten, "flatten_alpha"),
        ),
        grid=ManifestGrid(
            origin=_str(grid, "origin"),
            zero_based=_bool(grid, "zero_based"),
            cols=_uint(grid, "cols"),
            rows=_uint(grid, "rows"),
        ),
        naming=ManifestNaming(
            coord_space=_str(naming, "coord_space"),
            layout=_enum(naming, "layout", LayoutMode),
            zero_pad_width=_uint(naming, "zero_pad_width"),
            path_template=_str(naming, "path_template"),
        ),
        world=None if world is None else _parse_world(world),
        levels=[_parse_level(level) for level in _list(data, "levels")],
        stats=ManifestStats(
            tile_count=_uint(stats, "tile_count"),
            skipped_count=_uint(stats, "skipped_count"),
            total_slots=_uint(stats, "total_slots"),
        ),
        index=None
        if index is None
        else ManifestIndex(mode=_enum(index, "mode", TileIndexMode), path=_str(index, "path")),
        tiles=None if tiles is None else [inventory_entry_from_dict(entry) for entry in tiles],
    )


def manifest_from_plan(plan: CutPlan, inventory: list[TileInventoryEntry]) -> Manifest:
    """Build the manifest for a finished cut from its plan and tile inventory."""
    ordered = sorted(inventory, key=TileInventoryEntry.sort_key)
    tile_count = sum(1 for entry in ordered if not entry.skipped)
    skipped_count = max(len(ordered) - tile_count, 0)

    levels = []
    for level in plan.levels:
        total_slots = len(level.tiles)
        level_tile_count = sum(
            1 for entry in ordered if entry.level == level.level and not entry.skipped
        )
        levels.append(
            ManifestLevel(
                level=level.level,
                scale=level.scale,
                width=level.width,
                height=level.height,
                cols=level.grid.cols,
                rows=level.grid.rows,
                zero_pad_width=level.grid.zero_pad_width,
                tile_count=level_tile_count,
                skipped_count=max(total_slots - level_tile_count, 0),
                total_slots=total_slots,
            )
        )

    world = None
    if plan.world is not None:
        world = ManifestWorld(
            enabled=True,
            origin=plan.world.origin,
            units_per_pixel=plan.world.units_per_pixel,
            y_axis=plan.world.y_axis,
        )

    index = None
    if plan.tile_index_mode is not TileIndexMode.NONE:
        index = ManifestIndex(mode=plan.tile_index_mode, path=INDEX_FILE_NAME)

    return Manifest(
        schema_version=SCHEMA_VERSION,
        generator=GeneratorInfo(name=GENERATOR_NAME, version=GENERATOR_VERSION),
        source=ManifestSource(
            path=plan.source.path,
            width=plan.source.width,
            height=plan.source.height,
            format=plan.source.format,
            file_size=plan.source.file_size,
            sha256=plan.source.sha256,
        ),
        tile=ManifestTile(
            width=plan.tile.width,
            height=plan.tile.height,
            format=plan.tile.format,
            quality=plan.tile.quality,
            edge_mode=plan.tile.edge_mode,
            pad_color=plan.tile.pad_color,
            skip_empty=plan.skip_empty,
            empty_alpha_threshold=plan.empty_alpha_threshold,
            flatten_alpha=plan.tile.flatten_alpha,
        ),
        grid=ManifestGrid(
            origin="top-left",
            zero_based=True,
            cols=plan.grid.cols,
            rows=plan.grid.rows,
        ),
        naming=ManifestNaming(
            coord_space="grid",
            layout=plan.layout,
            zero_pad_width=plan.grid.zero_pad_width,
            path_template=plan.naming_template,
        ),
        world=world,
        levels=levels,
        stats=ManifestStats(
            tile_count=tile_count,
            skipped_count=skipped_count,
            total_slots=len(ordered),
        ),
        index=index,
        tiles=list(ordered) if plan.manifest_mode is ManifestMode.FULL else None,
    )