"""Consistency checks for a written tileset and its manifest."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

from PIL import Image

from tilecut import errors
from tilecut.manifest import (
    Manifest,
    TileInventoryEntry,
    inventory_entry_from_dict,
    manifest_from_dict,
)
from tilecut.naming import render_rel_path
from tilecut.options import EdgeMode, TileIndexMode
from tilecut.plan import Rect, level_scale

_SCALE_TOLERANCE = 1e-9


@dataclass
class ValidationReport:
    """Outcome of validating one manifest."""

    manifest_path: Path
    checked_tiles: int
    missing_tiles: int
    errors: list[str] = field(default_factory=list)

    def is_valid(self) -> bool:
        """True when no problem was found."""
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation."""
        return {
            "manifest_path": str(self.manifest_path),
            "checked_tiles": self.checked_tiles,
            "missing_tiles": self.missing_tiles,
            "errors": list(self.errors),
        }


def _format_float(value: float) -> str:
    if math.isfinite(value) and value == int(value):
        return str(int(value))
    return repr(value)


def validate_manifest_path(path: str | Path) -> ValidationReport:
    """Read a manifest file and validate it and its tiles."""
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as err:
        raise errors.manifest_read_failed(path, str(err)) from err
    try:
        manifest = manifest_from_dict(json.loads(content))
    except (ValueError, TypeError) as err:
        raise errors.manifest_parse_failed(path, str(err)) from err
    return validate_manifest(manifest, path)


def validate_manifest(manifest: Manifest, manifest_path: str | Path) -> ValidationReport:
    """Check manifest metadata, tile geometry and tile files on disk."""
    manifest_path = Path(manifest_path)
    if manifest.grid.cols <= 0:
        raise ValueError("manifest grid cols must be greater than 0")
    if manifest.grid.rows <= 0:
        raise ValueError("manifest grid rows must be greater than 0")
    if manifest.tile.width <= 0:
        raise ValueError("manifest tile width must be greater than 0")
    if manifest.tile.height <= 0:
        raise ValueError("manifest tile height must be greater than 0")

    base_dir = manifest_path.parent
    inventory = collect_inventory(manifest, manifest_path)
    problems = list(_metadata_problems(manifest, inventory))
    levels_by_id = {level.level: level for level in manifest.levels}

    missing_tiles = 0
    for entry in inventory:
        level = levels_by_id.get(entry.level)
        if level is None:
            problems.append(
                f"tile {entry.x},{entry.y} references unknown level {entry.level}"
            )
            continue
        problems.extend(_geometry_problems(manifest, level.width, level.height, entry))
        if entry.skipped:
            continue
        if entry.path is None:
            problems.append(
                f"tile level {entry.level},{entry.x},{entry.y} is not skipped but has no path"
            )
            continue
        tile_path = base_dir / entry.path
        if not tile_path.exists():
            missing_tiles += 1
            problems.append(f"missing tile file for level {entry.level}: {tile_path}")
            continue
        try:
            with Image.open(tile_path) as tile_image:
                actual = tile_image.size
        except Exception as err:  # Pillow raises a variety of decode errors
            problems.append(f"failed to inspect {tile_path}: {err}")
            continue
        if manifest.tile.edge_mode is EdgeMode.PAD:
            expected = (manifest.tile.width, manifest.tile.height)
        else:
            expected = (entry.content_rect.w, entry.content_rect.h)
        if actual != expected:
            problems.append(
                f"tile {tile_path} dimensions mismatch: expected "
                f"{expected[0]}x{expected[1]}, got {actual[0]}x{actual[1]}"
            )

    return ValidationReport(
        manifest_path=manifest_path,
        checked_tiles=len(inventory),
        missing_tiles=missing_tiles,
        errors=problems,
    )


def collect_inventory(
    manifest: Manifest, manifest_path: str | Path
) -> list[TileInventoryEntry]:
    """Every tile slot of the manifest, from its tile list, its index or its grid rules."""
    manifest_path = Path(manifest_path)
    if manifest.tiles is not None:
        inventory = list(manifest.tiles)
    elif manifest.index is not None:
        if manifest.index.mode is not TileIndexMode.NDJSON:
            raise ValueError(
                f"unsupported tile index mode {manifest.index.mode.value.capitalize()}"
            )
        index_path = manifest_path.parent / manifest.index.path
        try:
            raw = index_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as err:
            raise errors.manifest_read_failed(index_path, str(err)) from err
        try:
            present = [
                inventory_entry_from_dict(json.loads(line))
                for line in raw.splitlines()
                if line.strip()
            ]
        except (ValueError, TypeError) as err:
            raise errors.tile_index_parse_failed(index_path, str(err)) from err
        inventory = _merge_index_inventory(_derive_inventory_from_compact(manifest), present)
    else:
        inventory = _derive_inventory_from_compact(manifest)
    return sorted(inventory, key=TileInventoryEntry.sort_key)


def _merge_index_inventory(
    full_slots: list[TileInventoryEntry], present: list[TileInventoryEntry]
) -> list[TileInventoryEntry]:
    present_by_coord = {(entry.level, entry.x, entry.y): entry for entry in present}
    return [
        present_by_coord.get(
            (slot.level, slot.x, slot.y),
            TileInventoryEntry(
                level=slot.level,
                x=slot.x,
                y=slot.y,
                path=None,
                src_rect=slot.src_rect,
                content_rect=slot.content_rect,
                skipped=True,
            ),
        )
        for slot in full_slots
    ]


def _metadata_problems(
    manifest: Manifest, inventory: list[TileInventoryEntry]
) -> Iterator[str]:
    if not manifest.levels:
        yield "manifest levels must not be empty"
        return

    level0 = manifest.levels[0]
    if level0.level != 0:
        yield "manifest levels must start at level 0"
    if level0.width != manifest.source.width or level0.height != manifest.source.height:
        yield "level 0 dimensions must match source dimensions"
    if manifest.grid.cols != level0.cols or manifest.grid.rows != level0.rows:
        yield "manifest grid must match level 0 grid"
    if manifest.naming.zero_pad_width != level0.zero_pad_width:
        yield "manifest naming zero_pad_width must match level 0"

    if len(manifest.levels) > 1 and "{level}" not in manifest.naming.path_template:
        yield "multi-level manifests must include `{level}` in naming.path_template"

    for position, level in enumerate(manifest.levels):
        if level.level != position:
            yield (
                "manifest levels must be continuous from 0, found level "
                f"{level.level} at position {position}"
            )
        expected_scale = level_scale(level.level)
        if abs(level.scale - expected_scale) > _SCALE_TOLERANCE:
            yield (
                f"level {level.level} has invalid scale {_format_float(level.scale)}, "
                f"expected {_format_float(expected_scale)}"
            )
        if level.cols == 0 or level.rows == 0:
            yield f"level {level.level} grid must be greater than 0x0"

        level_entries = [entry for entry in inventory if entry.level == level.level]
        total_slots = len(level_entries)
        tile_count = sum(1 for entry in level_entries if not entry.skipped)
        skipped_count = max(total_slots - tile_count, 0)
        if level.total_slots != total_slots:
            yield (
                f"level {level.level} total_slots mismatch: manifest "
                f"{level.total_slots}, derived {total_slots}"
            )
        if level.tile_count != tile_count:
            yield (
                f"level {level.level} tile_count mismatch: manifest "
                f"{level.tile_count}, derived {tile_count}"
            )
        if level.skipped_count != skipped_count:
            yield (
                f"level {level.level} skipped_count mismatch: manifest "
                f"{level.skipped_count}, derived {skipped_count}"
            )

    total_slots = len(inventory)
    tile_count = sum(1 for entry in inventory if not entry.skipped)
    skipped_count = max(total_slots - tile_count, 0)
    if manifest.stats.total_slots != total_slots:
        yield (
            f"manifest total_slots mismatch: manifest {manifest.stats.total_slots}, "
            f"derived {total_slots}"
        )
    if manifest.stats.tile_count != tile_count:
        yield (
            f"manifest tile_count mismatch: manifest {manifest.stats.tile_count}, "
            f"derived {tile_count}"
        )
    if manifest.stats.skipped_count != skipped_count:
        yield (
            f"manifest skipped_count mismatch: manifest {manifest.stats.skipped_count}, "
            f"derived {skipped_count}"
        )


def _geometry_problems(
    manifest: Manifest, level_width: int, level_height: int, entry: TileInventoryEntry
) -> Iterator[str]:
    label = f"tile level {entry.level},{entry.x},{entry.y}"
    if entry.src_rect.w == 0 or entry.src_rect.h == 0:
        yield f"{label} has zero-sized src_rect"
        return
    if entry.content_rect.w > manifest.tile.width or entry.content_rect.h > manifest.tile.height:
        yield f"{label} has content_rect outside tile bounds"
    if (
        entry.src_rect.x + entry.src_rect.w > level_width
        or entry.src_rect.y + entry.src_rect.h > level_height
    ):
        yield f"{label} src_rect exceeds level bounds"


def _derive_inventory_from_compact(manifest: Manifest) -> list[TileInventoryEntry]:
    multi_level = len(manifest.levels) > 1 or "{level}" in manifest.naming.path_template
    tile_width, tile_height = manifest.tile.width, manifest.tile.height
    entries = []
    for level in manifest.levels:
        for y in range(level.rows):
            for x in range(level.cols):
                src_x, src_y = x * tile_width, y * tile_height
                src_w = min(max(level.width - src_x, 0), tile_width)
                src_h = min(max(level.height - src_y, 0), tile_height)
                entries.append(
                    TileInventoryEntry(
                        level=level.level,
                        x=x,
                        y=y,
                        path=render_rel_path(
                            manifest.naming.layout,
                            manifest.tile.format,
                            level.zero_pad_width,
                            level.level,
                            x,
                            y,
                            multi_level,
                        ),
                        src_rect=Rect(src_x, src_y, src_w, src_h),
                        content_rect=Rect(0, 0, src_w, src_h),
                        skipped=False,
                    )
                )
    return entries