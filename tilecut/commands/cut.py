"""The cut command: plan, write tiles, and finalize manifests and metadata."""

from __future__ import annotations

import json
import os
import shutil
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from tilecut import errors
from tilecut.backends.base import (
    ResolvedBackendKind,
    TileBackend,
    backend_support,
    choose_backend,
    inspect_source,
)
from tilecut.backends.factory import open_backend
from tilecut.manifest import TileInventoryEntry, inventory_entry_for_tile, manifest_from_plan
from tilecut.options import CutArgs, TileIndexMode
from tilecut.plan import (
    BuildFingerprint,
    BuildState,
    CutPlan,
    build_cut_plan,
    fingerprint_from_dict,
    new_build_state,
    now_unix_secs,
)

INTERNAL_DIR = ".tilecut"
PLAN_PATH = ".tilecut/plan.json"
STATE_PATH = ".tilecut/state.json"
MANIFEST_PATH = "manifest.json"
INDEX_PATH = "tiles.ndjson"
OVERVIEW_PATH = "preview/overview.png"


@contextmanager
def _context(message: str) -> Iterator[None]:
    try:
        yield
    except OSError as err:
        raise OSError(message) from err


def _flag(value: bool) -> str:
    return "true" if value else "false"


def run(args: CutArgs) -> None:
    """Run a cut build as described by ``args``."""
    _preflight_output_target(args)

    source = inspect_source(args.input)
    plan = build_cut_plan(args, source)
    support = backend_support()
    try:
        resolved = choose_backend(plan.requested_backend, plan.source, plan.max_in_memory_mib)
    except Exception as err:
        raise RuntimeError(
            "failed to select backend (vips feature enabled: "
            f"{_flag(support.vips_feature_enabled)}, runtime available: "
            f"{_flag(support.vips_runtime_available)})"
        ) from err

    if args.dry_run:
        _print_dry_run(plan, resolved)
        return

    thread_count = args.threads or os.cpu_count() or 1
    backend = open_backend(resolved, args.input)
    fingerprint = plan.fingerprint()

    if args.resume:
        _resume_existing_output(args.out, fingerprint)
        _write_plan_file(args.out, fingerprint)
        _write_state_file(args.out, new_build_state(plan.total_tile_slots()))
        backend.write_tiles(plan, args.out, True, thread_count)
        _maybe_generate_overview(plan, backend, args.out, True)
        _finalize_output(plan, args.out)
    else:
        staging_dir = _prepare_staging_dir(args.out, args.overwrite)
        _write_plan_file(staging_dir, fingerprint)
        _write_state_file(staging_dir, new_build_state(plan.total_tile_slots()))
        backend.write_tiles(plan, staging_dir, False, thread_count)
        _maybe_generate_overview(plan, backend, staging_dir, False)
        _finalize_output(plan, staging_dir)
        _commit_staging_dir(staging_dir, args.out, args.overwrite)


def _preflight_output_target(args: CutArgs) -> None:
    if args.resume:
        if not args.out.exists():
            raise errors.resume_output_missing(args.out)
    elif args.out.exists() and not args.overwrite:
        raise errors.output_directory_exists(args.out)


def _debug_name(value: Any) -> str:
    return str(value.value).capitalize()


def _print_dry_run(plan: CutPlan, backend: ResolvedBackendKind) -> None:
    print(f"Input: {plan.source.path}")
    print(f"Size: {plan.source.width}x{plan.source.height}")
    print(f"Levels: {len(plan.levels)}")
    print(f"Grid: {plan.grid.cols} cols x {plan.grid.rows} rows")
    print(f"Tiles: {plan.total_tile_slots()}")
    for level in plan.levels:
        print(
            f"  Level {level.level}: scale {level.scale:.3f}, {level.width}x{level.height}, "
            f"grid {level.grid.cols}x{level.grid.rows}, tiles {len(level.tiles)}"
        )
    print(f"Output Format: {_debug_name(plan.tile.format)}")
    print(f"Manifest Mode: {_debug_name(plan.manifest_mode)}")
    print(f"Tile Index: {_debug_name(plan.tile_index_mode)}")
    print(f"Backend: {_debug_name(backend)}")


def _maybe_generate_overview(
    plan: CutPlan, backend: TileBackend, out_dir: Path, skip_existing: bool
) -> None:
    if plan.overview is None:
        return
    overview_path = out_dir / OVERVIEW_PATH
    if skip_existing and overview_path.exists():
        return
    backend.generate_overview(plan.overview, overview_path)


def _prepare_staging_dir(out_dir: Path, overwrite: bool) -> Path:
    if out_dir.exists() and not overwrite:
        raise errors.output_directory_exists(out_dir)
    name = out_dir.name or "tilecut-out"
    staging_dir = out_dir.parent / f".tilecut-tmp-{name}-{now_unix_secs()}"
    if staging_dir.exists():
        with _context(f"failed to remove stale {staging_dir}"):
            shutil.rmtree(staging_dir)
    with _context(f"failed to create {staging_dir}"):
        (staging_dir / INTERNAL_DIR).mkdir(parents=True, exist_ok=True)
    return staging_dir


def _resume_existing_output(out_dir: Path, fingerprint: BuildFingerprint) -> None:
    plan_path = out_dir / PLAN_PATH
    try:
        stored = fingerprint_from_dict(json.loads(plan_path.read_text(encoding="utf-8")))
    except (OSError, ValueError) as err:
        raise errors.resume_state_missing(plan_path, str(err)) from err
    if stored != fingerprint:
        raise errors.resume_plan_mismatch()
    internal = out_dir / INTERNAL_DIR
    with _context(f"failed to create {internal}"):
        internal.mkdir(parents=True, exist_ok=True)


def _finalize_output(plan: CutPlan, out_dir: Path) -> None:
    inventory = _scan_inventory(plan, out_dir)
    skipped = sum(1 for entry in inventory if entry.skipped)
    if not plan.skip_empty and skipped:
        raise RuntimeError(f"expected all tiles to be present, but {skipped} were missing")

    if plan.tile_index_mode is TileIndexMode.NDJSON:
        _write_index_file(out_dir, inventory)

    manifest = manifest_from_plan(plan, inventory)
    _write_json(out_dir / MANIFEST_PATH, manifest.to_dict())
    _write_state_file(
        out_dir,
        BuildState(
            complete=True,
            total_tiles=len(inventory),
            written_tiles=len(inventory) - skipped,
            skipped_tiles=skipped,
            updated_unix_secs=now_unix_secs(),
        ),
    )


def _scan_inventory(plan: CutPlan, out_dir: Path) -> list[TileInventoryEntry]:
    return [
        inventory_entry_for_tile(tile, not (out_dir / tile.out_rel_path).exists())
        for level in plan.levels
        for tile in level.tiles
    ]


def _write_json(path: Path, data: Any) -> None:
    with _context(f"failed to create {path.parent}"):
        path.parent.mkdir(parents=True, exist_ok=True)
    with _context(f"failed to write {path}"):
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def _write_index_file(out_dir: Path, inventory: list[TileInventoryEntry]) -> None:
    path = out_dir / INDEX_PATH
    contents = "".join(
        json.dumps(entry.to_dict(), separators=(",", ":")) + "\n"
        for entry in inventory
        if not entry.skipped
    )
    with _context(f"failed to write {path}"):
        path.write_text(contents, encoding="utf-8")


def _write_plan_file(out_dir: Path, fingerprint: BuildFingerprint) -> None:
    _write_json(out_dir / PLAN_PATH, fingerprint.to_dict())


def _write_state_file(out_dir: Path, state: BuildState) -> None:
    _write_json(out_dir / STATE_PATH, state.to_dict())


def _commit_staging_dir(staging_dir: Path, out_dir: Path, overwrite: bool) -> None:
    if out_dir.exists():
        if not overwrite:
            raise errors.output_directory_exists(out_dir)
        with _context(f"failed to remove {out_dir}"):
            shutil.rmtree(out_dir)
    with _context(f"failed to move {staging_dir} to {out_dir}"):
        staging_dir.rename(out_dir)