"""Tile backend that crops and resizes through the external ``vips`` command."""

from __future__ import annotations

import subprocess
import tempfile
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from PIL import Image

from tilecut import errors
from tilecut.backends.base import TileBackend, inspect_source, vips_runtime_available
from tilecut.backends.image import render_tile_image, write_encoded_image
from tilecut.overview import generate_overview_with_pillow
from tilecut.plan import CutPlan, SourceInfo, TilePlan


def _run_vips(arguments: list[str], operation: str, failure: str) -> None:
    try:
        result = subprocess.run(["vips", operation, *arguments], check=False)
    except OSError as err:
        raise OSError(f"failed to launch `vips {operation}`") from err
    if result.returncode != 0:
        raise RuntimeError(failure)


class VipsBackend(TileBackend):
    """Cuts tiles by running ``vips`` for each crop, keeping memory use low."""

    def __init__(self, input_path: str | Path) -> None:
        if not vips_runtime_available():
            raise errors.vips_runtime_missing()
        self._input = Path(input_path)
        self._source = inspect_source(self._input)

    def source_info(self) -> SourceInfo:
        """Facts about the opened source image."""
        return self._source

    def write_tiles(
        self, plan: CutPlan, output_root: str | Path, skip_existing: bool, threads: int
    ) -> None:
        """Write every planned tile of every level below ``output_root``."""
        output_root = Path(output_root)
        with tempfile.TemporaryDirectory(prefix="tilecut-vips-") as scratch_name, ThreadPoolExecutor(
            max_workers=max(threads, 1)
        ) as pool:
            scratch = Path(scratch_name)
            for level in plan.levels:
                if level.level == 0:
                    level_input = self._input
                else:
                    level_input = scratch / f"level-{level.level}.png"
                    _run_vips(
                        [str(self._input), str(level_input), repr(level.scale)],
                        "resize",
                        f"`vips resize` failed for level {level.level}",
                    )

                def work(tile: TilePlan, level_input: Path = level_input) -> None:
                    self._write_tile(plan, tile, output_root, skip_existing, level_input, scratch)

                list(pool.map(work, level.tiles))

    def _write_tile(
        self,
        plan: CutPlan,
        tile: TilePlan,
        output_root: Path,
        skip_existing: bool,
        level_input: Path,
        scratch: Path,
    ) -> None:
        output_path = output_root / tile.out_rel_path
        if skip_existing and output_path.exists():
            return
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise OSError(f"failed to create {output_path.parent}") from err

        coord, rect = tile.coord, tile.src_rect
        crop_path = scratch / f"crop-l{coord.level}-x{coord.x}-y{coord.y}.png"
        try:
            _run_vips(
                [str(level_input), str(crop_path), str(rect.x), str(rect.y), str(rect.w), str(rect.h)],
                "crop",
                f"`vips crop` failed for level {coord.level}, tile {coord.x},{coord.y}",
            )
            try:
                with Image.open(crop_path) as decoded:
                    cropped = decoded.convert("RGBA")
            except Exception as err:  # Pillow raises a variety of decode errors
                raise OSError(f"failed to decode vips crop {crop_path}") from err
        finally:
            crop_path.unlink(missing_ok=True)

        rendered = render_tile_image(plan, tile, cropped)
        if rendered is not None:
            write_encoded_image(output_path, rendered, plan)

    def generate_overview(self, max_edge: int, out_path: str | Path) -> None:
        """Write a PNG preview whose longest edge is at most ``max_edge``."""
        generate_overview_with_pillow(self._input, max_edge, out_path)