"""In-memory tile backend that decodes the whole source image with Pillow."""

from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from PIL import Image

from tilecut import errors
from tilecut.backends.base import TileBackend, inspect_source
from tilecut.options import EdgeMode, OutputFormat
from tilecut.overview import resize_rgba_for_overview, resize_rgba_to_dimensions
from tilecut.plan import CutPlan, SourceInfo, TilePlan

_OPAQUE = 255


def _ensure_parent(path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as err:
        raise OSError(f"failed to create {path.parent}") from err


def _as_rgba(image: Image.Image) -> Image.Image:
    return image if image.mode == "RGBA" else image.convert("RGBA")


def _alpha_extrema(image: Image.Image) -> tuple[int, int] | None:
    if image.width == 0 or image.height == 0:
        return None
    low, high = image.getchannel("A").getextrema()
    return int(low), int(high)


class ImageBackend(TileBackend):
    """Decodes the source into memory and cuts tiles from it."""

    def __init__(self, input_path: str | Path) -> None:
        input_path = Path(input_path)
        self._source = inspect_source(input_path)
        try:
            with Image.open(input_path) as decoded:
                self._image = decoded.convert("RGBA")
        except Exception as err:  # Pillow raises a variety of decode errors
            raise errors.unsupported_image(input_path, str(err)) from err

    def source_info(self) -> SourceInfo:
        """Facts about the opened source image."""
        return self._source

    def write_tiles(
        self, plan: CutPlan, output_root: str | Path, skip_existing: bool, threads: int
    ) -> None:
        """Write every planned tile of every level below ``output_root``."""
        output_root = Path(output_root)
        with ThreadPoolExecutor(max_workers=max(threads, 1)) as pool:
            for level in plan.levels:
                if level.level == 0:
                    level_image = self._image
                else:
                    level_image = resize_rgba_to_dimensions(self._image, level.width, level.height)

                def work(tile: TilePlan, level_image: Image.Image = level_image) -> None:
                    output_path = output_root / tile.out_rel_path
                    if skip_existing and output_path.exists():
                        return
                    _ensure_parent(output_path)
                    rect = tile.src_rect
                    cropped = level_image.crop((rect.x, rect.y, rect.x + rect.w, rect.y + rect.h))
                    rendered = render_tile_image(plan, tile, cropped)
                    if rendered is not None:
                        write_encoded_image(output_path, rendered, plan)

                list(pool.map(work, level.tiles))

    def generate_overview(self, max_edge: int, out_path: str | Path) -> None:
        """Write a PNG preview whose longest edge is at most ``max_edge``."""
        out_path = Path(out_path)
        _ensure_parent(out_path)
        resized = resize_rgba_for_overview(self._image, max_edge)
        try:
            resized.save(out_path, format="PNG")
        except OSError as err:
            raise OSError(f"failed to write {out_path}") from err


def render_tile_image(
    plan: CutPlan, tile: TilePlan, cropped: Image.Image
) -> Image.Image | None:
    """Final tile pixels, or None when the tile is empty and empty tiles are skipped."""
    cropped = _as_rgba(cropped)
    if plan.skip_empty:
        extrema = _alpha_extrema(cropped)
        if extrema is None or extrema[1] <= plan.empty_alpha_threshold:
            return None

    if plan.tile.edge_mode is EdgeMode.CROP:
        return cropped.copy()
    canvas = Image.new("RGBA", (plan.tile.width, plan.tile.height), tuple(plan.tile.pad_color))
    canvas.paste(cropped, (0, 0))
    return canvas


def write_encoded_image(path: str | Path, image: Image.Image, plan: CutPlan) -> None:
    """Encode a tile in the plan's output format and write it to ``path``."""
    path = Path(path)
    output_format = plan.tile.format
    if output_format is OutputFormat.JPEG:
        encoded = flatten_for_jpeg(image, plan.tile.flatten_alpha)
        label, save_options = "jpeg", {"format": "JPEG", "quality": plan.tile.quality}
    elif output_format is OutputFormat.WEBP:
        encoded = _as_rgba(image)
        label, save_options = "webp", {"format": "WEBP", "lossless": True}
    else:
        encoded = _as_rgba(image)
        label, save_options = "png", {"format": "PNG"}

    try:
        handle = open(path, "wb")
    except OSError as err:
        raise OSError(f"failed to create {path}") from err
    with handle:
        try:
            encoded.save(handle, **save_options)
        except (OSError, ValueError) as err:
            raise OSError(f"failed to write {label} {path}") from err


def _blend(foreground: int, background: int, alpha: float, bg_weight: float, total: float) -> int:
    value = (foreground * alpha + background * bg_weight) / total
    return min(max(math.floor(value + 0.5), 0), 255)


def flatten_for_jpeg(
    image: Image.Image, flatten_alpha: tuple[int, int, int, int] | None
) -> Image.Image:
    """Composite onto a background colour; without one, transparency is an error."""
    rgba = _as_rgba(image)
    if flatten_alpha is None:
        extrema = _alpha_extrema(rgba)
        if extrema is not None and extrema[0] < _OPAQUE:
            raise errors.jpeg_transparency()
        return rgba.convert("RGB")

    bg_red, bg_green, bg_blue, bg_raw_alpha = flatten_alpha
    bg_alpha = bg_raw_alpha / 255.0
    raw = rgba.tobytes()
    out = bytearray(len(raw) // 4 * 3)
    for index in range(0, len(raw), 4):
        red, green, blue, raw_alpha = raw[index : index + 4]
        alpha = raw_alpha / 255.0
        bg_weight = bg_alpha * (1.0 - alpha)
        total = alpha + bg_weight
        target = index // 4 * 3
        if total == 0.0:
            out[target : target + 3] = b"\x00\x00\x00"
            continue
        out[target] = _blend(red, bg_red, alpha, bg_weight, total)
        out[target + 1] = _blend(green, bg_green, alpha, bg_weight, total)
        out[target + 2] = _blend(blue, bg_blue, alpha, bg_weight, total)
    return Image.frombytes("RGB", rgba.size, bytes(out))