"""Image resizing helpers and overview preview generation."""

from __future__ import annotations

import math
from pathlib import Path

from PIL import Image


def _round_half_away(value: float) -> int:
    return int(math.floor(value + 0.5))


def _rgba(image: Image.Image) -> Image.Image:
    return image if image.mode == "RGBA" else image.convert("RGBA")


def resize_rgba_to_dimensions(
    image: Image.Image, out_width: int, out_height: int
) -> Image.Image:
    """Lanczos-resize to the largest size fitting the bounds, keeping aspect ratio."""
    image = _rgba(image)
    width, height = image.size
    if (width, height) == (out_width, out_height):
        return image.copy()
    ratio = min(out_width / width, out_height / height)
    new_width = max(_round_half_away(width * ratio), 1)
    new_height = max(_round_half_away(height * ratio), 1)
    return image.resize((new_width, new_height), Image.Resampling.LANCZOS)


def resize_rgba_for_overview(image: Image.Image, max_edge: int) -> Image.Image:
    """Shrink so the longest edge is at most ``max_edge``; 0 means no limit."""
    image = _rgba(image)
    if max_edge == 0:
        return image.copy()
    width, height = image.size
    longest = max(width, height)
    if longest <= max_edge:
        return image.copy()
    scale = max_edge / longest
    out_width = max(_round_half_away(width * scale), 1)
    out_height = max(_round_half_away(height * scale), 1)
    return resize_rgba_to_dimensions(image, out_width, out_height)


def generate_overview_with_pillow(
    input_path: str | Path, max_edge: int, out_path: str | Path
) -> None:
    """Decode the input and write a PNG overview to ``out_path``."""
    input_path = Path(input_path)
    out_path = Path(out_path)
    try:
        with Image.open(input_path) as source:
            image = source.convert("RGBA")
    except OSError as err:
        raise OSError(f"failed to decode image {input_path}") from err
    resized = resize_rgba_for_overview(image, max_edge)
    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as err:
        raise OSError(f"failed to create {out_path.parent}") from err
    try:
        resized.save(out_path, format="PNG")
    except OSError as err:
        raise OSError(f"failed to write {out_path}") from err