"""The stitch command: rebuild one manifest level as a single PNG."""

from __future__ import annotations

import json
from pathlib import Path

from PIL import Image

from tilecut import errors
from tilecut.manifest import manifest_from_dict
from tilecut.options import StitchArgs
from tilecut.validation import collect_inventory


def _ensure_png_output(path: Path) -> None:
    if path.suffix.lower() != ".png":
        raise errors.stitch_output_must_be_png(path)


def run(args: StitchArgs) -> None:
    """Stitch the tiles of ``args.level`` into ``args.out``."""
    manifest_path = Path(args.manifest)
    out_path = Path(args.out)
    _ensure_png_output(out_path)

    try:
        raw = manifest_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as err:
        raise errors.manifest_read_failed(manifest_path, str(err)) from err
    try:
        manifest = manifest_from_dict(json.loads(raw))
    except (ValueError, TypeError) as err:
        raise errors.manifest_parse_failed(manifest_path, str(err)) from err

    level = next((item for item in manifest.levels if item.level == args.level), None)
    if level is None:
        raise errors.stitch_level_missing(args.level)

    inventory = collect_inventory(manifest, manifest_path)
    base_dir = manifest_path.parent
    output = Image.new("RGBA", (level.width, level.height), (0, 0, 0, 0))

    for entry in inventory:
        if entry.level != args.level or entry.skipped:
            continue
        if entry.path is None:
            raise errors.generic(
                f"tile level {entry.level},{entry.x},{entry.y} is not skipped but has no path"
            )
        tile_path = base_dir / entry.path
        if not tile_path.exists():
            raise errors.stitch_tile_missing(tile_path)
        try:
            with Image.open(tile_path) as decoded:
                tile = decoded.convert("RGBA")
        except Exception as err:  # Pillow raises a variety of decode errors
            raise errors.stitch_tile_decode_failed(tile_path, str(err)) from err

        content = entry.content_rect
        if content.x + content.w > tile.width or content.y + content.h > tile.height:
            raise errors.generic(f"tile {tile_path} content_rect exceeds image bounds")
        cropped = tile.crop((content.x, content.y, content.x + content.w, content.y + content.h))
        output.paste(cropped, (entry.src_rect.x, entry.src_rect.y))

    out_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        output.save(out_path, format="PNG")
    except (OSError, ValueError) as err:
        raise errors.generic(f"failed to write stitched png {out_path}: {err}") from err