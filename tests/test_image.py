from pathlib import Path

import pytest
from PIL import Image

from tilecut import errors
from tilecut.backends.base import inspect_source
from tilecut.backends.image import (
    ImageBackend,
    flatten_for_jpeg,
    render_tile_image,
    write_encoded_image,
)
from tilecut.options import CutArgs, TileSizing
from tilecut.plan import build_cut_plan


def gradient(width, height):
    image = Image.new("RGBA", (width, height))
    for y in range(height):
        for x in range(width):
            image.putpixel((x, y), (x * 17, y * 23, 40, 255))
    return image


def make_plan(tmp_path: Path, image=None, tile_size=4, **options):
    source = tmp_path / "src.png"
    (image or gradient(8, 8)).save(source)
    args = CutArgs(
        input=source, out=tmp_path / "out", tile=TileSizing(tile_size=tile_size), **options
    )
    return build_cut_plan(args, inspect_source(source)), source


def test_render_pads_partial_tile_with_pad_color(tmp_path):
    plan, _ = make_plan(tmp_path, pad_color=(9, 8, 7, 6))
    cropped = Image.new("RGBA", (3, 2), (1, 2, 3, 255))
    result = render_tile_image(plan, plan.levels[0].tiles[0], cropped)
    assert result.size == (4, 4)
    assert result.getpixel((0, 0)) == (1, 2, 3, 255)
    assert result.getpixel((3, 3)) == (9, 8, 7, 6)


def test_render_crop_mode_keeps_cropped_size(tmp_path):
    plan, _ = make_plan(tmp_path, edge="crop")
    cropped = Image.new("RGBA", (3, 2), (1, 2, 3, 255))
    result = render_tile_image(plan, plan.levels[0].tiles[0], cropped)
    assert result.size == (3, 2)
    assert result.tobytes() == cropped.tobytes()


def test_render_skips_tiles_at_or_below_threshold(tmp_path):
    plan, _ = make_plan(tmp_path, skip_empty=True, empty_alpha_threshold=4)
    tile = plan.levels[0].tiles[0]
    assert render_tile_image(plan, tile, Image.new("RGBA", (4, 4), (5, 5, 5, 4))) is None
    kept = render_tile_image(plan, tile, Image.new("RGBA", (4, 4), (5, 5, 5, 5)))
    assert kept.getpixel((0, 0)) == (5, 5, 5, 5)


def test_render_keeps_transparent_tiles_without_skip_empty(tmp_path):
    plan, _ = make_plan(tmp_path)
    result = render_tile_image(plan, plan.levels[0].tiles[0], Image.new("RGBA", (4, 4)))
    assert result.getpixel((2, 2)) == (0, 0, 0, 0)


def test_flatten_rejects_transparency_without_background():
    image = Image.new("RGBA", (2, 2), (255, 0, 0, 255))
    image.putpixel((0, 0), (255, 0, 0, 0))
    with pytest.raises(errors.CliError) as info:
        flatten_for_jpeg(image, None)
    assert info.value.summary == "JPEG output requires opaque tiles."


def test_flatten_opaque_image_keeps_channels():
    image = gradient(3, 3)
    flattened = flatten_for_jpeg(image, None)
    assert flattened.mode == "RGB"
    assert flattened.getpixel((2, 1)) == image.getpixel((2, 1))[:3]


def test_flatten_transparent_pixel_takes_background():
    image = Image.new("RGBA", (1, 1), (200, 100, 50, 0))
    assert flatten_for_jpeg(image, (10, 20, 30, 255)).getpixel((0, 0)) == (10, 20, 30)
    assert flatten_for_jpeg(image, (10, 20, 30, 0)).getpixel((0, 0)) == (0, 0, 0)


def test_flatten_opaque_pixel_ignores_background():
    image = Image.new("RGBA", (1, 1), (200, 100, 50, 255))
    assert flatten_for_jpeg(image, (10, 20, 30, 255)).getpixel((0, 0)) == (200, 100, 50)


def test_write_png_round_trips_pixels(tmp_path):
    plan, _ = make_plan(tmp_path)
    image = gradient(4, 4)
    target = tmp_path / "tile.png"
    write_encoded_image(target, image, plan)
    with Image.open(target) as written:
        assert written.convert("RGBA").tobytes() == image.tobytes()


def test_write_webp_is_lossless(tmp_path):
    plan, _ = make_plan(tmp_path, format="webp")
    image = gradient(4, 4)
    target = tmp_path / "tile.webp"
    write_encoded_image(target, image, plan)
    with Image.open(target) as written:
        assert written.format == "WEBP"
        assert written.convert("RGBA").tobytes() == image.tobytes()


def test_write_jpeg_produces_rgb_file(tmp_path):
    plan, _ = make_plan(tmp_path, format="jpeg")
    target = tmp_path / "tile.jpg"
    write_encoded_image(target, Image.new("RGBA", (4, 4), (50, 60, 70, 255)), plan)
    with Image.open(target) as written:
        assert written.format == "JPEG"
        assert written.size == (4, 4)


def test_backend_writes_every_planned_tile(tmp_path):
    plan, source = make_plan(tmp_path, max_level=1)
    backend = ImageBackend(source)
    assert backend.source_info().width == 8
    out = tmp_path / "out"
    backend.write_tiles(plan, out, False, 2)
    written = {p.relative_to(out).as_posix() for p in out.rglob("*.png")}
    expected = {tile.out_rel_path for level in plan.levels for tile in level.tiles}
    assert written == expected
    tile = next(t for t in plan.levels[0].tiles if (t.coord.x, t.coord.y) == (1, 1))
    with Image.open(out / tile.out_rel_path) as written_tile:
        assert written_tile.convert("RGBA").getpixel((0, 0)) == gradient(8, 8).getpixel((4, 4))


def test_backend_skip_existing_leaves_file_alone(tmp_path):
    plan, source = make_plan(tmp_path)
    out = tmp_path / "out"
    existing = out / plan.levels[0].tiles[0].out_rel_path
    existing.parent.mkdir(parents=True)
    existing.write_bytes(b"keep")
    ImageBackend(source).write_tiles(plan, out, True, 1)
    assert existing.read_bytes() == b"keep"
    assert (out / plan.levels[0].tiles[-1].out_rel_path).exists()


def test_backend_overview_limits_longest_edge(tmp_path):
    _, source = make_plan(tmp_path, image=gradient(64, 32))
    target = tmp_path / "preview" / "overview.png"
    ImageBackend(source).generate_overview(16, target)
    with Image.open(target) as overview:
        assert max(overview.size) == 16
        assert overview.size[0] == 2 * overview.size[1]


def test_backend_rejects_non_image(tmp_path):
    note = tmp_path / "note.txt"
    note.write_text("hello")
    with pytest.raises(errors.CliError) as info:
        ImageBackend(note)
    assert info.value.summary.startswith("Input is not a supported image file")