import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest
from PIL import Image

from tilecut import errors
from tilecut.backends.base import inspect_source
from tilecut.backends.vips import VipsBackend
from tilecut.options import CutArgs, TileSizing
from tilecut.plan import build_cut_plan


def gradient(width, height):
    image = Image.new("RGBA", (width, height))
    for y in range(height):
        for x in range(width):
            image.putpixel((x, y), (x * 17, y * 23, 40, 255))
    return image


class FakeVips:
    """Stands in for the vips command, doing its work with Pillow."""

    def __init__(self, fail=None):
        self.calls = []
        self.fail = fail

    def __call__(self, args, **kwargs):
        self.calls.append(list(args))
        operation = args[1]
        if operation == self.fail:
            return subprocess.CompletedProcess(args, 1)
        if operation == "crop":
            src, dst, x, y, w, h = args[2:]
            x, y, w, h = int(x), int(y), int(w), int(h)
            with Image.open(src) as image:
                image.convert("RGBA").crop((x, y, x + w, y + h)).save(dst)
        elif operation == "resize":
            src, dst, scale = args[2:]
            with Image.open(src) as image:
                size = (round(image.width * float(scale)), round(image.height * float(scale)))
                image.convert("RGBA").resize(size, Image.Resampling.LANCZOS).save(dst)
        return subprocess.CompletedProcess(args, 0)


def make_plan(tmp_path: Path, **options):
    source = tmp_path / "src.png"
    gradient(8, 8).save(source)
    args = CutArgs(input=source, out=tmp_path / "out", tile=TileSizing(tile_size=4), **options)
    return build_cut_plan(args, inspect_source(source)), source


def test_requires_vips_runtime(tmp_path):
    _, source = make_plan(tmp_path)
    with patch("subprocess.run", side_effect=FileNotFoundError("vips")):
        with pytest.raises(errors.CliError) as info:
            VipsBackend(source)
    assert info.value.summary == "The `vips` backend requires a working `vips` installation."


def test_writes_all_levels_through_vips(tmp_path):
    plan, source = make_plan(tmp_path, max_level=1)
    fake = FakeVips()
    out = tmp_path / "out"
    with patch("subprocess.run", side_effect=fake):
        backend = VipsBackend(source)
        backend.write_tiles(plan, out, False, 2)
    assert backend.source_info().height == 8
    written = {p.relative_to(out).as_posix() for p in out.rglob("*.png")}
    assert written == {tile.out_rel_path for level in plan.levels for tile in level.tiles}
    assert any(call[1] == "resize" and call[-1] == "0.5" for call in fake.calls)
    with Image.open(out / plan.levels[0].tiles[0].out_rel_path) as tile:
        assert tile.convert("RGBA").getpixel((1, 2)) == gradient(8, 8).getpixel((1, 2))


def test_crop_failure_is_reported(tmp_path):
    plan, source = make_plan(tmp_path)
    with patch("subprocess.run", side_effect=FakeVips(fail="crop")):
        backend = VipsBackend(source)
        with pytest.raises(RuntimeError, match="`vips crop` failed for level 0"):
            backend.write_tiles(plan, tmp_path / "out", False, 1)


def test_skip_existing_does_not_call_crop(tmp_path):
    plan, source = make_plan(tmp_path)
    out = tmp_path / "out"
    for tile in plan.levels[0].tiles:
        (out / tile.out_rel_path).parent.mkdir(parents=True, exist_ok=True)
        (out / tile.out_rel_path).write_bytes(b"keep")
    fake = FakeVips()
    with patch("subprocess.run", side_effect=fake):
        backend = VipsBackend(source)
        backend.write_tiles(plan, out, True, 1)
    assert backend.source_info().width == 8
    assert [call for call in fake.calls if call[1] == "crop"] == []
    contents = {(out / tile.out_rel_path).read_bytes() for tile in plan.levels[0].tiles}
    assert contents == {b"keep"}


def test_overview_uses_decoded_source(tmp_path):
    _, source = make_plan(tmp_path)
    with patch("subprocess.run", side_effect=FakeVips()):
        backend = VipsBackend(source)
    target = tmp_path / "preview" / "overview.png"
    backend.generate_overview(4, target)
    with Image.open(target) as overview:
        assert max(overview.size) == 4