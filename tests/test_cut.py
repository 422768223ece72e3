import json
from pathlib import Path

import pytest
from PIL import Image

from tilecut import errors
from tilecut.backends.base import VIPS_FEATURE_ENV
from tilecut.commands.cut import run
from tilecut.options import CutArgs, TileSizing


def gradient(path: Path, width=8, height=8):
    image = Image.new("RGBA", (width, height))
    for y in range(height):
        for x in range(width):
            image.putpixel((x, y), (x * 17, y * 23, 40, 255))
    image.save(path)
    return path


def read_json(path: Path):
    return json.loads(path.read_text())


def read_pixel(path: Path, xy):
    with Image.open(path) as image:
        return image.convert("RGBA").getpixel(xy)


def test_compact_manifest_with_padded_edges(tmp_path):
    source = tmp_path / "compact.png"
    image = Image.new("RGBA", (513, 513), (0, 0, 0, 0))
    image.putpixel((512, 512), (10, 20, 30, 255))
    image.save(source)
    out = tmp_path / "out"
    run(
        CutArgs(
            input=source,
            out=out,
            tile=TileSizing(tile_size=256),
            overview=128,
            world_origin=(-10.0, 20.0),
            units_per_pixel=0.5,
        )
    )
    manifest = read_json(out / "manifest.json")
    assert manifest["grid"]["cols"] == 3
    assert manifest["grid"]["rows"] == 3
    assert manifest["stats"]["tile_count"] == 9
    assert manifest["stats"]["skipped_count"] == 0
    assert manifest["world"]["origin"][0] == -10.0
    assert "tiles" not in manifest

    edge = out / "tiles/x0002_y0002.png"
    with Image.open(edge) as tile:
        assert tile.size == (256, 256)
    assert read_pixel(edge, (0, 0)) == (10, 20, 30, 255)
    assert read_pixel(edge, (1, 1)) == (0, 0, 0, 0)
    assert (out / "preview/overview.png").exists()
    assert read_json(out / ".tilecut/state.json")["complete"] is True
    assert not list(tmp_path.glob(".tilecut-tmp-*"))


def test_multi_level_manifest_and_ndjson(tmp_path):
    source = gradient(tmp_path / "pyramid.png")
    out = tmp_path / "out"
    run(
        CutArgs(
            input=source, out=out, tile=TileSizing(tile_size=4), max_level=1, tile_index="ndjson"
        )
    )
    manifest = read_json(out / "manifest.json")
    assert manifest["schema_version"] == "2.0.0"
    assert len(manifest["levels"]) == 2
    assert manifest["levels"][0]["tile_count"] == 4
    assert manifest["levels"][1]["tile_count"] == 1
    assert manifest["stats"]["total_slots"] == 5
    assert manifest["naming"]["path_template"] == "tiles/l{level}/x{x}_y{y}.png"
    assert (out / "tiles/l0000/x0000_y0000.png").exists()
    assert (out / "tiles/l0001/x0000_y0000.png").exists()
    ndjson = (out / "tiles.ndjson").read_text()
    assert any('"level":1' in line for line in ndjson.splitlines())


def test_multi_level_sharded_paths(tmp_path):
    source = gradient(tmp_path / "sharded.png")
    out = tmp_path / "out"
    run(CutArgs(input=source, out=out, tile=TileSizing(tile_size=4), max_level=1, layout="sharded"))
    assert (out / "tiles/l0000/y0000/x0000.png").exists()
    assert (out / "tiles/l0001/y0000/x0000.png").exists()


def test_full_manifest_and_ndjson_for_skip_empty(tmp_path):
    source = tmp_path / "sparse.png"
    image = Image.new("RGBA", (513, 513), (0, 0, 0, 0))
    image.paste((255, 255, 255, 255), (0, 0, 16, 16))
    image.save(source)
    out = tmp_path / "out"
    run(
        CutArgs(
            input=source,
            out=out,
            tile=TileSizing(tile_size=256),
            manifest="full",
            tile_index="ndjson",
            skip_empty=True,
        )
    )
    manifest = read_json(out / "manifest.json")
    assert manifest["stats"]["tile_count"] == 1
    assert manifest["stats"]["skipped_count"] == 8
    assert len(manifest["tiles"]) == 9
    assert manifest["index"]["path"] == "tiles.ndjson"
    assert not (out / "tiles/x0002_y0002.png").exists()
    lines = (out / "tiles.ndjson").read_text().splitlines()
    assert len(lines) == 1
    entry = json.loads(lines[0])
    assert (entry["x"], entry["y"]) == (0, 0)


def test_resume_rebuilds_missing_tiles(tmp_path):
    source = tmp_path / "resume.png"
    Image.new("RGBA", (512, 512), (0, 255, 0, 255)).save(source)
    out = tmp_path / "out"
    run(CutArgs(input=source, out=out, tile=TileSizing(tile_size=256)))
    (out / "tiles/x0001_y0001.png").unlink()
    (out / "manifest.json").unlink()
    run(CutArgs(input=source, out=out, tile=TileSizing(tile_size=256), resume=True))
    assert (out / "tiles/x0001_y0001.png").exists()
    assert read_json(out / "manifest.json")["stats"]["tile_count"] == 4


def test_resume_rejects_changed_settings(tmp_path):
    source = gradient(tmp_path / "src.png")
    out = tmp_path / "out"
    run(CutArgs(input=source, out=out, tile=TileSizing(tile_size=4)))
    with pytest.raises(errors.CliError) as info:
        run(CutArgs(input=source, out=out, tile=TileSizing(tile_size=2), resume=True))
    assert info.value.summary == "Stored resume metadata does not match the requested build."


def test_existing_output_checked_before_input(tmp_path):
    out = tmp_path / "out"
    out.mkdir()
    with pytest.raises(errors.CliError) as info:
        run(CutArgs(input=tmp_path / "does-not-exist.png", out=out))
    rendered = info.value.render()
    assert "Output directory already exists" in rendered
    assert "--overwrite" in rendered and "--resume" in rendered
    assert "does-not-exist.png" not in rendered


def test_resume_requires_existing_output(tmp_path):
    with pytest.raises(errors.CliError) as info:
        run(CutArgs(input=tmp_path / "does-not-exist.png", out=tmp_path / "missing", resume=True))
    assert info.value.summary.startswith("Resume requires an existing output directory")
    assert "does-not-exist.png" not in info.value.render()


def test_missing_input_is_reported(tmp_path):
    with pytest.raises(errors.CliError) as info:
        run(CutArgs(input=tmp_path / "does-not-exist.png", out=tmp_path / "out"))
    assert info.value.summary.startswith("Input file was not found")


def test_jpeg_requires_opaque_tiles(tmp_path):
    source = tmp_path / "alpha.png"
    image = Image.new("RGBA", (32, 32), (255, 0, 0, 255))
    image.putpixel((0, 0), (255, 0, 0, 0))
    image.save(source)
    with pytest.raises(errors.CliError) as info:
        run(CutArgs(input=source, out=tmp_path / "out", tile=TileSizing(tile_size=16), format="jpeg"))
    assert info.value.summary == "JPEG output requires opaque tiles."


def test_jpeg_with_flatten_alpha_succeeds(tmp_path):
    source = tmp_path / "alpha.png"
    image = Image.new("RGBA", (32, 32), (255, 0, 0, 255))
    image.putpixel((0, 0), (255, 0, 0, 0))
    image.save(source)
    out = tmp_path / "out"
    run(
        CutArgs(
            input=source,
            out=out,
            tile=TileSizing(tile_size=16),
            format="jpeg",
            flatten_alpha=(0, 0, 0, 255),
        )
    )
    assert read_json(out / "manifest.json")["tile"]["flatten_alpha"] == [0, 0, 0, 255]
    assert (out / "tiles/x0001_y0001.jpg").exists()


def test_vips_backend_without_feature(tmp_path, monkeypatch):
    monkeypatch.delenv(VIPS_FEATURE_ENV, raising=False)
    source = gradient(tmp_path / "vips.png")
    with pytest.raises(RuntimeError) as info:
        run(CutArgs(input=source, out=tmp_path / "out", backend="vips"))
    rendered = errors.render_error(info.value)
    assert "The `vips` backend is not available in this build." in rendered
    assert "--features vips" in rendered


def test_dry_run_writes_nothing(tmp_path, capsys):
    source = gradient(tmp_path / "dry.png")
    out = tmp_path / "out"
    run(CutArgs(input=source, out=out, tile=TileSizing(tile_size=4), max_level=1, dry_run=True))
    printed = capsys.readouterr().out
    assert "Tiles: 5" in printed
    assert "Backend: Image" in printed
    assert not out.exists()


def test_overwrite_replaces_existing_output(tmp_path):
    source = gradient(tmp_path / "src.png")
    out = tmp_path / "out"
    out.mkdir()
    (out / "stale.txt").write_text("old")
    run(CutArgs(input=source, out=out, tile=TileSizing(tile_size=4), overwrite=True))
    assert not (out / "stale.txt").exists()
    assert read_json(out / "manifest.json")["stats"]["total_slots"] == 4