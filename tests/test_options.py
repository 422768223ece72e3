from pathlib import Path

import pytest

from tilecut.options import (
    BackendKind,
    CutArgs,
    EdgeMode,
    InspectArgs,
    LayoutMode,
    ManifestMode,
    OutputFormat,
    StitchArgs,
    TileIndexMode,
    TileSizing,
    ValidateArgs,
    YAxis,
    parse_point2,
    parse_positive_float,
    parse_positive_int,
    parse_rgba_color,
)


def test_output_format_extensions():
    assert OutputFormat.PNG.extension() == "png"
    assert OutputFormat.JPEG.extension() == "jpg"
    assert OutputFormat.WEBP.extension() == "webp"


def test_enum_values_round_trip_from_text():
    for enum in (EdgeMode, OutputFormat, LayoutMode, ManifestMode, TileIndexMode, BackendKind, YAxis):
        for member in enum:
            assert enum(str(member)) is member


def test_enum_serialized_names():
    assert EdgeMode("pad") is EdgeMode.PAD
    assert TileIndexMode("ndjson") is TileIndexMode.NDJSON
    assert BackendKind("auto") is BackendKind.AUTO
    args = CutArgs(input="map.png", out="out", edge="skip", tile_index="ndjson", backend="image")
    assert (args.edge.value, args.tile_index.value, args.backend.value) == ("skip", "ndjson", "image")


def test_tile_sizing_defaults_to_256():
    sizing = TileSizing()
    assert (sizing.width(), sizing.height()) == (256, 256)


def test_tile_sizing_shared_and_override():
    sizing = TileSizing(tile_size=128, tile_width=64)
    assert sizing.width() == 64
    assert sizing.height() == 128


def test_cut_args_defaults_and_coercion():
    args = CutArgs(input="map.png", out="out", format="jpeg", edge="crop")
    assert args.input == Path("map.png")
    assert args.out == Path("out")
    assert args.format is OutputFormat.JPEG
    assert args.edge is EdgeMode.CROP
    assert args.quality == 90
    assert args.max_in_memory_mib == 2048
    assert args.manifest is ManifestMode.COMPACT
    assert args.tile_index is TileIndexMode.NONE
    assert args.backend is BackendKind.AUTO
    assert args.y_axis is YAxis.DOWN
    assert args.pad_color == (0, 0, 0, 0)


def test_cut_args_rejects_unknown_enum_text():
    with pytest.raises(ValueError):
        CutArgs(input="map.png", out="out", layout="spiral")


def test_other_args_coerce_paths():
    assert InspectArgs(input="a.png").input == Path("a.png")
    stitch = StitchArgs(manifest="m.json", out="v.png")
    assert (stitch.manifest, stitch.out, stitch.level) == (Path("m.json"), Path("v.png"), 0)
    assert ValidateArgs(manifest="m.json").json is False


def test_parse_rgba_color_trims_parts():
    assert parse_rgba_color("1, 2 ,3,4") == (1, 2, 3, 4)


@pytest.mark.parametrize("text", ["1,2,3", "1,2,3,4,5", "256,0,0,0", "a,b,c,d", "", "-1,0,0,0"])
def test_parse_rgba_color_rejects_bad_input(text):
    with pytest.raises(ValueError):
        parse_rgba_color(text)


def test_parse_rgba_color_count_message():
    with pytest.raises(ValueError, match="expected four comma-separated u8 values"):
        parse_rgba_color("1,2,3")


def test_parse_point2_accepts_negative_values():
    assert parse_point2("-10,20") == (-10.0, 20.0)
    assert parse_point2(" 0.5 , -1e2 ") == (0.5, -100.0)


@pytest.mark.parametrize("text", ["1", "1,2,3", "x,1", ""])
def test_parse_point2_rejects_bad_input(text):
    with pytest.raises(ValueError):
        parse_point2(text)


def test_parse_positive_int():
    assert parse_positive_int("8") == 8
    with pytest.raises(ValueError, match="expected a positive integer greater than 0"):
        parse_positive_int("0")
    with pytest.raises(ValueError):
        parse_positive_int("-3")


def test_parse_positive_float():
    assert parse_positive_float("0.5") == 0.5
    with pytest.raises(ValueError, match="expected a positive number greater than 0"):
        parse_positive_float("0")
    with pytest.raises(ValueError):
        parse_positive_float("-1.5")
    with pytest.raises(ValueError):
        parse_positive_float("abc")