import pytest
from PIL import Image

from tilecut.overview import (
    generate_overview_with_pillow,
    resize_rgba_for_overview,
    resize_rgba_to_dimensions,
)


def gradient(width, height):
    image = Image.new("RGBA", (width, height))
    image.putdata(
        [(x * 7 % 256, y * 11 % 256, 40, 255) for y in range(height) for x in range(width)]
    )
    return image


def test_same_size_returns_identical_pixels():
    image = gradient(8, 8)
    result = resize_rgba_to_dimensions(image, 8, 8)
    assert result.size == (8, 8)
    assert list(result.getdata()) == list(image.getdata())
    assert result is not image


def test_resize_to_requested_dimensions():
    result = resize_rgba_to_dimensions(gradient(8, 8), 4, 4)
    assert result.size == (4, 4)
    assert result.mode == "RGBA"


def test_resize_keeps_aspect_ratio_within_bounds():
    result = resize_rgba_to_dimensions(gradient(40, 20), 10, 10)
    width, height = result.size
    assert width <= 10 and height <= 10
    assert width == 2 * height


def test_uniform_color_survives_resize():
    color = (10, 20, 30, 255)
    image = Image.new("RGBA", (16, 16), color)
    result = resize_rgba_to_dimensions(image, 5, 5)
    for pixel in result.getdata():
        assert all(abs(a - b) <= 1 for a, b in zip(pixel, color))


def test_overview_zero_edge_keeps_size():
    assert resize_rgba_for_overview(gradient(30, 20), 0).size == (30, 20)


def test_overview_small_image_keeps_size():
    assert resize_rgba_for_overview(gradient(30, 20), 64).size == (30, 20)


def test_overview_shrinks_longest_edge():
    result = resize_rgba_for_overview(gradient(64, 32), 16)
    assert max(result.size) == 16
    assert result.size[0] == 2 * result.size[1]


def test_generate_overview_writes_png(tmp_path):
    source = tmp_path / "map.png"
    gradient(100, 50).save(source)
    out = tmp_path / "preview" / "overview.png"
    generate_overview_with_pillow(source, 20, out)
    with Image.open(out) as written:
        assert written.format == "PNG"
        assert max(written.size) == 20


def test_generate_overview_missing_input(tmp_path):
    with pytest.raises(OSError, match="failed to decode image"):
        generate_overview_with_pillow(tmp_path / "missing.png", 20, tmp_path / "o.png")


def test_generate_overview_rejects_non_image(tmp_path):
    source = tmp_path / "note.txt"
    source.write_text("hello")
    with pytest.raises(OSError, match="failed to decode image"):
        generate_overview_with_pillow(source, 20, tmp_path / "o.png")