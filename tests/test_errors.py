from dataclasses import dataclass, field
from pathlib import Path

from tilecut import errors
from tilecut.errors import CliError, render_error


@dataclass
class _Report:
    manifest_path: Path
    errors: list = field(default_factory=list)


def test_str_is_summary():
    err = CliError("boom", ["fix it"], "why")
    assert str(err) == "boom"
    assert err.suggestions == ("fix it",)


def test_render_without_suggestions_or_detail():
    assert CliError("boom").render() == "Error: boom"


def test_render_layout_with_single_line_detail():
    text = CliError("boom", ["first", "second"], "why").render()
    lines = text.split("\n")
    assert lines[0] == "Error: boom"
    assert "\n\nTry:\n  - first\n  - second" in text
    assert text.endswith("\n\nDetails: why")


def test_render_multi_line_detail_is_indented():
    text = CliError("boom", [], "a\nb\n").render()
    assert text.endswith("Details:\n  a\n  b")
    assert "Try:" not in text


def test_render_skips_empty_detail():
    assert "Details" not in CliError("boom", ["x"], "").render()


def test_input_not_found_mentions_path_and_supported_image():
    text = errors.input_not_found(Path("does-not-exist.png"), "no such file").render()
    assert "Error: Input file was not found" in text
    assert "does-not-exist.png" in text
    assert "Try:" in text
    assert "supported image" in text


def test_output_directory_exists_suggests_flags():
    text = errors.output_directory_exists(Path("out")).render()
    assert "Output directory already exists" in text
    assert "--overwrite" in text
    assert "--resume" in text


def test_jpeg_transparency_suggestions():
    text = errors.jpeg_transparency().render()
    assert "JPEG output requires opaque tiles." in text
    assert "--flatten-alpha" in text
    assert "--format png" in text


def test_vips_feature_disabled_message():
    text = errors.vips_feature_disabled().render()
    assert "The `vips` backend is not available in this build." in text
    assert "--features vips" in text


def test_stitch_level_missing_includes_level():
    err = errors.stitch_level_missing(7)
    assert str(err).endswith(": 7")


def test_validation_failed_lists_issues():
    report = _Report(Path("out/manifest.json"), ["missing tile file", "bad scale"])
    err = errors.validation_failed(report)
    assert "Manifest validation failed" in str(err)
    assert err.detail.split("\n") == ["- missing tile file", "- bad scale"]
    assert "Re-run `tilecut cut` with `--overwrite`" in err.render()


def test_render_error_finds_cli_error_in_chain():
    inner = errors.resume_plan_mismatch()
    try:
        try:
            raise inner
        except CliError as exc:
            raise RuntimeError("failed to select backend") from exc
    except RuntimeError as outer:
        assert render_error(outer) == inner.render()


def test_render_error_wraps_plain_exceptions():
    try:
        try:
            raise OSError("disk full")
        except OSError as exc:
            raise RuntimeError("failed to write") from exc
    except RuntimeError as outer:
        text = render_error(outer)
    assert text.startswith("Error: TileCut failed to complete the command.")
    assert "failed to write" in text
    assert "disk full" in text
    assert text.index("failed to write") < text.index("disk full")


def test_detail_factories_keep_detail():
    for factory in (
        errors.input_unreadable,
        errors.unsupported_image,
        errors.resume_state_missing,
        errors.stitch_tile_decode_failed,
        errors.manifest_read_failed,
        errors.manifest_parse_failed,
        errors.tile_index_parse_failed,
    ):
        err = factory(Path("x.png"), "cause")
        assert err.detail == "cause"
        assert len(err.suggestions) == 2