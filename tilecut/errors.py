"""User-facing errors with suggestions and rendering."""

from __future__ import annotations

from collections.abc import Iterable
from os import PathLike
from typing import Any


class CliError(Exception):
    """An error with a summary, suggested fixes and optional detail."""

    def __init__(
        self,
        summary: str,
        suggestions: Iterable[str] = (),
        detail: str | None = None,
    ) -> None:
        super().__init__(summary)
        self.summary = summary
        self.suggestions = tuple(suggestions)
        self.detail = detail

    def __str__(self) -> str:
        return self.summary

    def render(self) -> str:
        """Multi-line text shown to the user."""
        parts = [f"Error: {self.summary}"]
        if self.suggestions:
            parts.append("\n\nTry:")
            parts.extend(f"\n  - {suggestion}" for suggestion in self.suggestions)
        if self.detail is not None:
            if "\n" in self.detail:
                parts.append("\n\nDetails:")
                parts.extend(f"\n  {line}" for line in _lines(self.detail))
            elif self.detail:
                parts.append(f"\n\nDetails: {self.detail}")
        return "".join(parts)


def _lines(text: str) -> list[str]:
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def _chain(error: BaseException):
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        if current.__cause__ is not None:
            current = current.__cause__
        elif not current.__suppress_context__:
            current = current.__context__
        else:
            current = None


def render_error(error: BaseException) -> str:
    """Render any exception, preferring a CliError found in its chain."""
    causes = list(_chain(error))
    for cause in causes:
        if isinstance(cause, CliError):
            return cause.render()
    details = "\n".join(str(cause) for cause in causes)
    return generic(details).render()


def _show(path: str | PathLike[str]) -> str:
    return str(path)


def input_not_found(path, detail: str) -> CliError:
    return CliError(
        f"Input file was not found: {_show(path)}",
        [
            f"Check that the path exists and points to an image file: {_show(path)}",
            "Pass a supported image such as .png, .jpg, .jpeg, .webp, or .tiff.",
        ],
        detail,
    )


def input_unreadable(path, detail: str) -> CliError:
    return CliError(
        f"TileCut could not read the input file: {_show(path)}",
        [
            "Check file permissions and verify that the file is accessible.",
            "If the path is correct, try opening the image in another viewer to confirm it is readable.",
        ],
        detail,
    )


def unsupported_image(path, detail: str) -> CliError:
    return CliError(
        f"Input is not a supported image file: {_show(path)}",
        [
            "Pass a `.png`, `.jpg`, `.jpeg`, `.webp`, or `.tiff` image.",
            "If the file is valid but uses an uncommon extension, re-export it to a supported format.",
        ],
        detail,
    )


def output_directory_exists(path) -> CliError:
    return CliError(
        f"Output directory already exists: {_show(path)}",
        [
            "Use `--overwrite` to rebuild the directory from scratch.",
            "Use `--resume` if you want to keep existing tiles and rebuild only missing files.",
        ],
    )


def resume_output_missing(path) -> CliError:
    return CliError(
        f"Resume requires an existing output directory: {_show(path)}",
        [
            "Run the same command without `--resume` to create the output directory.",
            "If you expected an existing build, check that the output path is correct.",
        ],
    )


def resume_state_missing(path, detail: str) -> CliError:
    return CliError(
        "Resume metadata is missing or unreadable.",
        [
            f"Check that `{_show(path)}` exists and is readable.",
            "If the previous build directory is incomplete, rebuild with `--overwrite`.",
        ],
        detail,
    )


def resume_plan_mismatch() -> CliError:
    return CliError(
        "Stored resume metadata does not match the requested build.",
        [
            "Re-run with the same input and tile settings that created the existing output.",
            "If you changed build options, use `--overwrite` to start a fresh output.",
        ],
    )


def vips_feature_disabled() -> CliError:
    return CliError(
        "The `vips` backend is not available in this build.",
        [
            "Rebuild TileCut with `--features vips`.",
            "Or switch to `--backend image` / `--backend auto` for the built-in path.",
        ],
    )


def vips_runtime_missing() -> CliError:
    return CliError(
        "The `vips` backend requires a working `vips` installation.",
        [
            "Install `vips` / `libvips` and make sure the `vips` binary is on PATH.",
            "If you cannot install it, use `--backend image` or raise the memory budget for `auto`.",
        ],
    )


def jpeg_transparency() -> CliError:
    return CliError(
        "JPEG output requires opaque tiles.",
        [
            "Switch to `--format png` if you need alpha support.",
            "Or add `--flatten-alpha R,G,B,A` to choose a background color before encoding JPEG.",
        ],
    )


def stitch_output_must_be_png(path) -> CliError:
    return CliError(
        f"Stitch output must use a `.png` file extension: {_show(path)}",
        [
            "Change the output path to end with `.png`.",
            "For example: `tilecut stitch build/minimap/manifest.json --out verify.png`.",
        ],
    )


def stitch_level_missing(level: int) -> CliError:
    return CliError(
        f"Requested stitch level does not exist in the manifest: {level}",
        [
            "Check the manifest `levels` list and pick one of the available level numbers.",
            "If you need more zoom levels, rebuild with a higher `--max-level`.",
        ],
    )


def stitch_tile_missing(path) -> CliError:
    return CliError(
        f"A required tile file is missing for stitch: {_show(path)}",
        [
            "Re-run `tilecut validate` to inspect the output directory.",
            "Rebuild the tileset with `tilecut cut --overwrite` if files were deleted.",
        ],
    )


def stitch_tile_decode_failed(path, detail: str) -> CliError:
    return CliError(
        f"TileCut could not decode a stitched tile: {_show(path)}",
        [
            "Validate the tileset to find damaged files.",
            "Rebuild the tileset if the tile file is corrupted.",
        ],
        detail,
    )


def manifest_read_failed(path, detail: str) -> CliError:
    return CliError(
        f"TileCut could not read the manifest: {_show(path)}",
        [
            "Check that the manifest path exists and is readable.",
            "If the output directory was partially deleted, rebuild it before validating.",
        ],
        detail,
    )


def manifest_parse_failed(path, detail: str) -> CliError:
    return CliError(
        f"Manifest is not valid JSON: {_show(path)}",
        [
            "Check whether the manifest file was edited or truncated.",
            "If the file came from TileCut, rebuild the output and validate again.",
        ],
        detail,
    )


def tile_index_parse_failed(path, detail: str) -> CliError:
    return CliError(
        f"Tile index could not be parsed: {_show(path)}",
        [
            "Check whether `tiles.ndjson` was truncated or manually edited.",
            "Rebuild the tileset so TileCut can regenerate the index.",
        ],
        detail,
    )


def validation_failed(report: Any) -> CliError:
    """Error for a failed validation report (needs ``errors`` and ``manifest_path``)."""
    detail = "\n".join(f"- {issue}" for issue in report.errors)
    return CliError(
        f"Manifest validation failed: {_show(report.manifest_path)}",
        [
            "Inspect the listed files and paths to see what is missing or inconsistent.",
            "Re-run `tilecut cut` with `--overwrite` if you want to regenerate the output directory.",
        ],
        detail,
    )


def generic(detail: str) -> CliError:
    return CliError(
        "TileCut failed to complete the command.",
        [
            "Review the command arguments and file paths, then try again.",
            "If the problem persists, capture the command and output for debugging.",
        ],
        detail,
    )