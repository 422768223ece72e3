"""Option types, enumerations and value parsers for the tilecut commands."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

_DEFAULT_TILE_EDGE = 256
_U8_MAX = 255
_USIZE_MAX = 2**64 - 1

_INT_RE = re.compile(r"\+?[0-9]+")
_FLOAT_RE = re.compile(
    r"[+-]?(?:inf|infinity|nan|(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?)",
    re.IGNORECASE,
)


class _Choice(str, Enum):
    """String-valued enumeration whose text form is its value."""

    def __str__(self) -> str:
        return self.value


class EdgeMode(_Choice):
    """How partial tiles at the image edges are handled."""

    PAD = "pad"
    CROP = "crop"
    SKIP = "skip"


class OutputFormat(_Choice):
    """Image format used for generated tiles."""

    PNG = "png"
    JPEG = "jpeg"
    WEBP = "webp"

    def extension(self) -> str:
        """File extension written for this format."""
        return {"png": "png", "jpeg": "jpg", "webp": "webp"}[self.value]


class LayoutMode(_Choice):
    """Directory layout for tile files."""

    FLAT = "flat"
    SHARDED = "sharded"


class ManifestMode(_Choice):
    """Manifest verbosity."""

    COMPACT = "compact"
    FULL = "full"


class TileIndexMode(_Choice):
    """Optional sidecar tile index format."""

    NONE = "none"
    NDJSON = "ndjson"


class BackendKind(_Choice):
    """Requested tile backend."""

    AUTO = "auto"
    IMAGE = "image"
    VIPS = "vips"


class YAxis(_Choice):
    """Direction in which world-space Y grows."""

    DOWN = "down"
    UP = "up"


@dataclass
class TileSizing:
    """Tile size options; explicit width/height override the shared size."""

    tile_size: int | None = None
    tile_width: int | None = None
    tile_height: int | None = None

    def width(self) -> int:
        """Resolved tile width in pixels."""
        for value in (self.tile_width, self.tile_size):
            if value is not None:
                return value
        return _DEFAULT_TILE_EDGE

    def height(self) -> int:
        """Resolved tile height in pixels."""
        for value in (self.tile_height, self.tile_size):
            if value is not None:
                return value
        return _DEFAULT_TILE_EDGE


@dataclass
class InspectArgs:
    """Options of the inspect command."""

    input: Path
    tile: TileSizing = field(default_factory=TileSizing)
    edge: EdgeMode = EdgeMode.PAD
    max_level: int = 0
    max_in_memory_mib: int = 2048
    json: bool = False

    def __post_init__(self) -> None:
        self.input = Path(self.input)
        self.edge = EdgeMode(self.edge)


@dataclass
class CutArgs:
    """Options of the cut command."""

    input: Path
    out: Path
    tile: TileSizing = field(default_factory=TileSizing)
    format: OutputFormat = OutputFormat.PNG
    quality: int = 90
    edge: EdgeMode = EdgeMode.PAD
    pad_color: tuple[int, int, int, int] = (0, 0, 0, 0)
    layout: LayoutMode = LayoutMode.FLAT
    max_level: int = 0
    overview: int | None = None
    flatten_alpha: tuple[int, int, int, int] | None = None
    manifest: ManifestMode = ManifestMode.COMPACT
    tile_index: TileIndexMode = TileIndexMode.NONE
    skip_empty: bool = False
    empty_alpha_threshold: int | None = None
    world_origin: tuple[float, float] | None = None
    units_per_pixel: float | None = None
    y_axis: YAxis = YAxis.DOWN
    overwrite: bool = False
    resume: bool = False
    backend: BackendKind = BackendKind.AUTO
    threads: int | None = None
    max_in_memory_mib: int = 2048
    dry_run: bool = False

    def __post_init__(self) -> None:
        self.input = Path(self.input)
        self.out = Path(self.out)
        self.format = OutputFormat(self.format)
        self.edge = EdgeMode(self.edge)
        self.layout = LayoutMode(self.layout)
        self.manifest = ManifestMode(self.manifest)
        self.tile_index = TileIndexMode(self.tile_index)
        self.y_axis = YAxis(self.y_axis)
        self.backend = BackendKind(self.backend)
        self.pad_color = tuple(self.pad_color)
        if self.flatten_alpha is not None:
            self.flatten_alpha = tuple(self.flatten_alpha)
        if self.world_origin is not None:
            self.world_origin = tuple(self.world_origin)


@dataclass
class StitchArgs:
    """Options of the stitch command."""

    manifest: Path
    out: Path
    level: int = 0

    def __post_init__(self) -> None:
        self.manifest = Path(self.manifest)
        self.out = Path(self.out)


@dataclass
class ValidateArgs:
    """Options of the validate command."""

    manifest: Path
    json: bool = False

    def __post_init__(self) -> None:
        self.manifest = Path(self.manifest)


def _parse_unsigned(text: str, limit: int) -> int:
    if text == "":
        raise ValueError("cannot parse integer from empty string")
    if not _INT_RE.fullmatch(text):
        raise ValueError("invalid digit found in string")
    value = int(text)
    if value > limit:
        raise ValueError("number too large to fit in target type")
    return value


def _parse_float(text: str) -> float:
    if text == "":
        raise ValueError("cannot parse float from empty string")
    if not _FLOAT_RE.fullmatch(text):
        raise ValueError("invalid float literal")
    return float(text)


def parse_rgba_color(text: str) -> tuple[int, int, int, int]:
    """Parse ``R,G,B,A`` with each channel in 0..=255."""
    parts = [_parse_unsigned(part.strip(), _U8_MAX) for part in text.split(",")]
    if len(parts) != 4:
        raise ValueError("expected four comma-separated u8 values")
    return (parts[0], parts[1], parts[2], parts[3])


def parse_point2(text: str) -> tuple[float, float]:
    """Parse ``X,Y`` as two floating-point numbers."""
    parts = [_parse_float(part.strip()) for part in text.split(",")]
    if len(parts) != 2:
        raise ValueError("expected two comma-separated numeric values")
    return (parts[0], parts[1])


def parse_positive_int(text: str) -> int:
    """Parse an integer greater than zero."""
    value = _parse_unsigned(text, _USIZE_MAX)
    if value == 0:
        raise ValueError("expected a positive integer greater than 0")
    return value


def parse_positive_float(text: str) -> float:
    """Parse a number greater than zero."""
    value = _parse_float(text)
    if value <= 0.0:
        raise ValueError("expected a positive number greater than 0")
    return value