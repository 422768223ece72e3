"""Backend interface, source inspection and backend selection."""

from __future__ import annotations

import abc
import os
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from PIL import Image

from tilecut import errors
from tilecut.options import BackendKind
from tilecut.plan import CutPlan, SourceInfo, compute_sha256, estimated_rgba_bytes

VIPS_FEATURE_ENV = "TILECUT_ENABLE_VIPS"

_MIB = 1024 * 1024
_ENABLED_VALUES = {"1", "true", "yes", "on"}

# Decodable formats and the extension recorded for each.
_FORMAT_EXTENSIONS = {
    "PNG": "png",
    "JPEG": "jpg",
    "MPO": "jpg",
    "WEBP": "webp",
    "TIFF": "tiff",
}


class TileBackend(abc.ABC):
    """Something that can write the tiles and overview of a cut plan."""

    @abc.abstractmethod
    def source_info(self) -> SourceInfo:
        """Facts about the opened source image."""

    @abc.abstractmethod
    def write_tiles(
        self, plan: CutPlan, output_root: Path, skip_existing: bool, threads: int
    ) -> None:
        """Write every planned tile below ``output_root``."""

    @abc.abstractmethod
    def generate_overview(self, max_edge: int, out_path: Path) -> None:
        """Write a PNG preview whose longest edge is at most ``max_edge``."""


@dataclass(frozen=True)
class BackendSupport:
    """Whether the vips backend is enabled and runnable."""

    vips_feature_enabled: bool
    vips_runtime_available: bool


class ResolvedBackendKind(str, Enum):
    """Backend actually used for a build."""

    IMAGE = "image"
    VIPS = "vips"

    def __str__(self) -> str:
        return self.value


def inspect_source(path: str | Path) -> SourceInfo:
    """Read size, format and checksum of an input image; raises CliError on failure."""
    path = Path(path)
    try:
        stat = path.stat()
    except FileNotFoundError as err:
        raise errors.input_not_found(path, str(err)) from err
    except OSError as err:
        raise errors.input_unreadable(path, str(err)) from err

    try:
        handle = open(path, "rb")
    except OSError as err:
        raise errors.input_unreadable(path, str(err)) from err
    with handle:
        try:
            with Image.open(handle) as image:
                pil_format = image.format or ""
                width, height = image.size
        except Exception as err:  # Pillow raises a variety of decode errors
            raise errors.unsupported_image(path, str(err)) from err

    extension = _FORMAT_EXTENSIONS.get(pil_format.upper())
    if extension is None:
        raise errors.unsupported_image(
            path, f"the image format {pil_format or 'unknown'} is not supported"
        )

    try:
        sha256 = compute_sha256(path)
    except OSError as err:
        raise errors.input_unreadable(path, str(err)) from err

    return SourceInfo(
        path=str(path),
        width=width,
        height=height,
        format=extension,
        file_size=stat.st_size,
        modified_unix_secs=max(int(stat.st_mtime), 0),
        sha256=sha256,
    )


def _vips_feature_enabled() -> bool:
    return os.environ.get(VIPS_FEATURE_ENV, "").strip().lower() in _ENABLED_VALUES


def vips_runtime_available() -> bool:
    """True if ``vips --version`` runs successfully."""
    try:
        result = subprocess.run(["vips", "--version"], capture_output=True, check=False)
    except OSError:
        return False
    return result.returncode == 0


def backend_support() -> BackendSupport:
    """Current vips availability."""
    return BackendSupport(
        vips_feature_enabled=_vips_feature_enabled(),
        vips_runtime_available=vips_runtime_available(),
    )


def resolve_vips_backend() -> ResolvedBackendKind:
    """The vips backend, or a CliError explaining why it cannot be used."""
    if not _vips_feature_enabled():
        raise errors.vips_feature_disabled()
    if not vips_runtime_available():
        raise errors.vips_runtime_missing()
    return ResolvedBackendKind.VIPS


def choose_backend(
    requested: BackendKind, source: SourceInfo, max_in_memory_mib: int
) -> ResolvedBackendKind:
    """Resolve the requested backend; ``auto`` uses the memory budget."""
    requested = BackendKind(requested)
    if requested is BackendKind.IMAGE:
        return ResolvedBackendKind.IMAGE
    if requested is BackendKind.VIPS:
        return resolve_vips_backend()
    estimated = estimated_rgba_bytes(source.width, source.height)
    if estimated <= max_in_memory_mib * _MIB:
        return ResolvedBackendKind.IMAGE
    return resolve_vips_backend()