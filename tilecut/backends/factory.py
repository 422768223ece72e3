"""Opening the backend chosen for a build."""

from __future__ import annotations

from pathlib import Path

from tilecut import errors
from tilecut.backends.base import ResolvedBackendKind, TileBackend, backend_support
from tilecut.backends.image import ImageBackend
from tilecut.backends.vips import VipsBackend


def open_backend(kind: ResolvedBackendKind, input_path: str | Path) -> TileBackend:
    """Open the input with the given backend; raises CliError if vips is unavailable."""
    kind = ResolvedBackendKind(kind)
    if kind is ResolvedBackendKind.IMAGE:
        return ImageBackend(input_path)
    if not backend_support().vips_feature_enabled:
        raise errors.vips_feature_disabled()
    return VipsBackend(input_path)