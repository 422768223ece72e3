"""The validate command: check a manifest and report the result."""

from __future__ import annotations

import json

from tilecut import errors
from tilecut.options import ValidateArgs
from tilecut.validation import validate_manifest_path


def run(args: ValidateArgs) -> None:
    """Validate ``args.manifest``; raises CliError if problems are found."""
    report = validate_manifest_path(args.manifest)
    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    elif report.is_valid():
        print(f"Manifest: {report.manifest_path}")
        print(f"Checked Tiles: {report.checked_tiles}")
        print(f"Missing Tiles: {report.missing_tiles}")
        print("Status: ok")
    if not report.is_valid():
        raise errors.validation_failed(report)