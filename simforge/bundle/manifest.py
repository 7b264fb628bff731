"""Bundle manifest (Info.plist) queries."""

import logging
from pathlib import Path
from typing import Optional

from simforge.exceptions import ManifestError
from simforge.executor import ProcessRunner

logger = logging.getLogger(__name__)

BUNDLE_IDENTIFIER_KEY = "CFBundleIdentifier"


def read_manifest_value(
    bundle_path: Path,
    key: str,
    runner: Optional[ProcessRunner] = None,
    plistbuddy_path: str = "/usr/libexec/PlistBuddy",
) -> str:
    """
    Read a string key from a bundle's Info.plist via PlistBuddy.

    Raises:
        ManifestError: Info.plist is missing, the key is absent or empty.
    """
    runner = runner or ProcessRunner()
    manifest = bundle_path / "Info.plist"
    if not manifest.exists():
        raise ManifestError(f"No Info.plist in {bundle_path.name}", manifest)

    result = runner.run(plistbuddy_path, ["-c", f"Print :{key}", manifest])
    value = result.text.strip()
    if not result.success or not value:
        raise ManifestError(
            f"Failed to read {key} from {bundle_path.name}: {result.error_text or 'empty value'}",
            manifest,
        )
    return value


def read_bundle_identifier(
    bundle_path: Path,
    runner: Optional[ProcessRunner] = None,
    plistbuddy_path: str = "/usr/libexec/PlistBuddy",
) -> str:
    """Return the CFBundleIdentifier of a bundle."""
    return read_manifest_value(bundle_path, BUNDLE_IDENTIFIER_KEY, runner, plistbuddy_path)
