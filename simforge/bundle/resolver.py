"""
Bundle Resolver

Turns a user-supplied package (.app directory or .ipa archive) into a
single .app bundle inside a scratch workspace, ready for conversion
and signing.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from simforge.exceptions import MalformedPackageError, UnsupportedPackageError
from simforge.executor import ProcessRunner

logger = logging.getLogger(__name__)

BUNDLE_SUFFIX = ".app"
ARCHIVE_SUFFIX = ".ipa"
PAYLOAD_DIR = "Payload"
# Present in App Store (FairPlay) encrypted archives
ENCRYPTION_MARKER = "SC_Info"


class PackageKind(Enum):
    """Supported input package formats."""
    ARCHIVE = "ipa"
    BUNDLE = "app"


@dataclass(frozen=True)
class PackageReference:
    """User-supplied package path. Never modified by the pipeline."""

    path: Path
    kind: PackageKind

    @classmethod
    def from_path(cls, path) -> PackageReference:
        """
        Classify a package path by its suffix.

        Raises:
            MalformedPackageError: Path is missing or not a .app/.ipa.
        """
        path = Path(path)
        if not path.exists():
            raise MalformedPackageError(f"Package not found: {path}", path)

        suffix = path.suffix.lower()
        if suffix == BUNDLE_SUFFIX and path.is_dir():
            return cls(path=path, kind=PackageKind.BUNDLE)
        if suffix == ARCHIVE_SUFFIX and path.is_file():
            return cls(path=path, kind=PackageKind.ARCHIVE)

        raise MalformedPackageError(
            f"Unsupported package: {path.name} (expected a .app directory or .ipa file)",
            path,
        )

    @property
    def name(self) -> str:
        return self.path.name


@dataclass
class ResolvedBundle:
    """The one installable bundle produced for a run."""

    path: Path
    bundle_identifier: Optional[str] = None

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def frameworks_dir(self) -> Path:
        return self.path / "Frameworks"

    @property
    def manifest_path(self) -> Path:
        return self.path / "Info.plist"


class BundleResolver:
    """Copies or extracts a package into a workspace."""

    def __init__(self, runner: Optional[ProcessRunner] = None, unzip_path: str = "unzip"):
        self.runner = runner or ProcessRunner()
        self.unzip_path = unzip_path

    def resolve(self, reference: PackageReference, workspace: Path) -> ResolvedBundle:
        """
        Produce the bundle for a package inside the workspace.

        Args:
            reference: Package to resolve.
            workspace: Scratch directory owned by the caller.

        Returns:
            ResolvedBundle located under workspace.

        Raises:
            UnsupportedPackageError: Archive is encrypted.
            MalformedPackageError: Archive does not hold exactly one .app.
        """
        if reference.kind == PackageKind.BUNDLE:
            return self._copy_bundle(reference, workspace)
        return self._extract_archive(reference, workspace)

    def _copy_bundle(self, reference: PackageReference, workspace: Path) -> ResolvedBundle:
        destination = workspace / reference.name
        logger.info("==> Copying %s...", reference.name)
        shutil.copytree(reference.path, destination, symlinks=True)
        return ResolvedBundle(path=destination)

    def _extract_archive(self, reference: PackageReference, workspace: Path) -> ResolvedBundle:
        logger.info("==> Extracting IPA...")
        result = self.runner.run(
            self.unzip_path, ["-q", reference.path, "-d", workspace]
        )
        if not result.success:
            raise MalformedPackageError(
                f"Could not extract {reference.name}: {result.error_text or f'unzip exit {result.return_code}'}",
                reference.path,
            )

        payload = workspace / PAYLOAD_DIR
        marker = self.find_encryption_marker(payload)
        if marker is not None:
            raise UnsupportedPackageError(reference.path, marker)

        if not payload.is_dir():
            raise MalformedPackageError(
                f"No {PAYLOAD_DIR} directory found in {reference.name}", reference.path
            )

        candidates = sorted(
            entry for entry in payload.iterdir()
            if entry.is_dir() and entry.suffix.lower() == BUNDLE_SUFFIX
        )
        if not candidates:
            raise MalformedPackageError(
                f"No .app bundle found in {reference.name}", reference.path
            )
        if len(candidates) > 1:
            names = [c.name for c in candidates]
            raise MalformedPackageError(
                f"Ambiguous package {reference.name}: found {len(names)} .app bundles ({', '.join(names)})",
                reference.path,
                names,
            )

        logger.debug("Resolved bundle %s", candidates[0])
        return ResolvedBundle(path=candidates[0])

    @staticmethod
    def find_encryption_marker(payload: Path) -> Optional[Path]:
        """Return the SC_Info directory if the extracted payload is encrypted."""
        direct = payload / ENCRYPTION_MARKER
        if direct.exists():
            return direct

        if payload.is_dir():
            for entry in sorted(payload.iterdir()):
                nested = entry / ENCRYPTION_MARKER
                if entry.suffix.lower() == BUNDLE_SUFFIX and nested.exists():
                    return nested

        return None
