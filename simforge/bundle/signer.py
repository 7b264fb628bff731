"""
Code signing for resolved bundles.

Embedded frameworks are signed before the bundle that contains them;
signing the container first would leave its seal covering unsigned
contents.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from simforge.exceptions import SigningError
from simforge.executor import ProcessRunner

logger = logging.getLogger(__name__)

# `security find-identity -v -p codesigning` line:
#   1) 0123456789ABCDEF0123456789ABCDEF01234567 "Apple Development: Jane Doe (ABCDEF1234)"
IDENTITY_LINE = re.compile(r'^\s*\d+\)\s+([0-9A-Fa-f]{40})\s+"(.+)"\s*$')


@dataclass(frozen=True)
class SigningIdentity:
    """A code-signing identity from the login keychain."""

    name: str
    identifier: str

    def __str__(self) -> str:
        return self.name


class CodeSigner:
    """Re-signs a bundle with codesign."""

    def __init__(self, runner: Optional[ProcessRunner] = None, codesign_path: str = "codesign"):
        self.runner = runner or ProcessRunner()
        self.codesign_path = codesign_path

    def sign(self, bundle_path: Path, identity: SigningIdentity) -> list[Path]:
        """
        Sign every embedded framework, then the bundle itself.

        Args:
            bundle_path: .app directory to sign in place.
            identity: Identity passed to codesign -s.

        Returns:
            Signed paths in the order they were signed.

        Raises:
            SigningError: codesign failed; nothing after it is signed.
        """
        signed: list[Path] = []

        frameworks = self.embedded_frameworks(bundle_path)
        if frameworks:
            logger.info("==> Signing frameworks...")
        for framework in frameworks:
            self._sign_one(framework, identity)
            signed.append(framework)

        logger.info("==> Signing main bundle...")
        self._sign_one(bundle_path, identity)
        signed.append(bundle_path)
        return signed

    @staticmethod
    def embedded_frameworks(bundle_path: Path) -> list[Path]:
        frameworks_dir = bundle_path / "Frameworks"
        if not frameworks_dir.is_dir():
            return []
        return sorted(frameworks_dir.iterdir())

    def _sign_one(self, target: Path, identity: SigningIdentity) -> None:
        logger.debug("Signing %s", target.name)
        result = self.runner.run(
            self.codesign_path, ["-f", "-s", identity.identifier, target]
        )
        if not result.success:
            raise SigningError(target, result.return_code, result.error_text)


def parse_identities(output: str) -> list[SigningIdentity]:
    """Parse `security find-identity` output into identities."""
    identities: list[SigningIdentity] = []
    seen: set[str] = set()
    for line in output.splitlines():
        match = IDENTITY_LINE.match(line)
        if not match:
            continue
        identifier, name = match.group(1), match.group(2)
        if identifier in seen:
            continue
        seen.add(identifier)
        identities.append(SigningIdentity(name=name, identifier=identifier))
    return identities


def discover_identities(
    runner: Optional[ProcessRunner] = None,
    security_path: str = "security",
) -> list[SigningIdentity]:
    """List valid code-signing identities known to the host."""
    runner = runner or ProcessRunner()
    result = runner.run(security_path, ["find-identity", "-v", "-p", "codesigning"])
    if not result.success:
        logger.warning("Failed to get signing identities: %s", result.error_text)
        return []
    return parse_identities(result.text)
