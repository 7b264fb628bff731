"""Custom exceptions for simforge."""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class SimforgeError(Exception):
    """Base exception for all simforge errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ToolLaunchError(SimforgeError):
    """Raised when an external tool cannot be started at all."""

    def __init__(self, executable: str, cause: Optional[Exception] = None):
        self.executable = executable
        self.cause = cause
        message = f"Could not start {executable}"
        if cause:
            message += f": {cause}"
        details = {"executable": executable}
        if cause:
            details["cause"] = str(cause)
        super().__init__(message, details)


class UnsupportedPackageError(SimforgeError):
    """Raised when an archive is encrypted and cannot be deployed."""

    def __init__(self, package_path: Path, marker: Optional[Path] = None):
        self.package_path = package_path
        self.marker = marker
        super().__init__(
            f"{Path(package_path).name} is encrypted. Please provide a decrypted IPA.",
            {"package_path": str(package_path), "marker": str(marker) if marker else None},
        )


class MalformedPackageError(SimforgeError):
    """Raised when a package does not yield exactly one app bundle."""

    def __init__(
        self,
        message: str,
        package_path: Optional[Path] = None,
        candidates: Optional[list[str]] = None,
    ):
        self.package_path = package_path
        self.candidates = candidates or []
        super().__init__(
            message,
            {
                "package_path": str(package_path) if package_path else None,
                "candidates": self.candidates,
            },
        )


class ConversionError(SimforgeError):
    """Raised when the simulator conversion tool fails."""

    def __init__(self, bundle_path: Path, exit_code: int, output: str = ""):
        self.bundle_path = bundle_path
        self.exit_code = exit_code
        self.output = output
        message = f"Conversion failed for {Path(bundle_path).name} (exit {exit_code})"
        if output:
            message += f": {output}"
        super().__init__(
            message,
            {"bundle_path": str(bundle_path), "exit_code": exit_code, "output": output},
        )


class SigningError(SimforgeError):
    """Raised when codesign exits non-zero for a target."""

    def __init__(self, target: Path, exit_code: int, output: str = ""):
        self.target = target
        self.exit_code = exit_code
        self.output = output
        message = f"Signing failed for {Path(target).name} (exit {exit_code})"
        if output:
            message += f": {output}"
        super().__init__(
            message,
            {"target": str(target), "exit_code": exit_code, "output": output},
        )


class ManifestError(SimforgeError):
    """Raised when the bundle identifier cannot be read from Info.plist."""

    def __init__(self, message: str, manifest_path: Optional[Path] = None):
        self.manifest_path = manifest_path
        super().__init__(
            message,
            {"manifest_path": str(manifest_path) if manifest_path else None},
        )


class DeviceControlError(SimforgeError):
    """Raised when the simulator inventory cannot be read."""

    def __init__(self, message: str, exit_code: Optional[int] = None, output: str = ""):
        self.exit_code = exit_code
        self.output = output
        super().__init__(message, {"exit_code": exit_code, "output": output})


class DeviceNotFoundError(DeviceControlError):
    """Raised when a simulator UDID no longer resolves to a device."""

    def __init__(self, udid: str):
        self.udid = udid
        super().__init__(f"Simulator not found: {udid}. Please select a simulator again.")
        self.details["udid"] = udid


class DeviceNotReadyError(DeviceControlError):
    """Raised when a simulator does not reach the booted state in time."""

    def __init__(self, udid: str, timeout: float, last_state: Optional[str] = None):
        self.udid = udid
        self.timeout = timeout
        self.last_state = last_state
        message = f"Simulator {udid} did not finish booting within {timeout:g}s"
        if last_state:
            message += f" (last state: {last_state})"
        super().__init__(message)
        self.details.update({"udid": udid, "timeout": timeout, "last_state": last_state})


class InstallError(SimforgeError):
    """Raised when simctl install fails."""

    def __init__(self, udid: str, bundle_path: Path, exit_code: int, output: str = ""):
        self.udid = udid
        self.bundle_path = bundle_path
        self.exit_code = exit_code
        self.output = output
        super().__init__(
            output or f"simctl install exited with status {exit_code}",
            {
                "udid": udid,
                "bundle_path": str(bundle_path),
                "exit_code": exit_code,
            },
        )


class AppLaunchError(SimforgeError):
    """Raised when simctl launch fails."""

    def __init__(self, udid: str, bundle_identifier: str, exit_code: int, output: str = ""):
        self.udid = udid
        self.bundle_identifier = bundle_identifier
        self.exit_code = exit_code
        self.output = output
        super().__init__(
            output or f"simctl launch exited with status {exit_code}",
            {
                "udid": udid,
                "bundle_identifier": bundle_identifier,
                "exit_code": exit_code,
            },
        )


class ConfigurationError(SimforgeError):
    """Raised when configuration is invalid."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        self.config_key = config_key
        super().__init__(message, {"config_key": config_key})
