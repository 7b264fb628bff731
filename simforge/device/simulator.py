"""
Simulator Controller - iOS Simulator state detection, boot, install and launch.

All commands go through `xcrun simctl`, except starting the host
Simulator.app which goes through `open -a`.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from simforge.config import SimforgeConfig
from simforge.exceptions import (
    AppLaunchError,
    DeviceControlError,
    DeviceNotFoundError,
    DeviceNotReadyError,
    InstallError,
    ToolLaunchError,
)
from simforge.executor import ProcessRunner

logger = logging.getLogger(__name__)


class DeviceState(Enum):
    """Simulator state as far as deployment is concerned."""
    RUNNING = "running"
    BOOTING = "booting"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"
    NOT_FOUND = "not_found"

    @classmethod
    def from_simctl(cls, state: Optional[str]) -> DeviceState:
        """Map a simctl state string ("Booted", "Shutdown", ...)."""
        if state == "Booted":
            return cls.RUNNING
        if state == "Booting":
            return cls.BOOTING
        if state == "Shutting Down":
            return cls.SHUTTING_DOWN
        return cls.STOPPED


@dataclass
class DeviceDescriptor:
    """A simulator device instance."""

    name: str
    udid: str
    runtime: str = ""
    state: DeviceState = DeviceState.STOPPED
    is_available: bool = True

    @property
    def display_name(self) -> str:
        return f"{self.name} ({self.runtime})" if self.runtime else self.name

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "udid": self.udid,
            "runtime": self.runtime,
            "state": self.state.value,
            "is_available": self.is_available,
        }


class SimulatorController:
    """
    Drives simulator devices for a deployment.

    Handles:
    - Device inventory and state queries
    - Idempotent boot (launch Simulator.app, boot only when stopped)
    - App installation and launch
    """

    def __init__(
        self,
        runner: Optional[ProcessRunner] = None,
        config: Optional[SimforgeConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the controller.

        Args:
            runner: Subprocess gateway. A real ProcessRunner if None.
            config: Tool paths and timings. Defaults if None.
            sleep: Delay function, replaced in tests.
            clock: Monotonic clock used for the boot deadline.
        """
        self.runner = runner or ProcessRunner()
        self.config = config or SimforgeConfig()
        self._sleep = sleep
        self._clock = clock

    def _simctl(self, *args):
        return self.runner.run(self.config.xcrun_path, ["simctl", *args])

    # =========================================================================
    # Inventory
    # =========================================================================

    def _load_inventory(self, available_only: bool) -> dict[str, list[dict]]:
        args = ["list", "devices"]
        if available_only:
            args.append("available")
        args.append("-j")

        result = self._simctl(*args)
        if not result.success:
            raise DeviceControlError(
                f"Failed to list simulators: {result.error_text}",
                result.return_code,
                result.error_text,
            )

        try:
            data = json.loads(result.text)
        except json.JSONDecodeError as e:
            raise DeviceControlError(f"Unreadable simctl output: {e}") from e

        devices = data.get("devices") if isinstance(data, dict) else None
        if not isinstance(devices, dict):
            raise DeviceControlError("simctl output has no 'devices' mapping")
        return devices

    def list_devices(self, available_only: bool = True) -> list[DeviceDescriptor]:
        """
        List simulators for the configured runtime family.

        Args:
            available_only: Skip devices whose runtime is not installed.

        Returns:
            DeviceDescriptor list ordered by runtime, then as reported.
        """
        inventory = self._load_inventory(available_only)
        descriptors = []

        for runtime in sorted(inventory):
            if self.config.runtime_filter and self.config.runtime_filter not in runtime:
                continue
            for record in inventory[runtime] or []:
                name = record.get("name")
                udid = record.get("udid")
                if not isinstance(name, str) or not isinstance(udid, str):
                    continue
                is_available = bool(record.get("isAvailable", True))
                if available_only and not is_available:
                    continue
                descriptors.append(DeviceDescriptor(
                    name=name,
                    udid=udid,
                    runtime=runtime_display_name(runtime),
                    state=DeviceState.from_simctl(record.get("state")),
                    is_available=is_available,
                ))

        return descriptors

    def query_state(self, udid: str) -> DeviceState:
        """Current state of a device, or NOT_FOUND if no record matches."""
        inventory = self._load_inventory(available_only=False)
        for records in inventory.values():
            for record in records or []:
                if record.get("udid") == udid:
                    return DeviceState.from_simctl(record.get("state"))
        return DeviceState.NOT_FOUND

    # =========================================================================
    # Boot
    # =========================================================================

    def launch_simulator_app(self) -> bool:
        """Start Simulator.app. Failures are reported, never raised."""
        logger.info("==> Launching %s.app...", self.config.simulator_app)
        try:
            result = self.runner.run(self.config.open_path, ["-a", self.config.simulator_app])
        except ToolLaunchError as e:
            logger.warning("Could not launch %s.app: %s", self.config.simulator_app, e)
            return False

        if not result.success:
            logger.warning(
                "Could not launch %s.app: %s", self.config.simulator_app, result.error_text
            )
            return False
        return True

    def ensure_running(self, udid: str) -> DeviceState:
        """
        Bring a device to the booted state.

        A device that is already booted gets no boot command.

        Args:
            udid: Simulator UDID.

        Returns:
            DeviceState.RUNNING

        Raises:
            DeviceNotFoundError: No device has this UDID.
            DeviceNotReadyError: Device did not boot within boot_timeout.
        """
        logger.info("==> Checking simulator status...")
        self.launch_simulator_app()

        if self.config.app_settle_delay:
            self._sleep(self.config.app_settle_delay)

        state = self.query_state(udid)
        if state == DeviceState.SHUTTING_DOWN:
            logger.info("==> Waiting for simulator to finish shutting down...")
            state = self.wait_for_shutdown(udid)
        if state == DeviceState.NOT_FOUND:
            raise DeviceNotFoundError(udid)
        if state == DeviceState.RUNNING:
            logger.debug("Simulator %s already booted", udid)
            return state

        if state == DeviceState.STOPPED:
            logger.info("==> Booting simulator device...")
            result = self._simctl("boot", udid)
            if not result.success:
                logger.warning("simctl boot reported an error: %s", result.error_text)

        logger.info("==> Waiting for simulator to be ready...")
        return self.wait_until_running(udid)

    def wait_for_shutdown(self, udid: str) -> DeviceState:
        """Poll until a device leaves "Shutting Down"; simctl refuses to boot it before then."""
        deadline = self._clock() + self.config.boot_timeout
        state = DeviceState.SHUTTING_DOWN

        while state == DeviceState.SHUTTING_DOWN:
            if self._clock() >= deadline:
                raise DeviceNotReadyError(udid, self.config.boot_timeout, state.value)
            self._sleep(self.config.poll_interval)
            state = self.query_state(udid)

        return state

    def wait_until_running(self, udid: str) -> DeviceState:
        """Poll the device state until it is booted or boot_timeout elapses."""
        deadline = self._clock() + self.config.boot_timeout
        state = self.query_state(udid)

        while state != DeviceState.RUNNING:
            if state == DeviceState.NOT_FOUND:
                raise DeviceNotFoundError(udid)
            if self._clock() >= deadline:
                raise DeviceNotReadyError(udid, self.config.boot_timeout, state.value)
            self._sleep(self.config.poll_interval)
            state = self.query_state(udid)

        return state

    # =========================================================================
    # App Installation
    # =========================================================================

    def install(self, udid: str, bundle_path: Path) -> None:
        """Install a bundle on a booted device."""
        logger.info("==> Installing to simulator...")
        result = self._simctl("install", udid, bundle_path)
        if not result.success:
            raise InstallError(udid, bundle_path, result.return_code, result.error_text)

    def launch(self, udid: str, bundle_identifier: str) -> str:
        """
        Launch an installed app.

        Returns:
            simctl output, "<bundle id>: <pid>".
        """
        logger.info("==> Launching app...")
        result = self._simctl("launch", udid, bundle_identifier)
        if not result.success:
            raise AppLaunchError(udid, bundle_identifier, result.return_code, result.error_text)
        return result.text.strip()


def runtime_display_name(runtime: str) -> str:
    """
    Short runtime name for menus.

    "com.apple.CoreSimulator.SimRuntime.iOS-17-2" -> "iOS 17.2"
    """
    prefix = "com.apple.CoreSimulator.SimRuntime."
    if not runtime.startswith(prefix):
        return runtime
    family, _, version = runtime[len(prefix):].partition("-")
    if not version:
        return family
    return f"{family} {version.replace('-', '.')}"
