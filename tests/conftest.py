"""Pytest fixtures for simforge tests."""

from __future__ import annotations

import json
import zipfile
from pathlib import Path
from typing import Callable, Optional, Union

import pytest

from simforge.config import SimforgeConfig
from simforge.executor import ExecutionResult

RUNNING_UDID = "1234-ABCD"
STOPPED_UDID = "5678-EFGH"
IDENTITY_SHA = "0123456789ABCDEF0123456789ABCDEF01234567"
IDENTITY_NAME = "Apple Development: Jane Doe (ABCDEF1234)"
IOS_RUNTIME = "com.apple.CoreSimulator.SimRuntime.iOS-17-2"
WATCH_RUNTIME = "com.apple.CoreSimulator.SimRuntime.watchOS-10-2"


def result(stdout: str = "", return_code: int = 0, stderr: str = "") -> tuple[str, int, str]:
    """Canned tool response for MockRunner handlers."""
    return stdout, return_code, stderr


Response = Union[tuple, str, Exception, Callable[[list[str]], tuple]]


class MockRunner:
    """
    Recording stand-in for ProcessRunner.

    Handlers are keyed by executable and receive the argument list.
    Unhandled executables succeed with empty output.
    """

    def __init__(self, handlers: Optional[dict[str, Response]] = None) -> None:
        self.handlers: dict[str, Response] = handlers or {}
        self.calls: list[list[str]] = []

    def run(self, executable, args=(), cwd=None) -> ExecutionResult:
        command = [str(executable), *(str(a) for a in args)]
        self.calls.append(command)

        response = self.handlers.get(str(executable), result())
        if isinstance(response, Exception):
            raise response
        if callable(response):
            response = response(command[1:])
        if isinstance(response, str):
            response = result(response)

        stdout, return_code, stderr = response
        return ExecutionResult(
            command=command,
            stdout=stdout.encode(),
            stderr=stderr.encode(),
            return_code=return_code,
        )

    def calls_to(self, executable: str) -> list[list[str]]:
        return [c for c in self.calls if c[0] == executable]


class FakeSimctl:
    """
    Minimal `xcrun simctl` model.

    A boot moves the device to "Booting"; the next `boot_polls` state
    queries report "Booting" before it becomes "Booted".
    """

    def __init__(self, devices: Optional[dict[str, list[dict]]] = None, boot_polls: int = 1):
        self.devices = devices if devices is not None else default_devices()
        self.boot_polls = boot_polls
        self._pending: dict[str, int] = {}
        self.install_response = result()
        self.launch_response = result("com.example.Demo: 4242\n")
        self.boot_response = result()

    def __call__(self, args: list[str]) -> tuple:
        assert args[0] == "simctl"
        verb = args[1]
        if verb == "list":
            self._advance()
            return result(json.dumps({"devices": self.devices}))
        if verb == "boot":
            if self.boot_response[1] == 0:
                self._set_state(args[2], "Booting")
                self._pending[args[2]] = self.boot_polls
            return self.boot_response
        if verb == "install":
            return self.install_response
        if verb == "launch":
            return self.launch_response
        return result(stderr=f"unknown verb {verb}", return_code=64)

    def _advance(self) -> None:
        for udid in list(self._pending):
            if self._pending[udid] <= 0:
                self._set_state(udid, "Booted")
                del self._pending[udid]
            else:
                self._pending[udid] -= 1

    def _set_state(self, udid: str, state: str) -> None:
        for records in self.devices.values():
            for record in records:
                if record["udid"] == udid:
                    record["state"] = state


def default_devices() -> dict[str, list[dict]]:
    return {
        IOS_RUNTIME: [
            {"name": "iPhone 15", "udid": RUNNING_UDID, "state": "Booted", "isAvailable": True},
            {"name": "iPhone SE", "udid": STOPPED_UDID, "state": "Shutdown", "isAvailable": True},
            {"name": "iPad (old)", "udid": "9999-DEAD", "state": "Shutdown", "isAvailable": False},
        ],
        WATCH_RUNTIME: [
            {"name": "Apple Watch", "udid": "AAAA-WATCH", "state": "Shutdown", "isAvailable": True},
        ],
    }


def unzip_handler(args: list[str]) -> tuple:
    """Behaves like `unzip -q <archive> -d <dest>`."""
    archive, dest = args[1], args[3]
    try:
        with zipfile.ZipFile(archive) as zf:
            zf.extractall(dest)
    except zipfile.BadZipFile:
        return result(stderr=f"End-of-central-directory signature not found in {archive}", return_code=9)
    return result()


def plistbuddy_handler(bundle_identifier: str = "com.example.Demo") -> Callable[[list[str]], tuple]:
    def handler(args: list[str]) -> tuple:
        assert args[:2] == ["-c", "Print :CFBundleIdentifier"]
        if not Path(args[2]).exists():
            return result(stderr="File Doesn't Exist", return_code=1)
        return result(bundle_identifier + "\n")
    return handler


def make_app(
    parent: Path,
    name: str = "Demo.app",
    frameworks: tuple[str, ...] = ("Alamofire.framework", "Kingfisher.framework"),
) -> Path:
    """Create a minimal .app directory on disk."""
    app = parent / name
    app.mkdir(parents=True)
    (app / "Info.plist").write_text("<plist><dict></dict></plist>")
    (app / app.stem).write_bytes(b"\xcf\xfa\xed\xfe")
    if frameworks:
        for framework in frameworks:
            fw = app / "Frameworks" / framework
            fw.mkdir(parents=True)
            (fw / Path(framework).stem).write_bytes(b"\xcf\xfa\xed\xfe")
    return app


def make_ipa(
    parent: Path,
    name: str = "Demo.ipa",
    apps: tuple[str, ...] = ("Demo.app",),
    encrypted: bool = False,
    payload_dir: str = "Payload",
) -> Path:
    """Create an .ipa archive; `encrypted` adds Payload/SC_Info."""
    parent.mkdir(parents=True, exist_ok=True)
    ipa = parent / name
    with zipfile.ZipFile(ipa, "w") as zf:
        zf.writestr(f"{payload_dir}/", "")
        for app in apps:
            zf.writestr(f"{payload_dir}/{app}/Info.plist", "<plist><dict></dict></plist>")
            zf.writestr(f"{payload_dir}/{app}/{Path(app).stem}", "binary")
        if encrypted:
            zf.writestr(f"{payload_dir}/SC_Info/Demo.sinf", "drm")
        zf.writestr("iTunesMetadata.plist", "<plist/>")
    return ipa


@pytest.fixture
def simctl() -> FakeSimctl:
    return FakeSimctl()


@pytest.fixture
def config(tmp_path) -> SimforgeConfig:
    """Config with zero delays and a scratch root under tmp_path."""
    return SimforgeConfig(
        apps_dir=tmp_path / "apps",
        converter_path=tmp_path / "bin" / "simforge",
        preferences_file=tmp_path / ".simforge_config",
        scratch_root=tmp_path / "scratch",
        app_settle_delay=0,
        boot_timeout=10,
        poll_interval=1,
    )


@pytest.fixture
def runner(simctl) -> MockRunner:
    """MockRunner wired with working xcrun, unzip and PlistBuddy doubles."""
    return MockRunner({
        "xcrun": simctl,
        "unzip": unzip_handler,
        "/usr/libexec/PlistBuddy": plistbuddy_handler(),
    })
