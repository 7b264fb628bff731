#!/usr/bin/env python3
"""
simforge CLI - deploy a device app build onto an iOS Simulator

Usage:
    simforge                      # pick app, identity and simulator interactively
    simforge apps/Demo.ipa        # deploy a specific package
    python -m simforge --device 1234-ABCD --identity <SHA-1> apps/Demo.app
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, Optional, Sequence

from simforge.bundle.resolver import ARCHIVE_SUFFIX, BUNDLE_SUFFIX
from simforge.bundle.signer import SigningIdentity, discover_identities
from simforge.config import Preferences, SimforgeConfig, load_config
from simforge.device.simulator import DeviceDescriptor, SimulatorController
from simforge.exceptions import SimforgeError
from simforge.executor import ProcessRunner
from simforge.pipeline import DeploymentPipeline

logger = logging.getLogger(__name__)

InputFn = Callable[[str], str]


def print_banner():
    print("Simforge CLI")
    print("------------")


def print_error(message: str):
    print(f"Error: {message}")


def select_option(
    title: str,
    noun: str,
    labels: Sequence[str],
    input_fn: InputFn = input,
) -> Optional[int]:
    """
    Print a numbered menu and read a choice.

    Returns:
        Zero-based index of the chosen entry, or None if the user
        entered 0 or closed stdin.
    """
    print(f"\nAvailable {title}:")
    for i, label in enumerate(labels, 1):
        print(f"[{i}] {label}")

    while True:
        try:
            choice = input_fn(f"\nSelect {noun} (1-{len(labels)}, 0 to cancel): ").strip()
        except EOFError:
            return None
        if choice == "0":
            return None
        try:
            num = int(choice)
        except ValueError:
            print("Please enter a number.")
            continue
        if 1 <= num <= len(labels):
            return num - 1
        print("Invalid selection. Try again.")


def find_packages(apps_dir: Path) -> list[Path]:
    """List .app bundles and .ipa archives in the apps directory."""
    if not apps_dir.is_dir():
        return []
    return sorted(
        entry for entry in apps_dir.iterdir()
        if entry.suffix.lower() in (BUNDLE_SUFFIX, ARCHIVE_SUFFIX)
    )


def choose_package(config: SimforgeConfig, input_fn: InputFn = input) -> Optional[Path]:
    config.ensure_directories()
    packages = find_packages(config.apps_dir)
    if not packages:
        print_error(f"No .app or .ipa files found in the {config.apps_dir} directory")
        return None

    index = select_option("apps", "app", [p.name for p in packages], input_fn)
    return packages[index] if index is not None else None


def choose_identity(
    identities: list[SigningIdentity],
    requested: Optional[str] = None,
    input_fn: InputFn = input,
) -> Optional[SigningIdentity]:
    """Pick an identity by SHA-1 or name, or interactively."""
    if not identities:
        print_error("No signing identities found")
        return None

    if requested:
        for identity in identities:
            if requested in (identity.identifier, identity.name):
                return identity
        print_error(f"Signing identity not found: {requested}")
        return None

    index = select_option(
        "signing identities", "signing identity", [i.name for i in identities], input_fn
    )
    return identities[index] if index is not None else None


def choose_simulator(
    simulators: list[DeviceDescriptor],
    preferences: Preferences,
    preferences_file: Path,
    requested: Optional[str] = None,
    input_fn: InputFn = input,
) -> Optional[str]:
    """
    Resolve the target simulator UDID.

    An explicit --device wins, then a saved UDID that still exists.
    Otherwise the user picks one and the choice is saved.
    """
    if not simulators:
        print_error("No simulators found")
        return None

    by_udid = {s.udid: s for s in simulators}

    if requested:
        if requested not in by_udid:
            print_error(f"Simulator not found: {requested}")
            return None
        return requested

    saved = preferences.simulator_udid
    if saved and saved in by_udid:
        print(f"==> Using saved simulator: {by_udid[saved].display_name}")
        return saved
    if saved:
        logger.info("Saved simulator %s is no longer available", saved)

    index = select_option(
        "simulators", "simulator", [s.display_name for s in simulators], input_fn
    )
    if index is None:
        return None

    udid = simulators[index].udid
    preferences.simulator_udid = udid
    try:
        preferences.save(preferences_file)
    except OSError as e:
        logger.warning("Could not save simulator choice to %s: %s", preferences_file, e)
    return udid


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="simforge",
        description="Convert, re-sign and run a device .app/.ipa on an iOS Simulator",
    )
    parser.add_argument("package", nargs="?", help="Path to a .app bundle or .ipa archive")
    parser.add_argument("--identity", help="Signing identity SHA-1 or name")
    parser.add_argument("--device", help="Simulator UDID (skips the saved choice)")
    parser.add_argument("--apps-dir", type=Path, help="Directory scanned for packages")
    parser.add_argument("--config", type=Path, help="YAML configuration file")
    parser.add_argument(
        "--forget-device",
        action="store_true",
        help="Ignore the saved simulator and choose again",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show every tool invocation")
    return parser


def main(argv: Optional[Sequence[str]] = None, input_fn: InputFn = input) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
    )

    print_banner()

    try:
        config = load_config(args.config)
        if args.apps_dir:
            config.apps_dir = args.apps_dir

        if not config.converter_path.exists():
            print_error(
                f"simforge binary not found at {config.converter_path}. "
                "Please run 'swift build -c release' first."
            )
            return 1

        if args.package:
            package_path = Path(args.package)
        else:
            package_path = choose_package(config, input_fn)
            if package_path is None:
                return 1

        runner = ProcessRunner()
        identities = discover_identities(runner, config.security_path)
        identity = choose_identity(identities, args.identity, input_fn)
        if identity is None:
            return 1

        controller = SimulatorController(runner, config)
        simulators = controller.list_devices()
        preferences = Preferences.load(config.preferences_file)
        if args.forget_device:
            preferences.simulator_udid = None
        udid = choose_simulator(
            simulators, preferences, config.preferences_file, args.device, input_fn
        )
        if udid is None:
            return 1

    except SimforgeError as e:
        print_error(e.message)
        return 1

    pipeline = DeploymentPipeline(config, runner, controller=controller)
    outcome = pipeline.deploy(package_path, identity, udid)
    if not outcome.success:
        return 1

    print(outcome.message)
    return 0


if __name__ == "__main__":
    sys.exit(main())
