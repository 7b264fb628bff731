"""simforge configuration management."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from simforge.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path("simforge.yaml")

_PATH_FIELDS = ("apps_dir", "converter_path", "preferences_file", "scratch_root")
_FLOAT_FIELDS = ("app_settle_delay", "boot_timeout", "poll_interval")


@dataclass
class SimforgeConfig:
    """Configuration for a deployment run."""

    # Paths
    apps_dir: Path = field(default_factory=lambda: Path("apps"))
    converter_path: Path = field(default_factory=lambda: Path(".build/release/simforge"))
    preferences_file: Path = field(default_factory=lambda: Path(".simforge_config"))
    scratch_root: Optional[Path] = None  # None = system temp directory

    # Host tools
    xcrun_path: str = "xcrun"
    codesign_path: str = "codesign"
    unzip_path: str = "unzip"
    plistbuddy_path: str = "/usr/libexec/PlistBuddy"
    open_path: str = "open"
    security_path: str = "security"

    # Simulator
    simulator_app: str = "Simulator"
    runtime_filter: str = "iOS"

    # Timing (seconds)
    app_settle_delay: float = 2.0
    boot_timeout: float = 60.0
    poll_interval: float = 1.0

    def __post_init__(self) -> None:
        """Normalise path fields and validate timings."""
        for name in _PATH_FIELDS:
            value = getattr(self, name)
            if value is not None and not isinstance(value, Path):
                setattr(self, name, Path(value))

        for name in _FLOAT_FIELDS:
            value = getattr(self, name)
            try:
                value = float(value)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"{name} must be a number, got {value!r}", name) from e
            if value < 0:
                raise ConfigurationError(f"{name} must not be negative", name)
            setattr(self, name, value)

        if self.poll_interval == 0:
            raise ConfigurationError("poll_interval must be greater than zero", "poll_interval")

    def ensure_directories(self) -> None:
        """Create the apps directory if it doesn't exist."""
        self.apps_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_file(cls, path: Path) -> SimforgeConfig:
        """Load configuration from a YAML file."""
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Could not read {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} must contain a mapping")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration key(s) in {path}: {', '.join(unknown)}",
                unknown[0],
            )
        return cls(**data)

    def with_env_overrides(self) -> SimforgeConfig:
        """Return a copy with SIMFORGE_* environment variables applied."""
        values = self.to_dict()
        for name in values:
            env_value = os.getenv(f"SIMFORGE_{name.upper()}")
            if env_value is not None and env_value != "":
                values[name] = env_value
        return SimforgeConfig(**values)

    @classmethod
    def from_env(cls) -> SimforgeConfig:
        """Load configuration from environment variables only."""
        return cls().with_env_overrides()

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        result: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            result[f.name] = str(value) if isinstance(value, Path) else value
        return result


def load_config(path: Optional[Path] = None) -> SimforgeConfig:
    """
    Build the run configuration.

    Order of precedence (highest first): SIMFORGE_* environment
    variables (./.env is loaded into the environment first),
    the YAML file, built-in defaults.

    Args:
        path: YAML config file. Defaults to ./simforge.yaml when present.

    Returns:
        SimforgeConfig for this process.
    """
    env_file = Path.cwd() / ".env"
    if env_file.exists():
        load_dotenv(env_file)

    if path is not None:
        if not Path(path).exists():
            raise ConfigurationError(f"Config file not found: {path}")
        config = SimforgeConfig.from_file(Path(path))
    elif DEFAULT_CONFIG_FILE.exists():
        config = SimforgeConfig.from_file(DEFAULT_CONFIG_FILE)
    else:
        config = SimforgeConfig()

    return config.with_env_overrides()


@dataclass
class Preferences:
    """Choices remembered between runs."""

    simulator_udid: Optional[str] = None

    @classmethod
    def load(cls, path: Path) -> Preferences:
        """Read preferences; a missing or unreadable file yields empty preferences."""
        if not path.exists():
            return cls()

        try:
            with open(path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable preferences file %s: %s", path, e)
            return cls()

        if not isinstance(data, dict):
            logger.warning("Ignoring malformed preferences file %s", path)
            return cls()

        udid = data.get("simulatorUDID")
        return cls(simulator_udid=udid if isinstance(udid, str) and udid else None)

    def save(self, path: Path) -> None:
        data = {}
        if self.simulator_udid:
            data["simulatorUDID"] = self.simulator_udid
        with open(path, "w") as f:
            json.dump(data, f)
