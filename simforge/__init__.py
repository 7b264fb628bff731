"""
simforge - run device builds of iOS apps on the Simulator

Resolves a .app or .ipa into a scratch workspace, converts it for the
simulator, re-signs it and installs/launches it on a simulator device.
"""

from simforge.bundle import (
    BundleResolver,
    CodeSigner,
    PackageKind,
    PackageReference,
    ResolvedBundle,
    ScratchWorkspace,
    SigningIdentity,
)
from simforge.config import Preferences, SimforgeConfig, load_config
from simforge.device import DeviceDescriptor, DeviceState, SimulatorController
from simforge.executor import ExecutionResult, ProcessRunner
from simforge.pipeline import DeploymentOutcome, DeploymentPipeline, DeploymentStep

__version__ = "0.1.0"

__all__ = [
    # Pipeline
    "DeploymentPipeline",
    "DeploymentOutcome",
    "DeploymentStep",
    # Bundle
    "BundleResolver",
    "CodeSigner",
    "PackageKind",
    "PackageReference",
    "ResolvedBundle",
    "ScratchWorkspace",
    "SigningIdentity",
    # Device
    "SimulatorController",
    "DeviceDescriptor",
    "DeviceState",
    # Infrastructure
    "ProcessRunner",
    "ExecutionResult",
    "SimforgeConfig",
    "Preferences",
    "load_config",
]
