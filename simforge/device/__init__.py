"""
Device Management Module

Simulator inventory, idempotent boot, install and launch.
"""

from simforge.device.simulator import DeviceDescriptor, DeviceState, SimulatorController

__all__ = [
    "SimulatorController",
    "DeviceDescriptor",
    "DeviceState",
]
