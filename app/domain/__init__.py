"""
Domain Value Objects Package
=============================
Immutable value objects for the control document and the exception
hierarchy shared by every layer.
"""

from .control import (
    ControlCommand,
    ControlState,
    DeviceControl,
    PressureWasherControl,
    parse_device,
    parse_mode,
)

__all__ = [
    "ControlCommand",
    "ControlState",
    "DeviceControl",
    "PressureWasherControl",
    "parse_device",
    "parse_mode",
]
