"""
Enums Module
============

This module provides enumeration types for the control service.
Enums ensure type safety and consistency across the codebase.
"""

from app.enums.device import SWITCHED_DEVICES, ActuatorState, DeviceMode, DeviceName
from app.enums.events import ControlEvent, WebSocketEvent

__all__ = [
    "SWITCHED_DEVICES",
    "ActuatorState",
    "ControlEvent",
    "DeviceMode",
    "DeviceName",
    "WebSocketEvent",
]
