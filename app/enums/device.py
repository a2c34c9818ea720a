"""
Device-related Enumerations
============================

This module contains the enums shared by the control document, the
command schemas and the API layer.
"""

from enum import Enum


class DeviceName(str, Enum):
    """Actuators exposed by the enclosure control surface"""

    LIGHT = "light"
    FAN_POSITIVE = "fan_positive"
    FAN_NEGATIVE = "fan_negative"
    PRESSURE_WASHER = "pressure_washer"

    def __str__(self):
        return self.value

    @property
    def supports_auto(self) -> bool:
        """The pressure washer is always pinned; it has no automatic mode."""
        return self is not DeviceName.PRESSURE_WASHER


class DeviceMode(str, Enum):
    """Operator intent for a device"""

    AUTO = "AUTO"
    FORCE_ON = "FORCE_ON"
    FORCE_OFF = "FORCE_OFF"

    def __str__(self):
        return self.value


class ActuatorState(str, Enum):
    """Commanded ON/OFF value of an actuator"""

    ON = "ON"
    OFF = "OFF"

    def __str__(self):
        return self.value


# Devices driven by external automation when in AUTO mode
SWITCHED_DEVICES: tuple[DeviceName, ...] = (
    DeviceName.LIGHT,
    DeviceName.FAN_POSITIVE,
    DeviceName.FAN_NEGATIVE,
)
