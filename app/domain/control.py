"""
Control Document Domain Objects
===============================
Immutable value objects for the singleton control document.

Every mutation returns a new instance, so a snapshot handed out by the
cache can never be changed behind the store's back.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Union

from app.domain.exceptions import ValidationError
from app.enums import SWITCHED_DEVICES, ActuatorState, DeviceMode, DeviceName
from app.utils.time import coerce_datetime, utc_now


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class DeviceControl:
    """Mode/state pair for a switched device (light, fans)."""

    mode: DeviceMode = DeviceMode.AUTO
    state: ActuatorState = ActuatorState.OFF

    def with_mode(self, mode: DeviceMode) -> "DeviceControl":
        """Apply an operator mode; AUTO leaves the commanded state alone."""
        if mode is DeviceMode.FORCE_ON:
            return DeviceControl(mode=mode, state=ActuatorState.ON)
        if mode is DeviceMode.FORCE_OFF:
            return DeviceControl(mode=mode, state=ActuatorState.OFF)
        return DeviceControl(mode=mode, state=self.state)

    def to_dict(self) -> Dict[str, Any]:
        return {"mode": self.mode.value, "state": self.state.value}

    @staticmethod
    def from_dict(data: Dict[str, Any] | None) -> "DeviceControl":
        if not data:
            return DeviceControl()
        return DeviceControl(
            mode=DeviceMode(data.get("mode", DeviceMode.AUTO.value)),
            state=ActuatorState(data.get("state", ActuatorState.OFF.value)),
        )


@dataclass(frozen=True)
class PressureWasherControl:
    """
    Pressure washer mode/state plus its run timer.

    The washer only accepts pinned modes. While ON it carries an expiry
    time that the safety sweep enforces; while OFF all timer fields are
    cleared.
    """

    mode: DeviceMode = DeviceMode.FORCE_OFF
    state: ActuatorState = ActuatorState.OFF
    timer_duration: int = 0
    timer_started_at: Optional[datetime] = None
    timer_expires_at: Optional[datetime] = None

    def __post_init__(self):
        if self.mode is DeviceMode.AUTO:
            raise ValueError("AUTO mode is not permitted for pressure_washer")

    def switched_on(self, duration_seconds: int, now: datetime) -> "PressureWasherControl":
        """Start the washer with a timer of ``duration_seconds`` whole seconds."""
        started_at = now.replace(microsecond=0)
        return PressureWasherControl(
            mode=DeviceMode.FORCE_ON,
            state=ActuatorState.ON,
            timer_duration=int(duration_seconds),
            timer_started_at=started_at,
            timer_expires_at=started_at + timedelta(seconds=int(duration_seconds)),
        )

    @staticmethod
    def switched_off() -> "PressureWasherControl":
        return PressureWasherControl()

    def is_expired(self, now: datetime) -> bool:
        """True when the washer is running past its timer."""
        return (
            self.state is ActuatorState.ON
            and self.timer_expires_at is not None
            and now >= self.timer_expires_at
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "state": self.state.value,
            "timer_duration": self.timer_duration,
            "timer_started_at": _iso(self.timer_started_at),
            "timer_expires_at": _iso(self.timer_expires_at),
        }

    @staticmethod
    def from_dict(data: Dict[str, Any] | None) -> "PressureWasherControl":
        if not data:
            return PressureWasherControl()
        return PressureWasherControl(
            mode=DeviceMode(data.get("mode", DeviceMode.FORCE_OFF.value)),
            state=ActuatorState(data.get("state", ActuatorState.OFF.value)),
            timer_duration=int(data.get("timer_duration") or 0),
            timer_started_at=coerce_datetime(data.get("timer_started_at")),
            timer_expires_at=coerce_datetime(data.get("timer_expires_at")),
        )


AnyDeviceControl = Union[DeviceControl, PressureWasherControl]


@dataclass(frozen=True)
class ControlState:
    """
    The singleton control document.

    Attributes:
        light / fan_positive / fan_negative: switched devices
        pressure_washer: timed washer
        updated_at: timestamp of the last mutation (never moves backwards)
        version: store revision this snapshot was read from or written as
    """

    light: DeviceControl = field(default_factory=DeviceControl)
    fan_positive: DeviceControl = field(default_factory=DeviceControl)
    fan_negative: DeviceControl = field(default_factory=DeviceControl)
    pressure_washer: PressureWasherControl = field(default_factory=PressureWasherControl)
    updated_at: datetime = field(default_factory=utc_now)
    version: int = 0

    @classmethod
    def default(cls, now: Optional[datetime] = None) -> "ControlState":
        """Document created on first access: everything off, lighting and fans in AUTO."""
        return cls(updated_at=now or utc_now())

    def device(self, name: DeviceName) -> AnyDeviceControl:
        return getattr(self, DeviceName(name).value)

    def with_device(self, name: DeviceName, control: AnyDeviceControl, now: datetime) -> "ControlState":
        """Return a copy with one device replaced and ``updated_at`` stamped."""
        name = DeviceName(name)
        if name is DeviceName.PRESSURE_WASHER and not isinstance(control, PressureWasherControl):
            raise TypeError("pressure_washer requires a PressureWasherControl")
        stamped = max(now, self.updated_at)
        return replace(self, **{name.value: control, "updated_at": stamped})

    def with_version(self, version: int) -> "ControlState":
        return replace(self, version=int(version))

    def to_dict(self) -> Dict[str, Any]:
        """Flat structure keyed by device name."""
        payload: Dict[str, Any] = {name.value: self.device(name).to_dict() for name in SWITCHED_DEVICES}
        payload[DeviceName.PRESSURE_WASHER.value] = self.pressure_washer.to_dict()
        payload["updated_at"] = _iso(self.updated_at)
        payload["version"] = self.version
        return payload

    @staticmethod
    def from_dict(data: Dict[str, Any], *, version: Optional[int] = None) -> "ControlState":
        updated_at = coerce_datetime(data.get("updated_at")) or utc_now()
        return ControlState(
            light=DeviceControl.from_dict(data.get(DeviceName.LIGHT.value)),
            fan_positive=DeviceControl.from_dict(data.get(DeviceName.FAN_POSITIVE.value)),
            fan_negative=DeviceControl.from_dict(data.get(DeviceName.FAN_NEGATIVE.value)),
            pressure_washer=PressureWasherControl.from_dict(data.get(DeviceName.PRESSURE_WASHER.value)),
            updated_at=updated_at,
            version=int(version if version is not None else data.get("version") or 0),
        )


@dataclass(frozen=True)
class ControlCommand:
    """A validated operator command for one device."""

    device: DeviceName
    mode: DeviceMode
    timer_duration: Optional[int] = None

    @classmethod
    def parse(cls, device: Any, mode: Any, timer_duration: Any = None) -> "ControlCommand":
        """Build a command from raw values, rejecting anything outside the fixed sets.

        ``timer_duration`` only means something for a washer FORCE_ON; for
        every other device/mode it is dropped without being checked.
        """
        parsed_device = parse_device(device)
        parsed_mode = parse_mode(mode)
        if parsed_mode is DeviceMode.AUTO and not parsed_device.supports_auto:
            raise ValidationError(f"AUTO mode is not permitted for {parsed_device.value}")
        if parsed_device is not DeviceName.PRESSURE_WASHER or parsed_mode is not DeviceMode.FORCE_ON:
            return cls(device=parsed_device, mode=parsed_mode)
        if timer_duration is not None:
            if isinstance(timer_duration, bool) or not isinstance(timer_duration, int) or timer_duration <= 0:
                raise ValidationError("timer_duration must be a positive integer number of seconds")
        return cls(device=parsed_device, mode=parsed_mode, timer_duration=timer_duration)


def parse_device(value: Any) -> DeviceName:
    if isinstance(value, DeviceName):
        return value
    try:
        return DeviceName(value)
    except ValueError:
        raise ValidationError(f"Unknown device: {value}") from None


def parse_mode(value: Any) -> DeviceMode:
    if isinstance(value, DeviceMode):
        return value
    try:
        return DeviceMode(value)
    except ValueError:
        raise ValidationError(f"Unknown mode: {value}") from None
