"""
Control Schemas
===============

Pydantic models for control command validation and control state events.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator, model_validator

from app.domain.control import parse_device, parse_mode
from app.domain.exceptions import ValidationError as ControlValidationError
from app.enums import DeviceMode, DeviceName


class ControlCommandRequest(BaseModel):
    """Request model for POST /control"""

    device: DeviceName = Field(..., description="Target device")
    mode: DeviceMode = Field(..., description="Requested mode (AUTO, FORCE_ON, FORCE_OFF)")
    # Strict so JSON booleans are not read as 1/0.
    timer_duration: Optional[StrictInt] = Field(
        default=None,
        description="Run time in seconds (pressure_washer with FORCE_ON only, ignored otherwise)",
    )

    @field_validator("device", mode="before")
    def _coerce_device(cls, v):
        try:
            return parse_device(v)
        except ControlValidationError as exc:
            raise ValueError(str(exc)) from None

    @field_validator("mode", mode="before")
    def _coerce_mode(cls, v):
        if isinstance(v, str):
            v = v.strip().upper()
        try:
            return parse_mode(v)
        except ControlValidationError as exc:
            raise ValueError(str(exc)) from None

    @model_validator(mode="after")
    def _check_command(self):
        if self.mode is DeviceMode.AUTO and not self.device.supports_auto:
            raise ValueError(f"AUTO mode is not permitted for {self.device.value}")
        if self.device is DeviceName.PRESSURE_WASHER and self.mode is DeviceMode.FORCE_ON:
            if self.timer_duration is not None and self.timer_duration <= 0:
                raise ValueError("timer_duration must be a positive integer number of seconds")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "device": "pressure_washer",
                "mode": "FORCE_ON",
                "timer_duration": 120,
            }
        }
    )


class ControlStatePayload(BaseModel):
    """Socket.IO payload emitted after every persisted control change"""

    source: str = Field(..., description="What changed the document: 'command' or 'safety_sweep'")
    device: Optional[str] = Field(default=None, description="Device that changed")
    state: dict[str, Any] = Field(..., description="Full control document")


def describe_validation_error(exc: Exception) -> str:
    """First human-readable message from a pydantic ValidationError."""
    errors = exc.errors() if hasattr(exc, "errors") else []
    if not errors:
        return "Invalid request"
    first = errors[0]
    original = (first.get("ctx") or {}).get("error")
    if original is not None:
        return str(original)
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message
