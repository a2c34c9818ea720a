"""
Common Schemas
==============

Shared Pydantic models for the API response envelope.
"""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class ErrorDetail(BaseModel):
    """Body of the ``error`` member in a failed response"""

    message: str
    timestamp: str


class SuccessResponse(BaseModel, Generic[T]):
    """Standard success response format"""

    ok: bool = Field(default=True, description="Request success status")
    data: T = Field(..., description="Response data")
    error: None = Field(default=None, description="Always null on success")
    message: str | None = Field(default=None, description="Optional confirmation text")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "ok": True,
                "data": {"light": {"mode": "FORCE_ON", "state": "ON"}},
                "error": None,
                "message": "light set to FORCE_ON",
            }
        }
    )


class ErrorResponse(BaseModel):
    """Standard error response format"""

    ok: bool = Field(default=False, description="Request success status")
    data: Any | None = Field(default=None, description="Data (null on error)")
    error: ErrorDetail = Field(..., description="Error details")
    message: str = Field(..., description="Error message")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "ok": False,
                "data": None,
                "error": {"message": "Unknown device: heater", "timestamp": "2026-01-01T00:00:00+00:00"},
                "message": "Unknown device: heater",
            }
        }
    )
