"""
Schemas Module
==============

This module provides Pydantic models for request/response validation.
Schemas ensure data integrity and provide automatic validation.
"""

from app.schemas.common import ErrorResponse, SuccessResponse
from app.schemas.control import ControlCommandRequest, ControlStatePayload, describe_validation_error

__all__ = [
    "ControlCommandRequest",
    "ControlStatePayload",
    "ErrorResponse",
    "SuccessResponse",
    "describe_validation_error",
]
