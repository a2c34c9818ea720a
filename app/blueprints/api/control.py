"""
Device Control API Blueprint
============================

Endpoints:
- GET  /api/v1/control - Current control document
- POST /api/v1/control - Apply a command to one device

Request body for POST:
    {"device": "light", "mode": "FORCE_ON"}
    {"device": "pressure_washer", "mode": "FORCE_ON", "timer_duration": 120}
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response
from pydantic import ValidationError

from app.blueprints.api._common import fail, get_device_controller, get_json, success
from app.schemas import ControlCommandRequest, describe_validation_error
from app.utils.http import safe_route

logger = logging.getLogger("control_api")

control_api = Blueprint("control_api", __name__)


@control_api.get("")
@safe_route("Failed to read control state")
def get_control_state() -> Response:
    """Return the control document (served from the read cache when fresh)."""
    state = get_device_controller().get_state()
    return success(state.to_dict())


@control_api.post("")
@safe_route("Failed to apply control command")
def apply_control_command() -> Response:
    """
    Apply a mode to one device.

    Returns the updated control document with
    ``message = "<device> set to <mode>"``.
    """
    controller = get_device_controller()
    raw = get_json()

    try:
        body = ControlCommandRequest.model_validate(raw)
    except ValidationError as ve:
        message = describe_validation_error(ve)
        device = raw.get("device") if isinstance(raw, dict) else None
        mode = raw.get("mode") if isinstance(raw, dict) else None
        controller.record_rejection(device, mode, message)
        return fail(message, 400)

    state = controller.apply_command(body.device, body.mode, body.timer_duration)
    return success(state.to_dict(), message=f"{body.device.value} set to {body.mode.value}")
