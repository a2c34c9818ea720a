"""
HTTP response helpers
=====================

Every API response uses one envelope::

    {"ok": true,  "data": {...}, "error": null, "message": "..."}
    {"ok": false, "data": null,  "error": {"message": "...", "timestamp": "..."}, "message": "..."}

4xx messages are written for the caller and returned as-is. Anything that
maps to 5xx is logged with its traceback and answered with a fixed message
so store paths and SQL never reach the client.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable

from flask import Response, jsonify
from werkzeug.exceptions import HTTPException

from app.domain.exceptions import ControlError
from app.utils.time import iso_now

_log = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "An internal error occurred"


def success_response(
    data: dict | list | None = None,
    status: int = 200,
    *,
    message: str | None = None,
) -> Response:
    payload: dict[str, Any] = {"ok": True, "data": data, "error": None}
    if message is not None:
        payload["message"] = message
    response = jsonify(payload)
    response.status_code = status
    return response


def error_response(message: str, status: int = 500) -> Response:
    response = jsonify(
        {
            "ok": False,
            "data": None,
            "error": {"message": message, "timestamp": iso_now()},
            "message": message,
        }
    )
    response.status_code = status
    return response


def exception_response(exc: BaseException, *, context: str = "") -> Response:
    """Turn any exception into an error envelope.

    ``ControlError`` carries its own ``http_status``; werkzeug errors carry
    ``code``; everything else is a 500.
    """
    if isinstance(exc, ControlError):
        status = exc.http_status
        message = str(exc) or context
    elif isinstance(exc, HTTPException):
        status = int(exc.code or 500)
        message = exc.description or context
    else:
        status = 500
        message = ""

    if status >= 500:
        _log.error("API error [%s] %s: %s", status, context or type(exc).__name__, exc, exc_info=exc)
        return error_response(INTERNAL_ERROR_MESSAGE, status)
    return error_response(message or "Request failed", status)


def safe_route(context: str) -> Callable:
    """Wrap a route so any exception it raises becomes an error envelope.

    Usage::

        @control_api.get("")
        @safe_route("Failed to read control state")
        def get_control_state():
            ...
    """

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Response:
            try:
                return fn(*args, **kwargs)
            except Exception as exc:
                return exception_response(exc, context=context)

        return wrapper

    return decorator
