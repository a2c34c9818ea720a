from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify

from app.config import APP_VERSION
from app.utils.time import iso_now

logger = logging.getLogger(__name__)

status_bp = Blueprint("status", __name__)


@status_bp.get("/")
def status():
    return jsonify({"status": "Backend is running", "time": iso_now()}), 200


@status_bp.get("/health")
def health():
    """Liveness plus store connectivity."""
    container = current_app.config["CONTAINER"]
    connected = container.control_repo.ping()
    if not connected:
        logger.warning("Health check: control store unreachable")
    return (
        jsonify(
            {
                "status": "Backend is running",
                "dbStatus": "Connected" if connected else "Not connected",
                "timestamp": iso_now(),
                "version": APP_VERSION,
            }
        ),
        200,
    )
