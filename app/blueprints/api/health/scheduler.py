"""
Scheduler Health Endpoints
==========================
"""

from __future__ import annotations

from flask import Blueprint, Response

from app.blueprints.api._common import get_container, success as _success
from app.utils.http import safe_route


def register_scheduler_routes(health_api: Blueprint):
    """Register scheduler health routes on the blueprint."""

    @health_api.get("/scheduler")
    @safe_route("Failed to get scheduler health")
    def get_scheduler_health() -> Response:
        """Health report plus per-job counters (the safety sweep among them)."""
        scheduler = get_container().scheduler
        report = scheduler.health_check()
        report["jobs"] = [job.to_dict() for job in scheduler.get_jobs()]
        return _success(report)
