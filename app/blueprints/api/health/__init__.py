"""
Health API Blueprint
====================

Diagnostics for the service internals.

Routes:
- GET /api/v1/health/cache - Read cache metrics
- GET /api/v1/health/scheduler - Background scheduler health
"""

from __future__ import annotations

import logging

from flask import Blueprint

logger = logging.getLogger("health_api")

health_api = Blueprint("health_api", __name__)

from app.blueprints.api.health.cache import register_cache_routes
from app.blueprints.api.health.scheduler import register_scheduler_routes

register_cache_routes(health_api)
register_scheduler_routes(health_api)

__all__ = ["health_api"]
