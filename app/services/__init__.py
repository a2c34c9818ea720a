"""
Service Organization
====================

**application/**
  Singleton services managed by ServiceContainer. One instance per application.
  Examples: DeviceController, ControlCache

Background jobs (the washer safety sweep) live in ``app.workers``.
"""

from app.services.application.control_cache import ControlCache
from app.services.application.device_controller import DeviceController

__all__ = [
    "ControlCache",
    "DeviceController",
]
