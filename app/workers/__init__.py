"""
Workers module for background services and scheduled tasks.

This module contains:
- unified_scheduler: interval scheduler shared by all background jobs
- safety_sweeper: pressure washer auto-off
"""

__all__ = [
    "SafetySweeper",
    "UnifiedScheduler",
]

from app.workers.safety_sweeper import SafetySweeper
from app.workers.unified_scheduler import UnifiedScheduler
