from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from flask_socketio import SocketIO

from app.config import AppConfig
from app.services.application.control_cache import ControlCache
from app.services.application.device_controller import DeviceController
from app.utils.cache import CacheRegistry
from app.utils.emitters import EmitterService
from app.utils.time import Clock, utc_now
from app.workers.safety_sweeper import SafetySweeper
from app.workers.unified_scheduler import UnifiedScheduler
from infrastructure.database.repositories.control import ControlStateRepository
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler
from infrastructure.logging.audit import AuditLogger

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Aggregate and manage core backend services."""

    config: AppConfig
    database: SQLiteDatabaseHandler
    cache_registry: CacheRegistry
    control_repo: ControlStateRepository
    control_cache: ControlCache
    emitter_service: EmitterService
    audit_logger: AuditLogger
    device_controller: DeviceController
    scheduler: UnifiedScheduler
    safety_sweeper: SafetySweeper

    @classmethod
    def build(
        cls,
        config: AppConfig,
        *,
        socketio: Optional[SocketIO] = None,
        clock: Clock = utc_now,
    ) -> "ServiceContainer":
        """Construct the service container with all dependencies.

        Args:
            config: Application configuration
            socketio: Real-time channel for state broadcasts (None disables emits)
            clock: Wall clock shared by the controller, sweeper and store
        """
        logger.info("Building ServiceContainer...")

        database = SQLiteDatabaseHandler(config.database_path, timeout=config.database_timeout_seconds)
        database.create_tables()

        cache_registry = CacheRegistry()
        control_repo = ControlStateRepository(database, clock=clock)
        control_cache = ControlCache(
            ttl_seconds=config.cache_ttl_seconds,
            enabled=config.cache_enabled,
            registry=cache_registry,
        )
        emitter_service = EmitterService(socketio)
        audit_logger = AuditLogger(config.audit_log_path, config.log_level)

        device_controller = DeviceController(
            control_repo,
            control_cache,
            emitter=emitter_service,
            audit_logger=audit_logger,
            clock=clock,
            default_washer_duration=config.washer_default_duration_seconds,
            max_washer_duration=config.washer_max_duration_seconds,
            max_attempts=config.command_max_attempts,
        )

        scheduler = UnifiedScheduler(clock=clock)
        safety_sweeper = SafetySweeper(
            control_repo,
            control_cache,
            scheduler,
            emitter=emitter_service,
            audit_logger=audit_logger,
            clock=clock,
            interval_seconds=config.sweep_interval_seconds,
        )

        container = cls(
            config=config,
            database=database,
            cache_registry=cache_registry,
            control_repo=control_repo,
            control_cache=control_cache,
            emitter_service=emitter_service,
            audit_logger=audit_logger,
            device_controller=device_controller,
            scheduler=scheduler,
            safety_sweeper=safety_sweeper,
        )

        if config.start_background_tasks:
            container.start_background_tasks()

        logger.info("ServiceContainer built successfully.")
        return container

    def start_background_tasks(self) -> None:
        """Schedule the safety sweep and start the scheduler loop."""
        self.safety_sweeper.start()
        self.scheduler.start()
        logger.info("✓ Safety sweep running every %ss", self.safety_sweeper.interval_seconds)

    def shutdown(self) -> None:
        """Release external resources before process exit."""
        self.safety_sweeper.stop()

        try:
            self.scheduler.shutdown()
            logger.info("✓ UnifiedScheduler stopped")
        except Exception as e:
            logger.warning(f"Failed to stop UnifiedScheduler: {e}")

        self.audit_logger.close()
        self.database.close_all()
        logger.info("ServiceContainer shutdown complete.")
