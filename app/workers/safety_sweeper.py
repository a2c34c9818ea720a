"""
Pressure washer safety sweep.

Every tick reads the control document straight from the store (never from
the cache) and forces the washer off once its timer has elapsed. The sweep
runs regardless of how the washer was switched on, so a forgotten washer is
always stopped.

The auto-off write is conditional on the version that was read. If an
operator command lands between the read and the write, the sweep loses:
the write is rejected, the tick is logged, and the next tick evaluates the
fresh document (which may carry a new timer).
"""

from __future__ import annotations

import logging
from typing import Optional

from app.domain.control import PressureWasherControl
from app.domain.exceptions import StaleStateError, StoreError
from app.enums import ControlEvent, DeviceName
from app.services.application.control_cache import ControlCache
from app.utils.emitters import EmitterService
from app.utils.time import Clock, utc_now
from app.workers.unified_scheduler import UnifiedScheduler
from infrastructure.database.repositories.control import ControlStateRepository
from infrastructure.logging.audit import AuditLogger

logger = logging.getLogger(__name__)

SAFETY_SWEEP_JOB_ID = "control.safety_sweep"


class SafetySweeper:
    """Periodic washer auto-off."""

    def __init__(
        self,
        repository: ControlStateRepository,
        cache: ControlCache,
        scheduler: UnifiedScheduler,
        *,
        emitter: Optional[EmitterService] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Clock = utc_now,
        interval_seconds: float = 10,
    ) -> None:
        self._repo = repository
        self._cache = cache
        self._scheduler = scheduler
        self._emitter = emitter
        self._audit = audit_logger
        self._clock = clock
        self.interval_seconds = interval_seconds

    def sweep_once(self) -> bool:
        """Run one sweep. Returns True if the washer was switched off.

        Raises:
            StoreError: the store could not be read or written
            StaleStateError: the document changed between read and write
        """
        state = self._repo.load_existing()
        if state is None:
            return False

        now = self._clock()
        washer = state.pressure_washer
        if not washer.is_expired(now):
            return False

        updated = state.with_device(DeviceName.PRESSURE_WASHER, PressureWasherControl.switched_off(), now)
        saved = self._repo.save(updated, expected_version=state.version)
        self._cache.invalidate()

        logger.info(
            "Pressure washer timer expired at %s; switched off (version=%d)",
            washer.timer_expires_at.isoformat(),
            saved.version,
        )
        if self._audit is not None:
            self._audit.record_control(
                ControlEvent.WASHER_AUTO_OFF,
                DeviceName.PRESSURE_WASHER.value,
                actor="safety_sweep",
                timer_duration=washer.timer_duration,
                timer_expires_at=washer.timer_expires_at.isoformat(),
                version=saved.version,
            )
        if self._emitter is not None:
            self._emitter.emit_control_state(saved, source="safety_sweep", device=DeviceName.PRESSURE_WASHER.value)
        return True

    def run_tick(self) -> bool:
        """Scheduled entry point: a failed tick is logged and retried on the next one."""
        try:
            return self.sweep_once()
        except StaleStateError as exc:
            logger.info("Safety sweep lost a race with a concurrent write (%s); re-checking next tick", exc)
        except StoreError as exc:
            logger.error("Safety sweep failed: %s", exc)
        return False

    def start(self) -> None:
        """Register the sweep on the scheduler."""
        self._scheduler.schedule_interval(
            SAFETY_SWEEP_JOB_ID,
            self.run_tick,
            self.interval_seconds,
            namespace="control",
        )
        logger.info("Safety sweep scheduled every %ss", self.interval_seconds)

    def stop(self) -> None:
        if self._scheduler.remove_job(SAFETY_SWEEP_JOB_ID):
            logger.info("Safety sweep stopped")

    @property
    def is_scheduled(self) -> bool:
        return self._scheduler.get_job(SAFETY_SWEEP_JOB_ID) is not None
