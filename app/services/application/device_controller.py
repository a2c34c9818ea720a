"""
Device Controller
=================

Validates operator commands and applies them to the control document.

Read path is cache-aside (cache first, store on miss). Every successful
command performs exactly one conditional write followed by one cache
invalidation; a rejected command never reaches the store.

Concurrent writers are detected with the document ``version``: if the
sweeper (or another request) saved in between, the command re-reads the
document from the store and re-applies itself, up to ``max_attempts`` times.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from app.domain.control import ControlCommand, ControlState, PressureWasherControl
from app.domain.exceptions import ConflictError, StaleStateError, ValidationError
from app.enums import ControlEvent, DeviceMode, DeviceName
from app.services.application.control_cache import ControlCache
from app.utils.emitters import EmitterService
from app.utils.time import Clock, utc_now
from infrastructure.database.repositories.control import ControlStateRepository
from infrastructure.logging.audit import AuditLogger

logger = logging.getLogger(__name__)


class DeviceController:
    """Applies control commands to the singleton control document."""

    def __init__(
        self,
        repository: ControlStateRepository,
        cache: ControlCache,
        *,
        emitter: Optional[EmitterService] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Clock = utc_now,
        default_washer_duration: int = 300,
        max_washer_duration: int = 3600,
        max_attempts: int = 3,
    ) -> None:
        self._repo = repository
        self._cache = cache
        self._emitter = emitter
        self._audit = audit_logger
        self._clock = clock
        self.default_washer_duration = int(default_washer_duration)
        self.max_washer_duration = int(max_washer_duration)
        self.max_attempts = max(1, int(max_attempts))

    # ------------------------------------------------------------------ reads
    def get_state(self) -> ControlState:
        """Current control document, served from the cache when fresh."""
        cached = self._cache.get()
        if cached is not None:
            return cached

        generation = self._cache.generation
        state = self._repo.load()
        self._cache.put(state, generation=generation)
        return state

    # --------------------------------------------------------------- commands
    def apply_command(self, device: Any, requested_mode: Any, timer_duration: Any = None) -> ControlState:
        """
        Validate and apply one command.

        Args:
            device: one of light, fan_positive, fan_negative, pressure_washer
            requested_mode: AUTO, FORCE_ON or FORCE_OFF (AUTO rejected for the washer)
            timer_duration: washer run time in seconds, FORCE_ON only

        Returns:
            The persisted control document.

        Raises:
            ValidationError: unknown device/mode, AUTO for the washer, bad duration
            ConflictError: lost the race against concurrent writers on every attempt
            StoreError: the store could not be read or written
        """
        try:
            command = self._validate(device, requested_mode, timer_duration)
        except ValidationError as exc:
            self.record_rejection(device, requested_mode, str(exc))
            raise

        current = self.get_state()
        for attempt in range(1, self.max_attempts + 1):
            updated = self._transition(current, command, self._clock())
            try:
                saved = self._repo.save(updated, expected_version=current.version)
            except StaleStateError as exc:
                self._cache.invalidate()
                if attempt >= self.max_attempts:
                    raise ConflictError(
                        f"Control document kept changing; {command.device.value} command not applied",
                        detail=exc.detail,
                    ) from exc
                logger.warning(
                    "Control document changed during %s command (attempt %d/%d); retrying",
                    command.device.value,
                    attempt,
                    self.max_attempts,
                )
                current = self._repo.load()
                continue

            self._cache.invalidate()
            self._after_write(saved, command)
            return saved

        raise ConflictError(f"{command.device.value} command not applied")  # pragma: no cover

    def record_rejection(self, device: Any, requested_mode: Any, reason: str) -> None:
        """Log and audit a command that was refused before reaching the store."""
        logger.info("Rejected control command device=%s mode=%s: %s", device, requested_mode, reason)
        self._record(ControlEvent.COMMAND_REJECTED, str(device), mode=str(requested_mode), reason=reason)

    def _validate(self, device: Any, requested_mode: Any, timer_duration: Any) -> ControlCommand:
        command = ControlCommand.parse(device, requested_mode, timer_duration)
        if command.device is DeviceName.PRESSURE_WASHER and command.mode is DeviceMode.FORCE_ON:
            duration = command.timer_duration or self.default_washer_duration
            if duration > self.max_washer_duration:
                raise ValidationError(
                    f"timer_duration must not exceed {self.max_washer_duration} seconds, got {duration}"
                )
        elif timer_duration is not None:
            logger.debug(
                "Ignoring timer_duration=%r for %s %s", timer_duration, command.device.value, command.mode.value
            )
        return command

    def _transition(self, state: ControlState, command: ControlCommand, now: datetime) -> ControlState:
        if command.device is DeviceName.PRESSURE_WASHER:
            if command.mode is DeviceMode.FORCE_ON:
                duration = command.timer_duration or self.default_washer_duration
                control = state.pressure_washer.switched_on(duration, now)
            else:
                control = PressureWasherControl.switched_off()
        else:
            control = state.device(command.device).with_mode(command.mode)
        return state.with_device(command.device, control, now)

    def _after_write(self, saved: ControlState, command: ControlCommand) -> None:
        control = saved.device(command.device)
        logger.info(
            "%s set to %s (state=%s, version=%d)",
            command.device.value,
            command.mode.value,
            control.state.value,
            saved.version,
        )
        meta: dict[str, Any] = {"mode": command.mode.value, "state": control.state.value, "version": saved.version}
        if isinstance(control, PressureWasherControl) and control.timer_expires_at:
            meta["timer_expires_at"] = control.timer_expires_at.isoformat()
        self._record(ControlEvent.COMMAND_APPLIED, command.device.value, **meta)
        if self._emitter is not None:
            self._emitter.emit_control_state(saved, source="command", device=command.device.value)

    def _record(self, event: ControlEvent, device: str, **meta: Any) -> None:
        if self._audit is not None:
            self._audit.record_control(event, device, **meta)
