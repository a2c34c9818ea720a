from datetime import timedelta
from unittest.mock import Mock

import pytest

from app.domain.control import DeviceControl
from app.domain.exceptions import ConflictError, StaleStateError, StoreError, ValidationError
from app.enums import ActuatorState, ControlEvent, DeviceMode, DeviceName
from app.services.application.device_controller import DeviceController
from conftest import START


def test_force_on_light(controller, control_repo):
    state = controller.apply_command("light", "FORCE_ON")

    assert state.light == DeviceControl(mode=DeviceMode.FORCE_ON, state=ActuatorState.ON)
    assert control_repo.load() == state


def test_auto_leaves_state_untouched(controller):
    controller.apply_command("fan_positive", "FORCE_ON")

    state = controller.apply_command("fan_positive", "AUTO")

    assert state.fan_positive.mode is DeviceMode.AUTO
    assert state.fan_positive.state is ActuatorState.ON


def test_only_target_device_changes(controller):
    before = controller.get_state()

    after = controller.apply_command("fan_negative", "FORCE_ON")

    assert after.light == before.light
    assert after.fan_positive == before.fan_positive
    assert after.pressure_washer == before.pressure_washer


def test_washer_auto_is_rejected_without_touching_store(controller, control_repo, audit_logger):
    before = control_repo.load()
    audit_logger.record_control = Mock()

    with pytest.raises(ValidationError, match="AUTO mode is not permitted for pressure_washer"):
        controller.apply_command("pressure_washer", "AUTO")

    assert control_repo.load() == before
    audit_logger.record_control.assert_called_once()
    assert audit_logger.record_control.call_args.args[0] is ControlEvent.COMMAND_REJECTED


@pytest.mark.parametrize("device, mode", [("heater", "FORCE_ON"), ("light", "ON")])
def test_unknown_values_leave_store_unchanged(controller, control_repo, emitter, device, mode):
    before = control_repo.load()

    with pytest.raises(ValidationError):
        controller.apply_command(device, mode)

    assert control_repo.load() == before
    emitter.emit_control_state.assert_not_called()


def test_washer_uses_default_duration(controller):
    state = controller.apply_command("pressure_washer", "FORCE_ON")

    washer = state.pressure_washer
    assert washer.state is ActuatorState.ON
    assert washer.timer_duration == 300
    assert washer.timer_started_at == START
    assert washer.timer_expires_at == START + timedelta(seconds=300)


def test_washer_custom_duration(controller):
    state = controller.apply_command("pressure_washer", "FORCE_ON", 45)

    assert state.pressure_washer.timer_expires_at == START + timedelta(seconds=45)


def test_washer_duration_above_maximum_is_rejected(controller, control_repo):
    with pytest.raises(ValidationError, match="must not exceed 3600"):
        controller.apply_command("pressure_washer", "FORCE_ON", 3601)

    assert control_repo.load().pressure_washer.state is ActuatorState.OFF


def test_washer_force_off_clears_timer(controller):
    controller.apply_command("pressure_washer", "FORCE_ON", 60)

    state = controller.apply_command("pressure_washer", "FORCE_OFF")

    assert state.pressure_washer.state is ActuatorState.OFF
    assert state.pressure_washer.timer_duration == 0
    assert state.pressure_washer.timer_expires_at is None


def test_timer_duration_ignored_for_switched_devices(controller):
    state = controller.apply_command("light", "FORCE_ON", 30)

    assert state.light.state is ActuatorState.ON


def test_zero_duration_ignored_for_light(controller):
    state = controller.apply_command("light", "FORCE_ON", 0)

    assert state.light.state is ActuatorState.ON


def test_zero_duration_ignored_for_washer_force_off(controller):
    controller.apply_command("pressure_washer", "FORCE_ON", 60)

    state = controller.apply_command("pressure_washer", "FORCE_OFF", 0)

    assert state.pressure_washer.state is ActuatorState.OFF
    assert state.pressure_washer.timer_expires_at is None


def test_read_after_write_is_coherent(controller):
    controller.get_state()  # warm the cache

    controller.apply_command("light", "FORCE_ON")

    assert controller.get_state().light.state is ActuatorState.ON


def test_repeating_a_command_is_idempotent(controller):
    once = controller.apply_command("light", "FORCE_OFF")
    twice = controller.apply_command("light", "FORCE_OFF")

    assert twice.light == once.light
    assert twice.to_dict() | {"version": None} == once.to_dict() | {"version": None}


def test_get_state_is_served_from_cache(controller, control_repo, monkeypatch):
    first = controller.get_state()
    load = Mock(side_effect=AssertionError("store read while cache is fresh"))
    monkeypatch.setattr(control_repo, "load", load)

    assert controller.get_state() is first


def test_command_broadcasts_and_audits(controller, emitter, audit_logger):
    audit_logger.record_control = Mock()

    state = controller.apply_command("light", "FORCE_ON")

    emitter.emit_control_state.assert_called_once_with(state, source="command", device="light")
    event, device = audit_logger.record_control.call_args.args
    assert event is ControlEvent.COMMAND_APPLIED
    assert device == "light"
    assert audit_logger.record_control.call_args.kwargs["version"] == state.version


def test_command_retries_after_concurrent_write(controller, control_repo, clock, monkeypatch):
    real_save = control_repo.save
    raced = []

    def racing_save(state, *, expected_version=None):
        if not raced:
            raced.append(True)
            current = control_repo.load()
            fan_on = DeviceControl().with_mode(DeviceMode.FORCE_ON)
            real_save(current.with_device(DeviceName.FAN_NEGATIVE, fan_on, clock()), expected_version=current.version)
        return real_save(state, expected_version=expected_version)

    monkeypatch.setattr(control_repo, "save", racing_save)

    state = controller.apply_command("light", "FORCE_ON")

    assert state.version == 3
    assert state.light.state is ActuatorState.ON
    assert state.fan_negative.state is ActuatorState.ON


def test_command_gives_up_after_max_attempts(controller, control_repo, monkeypatch):
    save = Mock(side_effect=StaleStateError(1, 2))
    monkeypatch.setattr(control_repo, "save", save)

    with pytest.raises(ConflictError) as excinfo:
        controller.apply_command("light", "FORCE_ON")

    assert excinfo.value.http_status == 409
    assert save.call_count == controller.max_attempts


def test_store_failure_propagates(control_cache, clock):
    repo = Mock()
    repo.load.side_effect = StoreError("database is locked")
    controller = DeviceController(repo, control_cache, clock=clock)

    with pytest.raises(StoreError):
        controller.apply_command("light", "FORCE_ON")

    repo.save.assert_not_called()
