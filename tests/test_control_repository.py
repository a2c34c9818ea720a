import sqlite3
from unittest.mock import Mock

import pytest

from app.domain.control import DeviceControl
from app.domain.exceptions import StaleStateError, StoreError
from app.enums import ActuatorState, DeviceMode, DeviceName
from infrastructure.database.repositories.control import ControlStateRepository
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler


def _light_on(state, clock):
    return state.with_device(DeviceName.LIGHT, DeviceControl().with_mode(DeviceMode.FORCE_ON), clock())


def test_load_creates_default_document_once(control_repo):
    assert control_repo.load_existing() is None

    first = control_repo.load()
    second = control_repo.load()

    assert first.version == 1
    assert second == first
    assert first.light.state is ActuatorState.OFF


def test_save_bumps_version(control_repo, clock):
    state = control_repo.load()

    saved = control_repo.save(_light_on(state, clock), expected_version=state.version)

    assert saved.version == 2
    assert control_repo.load().light.state is ActuatorState.ON


def test_stale_save_is_rejected_and_leaves_document(control_repo, clock):
    original = control_repo.load()
    control_repo.save(_light_on(original, clock), expected_version=1)

    with pytest.raises(StaleStateError) as excinfo:
        control_repo.save(original.with_device(DeviceName.FAN_POSITIVE, DeviceControl(), clock()), expected_version=1)

    assert excinfo.value.expected_version == 1
    assert excinfo.value.actual_version == 2
    stored = control_repo.load()
    assert stored.version == 2
    assert stored.light.state is ActuatorState.ON


def test_unconditional_save_creates_document(control_repo, clock):
    from app.domain.control import ControlState

    saved = control_repo.save(ControlState.default(clock()))

    assert saved.version == 1
    assert control_repo.load_existing() == saved


def test_document_is_durable_across_handlers(tmp_path, clock):
    path = str(tmp_path / "durable.db")
    handler = SQLiteDatabaseHandler(path)
    handler.create_tables()
    repo = ControlStateRepository(handler, clock=clock)
    repo.save(_light_on(repo.load(), clock), expected_version=1)
    handler.close_all()

    reopened = SQLiteDatabaseHandler(path)
    reopened.create_tables()
    try:
        state = ControlStateRepository(reopened, clock=clock).load()
    finally:
        reopened.close_all()

    assert state.version == 2
    assert state.light.mode is DeviceMode.FORCE_ON


def test_sqlite_errors_surface_as_store_error(clock):
    backend = Mock(spec=SQLiteDatabaseHandler)
    backend.load_control_document.side_effect = sqlite3.OperationalError("database is locked")
    backend.replace_control_document.side_effect = sqlite3.OperationalError("disk I/O error")
    repo = ControlStateRepository(backend, clock=clock)

    with pytest.raises(StoreError):
        repo.load()
    with pytest.raises(StoreError):
        repo.load_existing()

    from app.domain.control import ControlState

    with pytest.raises(StoreError):
        repo.save(ControlState.default(clock()), expected_version=1)


def test_ping(control_repo):
    assert control_repo.ping() is True


def _store_raw_document(db_handler, document):
    db = db_handler.get_db()
    db.execute("INSERT INTO ControlDocument (id, document, version) VALUES (1, ?, 3)", (document,))
    db.commit()


@pytest.mark.parametrize(
    "document",
    [
        "{not json",
        '{"light": {"mode": "BLINK", "state": "ON"}}',
        '{"pressure_washer": {"mode": "AUTO", "state": "OFF"}}',
        '{"light": "ON"}',
    ],
)
def test_undecodable_document_surfaces_as_store_error(db_handler, control_repo, document):
    _store_raw_document(db_handler, document)

    with pytest.raises(StoreError):
        control_repo.load()
    with pytest.raises(StoreError):
        control_repo.load_existing()
