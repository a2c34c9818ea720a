"""
Shared test fixtures for the enclosure control test suite.

Provides:
- Temp-file SQLite database with the control table created
  (connections are per thread, so ``:memory:`` would give each thread
  its own empty database)
- Pinned wall clock and monotonic clock that tests advance by hand
- Controller, cache and sweeper wired to the test database
- Flask app/client built through ``create_app`` with background tasks off

Usage:
    def test_example(controller, clock):
        controller.apply_command("pressure_washer", "FORCE_ON", 60)
        clock.advance(60)
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import Mock

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from app.services.application.control_cache import ControlCache
from app.services.application.device_controller import DeviceController
from app.utils.emitters import EmitterService
from app.workers.safety_sweeper import SafetySweeper
from app.workers.unified_scheduler import UnifiedScheduler
from infrastructure.database.repositories.control import ControlStateRepository
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler
from infrastructure.logging.audit import AuditLogger

# ---------------------------------------------------------------------------
# Logging: keep test output clean
# ---------------------------------------------------------------------------
logging.getLogger("infrastructure").setLevel(logging.WARNING)
logging.getLogger("app").setLevel(logging.WARNING)

START = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Wall clock that only moves when told to."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class FakeMonotonic:
    """Monotonic seconds counter for cache TTL tests."""

    def __init__(self) -> None:
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


# ========================== Clock Fixtures =================================


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def monotonic():
    return FakeMonotonic()


# ========================== Database Fixtures ==============================


@pytest.fixture()
def db_handler(tmp_path):
    """Fresh SQLite file per test with the control table created."""
    handler = SQLiteDatabaseHandler(str(tmp_path / "control.db"))
    handler.create_tables()
    yield handler
    handler.close_all()


@pytest.fixture()
def control_repo(db_handler, clock):
    return ControlStateRepository(db_handler, clock=clock)


# ========================== Service Fixtures ===============================


@pytest.fixture()
def control_cache(monotonic):
    return ControlCache(ttl_seconds=5, clock=monotonic)


@pytest.fixture()
def emitter():
    return Mock(spec=EmitterService)


@pytest.fixture()
def audit_logger(tmp_path):
    audit = AuditLogger(str(tmp_path / "audit.log"), logger_name=f"control.audit.{tmp_path.name}")
    yield audit
    audit.close()


@pytest.fixture()
def controller(control_repo, control_cache, emitter, audit_logger, clock):
    return DeviceController(
        control_repo,
        control_cache,
        emitter=emitter,
        audit_logger=audit_logger,
        clock=clock,
    )


@pytest.fixture()
def scheduler(clock):
    sched = UnifiedScheduler(check_interval_seconds=0.01, clock=clock)
    yield sched
    sched.stop()


@pytest.fixture()
def sweeper(control_repo, control_cache, scheduler, emitter, audit_logger, clock):
    return SafetySweeper(
        control_repo,
        control_cache,
        scheduler,
        emitter=emitter,
        audit_logger=audit_logger,
        clock=clock,
        interval_seconds=10,
    )


# ========================== Flask Fixtures =================================


@pytest.fixture()
def app(tmp_path):
    from app import create_app

    flask_app = create_app(
        {
            "database_path": str(tmp_path / "app.db"),
            "audit_log_path": str(tmp_path / "logs" / "audit.log"),
            "log_dir": str(tmp_path / "logs"),
            "start_background_tasks": False,
        }
    )
    flask_app.config["TESTING"] = True
    yield flask_app
    flask_app.extensions["control_shutdown"]("test teardown")


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def container(app):
    return app.config["CONTAINER"]
