from __future__ import annotations

import atexit
import contextlib
import logging
import signal
import threading
from typing import Any

from flask import Flask, request
from werkzeug.exceptions import HTTPException

from app.blueprints.api.control import control_api
from app.blueprints.api.health import health_api
from app.blueprints.status.routes import status_bp
from app.config import ensure_valid, load_config, setup_logging
from app.extensions import init_extensions, socketio


def create_app(config_overrides: dict[str, Any] | None = None) -> Flask:
    config = load_config()
    if config_overrides:
        for key, value in config_overrides.items():
            setattr(config, key.lower() if key.lower() in config.__dataclass_fields__ else key, value)
    ensure_valid(config)

    # Configure logging early so container startup is visible in the terminal and control.log.
    setup_logging(debug=config.DEBUG, level=config.log_level, log_dir=config.log_dir)

    flask_app = Flask(__name__)
    flask_app.config.update(config.as_flask_config())

    # Control commands are tiny; reject anything larger than 64 KB
    flask_app.config["MAX_CONTENT_LENGTH"] = 64 * 1024

    # Initialize Socket.IO BEFORE building ServiceContainer (EmitterService needs it)
    init_extensions(flask_app, config.socketio_cors_origins)

    from app.services.container import ServiceContainer

    container = ServiceContainer.build(config, socketio=socketio)
    flask_app.config["CONTAINER"] = container

    # Release each request thread's SQLite connection when its app context ends
    container.database.init_app(flask_app)

    # ── Graceful shutdown handlers ──────────────────────────────────
    _shutdown_lock = threading.Lock()
    _shutdown_done = False

    def _graceful_shutdown(reason: str = "unknown") -> None:
        nonlocal _shutdown_done
        with _shutdown_lock:
            if _shutdown_done:
                return
            _shutdown_done = True
        logging.info("Graceful shutdown initiated (%s)", reason)
        try:
            container.shutdown()
        except Exception as exc:
            logging.warning("Error during graceful shutdown: %s", exc)

    def _signal_handler(signum: int, _frame: object) -> None:
        sig_name = signal.Signals(signum).name
        logging.info("Received %s, shutting down", sig_name)
        _graceful_shutdown(sig_name)
        raise SystemExit(0)

    flask_app.extensions["control_shutdown"] = _graceful_shutdown

    if config.start_background_tasks:
        # Register atexit (covers normal interpreter exit)
        atexit.register(_graceful_shutdown, "atexit")

        # Register OS signal handlers (SIGINT=Ctrl-C, SIGTERM=container/systemd stop)
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(OSError, ValueError):
                signal.signal(sig, _signal_handler)

    # Global JSON error handler: any unhandled exception on /api/ routes
    # returns a generic message instead of a stack trace. Domain exceptions
    # carry their own ``http_status``.
    @flask_app.errorhandler(Exception)
    def _handle_unhandled(exc):
        from app.utils.http import exception_response

        if not request.path.startswith("/api/") and isinstance(exc, HTTPException):
            return exc
        return exception_response(exc, context="unhandled")

    # ── API version prefix ──────────────────────────────────────────
    V1 = "/api/v1"

    flask_app.register_blueprint(status_bp)
    flask_app.register_blueprint(control_api, url_prefix=f"{V1}/control")
    flask_app.register_blueprint(health_api, url_prefix=f"{V1}/health")

    for bp_name in flask_app.blueprints:
        logging.info(" Registered blueprint: %s", bp_name)

    # ── Backward-compat: rewrite /api/* → /api/v1/* ─────────────
    # WSGI-level rewrite (no HTTP redirect, fully transparent to clients).
    _original_wsgi = flask_app.wsgi_app

    def _legacy_api_rewrite(environ, start_response):
        path = environ.get("PATH_INFO", "")
        if path.startswith("/api/") and not path.startswith("/api/v1/"):
            environ["PATH_INFO"] = "/api/v1" + path[4:]
        elif path == "/api":
            environ["PATH_INFO"] = "/api/v1"
        return _original_wsgi(environ, start_response)

    flask_app.wsgi_app = _legacy_api_rewrite  # type: ignore[assignment]

    logger = logging.getLogger(__name__)
    logger.info("Enclosure control service initialized successfully.")

    return flask_app


__all__ = ["create_app", "socketio"]
