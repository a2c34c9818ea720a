"""
Configuration for the Enclosure Control Service
===============================================
Runtime settings loaded from ``CONTROL_*`` environment variables.
Sets up the logging configuration as well.
"""

import os
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any

from app.domain.exceptions import ConfigurationError

APP_VERSION = "1.0.0"


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be an integer.") from None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be a number.") from None


@dataclass
class AppConfig:
    """Runtime configuration loaded from environment variables."""

    environment: str = field(default_factory=lambda: os.getenv("CONTROL_ENV", "development"))
    DEBUG: bool = field(default_factory=lambda: _env_bool("CONTROL_DEBUG", False))
    log_level: str = field(default_factory=lambda: os.getenv("CONTROL_LOG_LEVEL", "INFO"))
    log_dir: str = field(default_factory=lambda: os.getenv("CONTROL_LOG_DIR", "logs"))
    audit_log_path: str = field(default_factory=lambda: os.getenv("CONTROL_AUDIT_LOG_PATH", "logs/audit.log"))

    host: str = field(default_factory=lambda: os.getenv("CONTROL_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: _env_int("CONTROL_PORT", 5000))
    socketio_cors_origins: str = field(default_factory=lambda: os.getenv("CONTROL_SOCKETIO_CORS", "*"))

    # Control document store
    database_path: str = field(default_factory=lambda: os.getenv("CONTROL_DATABASE_PATH", "database/control.db"))
    database_timeout_seconds: float = field(default_factory=lambda: _env_float("CONTROL_DATABASE_TIMEOUT", 5.0))

    # Read cache in front of the store
    cache_enabled: bool = field(default_factory=lambda: _env_bool("CONTROL_CACHE_ENABLED", True))
    cache_ttl_seconds: float = field(default_factory=lambda: _env_float("CONTROL_CACHE_TTL", 5.0))

    # Pressure washer safety timer
    sweep_interval_seconds: int = field(default_factory=lambda: _env_int("CONTROL_SWEEP_INTERVAL", 10))
    washer_default_duration_seconds: int = field(
        default_factory=lambda: _env_int("CONTROL_WASHER_DEFAULT_DURATION", 300)
    )
    washer_max_duration_seconds: int = field(default_factory=lambda: _env_int("CONTROL_WASHER_MAX_DURATION", 3600))

    # Optimistic concurrency: attempts before a command gives up with 409
    command_max_attempts: int = field(default_factory=lambda: _env_int("CONTROL_COMMAND_MAX_ATTEMPTS", 3))

    # Start the sweeper/scheduler with the app (tests switch this off)
    start_background_tasks: bool = field(default_factory=lambda: _env_bool("CONTROL_START_BACKGROUND_TASKS", True))

    def as_flask_config(self) -> dict[str, Any]:
        return {
            "DEBUG": self.DEBUG,
            "ENV": self.environment,
            "JSON_SORT_KEYS": False,
        }


def validate_config(config: AppConfig) -> list[str]:
    """
    Validate configuration and return list of problems.

    Args:
        config: AppConfig instance

    Returns:
        List of error messages (empty if all valid)
    """
    problems = []

    if config.cache_ttl_seconds < 0:
        problems.append(f"Cache TTL must not be negative, got {config.cache_ttl_seconds}")

    if config.sweep_interval_seconds < 1:
        problems.append(f"Sweep interval must be at least 1 second, got {config.sweep_interval_seconds}")

    if config.washer_default_duration_seconds < 1:
        problems.append(
            f"Default washer duration must be at least 1 second, got {config.washer_default_duration_seconds}"
        )

    if config.washer_default_duration_seconds > config.washer_max_duration_seconds:
        problems.append(
            f"Default washer duration ({config.washer_default_duration_seconds}s) exceeds "
            f"the maximum ({config.washer_max_duration_seconds}s)"
        )

    if config.command_max_attempts < 1:
        problems.append(f"Command attempts must be at least 1, got {config.command_max_attempts}")

    if config.database_timeout_seconds <= 0:
        problems.append(f"Database timeout must be positive, got {config.database_timeout_seconds}")

    return problems


def load_config() -> AppConfig:
    """Build AppConfig from the environment."""
    return AppConfig()


def ensure_valid(config: AppConfig) -> AppConfig:
    """Raise ConfigurationError listing every problem found in ``config``."""
    problems = validate_config(config)
    if problems:
        raise ConfigurationError("Invalid configuration: " + "; ".join(problems), detail={"problems": problems})
    return config


def setup_logging(debug: bool = False, *, level: str | None = None, log_dir: str = "logs") -> None:
    """Setup logging configuration."""
    import logging
    import sys
    from logging.handlers import RotatingFileHandler

    if debug:
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, (level or "INFO").upper(), logging.INFO)

    # Root logger
    root = logging.getLogger()
    root.setLevel(log_level)

    # Keep existing handlers but avoid adding duplicates when create_app is called multiple times
    has_console = any(getattr(h, "name", "") == "control_console" for h in root.handlers)
    has_file = any(getattr(h, "name", "") == "control_file" for h in root.handlers)
    added_handler = False

    stream = sys.stdout
    with suppress(AttributeError, ValueError):
        stream.reconfigure(encoding="utf-8", errors="replace")
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if not has_console:
        console_handler = logging.StreamHandler(stream=stream)
        console_handler.name = "control_console"
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
        added_handler = True

    if not has_file:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, "control.log"),
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.name = "control_file"
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        added_handler = True

    # Ensure handler levels follow the desired log level
    for handler in root.handlers:
        if getattr(handler, "name", "") in {"control_console", "control_file"}:
            handler.setLevel(log_level)

    if added_handler:
        root.info("Logging initialized at level: %s", logging.getLevelName(log_level))

    if _env_bool("CONTROL_SILENCE_WERKZEUG", True):
        logging.getLogger("werkzeug").setLevel(logging.WARNING)

    # Engine.IO polling is noisy at INFO
    if _env_bool("CONTROL_SILENCE_SOCKETIO", True):
        logging.getLogger("socketio").setLevel(logging.WARNING)
        logging.getLogger("engineio").setLevel(logging.WARNING)
