"""Centralized exception hierarchy for the control service.

All domain and service exceptions inherit from :class:`ControlError` so that
callers can catch a single base class when they need a broad safety net, yet
still match on specific subclasses where narrower handling is appropriate.

Blueprint-level error handling (see ``app/utils/http.safe_route``) maps these
to the correct HTTP status codes automatically.

Hierarchy
---------
::

    ControlError (base, maps to 500)
    ├── ValidationError          (400, bad input from caller)
    ├── ConflictError            (409, lost a concurrent update)
    │   └── StaleStateError      (409, conditional save rejected)
    ├── RepositoryError          (500, persistence)
    │   └── StoreError           (500, control document unavailable)
    └── ConfigurationError       (500, missing / invalid config)
"""

from __future__ import annotations


class ControlError(Exception):
    """Base exception for all control service errors.

    Parameters
    ----------
    message:
        Human-readable description (logged server-side, **not** leaked to
        the HTTP client unless the exception class opts in).
    detail:
        Optional machine-readable context dict attached to the error for
        structured logging.
    """

    http_status: int = 500

    def __init__(self, message: str = "", *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.detail = detail or {}


# ── Client errors (4xx) ──────────────────────────────────────────────


class ValidationError(ControlError):
    """Caller supplied invalid or disallowed input (HTTP 400)."""

    http_status: int = 400


class ConflictError(ControlError):
    """Operation conflicts with a concurrent update (HTTP 409)."""

    http_status: int = 409


class StaleStateError(ConflictError):
    """The stored document changed since the snapshot being saved was read."""

    def __init__(self, expected_version: int, actual_version: int | None) -> None:
        super().__init__(
            f"Control document changed (expected version {expected_version}, found {actual_version})",
            detail={"expected_version": expected_version, "actual_version": actual_version},
        )
        self.expected_version = expected_version
        self.actual_version = actual_version


# ── Server errors (5xx) ──────────────────────────────────────────────


class RepositoryError(ControlError):
    """Database / persistence layer failure (HTTP 500)."""

    http_status: int = 500


class StoreError(RepositoryError):
    """The control document could not be read or written (HTTP 500)."""


class ConfigurationError(ControlError):
    """Missing or invalid application configuration (HTTP 500)."""

    http_status: int = 500
