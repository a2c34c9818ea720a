from __future__ import annotations

import logging
import sqlite3
from typing import Any, Optional

from app.domain.control import ControlState
from app.domain.exceptions import StaleStateError, StoreError
from app.utils.time import Clock, utc_now
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler

logger = logging.getLogger(__name__)


class ControlStateRepository:
    """Durable store for the singleton control document.

    Every ``sqlite3.Error`` is re-raised as :class:`StoreError`, and so is a
    stored document that cannot be decoded; nothing is swallowed.
    """

    def __init__(self, backend: SQLiteDatabaseHandler, *, clock: Clock = utc_now) -> None:
        self._backend = backend
        self._clock = clock

    def load(self) -> ControlState:
        """Return the control document, creating the default one on first access."""
        try:
            row = self._backend.load_control_document()
            if row is None:
                default = ControlState.default(self._clock())
                if self._backend.insert_control_document(default.to_dict()):
                    logger.info("Created default control document")
                row = self._backend.load_control_document()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to load control document: {exc}") from exc
        except ValueError as exc:
            raise StoreError(f"Stored control document is not valid JSON: {exc}") from exc

        if row is None:
            raise StoreError("Control document missing after creation")
        return self._decode(row)

    def load_existing(self) -> Optional[ControlState]:
        """Return the control document, or None if it was never created."""
        try:
            row = self._backend.load_control_document()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to load control document: {exc}") from exc
        except ValueError as exc:
            raise StoreError(f"Stored control document is not valid JSON: {exc}") from exc
        if row is None:
            return None
        return self._decode(row)

    def save(self, state: ControlState, *, expected_version: Optional[int] = None) -> ControlState:
        """Replace the stored document and return it stamped with its new version.

        Raises:
            StaleStateError: ``expected_version`` no longer matches the store
            StoreError: the write failed; the stored document is unchanged
        """
        try:
            version = self._backend.replace_control_document(state.to_dict(), expected_version)
            if version is None:
                actual = self._backend.get_control_version()
                raise StaleStateError(int(expected_version), actual)
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to save control document: {exc}") from exc
        return state.with_version(version)

    def ping(self) -> bool:
        return self._backend.ping()

    @staticmethod
    def _decode(row: tuple[dict[str, Any], int]) -> ControlState:
        document, version = row
        try:
            return ControlState.from_dict(document, version=version)
        except (ValueError, TypeError, AttributeError) as exc:
            raise StoreError(f"Stored control document is malformed: {exc}") from exc
