from __future__ import annotations

import json
import logging
from typing import Any

from app.utils.time import iso_now

logger = logging.getLogger(__name__)


class ControlOperations:
    """SQL helpers for the singleton control document.

    The document lives in a one-row table (``id = 1``) as a JSON blob with an
    integer ``version`` that increases on every replacement.
    """

    def _ensure_control_table(self) -> None:
        db = self.get_db()
        db.execute(
            """
            CREATE TABLE IF NOT EXISTS ControlDocument (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                document TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1,
                updated_at TIMESTAMP
            )
            """
        )
        db.commit()

    def load_control_document(self) -> tuple[dict[str, Any], int] | None:
        db = self.get_db()
        row = db.execute("SELECT document, version FROM ControlDocument WHERE id = 1").fetchone()
        if row is None:
            return None
        return json.loads(row["document"]), int(row["version"])

    def insert_control_document(self, document: dict[str, Any]) -> bool:
        """Create the document unless one already exists. Returns True if inserted."""
        db = self.get_db()
        try:
            cursor = db.execute(
                """
                INSERT OR IGNORE INTO ControlDocument (id, document, version, updated_at)
                VALUES (1, ?, 1, ?)
                """,
                (json.dumps(document), iso_now()),
            )
            inserted = cursor.rowcount == 1
            db.commit()
        except Exception:
            db.rollback()
            raise
        return inserted

    def replace_control_document(self, document: dict[str, Any], expected_version: int | None = None) -> int | None:
        """Replace the document and return its new version.

        With ``expected_version`` the replacement only happens when the stored
        version still matches; ``None`` is returned when it does not.
        """
        db = self.get_db()
        payload = json.dumps(document)
        try:
            if expected_version is None:
                db.execute(
                    """
                    INSERT INTO ControlDocument (id, document, version, updated_at)
                    VALUES (1, ?, 1, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        document = excluded.document,
                        version = ControlDocument.version + 1,
                        updated_at = excluded.updated_at
                    """,
                    (payload, iso_now()),
                )
            else:
                cursor = db.execute(
                    """
                    UPDATE ControlDocument
                    SET document = ?, version = version + 1, updated_at = ?
                    WHERE id = 1 AND version = ?
                    """,
                    (payload, iso_now(), int(expected_version)),
                )
                if cursor.rowcount != 1:
                    db.rollback()
                    return None

            row = db.execute("SELECT version FROM ControlDocument WHERE id = 1").fetchone()
            db.commit()
        except Exception:
            db.rollback()
            raise
        return int(row["version"])

    def get_control_version(self) -> int | None:
        db = self.get_db()
        row = db.execute("SELECT version FROM ControlDocument WHERE id = 1").fetchone()
        return int(row["version"]) if row else None
