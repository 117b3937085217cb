"""
Durable storage for pending changes.

Changes live in a SQLite table keyed by an autoincrement sequence number,
which is the FIFO order used for replay. Every method is a single
synchronous statement so it cannot interleave with other coroutines.
"""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

from loguru import logger

from .models import ChangeKind, PendingChange

StoredChange = Tuple[int, PendingChange]


class PendingChangeStore:
    """SQLite-backed FIFO of pending changes. Survives restarts."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _get_connection(self):
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize the database schema."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS pending_changes (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    change_id TEXT NOT NULL UNIQUE,
                    kind TEXT NOT NULL,
                    resource TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    enqueued_at TEXT NOT NULL
                )
            """)

    def append(self, change: PendingChange) -> int:
        """Append a change and return its sequence number."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO pending_changes (change_id, kind, resource, payload, enqueued_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    change.change_id,
                    change.kind.value,
                    change.resource,
                    json.dumps(change.payload, default=str),
                    change.enqueued_at.isoformat(),
                ),
            )
            seq = cursor.lastrowid

        logger.debug(f"Persisted {change.kind.value} on {change.resource} as #{seq}")
        return seq

    def load_all(self) -> List[StoredChange]:
        """All pending changes in enqueue order."""
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM pending_changes ORDER BY seq").fetchall()

        return [(row["seq"], self._row_to_change(row)) for row in rows]

    def remove_through(self, last_seq: int) -> int:
        """
        Remove every change with ``seq <= last_seq``.

        Changes appended after the batch was read keep higher sequence
        numbers and are left alone.
        """
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM pending_changes WHERE seq <= ?", (last_seq,))
            return cursor.rowcount

    def count(self) -> int:
        with self._get_connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM pending_changes").fetchone()[0]

    @staticmethod
    def _row_to_change(row: sqlite3.Row) -> PendingChange:
        return PendingChange(
            change_id=row["change_id"],
            kind=ChangeKind(row["kind"]),
            resource=row["resource"],
            payload=json.loads(row["payload"]),
            enqueued_at=datetime.fromisoformat(row["enqueued_at"]),
        )
