from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Optional

from app.core.errors import InitializationFailure
from app.core.logger import get_logger
from app.schemas.transcript import Session

log = get_logger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    created_at INTEGER NOT NULL,
    payload TEXT NOT NULL
)
"""


class SessionStore:
    """Session rows (metadata + last snapshot) stored as JSON documents."""

    def __init__(self, db_path: str = ":memory:") -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        try:
            if db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(db_path, check_same_thread=False)
            self._conn.execute(_SCHEMA)
            self._conn.execute("CREATE INDEX IF NOT EXISTS idx_sessions_created ON sessions(created_at)")
            self._conn.commit()
        except (sqlite3.Error, OSError) as e:
            log.exception("Failed to open session store at %s", db_path)
            raise InitializationFailure(f"Session store unavailable: {db_path}") from e

    def put(self, session: Session) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO sessions (id, created_at, payload) VALUES (?, ?, ?)",
                (session.id, session.metadata.created_at, session.model_dump_json()),
            )

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            row = self._conn.execute("SELECT payload FROM sessions WHERE id = ?", (session_id,)).fetchone()
        return Session.model_validate_json(row[0]) if row else None

    def exists(self, session_id: str) -> bool:
        with self._lock:
            row = self._conn.execute("SELECT 1 FROM sessions WHERE id = ?", (session_id,)).fetchone()
        return row is not None

    def latest(self) -> Optional[Session]:
        """Most recently created session, if any."""
        with self._lock:
            row = self._conn.execute(
                "SELECT payload FROM sessions ORDER BY created_at DESC, rowid DESC LIMIT 1"
            ).fetchone()
        return Session.model_validate_json(row[0]) if row else None

    def clear(self) -> None:
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM sessions")

    def close(self) -> None:
        with self._lock:
            self._conn.close()
