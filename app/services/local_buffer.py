"""
Local bounded transcript buffer backed by SQLite.

Entries are keyed by timestamp (epoch ms); writing an existing timestamp
overwrites it. Every public operation runs as one transaction under a process
lock so readers never see a partially applied write, while separate
operations may interleave freely.

The cap itself is not enforced here: the sync manager decides when to call
delete_overflow(cap).

Write failures raise IngestFailure; failures of every other operation raise
StorageFailure.
"""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Any, Iterable, List, Sequence, Tuple

from app.core.errors import IngestFailure, InitializationFailure, StorageFailure
from app.core.logger import get_logger
from app.schemas.transcript import TranscriptEntry

log = get_logger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS transcripts (
    timestamp INTEGER PRIMARY KEY,
    text TEXT NOT NULL,
    is_final INTEGER NOT NULL DEFAULT 1
)
"""


def _row_to_entry(row: sqlite3.Row) -> TranscriptEntry:
    return TranscriptEntry(text=row["text"], timestamp=row["timestamp"], is_final=bool(row["is_final"]))


class TranscriptBuffer:
    def __init__(self, db_path: str = ":memory:") -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        try:
            if db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            if db_path != ":memory:":
                self._conn.execute("PRAGMA journal_mode = WAL")
            self._conn.execute(_SCHEMA)
            self._conn.commit()
        except (sqlite3.Error, OSError) as e:
            log.exception("Failed to open transcript buffer at %s", db_path)
            raise InitializationFailure(f"Transcript buffer unavailable: {db_path}") from e
        log.info("Transcript buffer ready at %s", db_path)

    def _select(self, sql: str, params: Tuple[Any, ...] = ()) -> List[sqlite3.Row]:
        try:
            with self._lock:
                return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            log.exception("Buffer read failed")
            raise StorageFailure("Failed to read transcript buffer") from e

    # -------------------------
    # Writes
    # -------------------------
    def append(self, entry: TranscriptEntry) -> None:
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    "INSERT OR REPLACE INTO transcripts (timestamp, text, is_final) VALUES (?, ?, ?)",
                    (entry.timestamp, entry.text, int(entry.is_final)),
                )
        except sqlite3.Error as e:
            log.exception("Buffer write failed for timestamp %s", entry.timestamp)
            raise IngestFailure("Failed to write transcript entry", timestamp=entry.timestamp) from e
        log.debug("Buffered entry %s (%d chars)", entry.timestamp, len(entry.text))

    def append_many(self, entries: Iterable[TranscriptEntry]) -> int:
        rows = [(e.timestamp, e.text, int(e.is_final)) for e in entries]
        if not rows:
            return 0
        try:
            with self._lock, self._conn:
                self._conn.executemany(
                    "INSERT OR REPLACE INTO transcripts (timestamp, text, is_final) VALUES (?, ?, ?)",
                    rows,
                )
        except sqlite3.Error as e:
            log.exception("Batch buffer write failed (%d rows)", len(rows))
            raise IngestFailure(f"Failed to write {len(rows)} transcript entries") from e
        return len(rows)

    def delete_overflow(self, keep_count: int) -> List[TranscriptEntry]:
        """Remove and return the oldest max(0, count - keep_count) entries, ascending."""
        keep_count = max(0, keep_count)
        try:
            with self._lock, self._conn:
                total = self._conn.execute("SELECT COUNT(*) FROM transcripts").fetchone()[0]
                overflow = total - keep_count
                if overflow <= 0:
                    return []
                rows = self._conn.execute(
                    "SELECT timestamp, text, is_final FROM transcripts ORDER BY timestamp ASC LIMIT ?",
                    (overflow,),
                ).fetchall()
                self._conn.executemany(
                    "DELETE FROM transcripts WHERE timestamp = ?",
                    [(r["timestamp"],) for r in rows],
                )
        except sqlite3.Error as e:
            log.exception("Overflow eviction failed (keep %d)", keep_count)
            raise StorageFailure(f"Failed to evict overflow beyond {keep_count} entries") from e
        log.info("Evicted %d entries from buffer (kept %d)", len(rows), keep_count)
        return [_row_to_entry(r) for r in rows]

    def delete(self, timestamps: Sequence[int]) -> int:
        if not timestamps:
            return 0
        try:
            with self._lock, self._conn:
                cur = self._conn.executemany(
                    "DELETE FROM transcripts WHERE timestamp = ?",
                    [(int(ts),) for ts in timestamps],
                )
                removed = cur.rowcount
        except sqlite3.Error as e:
            log.exception("Delete of %d buffered entries failed", len(timestamps))
            raise StorageFailure(f"Failed to delete {len(timestamps)} transcript entries") from e
        log.debug("Deleted %d entries by timestamp", removed)
        return removed

    def clear(self) -> None:
        try:
            with self._lock, self._conn:
                self._conn.execute("DELETE FROM transcripts")
        except sqlite3.Error as e:
            log.exception("Buffer clear failed")
            raise StorageFailure("Failed to clear transcript buffer") from e
        log.info("Transcript buffer cleared")

    # -------------------------
    # Reads
    # -------------------------
    def count(self) -> int:
        return int(self._select("SELECT COUNT(*) FROM transcripts")[0][0])

    def recent(self, n: int = 100) -> List[TranscriptEntry]:
        """The n newest entries, newest first."""
        if n <= 0:
            return []
        rows = self._select(
            "SELECT timestamp, text, is_final FROM transcripts ORDER BY timestamp DESC LIMIT ?",
            (n,),
        )
        return [_row_to_entry(r) for r in rows]

    def all(self) -> List[TranscriptEntry]:
        """Every entry, newest first."""
        rows = self._select("SELECT timestamp, text, is_final FROM transcripts ORDER BY timestamp DESC")
        return [_row_to_entry(r) for r in rows]

    def oldest(self, n: int) -> List[TranscriptEntry]:
        """Peek at the n oldest entries, oldest first, without removing them."""
        if n <= 0:
            return []
        rows = self._select(
            "SELECT timestamp, text, is_final FROM transcripts ORDER BY timestamp ASC LIMIT ?",
            (n,),
        )
        return [_row_to_entry(r) for r in rows]

    def close(self) -> None:
        with self._lock:
            self._conn.close()
