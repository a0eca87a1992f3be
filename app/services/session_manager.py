"""
Session and snapshot management.

The manager owns one current session: created lazily on the first entry, or
resumed from the most recently created session in the store. Entries go to
the local buffer first; session counters are updated afterwards.

Ranking always runs over every buffered entry (not just the display window)
and its result replaces the cached snapshot wholesale.
"""

from __future__ import annotations

import threading
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from app.core.config import Settings, get_settings
from app.core.logger import get_logger
from app.schemas.transcript import (
    DisplayMode,
    Session,
    SessionExport,
    SessionMetadata,
    Snapshot,
    TranscriptEntry,
)
from app.services.local_buffer import TranscriptBuffer
from app.services.session_store import SessionStore
from app.services.significance import SignificanceScorer

log = get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def word_count(text: str) -> int:
    return len(text.split())


class TranscriptionSessionManager:
    def __init__(
        self,
        buffer: TranscriptBuffer,
        sessions: SessionStore,
        scorer: Optional[SignificanceScorer] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self.buffer = buffer
        self.sessions = sessions
        self.scorer = scorer or SignificanceScorer()
        self._current_session_id: Optional[str] = None
        # Serializes read-modify-write of the session row
        self._session_lock = threading.RLock()

    # -------------------------
    # Session lifecycle
    # -------------------------
    def _generate_session_id(self) -> str:
        base = datetime.now().strftime("%Y-%m-%d_%H%M%S")
        session_id, n = base, 1
        while self.sessions.exists(session_id):
            n += 1
            session_id = f"{base}_{n}"
        return session_id

    def start_session(self, language: Optional[str] = None) -> str:
        with self._session_lock:
            now = _now_ms()
            session = Session(
                id=self._generate_session_id(),
                metadata=SessionMetadata(
                    created_at=now,
                    updated_at=now,
                    language=language or self._settings.LANGUAGE,
                ),
            )
            self.sessions.put(session)
            self._current_session_id = session.id
        log.info("Started session %s (%s)", session.id, session.metadata.language)
        return session.id

    def current_session_id(self) -> str:
        """Current session id, resuming the latest session or creating one."""
        with self._session_lock:
            if self._current_session_id:
                return self._current_session_id
            latest = self.sessions.latest()
            if latest is not None:
                self._current_session_id = latest.id
                log.info("Resumed session %s", latest.id)
                return latest.id
            return self.start_session()

    def _load_current(self) -> Session:
        session_id = self.current_session_id()
        session = self.sessions.get(session_id)
        if session is None:
            # Row vanished underneath us; start over rather than fail ingestion
            log.error("Session %s not found in store; starting a new one", session_id)
            self._current_session_id = None
            session = self.sessions.get(self.start_session())
        return session

    # -------------------------
    # Ingestion
    # -------------------------
    def add_entry(self, entry: TranscriptEntry) -> None:
        """Write to the buffer, then update session counters.

        Raises IngestFailure when the buffer write fails; counters are left
        untouched in that case.
        """
        self.buffer.append(entry)
        with self._session_lock:
            session = self._load_current()
            meta = session.metadata
            meta.total_transcripts += 1
            meta.total_words += word_count(entry.text)
            meta.updated_at = max(_now_ms(), meta.updated_at)
            self.sessions.put(session)
        log.debug("Added entry %s to session %s", entry.timestamp, session.id)

    def on_entry(self, text: str, timestamp: int, is_final: bool = True) -> TranscriptEntry:
        entry = TranscriptEntry(text=text, timestamp=timestamp, is_final=is_final)
        self.add_entry(entry)
        return entry

    # -------------------------
    # Snapshots
    # -------------------------
    def generate_and_cache_snapshot(
        self,
        mode: Union[DisplayMode, str] = DisplayMode.word,
        max_items: Optional[int] = None,
        version: Optional[str] = None,
    ) -> Snapshot:
        mode = self.scorer.strategy(mode).mode
        if max_items is None:
            max_items = (
                self._settings.MAX_SENTENCE_ITEMS if mode is DisplayMode.sentence else self._settings.MAX_WORD_ITEMS
            )
        version = version or self._settings.SNAPSHOT_VERSION

        entries = self.buffer.all()
        items = self.scorer.rank([e.text for e in entries], mode=mode, max_items=max_items)
        snapshot = Snapshot(generated_at=_now_ms(), mode=mode, items=items, version=version)

        with self._session_lock:
            session = self._load_current()
            session.snapshot = snapshot
            session.metadata.updated_at = max(_now_ms(), session.metadata.updated_at)
            self.sessions.put(session)

        log.info(
            "Generated %s snapshot: %d items from %d entries (version %s)",
            mode.value,
            len(items),
            len(entries),
            version,
        )
        return snapshot

    def get_snapshot(self, version: Optional[str] = None) -> Optional[Snapshot]:
        """Cached snapshot, or None if absent or tagged with another version."""
        session = self.sessions.get(self.current_session_id())
        if session is None or session.snapshot is None:
            return None
        if version is not None and session.snapshot.version != version:
            log.debug("Discarding stale snapshot %s (wanted %s)", session.snapshot.version, version)
            return None
        return session.snapshot

    # -------------------------
    # Reads
    # -------------------------
    def get_recent(self, n: Optional[int] = None) -> List[TranscriptEntry]:
        return self.buffer.recent(n if n is not None else self._settings.DISPLAY_LIMIT)

    def get_all(self) -> List[TranscriptEntry]:
        return self.buffer.all()

    def get_current_session(self) -> Optional[Session]:
        return self.sessions.get(self.current_session_id())

    # -------------------------
    # Export / import
    # -------------------------
    def export_session(self) -> SessionExport:
        session = self.get_current_session()
        if session is None:
            raise LookupError("No active session")
        return SessionExport(
            id=session.id,
            metadata=session.metadata,
            transcripts=self.buffer.all(),
            snapshot=session.snapshot,
        )

    def export_session_json(self) -> str:
        return self.export_session().model_dump_json(indent=2, by_alias=True)

    def import_session(self, document: Union[SessionExport, Dict[str, Any], str]) -> Session:
        """Restore a session from an exported document and make it current.

        Entries are merged into the buffer (timestamp collisions overwrite);
        metadata and snapshot are taken from the document as-is.
        """
        if isinstance(document, str):
            doc = SessionExport.model_validate_json(document)
        elif isinstance(document, dict):
            doc = SessionExport.model_validate(document)
        else:
            doc = document

        self.buffer.append_many(doc.transcripts)
        session = Session(id=doc.id, metadata=doc.metadata, snapshot=doc.snapshot)
        with self._session_lock:
            self.sessions.put(session)
            self._current_session_id = session.id
        log.info("Imported session %s with %d entries", session.id, len(doc.transcripts))
        return session

    def clear_all(self) -> None:
        with self._session_lock:
            self.buffer.clear()
            self.sessions.clear()
            self._current_session_id = None
        log.info("Cleared all transcripts and sessions")
