from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from app.core.config import Settings, get_settings
from app.core.errors import InitializationFailure
from app.core.logger import get_logger
from app.services.local_buffer import TranscriptBuffer
from app.services.remote_sink import RemoteSink, SupabaseSink
from app.services.session_manager import TranscriptionSessionManager
from app.services.session_store import SessionStore
from app.services.significance import SignificanceScorer, SentenceConfig, WordConfig
from app.services.sync_manager import SyncManager

log = get_logger(__name__)


@dataclass
class PipelineServices:
    """Everything the routes need, built once per application.

    `sink` and `sync` are None when no remote sink is configured; ingestion
    and ranking keep working without them.
    """

    settings: Settings
    buffer: TranscriptBuffer
    sessions: SessionStore
    manager: TranscriptionSessionManager
    sink: Optional[RemoteSink] = None
    sync: Optional[SyncManager] = None

    async def aclose(self) -> None:
        if self.sync is not None:
            await self.sync.stop()
        aclose = getattr(self.sink, "aclose", None)
        if aclose is not None:
            await aclose()
        self.buffer.close()
        self.sessions.close()


def create_services(
    settings: Optional[Settings] = None,
    sink: Optional[RemoteSink] = None,
    db_path: Optional[str] = None,
) -> PipelineServices:
    """Wire stores, scorer, sink and sync manager from settings.

    Raises InitializationFailure if the local stores cannot be opened. A
    missing remote sink configuration is logged and leaves sync disabled.
    """
    settings = settings or get_settings()
    path = db_path or settings.BUFFER_DB_PATH
    buffer = TranscriptBuffer(path)
    sessions = SessionStore(path)
    scorer = SignificanceScorer(
        word_config=WordConfig(max_items=settings.MAX_WORD_ITEMS),
        sentence_config=SentenceConfig(max_items=settings.MAX_SENTENCE_ITEMS),
    )
    manager = TranscriptionSessionManager(buffer, sessions, scorer=scorer, settings=settings)

    if sink is None:
        try:
            sink = SupabaseSink(settings=settings)
        except InitializationFailure as e:
            log.warning("Remote sync disabled: %s", e)
            sink = None

    sync = SyncManager(buffer, sink, settings=settings) if sink is not None else None
    return PipelineServices(
        settings=settings,
        buffer=buffer,
        sessions=sessions,
        manager=manager,
        sink=sink,
        sync=sync,
    )
