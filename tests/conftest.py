import asyncio
from typing import List, Optional, Sequence, Set

import pytest

from app.core.config import Settings
from app.core.errors import SyncBatchFailure
from app.schemas.transcript import TranscriptEntry, TranscriptRow
from app.services.local_buffer import TranscriptBuffer
from app.services.session_manager import TranscriptionSessionManager
from app.services.session_store import SessionStore


class FakeSink:
    """In-memory remote sink.

    fail_calls: 1-based push numbers that raise SyncBatchFailure.
    gate: when set, each push waits for it (after setting `entered`).
    """

    def __init__(self) -> None:
        self.batches: List[List[TranscriptRow]] = []
        self.fail_calls: Set[int] = set()
        self.calls = 0
        self.gate: Optional[asyncio.Event] = None
        self.entered: Optional[asyncio.Event] = None

    async def push_batch(self, rows: Sequence[TranscriptRow]) -> int:
        self.calls += 1
        number = self.calls
        if self.entered is not None:
            self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if number in self.fail_calls:
            raise SyncBatchFailure("remote rejected batch")
        self.batches.append(list(rows))
        return len(rows)

    @property
    def rows(self) -> List[TranscriptRow]:
        return [r for batch in self.batches for r in batch]


def _make_entries(n: int, start: int = 1_700_000_000_000, step: int = 1000) -> List[TranscriptEntry]:
    return [TranscriptEntry(text=f"entry number {i}", timestamp=start + i * step, is_final=True) for i in range(n)]


@pytest.fixture
def make_entries():
    return _make_entries


@pytest.fixture
def make_settings():
    def _make(**overrides) -> Settings:
        values = {
            "BUFFER_DB_PATH": ":memory:",
            "BUFFER_CAP": 300,
            "SYNC_BATCH_SIZE": 50,
            "SYNC_INTERVAL_MS": 60_000,
            "AUTO_SYNC": False,
            "SUPABASE_URL": "",
            "SUPABASE_KEY": "",
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def settings(make_settings) -> Settings:
    return make_settings()


@pytest.fixture
def buffer():
    buf = TranscriptBuffer(":memory:")
    yield buf
    buf.close()


@pytest.fixture
def fake_sink() -> FakeSink:
    return FakeSink()


@pytest.fixture
def manager(buffer, settings) -> TranscriptionSessionManager:
    return TranscriptionSessionManager(buffer, SessionStore(":memory:"), settings=settings)
