from __future__ import annotations

from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class TranscriptEntry(BaseModel):
    """One ingested fragment. `timestamp` (epoch ms) is the primary key."""

    model_config = ConfigDict(populate_by_name=True)

    text: str
    timestamp: int
    is_final: bool = Field(default=True, alias="isFinal")


class TranscriptRow(BaseModel):
    """Row shape of the remote transcripts table."""

    text: str
    timestamp: int
    is_final: bool = True

    @classmethod
    def from_entry(cls, entry: TranscriptEntry) -> "TranscriptRow":
        return cls(text=entry.text, timestamp=entry.timestamp, is_final=entry.is_final)


class DisplayMode(str, Enum):
    word = "word"
    sentence = "sentence"


class RankedItem(BaseModel):
    text: str
    score: float
    size: float
    position: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    frequency: int = 1


class Snapshot(BaseModel):
    generated_at: int
    mode: DisplayMode
    items: List[RankedItem]
    version: str


class SessionMetadata(BaseModel):
    created_at: int
    updated_at: int
    total_duration: int = 0
    total_transcripts: int = 0
    total_words: int = 0
    language: str = "ja-JP"


class Session(BaseModel):
    id: str
    metadata: SessionMetadata
    snapshot: Optional[Snapshot] = None


class SessionExport(BaseModel):
    """Portable backup document for one session."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    metadata: SessionMetadata
    transcripts: List[TranscriptEntry]
    snapshot: Optional[Snapshot] = None


class SyncState(BaseModel):
    is_syncing: bool = False
    last_sync_time: int = 0
    auto_sync_active: bool = False


class SyncResult(BaseModel):
    synced: int = 0
    evicted: int = 0
    attempted: int = 0
    failed_batches: int = 0
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return not self.skipped and self.failed_batches == 0


class RemoteStats(BaseModel):
    total_count: int
    latest_timestamp: Optional[int] = None
    oldest_timestamp: Optional[int] = None
