"""Error taxonomy for the ingestion, ranking and sync pipeline."""

from __future__ import annotations

from typing import Optional


class PipelineError(Exception):
    """Base exception for the transcript pipeline."""


class InitializationFailure(PipelineError):
    """A local or remote store could not be opened or configured.

    Not retried internally; the caller decides when to try again.
    """


class IngestFailure(PipelineError):
    """A local buffer write failed; the entry is not durably recorded."""

    def __init__(self, message: str, timestamp: Optional[int] = None) -> None:
        super().__init__(message)
        self.timestamp = timestamp

    def __str__(self) -> str:
        base = super().__str__()
        if self.timestamp is not None:
            return f"{base} (timestamp: {self.timestamp})"
        return base


class StorageFailure(PipelineError):
    """A local buffer read, eviction or delete failed."""


class RemoteSinkError(PipelineError):
    """A remote sink request failed."""


class SyncBatchFailure(RemoteSinkError):
    """A remote push failed for one batch."""

    def __init__(
        self,
        message: str,
        batch_number: Optional[int] = None,
        batch_size: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.batch_number = batch_number
        self.batch_size = batch_size

    def __str__(self) -> str:
        base = super().__str__()
        details = []
        if self.batch_number is not None:
            details.append(f"batch: {self.batch_number}")
        if self.batch_size is not None:
            details.append(f"rows: {self.batch_size}")
        return f"{base} ({', '.join(details)})" if details else base


class RankingFailure(PipelineError):
    """Ranking input was malformed.

    The scorer itself never raises this for empty input; it returns an empty
    list. Raised only when a caller asks for an unknown mode.
    """
