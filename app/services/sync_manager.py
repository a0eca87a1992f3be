"""
Sync of the local transcript buffer to the remote sink.

One sync cycle:
1. acquire the guard without blocking; if another cycle (timer, manual or
   export-all) holds it, return a skipped result instead of queueing
2. if the buffer is within BUFFER_CAP and the call is not forced, stop
3. take the overflow (the oldest count - cap entries)
4. push it in sequential batches of SYNC_BATCH_SIZE; a failed batch is
   logged and skipped, never retried

Delivery is best-effort by default (SYNC_EVICT_BEFORE_CONFIRM=True): the
overflow is deleted locally before it is pushed, so a failed batch is lost
for good. With SYNC_EVICT_BEFORE_CONFIRM=False the overflow is only peeked,
and entries are deleted after their batch is confirmed; failed batches stay
in the buffer and are retried by the next cycle.
"""

from __future__ import annotations

import asyncio
import threading
import time
from typing import List, Optional

from app.core.config import Settings, get_settings
from app.core.errors import SyncBatchFailure
from app.core.logger import get_logger
from app.schemas.transcript import SyncResult, SyncState, TranscriptEntry, TranscriptRow
from app.services.local_buffer import TranscriptBuffer
from app.services.remote_sink import RemoteSink
from app.workers.scheduler import PeriodicScheduler

log = get_logger(__name__)

AUTO_SYNC_JOB = "auto-sync"


def _now_ms() -> int:
    return int(time.time() * 1000)


class SyncManager:
    def __init__(
        self,
        buffer: TranscriptBuffer,
        sink: RemoteSink,
        settings: Optional[Settings] = None,
        scheduler: Optional[PeriodicScheduler] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self.buffer = buffer
        self.sink = sink
        self.cap = self._settings.BUFFER_CAP
        self.batch_size = max(1, self._settings.SYNC_BATCH_SIZE)
        self.evict_before_confirm = self._settings.SYNC_EVICT_BEFORE_CONFIRM
        self._scheduler = scheduler or PeriodicScheduler()
        self._guard = threading.Lock()
        self._last_sync_time = 0
        self._auto_sync_active = False

    # -------------------------
    # Status
    # -------------------------
    @property
    def is_syncing(self) -> bool:
        return self._guard.locked()

    def status(self) -> SyncState:
        return SyncState(
            is_syncing=self.is_syncing,
            last_sync_time=self._last_sync_time,
            auto_sync_active=self._auto_sync_active,
        )

    # -------------------------
    # Sync cycle
    # -------------------------
    async def sync(self, force: bool = False) -> SyncResult:
        """Run one sync cycle.

        Batch failures are counted, never raised. StorageFailure from the local
        buffer propagates; the guard is released either way.
        """
        if not self._guard.acquire(blocking=False):
            log.debug("Sync skipped: another sync is in progress (force=%s)", force)
            return SyncResult(skipped=True)
        try:
            count = await asyncio.to_thread(self.buffer.count)
            if count <= self.cap and not force:
                log.debug("Sync not needed: %d entries <= cap %d", count, self.cap)
                return SyncResult()

            log.info("Sync started: %d entries, cap %d, force=%s", count, self.cap, force)
            if self.evict_before_confirm:
                result = await self._sync_evict_first()
            else:
                result = await self._sync_confirm_first(count)
            self._last_sync_time = _now_ms()
            log.info(
                "Sync finished: %d/%d rows delivered, %d failed batches",
                result.synced,
                result.attempted,
                result.failed_batches,
            )
            return result
        finally:
            self._guard.release()

    async def _sync_evict_first(self) -> SyncResult:
        evicted = await asyncio.to_thread(self.buffer.delete_overflow, self.cap)
        if not evicted:
            return SyncResult()
        result = SyncResult(evicted=len(evicted), attempted=len(evicted))
        for number, batch in enumerate(self._batches(evicted), start=1):
            try:
                result.synced += await self._push(batch, number)
            except Exception:
                result.failed_batches += 1
                # Already evicted locally: these rows are gone
                log.exception(
                    "Sync batch %d failed; %d evicted entries were not delivered (%s..%s)",
                    number,
                    len(batch),
                    batch[0].timestamp,
                    batch[-1].timestamp,
                )
        return result

    async def _sync_confirm_first(self, count: int) -> SyncResult:
        pending = await asyncio.to_thread(self.buffer.oldest, count - self.cap)
        if not pending:
            return SyncResult()
        result = SyncResult(attempted=len(pending))
        for number, batch in enumerate(self._batches(pending), start=1):
            try:
                result.synced += await self._push(batch, number)
            except Exception:
                result.failed_batches += 1
                log.exception("Sync batch %d failed; %d entries kept locally", number, len(batch))
                continue
            result.evicted += await asyncio.to_thread(self.buffer.delete, [e.timestamp for e in batch])
        return result

    async def export_all(self) -> SyncResult:
        """Push every buffered entry without evicting anything (manual backup).

        Shares the sync guard. Unlike sync(), a failed batch aborts the export
        and the error reaches the caller.
        """
        if not self._guard.acquire(blocking=False):
            log.debug("Export skipped: a sync is in progress")
            return SyncResult(skipped=True)
        try:
            entries = await asyncio.to_thread(self.buffer.all)
            if not entries:
                log.info("Export: buffer is empty")
                return SyncResult()
            entries.reverse()
            result = SyncResult(attempted=len(entries))
            for number, batch in enumerate(self._batches(entries), start=1):
                result.synced += await self._push(batch, number)
            log.info("Exported %d entries to remote sink", result.synced)
            return result
        finally:
            self._guard.release()

    def _batches(self, entries: List[TranscriptEntry]) -> List[List[TranscriptEntry]]:
        return [entries[i : i + self.batch_size] for i in range(0, len(entries), self.batch_size)]

    async def _push(self, batch: List[TranscriptEntry], number: int) -> int:
        rows = [TranscriptRow.from_entry(e) for e in batch]
        try:
            inserted = await self.sink.push_batch(rows)
        except SyncBatchFailure as e:
            e.batch_number = number
            raise
        log.debug("Sync batch %d: %d/%d rows inserted", number, inserted, len(rows))
        return inserted

    # -------------------------
    # Auto sync
    # -------------------------
    async def start(self, interval_ms: Optional[int] = None) -> None:
        """Start periodic sync; restarts it if already running.

        The first cycle runs immediately.
        """
        if self._scheduler.is_scheduled(AUTO_SYNC_JOB):
            await self.stop()
        interval = interval_ms or self._settings.SYNC_INTERVAL_MS
        self._last_sync_time = 0
        self._auto_sync_active = True
        self._scheduler.schedule(AUTO_SYNC_JOB, self.sync, interval / 1000.0, run_immediately=True)
        log.info("Auto sync started every %.1fs", interval / 1000.0)

    async def stop(self) -> None:
        """Cancel future timer firings; an in-flight sync runs to completion."""
        if not self._auto_sync_active:
            return
        self._auto_sync_active = False
        await self._scheduler.cancel(AUTO_SYNC_JOB)
        log.info("Auto sync stopped")
