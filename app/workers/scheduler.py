from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict

from app.core.logger import get_logger

log = get_logger(__name__)


PeriodicCallable = Callable[[], Awaitable[object]]


@dataclass
class _Job:
    name: str
    task: asyncio.Task
    stop: asyncio.Event


class PeriodicScheduler:
    """Very small periodic task scheduler.

    schedule(name, coro_func, interval) runs the coroutine at approximately the
    given interval until cancel(name) or stop() is called. Cancelling only
    prevents future runs: a run already in progress is awaited, not
    interrupted.
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, _Job] = {}

    def is_scheduled(self, name: str) -> bool:
        job = self._jobs.get(name)
        return job is not None and not job.task.done()

    def schedule(
        self,
        name: str,
        func: PeriodicCallable,
        interval_sec: float,
        run_immediately: bool = False,
    ) -> None:
        if self.is_scheduled(name):
            raise RuntimeError(f"Job already scheduled: {name}")
        stop = asyncio.Event()

        async def _wait(timeout: float) -> bool:
            # True when stop was requested during the wait
            try:
                await asyncio.wait_for(stop.wait(), timeout=max(0.0, timeout))
                return True
            except asyncio.TimeoutError:
                return False

        async def _loop() -> None:
            if not run_immediately and await _wait(interval_sec):
                return
            while not stop.is_set():
                start = time.monotonic()
                try:
                    await func()
                except Exception:
                    log.exception("Periodic task %s failed", name)
                # maintain approximate interval
                elapsed = time.monotonic() - start
                if await _wait(interval_sec - elapsed):
                    return

        task = asyncio.create_task(_loop(), name=f"periodic-{name}")
        self._jobs[name] = _Job(name=name, task=task, stop=stop)
        log.debug("Scheduled %s every %.1fs", name, interval_sec)

    async def cancel(self, name: str) -> None:
        job = self._jobs.pop(name, None)
        if job is None:
            return
        job.stop.set()
        try:
            await job.task
        except asyncio.CancelledError:
            pass
        log.debug("Cancelled periodic job %s", name)

    async def stop(self) -> None:
        for name in list(self._jobs):
            await self.cancel(name)
