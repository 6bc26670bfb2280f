"""
Per-process save session state.

Owns what would otherwise be module globals:
- one asyncio.Lock per content id, so concurrent saves of the same post pass
  the duplicate check one at a time
- captures stashed by browser tab (author metadata scraped before the user
  clicks save), consumed once
- the last pipeline stage reached per content id
- background work a save schedules but does not wait for (notifications)
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from enum import Enum

from cachetools import TTLCache

from keepli.observability.logging import get_logger
from keepli.observability.telemetry import counter
from keepli.storage.models import CaptureRequest

logger = get_logger(__name__)

PENDING_CAPTURE_TTL_SECONDS = 15 * 60
PENDING_CAPTURE_MAX = 256
STAGE_HISTORY_MAX = 512


class SaveStage(str, Enum):
    VALIDATING = "validating"
    CHECKING_DUPLICATE = "checking_duplicate"
    ENRICHING = "enriching"
    PERSISTING_REMOTE = "persisting_remote"
    PERSISTING_LOCAL = "persisting_local"
    NOTIFYING = "notifying"
    DONE = "done"


class SaveSession:
    def __init__(
        self,
        pending_ttl: float = PENDING_CAPTURE_TTL_SECONDS,
        pending_max: int = PENDING_CAPTURE_MAX,
    ):
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}
        self._pending: TTLCache[str, CaptureRequest] = TTLCache(maxsize=pending_max, ttl=pending_ttl)
        self._stages: TTLCache[str, SaveStage] = TTLCache(maxsize=STAGE_HISTORY_MAX, ttl=pending_ttl)
        self._background: set[asyncio.Task] = set()

    @asynccontextmanager
    async def single_flight(self, content_id: str) -> AsyncIterator[None]:
        """Hold the content id's lock for the duration of the block."""
        lock = self._locks.setdefault(content_id, asyncio.Lock())
        self._waiters[content_id] = self._waiters.get(content_id, 0) + 1
        if lock.locked():
            counter("save.single_flight_wait")
            logger.debug("Save already in flight for %s, waiting", content_id)
        try:
            async with lock:
                yield
        finally:
            self._waiters[content_id] -= 1
            if self._waiters[content_id] == 0:
                del self._waiters[content_id]
                del self._locks[content_id]

    def in_flight(self) -> list[str]:
        return list(self._locks)

    def record_stage(self, content_id: str, stage: SaveStage) -> None:
        self._stages[content_id] = stage

    def stage_of(self, content_id: str) -> SaveStage | None:
        return self._stages.get(content_id)

    def stash_capture(self, tab_id: str, capture: CaptureRequest) -> None:
        """Keep a capture for a tab until consumed or expired; a later stash replaces it."""
        self._pending[tab_id] = capture

    def consume_capture(self, tab_id: str) -> CaptureRequest | None:
        return self._pending.pop(tab_id, None)

    def spawn(self, work: Coroutine) -> asyncio.Task:
        """Run work on the current loop without awaiting it; the task is held until it finishes."""
        task = asyncio.get_running_loop().create_task(work)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def pending_background(self) -> int:
        return len(self._background)

    async def drain(self) -> None:
        """Wait for background work scheduled on the running loop."""
        loop = asyncio.get_running_loop()
        tasks = [task for task in self._background if task.get_loop() is loop]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
