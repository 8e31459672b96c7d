"""Bounded-concurrency generation pools for speech and sound effects."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable
from typing import Any

from radioplay.cache import ContentCache
from radioplay.constants import EFFECTS_CONCURRENCY, SPEECH_CONCURRENCY

logger = logging.getLogger(__name__)


class WorkerPool:
    """Semaphore-gated runner: at most `concurrency` producers at once.

    Waiters are admitted in FIFO order as slots free up. Once admitted a
    producer runs to completion or failure; there is no cancellation.
    """

    def __init__(self, name: str, concurrency: int) -> None:
        self.name = name
        self.concurrency = max(1, int(concurrency))
        self.active = 0
        self._semaphore: asyncio.Semaphore | None = None

    def _get_semaphore(self) -> asyncio.Semaphore:
        """Get or create the slot semaphore (bound to the running loop)."""
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.concurrency)
        return self._semaphore

    async def run(self, producer: Callable[[], Awaitable[Any]]) -> Any:
        async with self._get_semaphore():
            self.active += 1
            try:
                return await producer()
            finally:
                self.active -= 1


class GenerationScheduler:
    """Two independent pools in front of a shared content cache.

    Cache hits never occupy a pool slot: the cache decides first whether a
    producer runs at all, and only new work is queued on a pool.
    """

    def __init__(
        self,
        cache: ContentCache | None = None,
        speech_concurrency: int = SPEECH_CONCURRENCY,
        effects_concurrency: int = EFFECTS_CONCURRENCY,
    ) -> None:
        self.cache = cache if cache is not None else ContentCache()
        self.speech_pool = WorkerPool("speech", speech_concurrency)
        self.effects_pool = WorkerPool("effects", effects_concurrency)

    def submit_speech(self, key: Hashable, producer: Callable[[], Awaitable[Any]]) -> asyncio.Task:
        return self.cache.submit(key, lambda: self.speech_pool.run(producer))

    def submit_effect(self, key: Hashable, producer: Callable[[], Awaitable[Any]]) -> asyncio.Task:
        return self.cache.submit(key, lambda: self.effects_pool.run(producer))

    @staticmethod
    async def join(handles: list[asyncio.Task]) -> list[Any]:
        """Wait for every handle; the first failure propagates."""
        return list(await asyncio.gather(*handles))
