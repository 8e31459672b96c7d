"""In-memory deduplication of speech and sound effect generation requests."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable
from typing import Any

logger = logging.getLogger(__name__)


def speech_key(voice: str, instruction: str, text: str) -> tuple:
    """Cache key for a speech line: voice, delivery instruction, stripped text."""
    return ("speech", voice, instruction, text.strip())


def effect_key(keyword: str) -> tuple:
    """Cache key for a sound effect: the normalized keyword."""
    return ("sfx", keyword.strip().lower())


class ContentCache:
    """Map of key -> task handle with insert-if-absent semantics.

    The first submission for a key starts the producer and stores its task;
    every later submission gets that same task back, whether it is still
    running or already finished. Failed tasks are evicted so the next
    submission retries. Successful tasks stay for the session.
    """

    def __init__(self) -> None:
        self._entries: dict[Hashable, asyncio.Task] = {}

    def submit(self, key: Hashable, producer: Callable[[], Awaitable[Any]]) -> asyncio.Task:
        """Return the task for key, starting producer() only if absent.

        Must be called from a running event loop. No await happens between
        the lookup and the insert, so concurrent callers cannot both start
        the producer.
        """
        existing = self._entries.get(key)
        if existing is not None:
            logger.debug("Cache hit: %s", key[:2] if isinstance(key, tuple) else key)
            return existing

        task = asyncio.ensure_future(producer())
        self._entries[key] = task
        task.add_done_callback(lambda t: self._on_done(key, t))
        return task

    def _on_done(self, key: Hashable, task: asyncio.Task) -> None:
        failed = task.cancelled() or task.exception() is not None
        if failed and self._entries.get(key) is task:
            del self._entries[key]
            logger.info("Evicted failed cache entry: %s", key[:2] if isinstance(key, tuple) else key)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        """Drop every entry, e.g. when a new analysis run starts."""
        self._entries.clear()
