from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
import logging
from typing import Any

logger = logging.getLogger(__name__)

QueryKey = tuple[Any, ...]
Fetcher = Callable[[], Awaitable[Any]]
Listener = Callable[[QueryKey, "CacheEntry"], None]

CREATE_JOB_KEY: QueryKey = ("createJob",)
JOBS_KEY: QueryKey = ("getJobs",)


def job_key(job_id: str) -> QueryKey:
    return ("getJobById", job_id)


def key_matches(key: QueryKey, pattern: QueryKey) -> bool:
    return key[: len(pattern)] == pattern


@dataclass(frozen=True)
class CacheEntry:
    """Last known value of one query.

    ``value`` may be ``None``: that is an explicit "gone" marker written by a
    delete, not a missing entry.
    """

    value: Any
    stale: bool = False
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class CacheStore:
    """Keyed store of query results shared by every view of one process."""

    def __init__(self) -> None:
        self._entries: dict[QueryKey, CacheEntry] = {}
        self._fetchers: dict[QueryKey, Fetcher] = {}
        self._listeners: list[tuple[QueryKey, Listener]] = []
        self._inflight: set[asyncio.Task[None]] = set()
        self._generations: dict[QueryKey, int] = {}

    def read(self, key: QueryKey) -> CacheEntry | None:
        return self._entries.get(key)

    def keys(self, pattern: QueryKey = ()) -> list[QueryKey]:
        return [key for key in self._entries if key_matches(key, pattern)]

    def write(self, key: QueryKey, value: Any) -> CacheEntry:
        entry = CacheEntry(value=value)
        self._entries[key] = entry
        self._notify(key, entry)
        return entry

    def invalidate(self, pattern: QueryKey) -> int:
        marked = 0
        for key in self.keys(pattern):
            entry = replace(self._entries[key], stale=True)
            self._entries[key] = entry
            self._notify(key, entry)
            marked += 1
        return marked

    def refetch(self, pattern: QueryKey) -> list[asyncio.Task[None]]:
        tasks: list[asyncio.Task[None]] = []
        for key in self.keys(pattern):
            fetcher = self._fetchers.get(key)
            if fetcher is None:
                continue
            generation = self._generations.get(key, 0) + 1
            self._generations[key] = generation
            task = asyncio.get_running_loop().create_task(
                self._run_refetch(key, fetcher, generation)
            )
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
            tasks.append(task)
        return tasks

    async def fetch(self, key: QueryKey, fetcher: Fetcher) -> Any:
        self._fetchers[key] = fetcher
        entry = self._entries.get(key)
        if entry is not None and not entry.stale:
            return entry.value

        value = await fetcher()
        self.write(key, value)
        return value

    def subscribe(self, pattern: QueryKey, listener: Listener) -> Callable[[], None]:
        subscription = (pattern, listener)
        self._listeners.append(subscription)

        def unsubscribe() -> None:
            if subscription in self._listeners:
                self._listeners.remove(subscription)

        return unsubscribe

    async def settle(self) -> None:
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def _run_refetch(self, key: QueryKey, fetcher: Fetcher, generation: int) -> None:
        try:
            value = await fetcher()
        except Exception:
            logger.warning("refetch failed key=%r; keeping last known value", key, exc_info=True)
            return
        # only the newest refetch of a key may write
        if self._generations.get(key) != generation:
            logger.debug("dropping superseded refetch key=%r generation=%d", key, generation)
            return
        self.write(key, value)

    def _notify(self, key: QueryKey, entry: CacheEntry) -> None:
        for pattern, listener in list(self._listeners):
            if not key_matches(key, pattern):
                continue
            try:
                listener(key, entry)
            except Exception:
                logger.warning("cache listener failed key=%r", key, exc_info=True)
