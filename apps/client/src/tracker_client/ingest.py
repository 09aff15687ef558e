from __future__ import annotations

from collections.abc import AsyncGenerator
from enum import Enum
import logging
from typing import Any

from tracker_client.cache import CREATE_JOB_KEY, JOBS_KEY, CacheStore, job_key
from tracker_client.errors import TrackerError
from tracker_client.frames import iter_frames
from tracker_client.http import JobsClient
from tracker_client.resources import Job, normalize_job

logger = logging.getLogger(__name__)


class IngestionState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    DECODING = "decoding"
    NORMALIZING = "normalizing"
    CACHE_WRITING = "cache_writing"
    COMPLETED = "completed"
    FAILED = "failed"


class IngestionRun:
    """One streamed creation request, from issue to stream completion.

    Frames are handled one at a time in arrival order. ``cancel`` is honoured
    between frames: the stream is closed and the run completes without error.
    """

    def __init__(
        self,
        *,
        client: JobsClient,
        cache: CacheStore,
        payload: dict[str, Any],
        token: str | None,
        buffered: bool = True,
    ) -> None:
        self._client = client
        self._cache = cache
        self._payload = payload
        self._token = token
        self._buffered = buffered
        self.state = IngestionState.IDLE
        self.error: TrackerError | None = None
        self.frames = 0
        self.cancelled = False
        self._cancel_requested = False

    def cancel(self) -> None:
        self._cancel_requested = True

    async def execute(self) -> None:
        if self.state is not IngestionState.IDLE:
            raise RuntimeError(f"Ingestion run already {self.state.value}")

        try:
            self._transition(IngestionState.REQUESTING)
            async with self._client.open_create_stream(self._payload, self._token) as response:
                self._transition(IngestionState.STREAMING)
                frames = iter_frames(self._client.iter_body(response), buffered=self._buffered)
                try:
                    await self._consume(frames)
                finally:
                    await frames.aclose()
        except TrackerError as exc:
            self.error = exc
            self._transition(IngestionState.FAILED)
            logger.warning("ingestion run failed after %d frame(s): %s", self.frames, exc)
            raise

        self._transition(IngestionState.COMPLETED)

    async def _consume(self, frames: AsyncGenerator[Any, None]) -> None:
        while not self._cancel_requested:
            self._transition(IngestionState.DECODING)
            try:
                document = await anext(frames)
            except StopAsyncIteration:
                return

            self._transition(IngestionState.NORMALIZING)
            job = normalize_job(document)

            self._transition(IngestionState.CACHE_WRITING)
            self._store(job)
            self.frames += 1
            self._transition(IngestionState.STREAMING)

        self.cancelled = True
        logger.info("ingestion run cancelled after %d frame(s)", self.frames)

    def _store(self, job: Job) -> None:
        self._cache.write(CREATE_JOB_KEY, job)
        self._cache.write(job_key(job.id), job)
        self._cache.invalidate(JOBS_KEY)
        self._cache.refetch(JOBS_KEY)
        logger.info("ingested job id=%s status=%s", job.id, job.current_status)

    def _transition(self, state: IngestionState) -> None:
        logger.debug("ingestion run %s -> %s", self.state.value, state.value)
        self.state = state


class IngestionOrchestrator:
    def __init__(self, *, client: JobsClient, cache: CacheStore, buffered: bool = True) -> None:
        self._client = client
        self._cache = cache
        self._buffered = buffered

    def start(self, payload: dict[str, Any], token: str | None) -> IngestionRun:
        return IngestionRun(
            client=self._client,
            cache=self._cache,
            payload=payload,
            token=token,
            buffered=self._buffered,
        )

    async def submit_create(self, payload: dict[str, Any], token: str | None) -> None:
        await self.start(payload, token).execute()
