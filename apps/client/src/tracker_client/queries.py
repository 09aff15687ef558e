from __future__ import annotations

from typing import Any

from tracker_client.cache import CREATE_JOB_KEY, JOBS_KEY, CacheStore, job_key
from tracker_client.http import JobsClient
from tracker_client.ingest import IngestionOrchestrator
from tracker_client.resources import Job


class JobQueries:
    """Binds the job endpoints to their cache keys.

    Reads go through the cache and remember how they were fetched, so later
    invalidation can refetch them. Mutations write their result back and mark
    the job list stale.
    """

    def __init__(
        self,
        *,
        client: JobsClient,
        cache: CacheStore,
        token: str | None,
        orchestrator: IngestionOrchestrator | None = None,
    ) -> None:
        self._client = client
        self._cache = cache
        self._token = token
        self._orchestrator = orchestrator or IngestionOrchestrator(client=client, cache=cache)

    async def get_jobs(self) -> list[Job]:
        return await self._cache.fetch(JOBS_KEY, lambda: self._client.get_jobs(self._token))

    async def get_job(self, job_id: str) -> Job | None:
        return await self._cache.fetch(
            job_key(job_id),
            lambda: self._client.get_job(job_id, self._token),
        )

    def last_created(self) -> Job | None:
        entry = self._cache.read(CREATE_JOB_KEY)
        return entry.value if entry is not None else None

    async def create_job(self, payload: dict[str, Any]) -> None:
        await self._orchestrator.submit_create(payload, self._token)

    async def update_job(self, job_id: str, payload: dict[str, Any]) -> Job:
        job = await self._client.update_job(job_id, payload, self._token)
        self._cache.write(job_key(job.id), job)
        self._cache.invalidate(JOBS_KEY)
        self._cache.refetch(JOBS_KEY)
        return job

    async def delete_job(self, job_id: str) -> None:
        await self._client.delete_job(job_id, self._token)
        self._cache.write(job_key(job_id), None)
        self._cache.invalidate(JOBS_KEY)
        self._cache.refetch(JOBS_KEY)
