from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from types import TracebackType
from typing import Any
from urllib.parse import quote

import httpx

from tracker_client.errors import StreamUnavailableError, TransportError
from tracker_client.resources import Job, normalize_job, normalize_jobs

JOBS_ROUTE = "/jobs"


class JobsClient:
    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout_seconds,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def __aenter__(self) -> JobsClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    @asynccontextmanager
    async def open_create_stream(
        self,
        payload: dict[str, Any],
        token: str | None,
    ) -> AsyncIterator[httpx.Response]:
        request = self._http.build_request(
            "POST",
            JOBS_ROUTE,
            json=_drop_none(payload),
            headers=_auth_headers(token),
        )
        try:
            response = await self._http.send(request, stream=True)
        except httpx.HTTPError as exc:
            raise TransportError(f"An error has occurred: {exc}") from exc

        try:
            if not response.is_success:
                raise TransportError.from_status(response.status_code)
            yield response
        finally:
            await response.aclose()

    async def iter_body(self, response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.StreamError as exc:
            raise StreamUnavailableError(f"Failed to get reader from stream: {exc}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"An error has occurred: {exc}") from exc

    async def get_jobs(self, token: str | None) -> list[Job]:
        response = await self._request("GET", JOBS_ROUTE, token=token)
        return normalize_jobs(response.json())

    async def get_job(self, job_id: str, token: str | None) -> Job:
        response = await self._request("GET", _job_path(job_id), token=token)
        return normalize_job(response.json())

    async def update_job(self, job_id: str, payload: dict[str, Any], token: str | None) -> Job:
        response = await self._request(
            "PATCH",
            _job_path(job_id),
            token=token,
            json=_drop_none(payload),
        )
        return normalize_job(response.json())

    async def delete_job(self, job_id: str, token: str | None) -> None:
        await self._request("DELETE", _job_path(job_id), token=token)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        token: str | None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            response = await self._http.request(
                method,
                path,
                json=json,
                headers=_auth_headers(token),
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"An error has occurred: {exc}") from exc

        if not response.is_success:
            raise TransportError.from_status(response.status_code)
        return response


def _auth_headers(token: str | None) -> dict[str, str]:
    if not token:
        return {}
    return {"Authorization": f"Bearer {token}"}


def _drop_none(payload: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in payload.items() if value is not None}


def _job_path(job_id: str) -> str:
    return f"{JOBS_ROUTE}/{quote(job_id, safe='')}"
