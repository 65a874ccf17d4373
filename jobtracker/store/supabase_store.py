"""Job store backed by a hosted Supabase (PostgREST) ``jobs`` table."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx
from loguru import logger

from ..jobs.types import Job, utcnow
from .base import JobStore, StoreError


class SupabaseJobStore(JobStore):
    """Talks to the PostgREST endpoint with a service-role key.

    PostgREST has no multi-statement transactions, so instance inserts rely on
    the ``(parent_job_id, due_date)`` unique constraint instead: duplicates are
    ignored by the server, and the template update that follows can be retried
    safely.
    """

    def __init__(
        self,
        url: str,
        service_key: str,
        table: str = "jobs",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not url or not service_key:
            raise StoreError("Supabase url and service key are required")
        self._table = table
        self._client = httpx.AsyncClient(
            base_url=url.rstrip("/") + "/rest/v1",
            headers={
                "apikey": service_key,
                "Authorization": f"Bearer {service_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def _request(
        self,
        method: str,
        params: dict[str, str] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> Any:
        headers = {"Prefer": prefer} if prefer else None
        try:
            resp = await self._client.request(
                method, f"/{self._table}", params=params, json=json, headers=headers
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise StoreError(
                f"{method} {self._table} failed ({e.response.status_code}): {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise StoreError(f"{method} {self._table} failed: {e}") from e
        if not resp.content:
            return None
        return resp.json()

    async def get_job(self, job_id: str) -> Job | None:
        rows = await self._request("GET", params={"id": f"eq.{job_id}", "select": "*"})
        return Job.from_dict(rows[0]) if rows else None

    async def insert_job(self, job: Job) -> Job:
        rows = await self._request(
            "POST", json=[job.to_dict()], prefer="return=representation"
        )
        return Job.from_dict(rows[0]) if rows else job

    async def update_job(self, job: Job) -> Job:
        data = job.to_dict()
        data.pop("id")
        rows = await self._request(
            "PATCH",
            params={"id": f"eq.{job.id}"},
            json=data,
            prefer="return=representation",
        )
        if not rows:
            raise StoreError(f"Job {job.id} not found")
        return Job.from_dict(rows[0])

    async def delete_job(self, job_id: str) -> bool:
        rows = await self._request(
            "DELETE", params={"id": f"eq.{job_id}"}, prefer="return=representation"
        )
        return bool(rows)

    async def list_recurring_templates(self) -> list[Job]:
        rows = await self._request(
            "GET", params={"is_recurring": "eq.true", "select": "*"}
        )
        return [Job.from_dict(row) for row in rows or []]

    async def list_instances(self, parent_job_id: str) -> list[Job]:
        rows = await self._request(
            "GET",
            params={
                "parent_job_id": f"eq.{parent_job_id}",
                "select": "*",
                "order": "due_date.asc",
            },
        )
        return [Job.from_dict(row) for row in rows or []]

    async def materialize(self, template: Job, instances: list[Job]) -> list[Job]:
        inserted: list[Job] = []
        if instances:
            rows = await self._request(
                "POST",
                params={"on_conflict": "parent_job_id,due_date"},
                json=[instance.to_dict() for instance in instances],
                prefer="resolution=ignore-duplicates,return=representation",
            )
            inserted = [Job.from_dict(row) for row in rows or []]
            skipped = len(instances) - len(inserted)
            if skipped:
                logger.debug(
                    f"{skipped} instance(s) of {template.id} already existed"
                )

        if template.next_occurrence is None:
            return inserted

        new = template.next_occurrence.isoformat()
        # The filter keeps a slower overlapping pass from moving the template back
        await self._request(
            "PATCH",
            params={
                "id": f"eq.{template.id}",
                "or": f"(next_occurrence.is.null,next_occurrence.lt.{new})",
            },
            json={"next_occurrence": new, "updated_at": utcnow().isoformat()},
        )
        return inserted

    async def delete_completed_instances(self, before: datetime) -> int:
        rows = await self._request(
            "DELETE",
            params={
                "status": "eq.completed",
                "parent_job_id": "not.is.null",
                "completed_at": f"lt.{before.isoformat()}",
            },
            prefer="return=representation",
        )
        return len(rows or [])

    async def close(self) -> None:
        await self._client.aclose()
