"""Tests for the hosted PostgREST job store."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from jobtracker.jobs.types import Job, RecurrencePattern, RecurrenceType
from jobtracker.recurrence.expander import expand_template
from jobtracker.store import StoreError
from jobtracker.store.supabase_store import SupabaseJobStore


NOW = datetime(2024, 6, 1, 12, tzinfo=timezone.utc)


def template_row() -> dict:
    return Job(
        id="tpl",
        title="Check alarms",
        is_recurring=True,
        recurrence_pattern=RecurrencePattern(type=RecurrenceType.DAILY, interval=1),
        next_occurrence=NOW - timedelta(days=1),
    ).to_dict()


class Recorder:
    """MockTransport handler that records requests and replies from a queue."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.requests: list[httpx.Request] = []
        self._responses = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responses.pop(0)


def make_store(recorder: Recorder) -> SupabaseJobStore:
    return SupabaseJobStore(
        url="https://example.supabase.co/",
        service_key="service-key",
        transport=httpx.MockTransport(recorder),
    )


class TestSupabaseJobStore:
    def test_requires_credentials(self) -> None:
        with pytest.raises(StoreError):
            SupabaseJobStore(url="", service_key="")

    @pytest.mark.asyncio
    async def test_list_recurring_templates(self) -> None:
        recorder = Recorder(httpx.Response(200, json=[template_row()]))
        store = make_store(recorder)

        templates = await store.list_recurring_templates()
        await store.close()

        assert [t.id for t in templates] == ["tpl"]
        assert templates[0].recurrence_pattern.type == RecurrenceType.DAILY
        request = recorder.requests[0]
        assert request.method == "GET"
        assert request.url.path == "/rest/v1/jobs"
        assert request.url.params["is_recurring"] == "eq.true"
        assert request.headers["apikey"] == "service-key"
        assert request.headers["authorization"] == "Bearer service-key"

    @pytest.mark.asyncio
    async def test_materialize_is_idempotent_insert_then_patch(self) -> None:
        tpl = Job.from_dict(template_row())
        instances = expand_template(tpl, NOW)
        # The server already had the first occurrence
        stored = [i.to_dict() for i in instances[1:]]
        recorder = Recorder(httpx.Response(201, json=stored), httpx.Response(204))
        store = make_store(recorder)

        inserted = await store.materialize(tpl, instances)
        await store.close()

        assert [i.due_date for i in inserted] == [NOW]
        post, patch = recorder.requests
        assert post.method == "POST"
        assert post.url.params["on_conflict"] == "parent_job_id,due_date"
        assert "resolution=ignore-duplicates" in post.headers["prefer"]
        assert len(json.loads(post.content)) == 2

        assert patch.method == "PATCH"
        assert patch.url.params["id"] == "eq.tpl"
        body = json.loads(patch.content)
        assert body["next_occurrence"] == (NOW + timedelta(days=1)).isoformat()
        # Only a template that is still behind gets moved
        assert patch.url.params["or"] == (
            f"(next_occurrence.is.null,next_occurrence.lt.{body['next_occurrence']})"
        )

    @pytest.mark.asyncio
    async def test_delete_completed_instances_filters(self) -> None:
        recorder = Recorder(httpx.Response(200, json=[{"id": "a"}, {"id": "b"}]))
        store = make_store(recorder)
        cutoff = NOW - timedelta(days=30)

        removed = await store.delete_completed_instances(cutoff)
        await store.close()

        assert removed == 2
        params = recorder.requests[0].url.params
        assert recorder.requests[0].method == "DELETE"
        assert params["status"] == "eq.completed"
        assert params["parent_job_id"] == "not.is.null"
        assert params["completed_at"] == f"lt.{cutoff.isoformat()}"

    @pytest.mark.asyncio
    async def test_get_missing_job(self) -> None:
        store = make_store(Recorder(httpx.Response(200, json=[])))
        assert await store.get_job("nope") is None
        await store.close()

    @pytest.mark.asyncio
    async def test_http_error_becomes_store_error(self) -> None:
        store = make_store(Recorder(httpx.Response(503, text="unavailable")))
        with pytest.raises(StoreError, match="503"):
            await store.list_recurring_templates()
        await store.close()

    @pytest.mark.asyncio
    async def test_transport_error_becomes_store_error(self) -> None:
        def boom(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("no route", request=request)

        store = SupabaseJobStore(
            url="https://example.supabase.co",
            service_key="k",
            transport=httpx.MockTransport(boom),
        )
        with pytest.raises(StoreError):
            await store.list_recurring_templates()
        await store.close()
