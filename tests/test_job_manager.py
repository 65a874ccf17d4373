"""Tests for save-time job operations."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from jobtracker.jobs.manager import JobManager, JobNotFoundError
from jobtracker.jobs.types import JobStatus, Priority, RecurrencePattern, RecurrenceType
from jobtracker.recurrence.expander import expand_template
from jobtracker.recurrence.rules import RecurrenceConfigError
from jobtracker.store import JsonJobStore


MONDAY = datetime(2030, 1, 7, 9, tzinfo=timezone.utc)


@pytest.fixture
def store(tmp_path: Path) -> JsonJobStore:
    return JsonJobStore(tmp_path / "jobs.json")


@pytest.fixture
def manager(store: JsonJobStore) -> JobManager:
    return JobManager(store)


def weekly(days: list[int] | None, **kwargs) -> RecurrencePattern:
    return RecurrencePattern(type=RecurrenceType.WEEKLY, interval=1, days_of_week=days, **kwargs)


class TestCreateTemplate:
    @pytest.mark.asyncio
    async def test_seeds_next_occurrence_on_selected_weekday(
        self, manager: JobManager, store: JsonJobStore
    ) -> None:
        # Tuesday start, Mon/Wed pattern -> Wednesday
        template = await manager.create_template(
            "Inspect boiler", weekly([3, 1]), start=MONDAY + timedelta(days=1)
        )
        assert template.is_recurring
        assert template.recurrence_pattern.days_of_week == [1, 3]
        assert template.next_occurrence == MONDAY + timedelta(days=2)
        assert await store.get_job(template.id) == template

    @pytest.mark.asyncio
    async def test_rejects_empty_weekdays(
        self, manager: JobManager, store: JsonJobStore
    ) -> None:
        with pytest.raises(RecurrenceConfigError):
            await manager.create_template("Inspect boiler", weekly([]), start=MONDAY)
        assert await store.list_recurring_templates() == []

    @pytest.mark.asyncio
    async def test_rejects_out_of_range_day_of_month(self, manager: JobManager) -> None:
        pattern = RecurrencePattern(type=RecurrenceType.MONTHLY, interval=1, day_of_month=32)
        with pytest.raises(RecurrenceConfigError):
            await manager.create_template("Pay rent", pattern, start=MONDAY)

    @pytest.mark.asyncio
    async def test_clears_fields_of_other_types(self, manager: JobManager) -> None:
        pattern = RecurrencePattern(
            type=RecurrenceType.MONTHLY, interval=1, day_of_month=15, days_of_week=[1]
        )
        template = await manager.create_template("Pay rent", pattern, start=MONDAY)
        assert template.recurrence_pattern.days_of_week is None
        assert template.next_occurrence == datetime(2030, 1, 15, 9, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_rejects_end_before_start(self, manager: JobManager) -> None:
        with pytest.raises(RecurrenceConfigError):
            await manager.create_template(
                "Inspect boiler", weekly([1]), start=MONDAY, end_date=MONDAY - timedelta(days=1)
            )


class TestUpdateRecurrence:
    @pytest.mark.asyncio
    async def test_existing_instances_untouched(
        self, manager: JobManager, store: JsonJobStore
    ) -> None:
        template = await manager.create_template("Inspect boiler", weekly([1]), start=MONDAY)
        instances = expand_template(template, MONDAY + timedelta(days=8))
        await store.materialize(template, instances)

        updated = await manager.update_recurrence(template.id, weekly([5]))

        assert updated.recurrence_pattern.days_of_week == [5]
        assert updated.next_occurrence.weekday() == 4  # Friday
        assert updated.next_occurrence >= template.next_occurrence
        kept = await store.list_instances(template.id)
        assert [i.due_date for i in kept] == [i.due_date for i in instances]

    @pytest.mark.asyncio
    async def test_rejects_invalid_pattern(self, manager: JobManager) -> None:
        template = await manager.create_template("Inspect boiler", weekly([1]), start=MONDAY)
        pattern = RecurrencePattern(type=RecurrenceType.DAILY, interval=0)
        with pytest.raises(RecurrenceConfigError):
            await manager.update_recurrence(template.id, pattern)

    @pytest.mark.asyncio
    async def test_rejects_one_off_job(self, manager: JobManager) -> None:
        job = await manager.create_job("Fix door")
        with pytest.raises(RecurrenceConfigError):
            await manager.update_recurrence(job.id, weekly([1]))


class TestCompleteAndDelete:
    @pytest.mark.asyncio
    async def test_complete_stamps_completed_at(
        self, manager: JobManager, store: JsonJobStore
    ) -> None:
        job = await manager.create_job("Fix door", priority=Priority.HIGH)
        completed = await manager.complete_job(job.id)

        assert completed.status == JobStatus.COMPLETED
        assert completed.completed is True
        assert completed.completed_at is not None
        assert (await store.get_job(job.id)).completed_at == completed.completed_at

    @pytest.mark.asyncio
    async def test_templates_cannot_be_completed(self, manager: JobManager) -> None:
        template = await manager.create_template("Inspect boiler", weekly([1]), start=MONDAY)
        with pytest.raises(RecurrenceConfigError):
            await manager.complete_job(template.id)

    @pytest.mark.asyncio
    async def test_unknown_ids(self, manager: JobManager) -> None:
        with pytest.raises(JobNotFoundError):
            await manager.complete_job("missing")
        with pytest.raises(JobNotFoundError):
            await manager.delete_job("missing")

    @pytest.mark.asyncio
    async def test_delete(self, manager: JobManager, store: JsonJobStore) -> None:
        job = await manager.create_job("Fix door")
        await manager.delete_job(job.id)
        assert await store.get_job(job.id) is None


class TestPreview:
    @pytest.mark.asyncio
    async def test_preview_respects_end_date(self, manager: JobManager) -> None:
        template = await manager.create_template(
            "Inspect boiler",
            weekly([1, 3]),
            start=MONDAY,
            end_date=MONDAY + timedelta(days=7),
        )
        dates = await manager.preview(template.id, count=5)
        assert dates == [
            MONDAY,
            MONDAY + timedelta(days=2),
            MONDAY + timedelta(days=7),
        ]


class TestUpdateRecurrenceKeepsState:
    @pytest.mark.asyncio
    async def test_omitted_end_date_is_kept(self, manager: JobManager) -> None:
        end = datetime(2030, 6, 1, tzinfo=timezone.utc)
        template = await manager.create_template(
            "Inspect boiler", weekly([1]), start=MONDAY, end_date=end
        )
        daily = RecurrencePattern(type=RecurrenceType.DAILY, interval=2)

        updated = await manager.update_recurrence(template.id, daily)
        assert updated.recurrence_end_date == end

        cleared = await manager.update_recurrence(template.id, daily, end_date=None)
        assert cleared.recurrence_end_date is None

    @pytest.mark.asyncio
    async def test_overdue_occurrences_are_not_skipped(
        self, manager: JobManager, store: JsonJobStore
    ) -> None:
        start = datetime(2020, 1, 1, 9, tzinfo=timezone.utc)
        template = await manager.create_template(
            "Inspect boiler",
            RecurrencePattern(type=RecurrenceType.DAILY, interval=1),
            start=start,
            end_date=datetime(2030, 1, 1, tzinfo=timezone.utc),
        )

        updated = await manager.update_recurrence(
            template.id, RecurrencePattern(type=RecurrenceType.DAILY, interval=2)
        )

        assert updated.next_occurrence == start
        assert (await store.get_job(template.id)).next_occurrence == start
