"""Save-time job operations: creating templates, editing recurrence, completion."""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any

from loguru import logger

from ..recurrence.rules import (
    RecurrenceConfigError,
    first_occurrence,
    iter_occurrences,
    normalize_pattern,
    validate_pattern,
)
from ..store.base import JobStore
from .types import Job, JobStatus, Priority, RecurrencePattern, utcnow


class _Unset:
    """Marks an argument that was not passed."""


UNSET = _Unset()


class JobNotFoundError(KeyError):
    """No job with the requested id."""


class JobManager:
    """Creates and edits jobs on top of a job store.

    Recurrence patterns are normalized and validated here, before anything
    is written, so the expander only ever sees usable patterns.
    """

    def __init__(self, store: JobStore) -> None:
        self._store = store

    async def get(self, job_id: str) -> Job:
        job = await self._store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def create_job(
        self,
        title: str,
        description: str = "",
        priority: Priority = Priority.MEDIUM,
        due_date: datetime | None = None,
        **extra: Any,
    ) -> Job:
        """Create a one-off job."""
        job = Job(
            id=str(uuid.uuid4()),
            title=title,
            description=description,
            priority=priority,
            due_date=due_date,
            **extra,
        )
        await self._store.insert_job(job)
        logger.info(f"Created job: {title} (id: {job.id})")
        return job

    async def create_template(
        self,
        title: str,
        pattern: RecurrencePattern,
        start: datetime | None = None,
        end_date: datetime | None = None,
        description: str = "",
        priority: Priority = Priority.MEDIUM,
        **extra: Any,
    ) -> Job:
        """Create a recurring template whose first occurrence is on or after ``start``."""
        pattern = normalize_pattern(pattern)
        validate_pattern(pattern)
        start = start or utcnow()
        if end_date is not None and end_date < start:
            raise RecurrenceConfigError("Recurrence end date is before the start date")

        template = Job(
            id=str(uuid.uuid4()),
            title=title,
            description=description,
            priority=priority,
            is_recurring=True,
            recurrence_pattern=pattern,
            next_occurrence=first_occurrence(pattern, start),
            recurrence_end_date=end_date,
            **extra,
        )
        await self._store.insert_job(template)
        logger.info(
            f"Created recurring template: {title} (id: {template.id}, "
            f"first occurrence {template.next_occurrence.isoformat()})"
        )
        return template

    async def update_recurrence(
        self,
        template_id: str,
        pattern: RecurrencePattern,
        end_date: datetime | None | _Unset = UNSET,
    ) -> Job:
        """Change a template's pattern. Existing instances are left as they are.

        The new pattern is seeded from the template's current
        ``next_occurrence``, so occurrences still owed to a template that fell
        behind are generated on the next pass. Omitting ``end_date`` keeps the
        current one; pass None to remove it.
        """
        template = await self.get(template_id)
        if not template.is_recurring:
            raise RecurrenceConfigError(f"Job {template_id} is not a recurring template")

        pattern = normalize_pattern(pattern)
        validate_pattern(pattern)
        now = utcnow()
        anchor = template.next_occurrence or now
        next_occurrence = first_occurrence(pattern, anchor)
        if isinstance(end_date, _Unset):
            end_date = template.recurrence_end_date
        elif end_date is not None and end_date < next_occurrence:
            raise RecurrenceConfigError("Recurrence end date is before the next occurrence")

        updated = replace(
            template,
            recurrence_pattern=pattern,
            next_occurrence=next_occurrence,
            recurrence_end_date=end_date,
            updated_at=now,
        )
        await self._store.update_job(updated)
        logger.info(f"Updated recurrence of template {template_id}")
        return updated

    async def complete_job(self, job_id: str) -> Job:
        """Mark a job completed, stamping ``completed_at``."""
        job = await self.get(job_id)
        if job.is_template:
            raise RecurrenceConfigError("Recurring templates cannot be completed directly")
        now = utcnow()
        completed = replace(
            job,
            status=JobStatus.COMPLETED,
            completed=True,
            completed_at=now,
            updated_at=now,
        )
        await self._store.update_job(completed)
        logger.info(f"Completed job {job_id}")
        return completed

    async def delete_job(self, job_id: str) -> None:
        if not await self._store.delete_job(job_id):
            raise JobNotFoundError(job_id)
        logger.info(f"Deleted job {job_id}")

    async def preview(self, template_id: str, count: int = 5) -> list[datetime]:
        """Upcoming occurrences of a template, honouring its end date."""
        template = await self.get(template_id)
        if not template.is_template or template.next_occurrence is None:
            return []
        end = template.recurrence_end_date
        return [
            d
            for d in iter_occurrences(
                template.recurrence_pattern, template.next_occurrence, count
            )
            if end is None or d <= end
        ]
