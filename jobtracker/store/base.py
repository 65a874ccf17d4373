"""Job store abstractions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from ..jobs.types import Job


class StoreError(RuntimeError):
    """A job store operation failed."""


class JobStore(ABC):
    """Abstract persistence for job records."""

    @abstractmethod
    async def get_job(self, job_id: str) -> Job | None:
        """Fetch a job by id, or None if it doesn't exist."""
        ...

    @abstractmethod
    async def insert_job(self, job: Job) -> Job:
        """Insert a new job."""
        ...

    @abstractmethod
    async def update_job(self, job: Job) -> Job:
        """Replace a stored job with ``job``."""
        ...

    @abstractmethod
    async def delete_job(self, job_id: str) -> bool:
        """Delete a job. Returns False if it didn't exist."""
        ...

    @abstractmethod
    async def list_recurring_templates(self) -> list[Job]:
        """List all jobs with ``is_recurring`` set."""
        ...

    @abstractmethod
    async def list_instances(self, parent_job_id: str) -> list[Job]:
        """List instances generated from a template, oldest due date first."""
        ...

    @abstractmethod
    async def materialize(self, template: Job, instances: list[Job]) -> list[Job]:
        """Insert ``instances`` and persist ``template.next_occurrence``.

        Instances whose ``(parent_job_id, due_date)`` already exists are
        skipped. Returns the instances that were actually inserted.
        """
        ...

    @abstractmethod
    async def delete_completed_instances(self, before: datetime) -> int:
        """Delete generated instances completed before ``before``."""
        ...

    async def close(self) -> None:
        """Release any held resources."""
        return None
