"""Job store backed by a local JSON file."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger

from ..jobs.types import Job, JobStatus
from .base import JobStore, StoreError


class JsonJobStore(JobStore):
    """Keeps every job in one JSON file, rewritten atomically on change.

    The file is re-read under the lock for every operation, so several
    processes pointed at the same file see each other's writes.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def get_job(self, job_id: str) -> Job | None:
        async with self._lock:
            rows = self._load()
        for row in rows:
            if row.get("id") == job_id:
                return Job.from_dict(row)
        return None

    async def insert_job(self, job: Job) -> Job:
        async with self._lock:
            rows = self._load()
            if any(row.get("id") == job.id for row in rows):
                raise StoreError(f"Job {job.id} already exists")
            key = job.occurrence_key
            if key is not None and key in self._occurrence_keys(rows):
                raise StoreError(
                    f"Instance of {job.parent_job_id} due {job.due_date} already exists"
                )
            rows.append(job.to_dict())
            self._save(rows)
        logger.debug(f"Inserted job {job.id}")
        return job

    async def update_job(self, job: Job) -> Job:
        async with self._lock:
            rows = self._load()
            for i, row in enumerate(rows):
                if row.get("id") == job.id:
                    rows[i] = job.to_dict()
                    self._save(rows)
                    return job
        raise StoreError(f"Job {job.id} not found")

    async def delete_job(self, job_id: str) -> bool:
        async with self._lock:
            rows = self._load()
            kept = [row for row in rows if row.get("id") != job_id]
            if len(kept) == len(rows):
                return False
            self._save(kept)
        logger.debug(f"Deleted job {job_id}")
        return True

    async def list_recurring_templates(self) -> list[Job]:
        async with self._lock:
            rows = self._load()
        return [Job.from_dict(row) for row in rows if row.get("is_recurring")]

    async def list_instances(self, parent_job_id: str) -> list[Job]:
        async with self._lock:
            rows = self._load()
        jobs = [
            Job.from_dict(row)
            for row in rows
            if row.get("parent_job_id") == parent_job_id
        ]
        return sorted(jobs, key=lambda j: j.due_date or j.created_at)

    async def materialize(self, template: Job, instances: list[Job]) -> list[Job]:
        async with self._lock:
            rows = self._load()
            keys = self._occurrence_keys(rows)
            inserted: list[Job] = []
            for instance in instances:
                key = instance.occurrence_key
                if key in keys:
                    logger.debug(
                        f"Instance of {template.id} due {instance.due_date} exists, skipping"
                    )
                    continue
                keys.add(key)
                rows.append(instance.to_dict())
                inserted.append(instance)

            for i, row in enumerate(rows):
                if row.get("id") == template.id:
                    stored = Job.from_dict(row).next_occurrence
                    new = template.next_occurrence
                    # next_occurrence only moves forward
                    if new is not None and (stored is None or new > stored):
                        row["next_occurrence"] = new.isoformat()
                        row["updated_at"] = template.updated_at.isoformat()
                    else:
                        logger.debug(
                            f"Template {template.id} already advanced to {stored}, "
                            f"keeping it over {new}"
                        )
                    break
            else:
                raise StoreError(f"Template {template.id} not found")

            # Instances and the advanced next_occurrence land in one write
            self._save(rows)
        return inserted

    async def delete_completed_instances(self, before: datetime) -> int:
        async with self._lock:
            rows = self._load()
            kept = []
            for row in rows:
                job = Job.from_dict(row)
                if (
                    job.is_instance
                    and job.status == JobStatus.COMPLETED
                    and job.completed_at is not None
                    and job.completed_at < before
                ):
                    continue
                kept.append(row)
            removed = len(rows) - len(kept)
            if removed:
                self._save(kept)
        return removed

    def _occurrence_keys(self, rows: list[dict[str, Any]]) -> set[tuple[str, datetime]]:
        keys = set()
        for row in rows:
            key = Job.from_dict(row).occurrence_key
            if key is not None:
                keys.add(key)
        return keys

    def _load(self) -> list[dict[str, Any]]:
        """Load all rows from disk."""
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8") or "[]")
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Failed to read {self._path}: {e}") from e
        if not isinstance(data, list):
            raise StoreError(f"{self._path} does not contain a list of jobs")
        return data

    def _save(self, rows: list[dict[str, Any]]) -> None:
        """Write all rows to disk atomically."""
        temp_path = self._path.with_suffix(".tmp")
        try:
            temp_path.write_text(json.dumps(rows, indent=2), encoding="utf-8")
            temp_path.replace(self._path)
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise StoreError(f"Failed to write {self._path}: {e}") from e
