"""Periodic driver that expands recurring templates into job instances."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from croniter import croniter
from loguru import logger

from ..jobs.types import Job, utcnow
from ..store.base import JobStore
from .expander import expand_template
from .retention import DEFAULT_RETENTION, retire_stale_instances

if TYPE_CHECKING:
    from ..config.schema import Config


# Receives the template and the instances that were newly stored for it
InstanceSink = Callable[[Job, list[Job]], Awaitable[None]]


@dataclass
class RunSummary:
    """Outcome of one expansion pass."""

    instances_created: int = 0
    errors: int = 0
    templates_processed: int = 0
    instances_retired: int = 0
    processed_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "instances_created": self.instances_created,
            "errors": self.errors,
            "templates_processed": self.templates_processed,
            "instances_retired": self.instances_retired,
            "processed_at": self.processed_at.isoformat(),
        }


class RecurrenceService:
    """Expands every recurring template on a cron schedule.

    Templates are processed independently: a store failure on one is logged
    and counted, and the rest of the pass carries on. Each template's
    ``next_occurrence`` is persisted together with its instances, so an
    interrupted pass resumes cleanly on the next tick.
    """

    def __init__(
        self,
        store: JobStore,
        schedule: str = "0 * * * *",
        retention_window: timedelta = DEFAULT_RETENTION,
        max_concurrency: int = 4,
        retire_completed: bool = True,
        sink: InstanceSink | None = None,
    ) -> None:
        if not croniter.is_valid(schedule):
            raise ValueError(f"Invalid cron schedule: {schedule}")
        self._store = store
        self._schedule = schedule
        self._retention_window = retention_window
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._retire_completed = retire_completed
        self._sink = sink
        self._running = False
        self._task: asyncio.Task | None = None
        self.last_summary: RunSummary | None = None

    @classmethod
    def from_config(
        cls, config: Config, store: JobStore, sink: InstanceSink | None = None
    ) -> RecurrenceService:
        rc = config.recurrence
        return cls(
            store,
            schedule=rc.schedule,
            retention_window=rc.retention_window,
            max_concurrency=rc.max_concurrency,
            retire_completed=rc.retire_completed,
            sink=sink,
        )

    async def run_once(self, now: datetime | None = None) -> RunSummary:
        """Run one expansion pass followed by retention cleanup."""
        now = now or utcnow()
        summary = RunSummary(processed_at=now)

        try:
            templates = await self._store.list_recurring_templates()
        except Exception as e:
            logger.error(f"Failed to list recurring templates: {e}")
            summary.errors += 1
            templates = []

        await asyncio.gather(
            *(self._process_template(t, now, summary) for t in templates)
        )

        if self._retire_completed:
            try:
                summary.instances_retired = await retire_stale_instances(
                    self._store, self._retention_window, now
                )
            except Exception as e:
                logger.error(f"Failed to retire completed instances: {e}")
                summary.errors += 1

        logger.info(
            f"Recurrence pass: {summary.instances_created} created, "
            f"{summary.templates_processed}/{len(templates)} templates ok, "
            f"{summary.instances_retired} retired, {summary.errors} errors"
        )
        self.last_summary = summary
        return summary

    async def _process_template(
        self, template: Job, now: datetime, summary: RunSummary
    ) -> None:
        async with self._semaphore:
            if not template.is_template or template.next_occurrence is None:
                logger.warning(
                    f"Template {template.id} has no recurrence pattern or next occurrence, skipping"
                )
                return

            working = replace(template)
            try:
                instances = expand_template(working, now)
            except (ValueError, IndexError, TypeError) as e:
                logger.error(f"Template {template.id} has an unusable pattern: {e}")
                summary.errors += 1
                return
            if not instances:
                summary.templates_processed += 1
                return

            working.updated_at = now
            try:
                inserted = await self._store.materialize(working, instances)
            except Exception as e:
                logger.error(f"Failed to materialize template {template.id}: {e}")
                summary.errors += 1
                return

            summary.templates_processed += 1
            summary.instances_created += len(inserted)
            logger.info(
                f"Template '{template.title}' ({template.id}): created {len(inserted)} "
                f"instance(s), next occurrence {working.next_occurrence.isoformat()}"
            )

            if inserted and self._sink:
                try:
                    await self._sink(working, inserted)
                except Exception as e:
                    logger.error(f"Instance sink failed for template {template.id}: {e}")

    async def start(self, run_immediately: bool = True) -> None:
        """Start the periodic loop."""
        self._running = True
        self._task = asyncio.create_task(self._loop(run_immediately))
        logger.info(f"Recurrence service started (schedule: {self._schedule})")

    async def stop(self) -> None:
        """Stop the periodic loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Recurrence service stopped")

    async def _loop(self, run_immediately: bool) -> None:
        """Main scheduling loop."""
        if run_immediately:
            await self._safe_run()

        while self._running:
            try:
                cron = croniter(self._schedule, utcnow())
                next_time = cron.get_next(datetime)
                delay = (next_time - utcnow()).total_seconds()
                if delay > 0:
                    await asyncio.sleep(delay)
                await self._safe_run()
            except asyncio.CancelledError:
                break

    async def _safe_run(self) -> None:
        try:
            await self.run_once()
        except Exception as e:
            logger.error(f"Recurrence pass failed: {e}")
