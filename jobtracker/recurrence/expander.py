"""Materialize due occurrences of a recurring template."""

from __future__ import annotations

import uuid
from datetime import datetime

from loguru import logger

from ..jobs.types import Job, JobStatus
from .rules import compute_next_occurrence


def build_instance(template: Job, due_date: datetime, now: datetime) -> Job:
    """Create the job instance for one occurrence of ``template``."""
    return Job(
        id=str(uuid.uuid4()),
        title=template.title,
        description=template.description,
        status=JobStatus.NOT_STARTED,
        priority=template.priority,
        due_date=due_date,
        created_at=now,
        updated_at=now,
        created_by=template.created_by,
        team_id=template.team_id,
        location=template.location,
        parent_job_id=template.id,
    )


def is_due(template: Job, now: datetime) -> bool:
    """Whether the template's next occurrence should be materialized."""
    nxt = template.next_occurrence
    if not template.is_template or nxt is None or nxt > now:
        return False
    end = template.recurrence_end_date
    return end is None or nxt <= end


def expand_template(template: Job, now: datetime) -> list[Job]:
    """Emit an instance for every occurrence due at ``now``.

    ``template.next_occurrence`` is advanced in place past the last emitted
    occurrence, so calling this again with the same ``now`` emits nothing.
    """
    instances: list[Job] = []
    while is_due(template, now):
        due = template.next_occurrence
        instances.append(build_instance(template, due, now))
        template.next_occurrence = compute_next_occurrence(
            template.recurrence_pattern, due
        )

    if instances:
        logger.debug(
            f"Template {template.id} expanded to {len(instances)} instance(s), "
            f"next occurrence {template.next_occurrence.isoformat()}"
        )
    return instances
