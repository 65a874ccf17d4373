"""Job data types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class JobStatus(str, Enum):
    NOT_STARTED = "not_started"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_PARKING = "no_parking"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RecurrenceType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string (or datetime) into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass
class RecurrencePattern:
    """How often a template repeats."""

    type: RecurrenceType
    interval: int = 1
    days_of_week: list[int] | None = None  # 0=Sunday .. 6=Saturday
    day_of_month: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type.value, "interval": self.interval}
        if self.days_of_week is not None:
            data["days_of_week"] = list(self.days_of_week)
        if self.day_of_month is not None:
            data["day_of_month"] = self.day_of_month
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RecurrencePattern:
        days = data.get("days_of_week")
        dom = data.get("day_of_month")
        return cls(
            type=RecurrenceType(data["type"]),
            interval=int(data.get("interval", 1)),
            days_of_week=[int(d) for d in days] if days is not None else None,
            day_of_month=int(dom) if dom is not None else None,
        )


@dataclass
class Location:
    lat: float
    lng: float
    address: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"lat": self.lat, "lng": self.lng}
        if self.address:
            data["address"] = self.address
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Location:
        return cls(
            lat=float(data["lat"]), lng=float(data["lng"]), address=data.get("address")
        )


_TIMESTAMP_FIELDS = (
    "created_at",
    "updated_at",
    "due_date",
    "completed_at",
    "next_occurrence",
    "recurrence_end_date",
)


@dataclass
class Job:
    """A job record.

    The same shape covers one-off jobs, recurring templates
    (``is_recurring=True``) and the instances generated from them
    (``parent_job_id`` set).
    """

    id: str
    title: str
    description: str = ""
    status: JobStatus = JobStatus.NOT_STARTED
    priority: Priority = Priority.MEDIUM
    due_date: datetime | None = None
    completed: bool = False
    completed_at: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    created_by: str | None = None
    team_id: str | None = None
    location: Location | None = None
    # Recurrence
    is_recurring: bool = False
    recurrence_pattern: RecurrencePattern | None = None
    next_occurrence: datetime | None = None
    recurrence_end_date: datetime | None = None
    parent_job_id: str | None = None

    @property
    def is_template(self) -> bool:
        return self.is_recurring and self.recurrence_pattern is not None

    @property
    def is_instance(self) -> bool:
        return self.parent_job_id is not None

    @property
    def occurrence_key(self) -> tuple[str, datetime] | None:
        """Uniqueness key of a generated instance."""
        if self.parent_job_id is None or self.due_date is None:
            return None
        return (self.parent_job_id, self.due_date)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "completed": self.completed,
            "created_by": self.created_by,
            "team_id": self.team_id,
            "location": self.location.to_dict() if self.location else None,
            "is_recurring": self.is_recurring,
            "recurrence_pattern": (
                self.recurrence_pattern.to_dict() if self.recurrence_pattern else None
            ),
            "parent_job_id": self.parent_job_id,
        }
        for name in _TIMESTAMP_FIELDS:
            data[name] = format_timestamp(getattr(self, name))
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Job:
        kwargs = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        for name in _TIMESTAMP_FIELDS:
            if name in kwargs:
                kwargs[name] = parse_timestamp(kwargs[name])
        # Hosted rows may carry explicit nulls for defaulted columns
        for name in ("created_at", "updated_at"):
            if kwargs.get(name) is None:
                kwargs.pop(name, None)
        kwargs["description"] = kwargs.get("description") or ""
        kwargs["completed"] = bool(kwargs.get("completed") or False)
        kwargs["is_recurring"] = bool(kwargs.get("is_recurring") or False)
        if kwargs.get("status") is not None:
            kwargs["status"] = JobStatus(kwargs["status"])
        else:
            kwargs.pop("status", None)
        if kwargs.get("priority") is not None:
            kwargs["priority"] = Priority(kwargs["priority"])
        else:
            kwargs.pop("priority", None)
        if kwargs.get("location"):
            kwargs["location"] = Location.from_dict(kwargs["location"])
        if kwargs.get("recurrence_pattern"):
            kwargs["recurrence_pattern"] = RecurrencePattern.from_dict(
                kwargs["recurrence_pattern"]
            )
        return cls(**kwargs)
