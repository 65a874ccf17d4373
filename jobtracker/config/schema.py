"""Configuration schema for jobtracker."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


DEFAULT_HOME = Path.home() / ".jobtracker"


class StoreConfig(BaseModel):
    """Which job store to use."""

    backend: Literal["json", "supabase"] = "json"
    path: str = str(DEFAULT_HOME / "jobs.json")


class SupabaseConfig(BaseModel):
    """Hosted Supabase (PostgREST) connection."""

    url: str = ""
    service_key: str = ""
    table: str = "jobs"
    timeout: float = 10.0


class RecurrenceConfig(BaseModel):
    """Recurring job expansion settings."""

    schedule: str = "0 * * * *"  # Cron expression for the periodic pass
    retention_days: int = Field(default=30, ge=0)
    max_concurrency: int = Field(default=4, ge=1)
    retire_completed: bool = True

    @property
    def retention_window(self) -> timedelta:
        return timedelta(days=self.retention_days)


class LoggingConfig(BaseModel):
    """Log sink configuration."""

    level: str = "INFO"
    file: str = ""


class Config(BaseSettings):
    """Root configuration for jobtracker."""

    model_config = {"env_prefix": "JOBTRACKER_", "env_nested_delimiter": "__"}

    store: StoreConfig = Field(default_factory=StoreConfig)
    supabase: SupabaseConfig = Field(default_factory=SupabaseConfig)
    recurrence: RecurrenceConfig = Field(default_factory=RecurrenceConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def home_dir(self) -> Path:
        return DEFAULT_HOME

    @property
    def store_path(self) -> Path:
        return Path(self.store.path).expanduser()

    @property
    def logs_dir(self) -> Path:
        return self.home_dir / "logs"
