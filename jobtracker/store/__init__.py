"""Job persistence backends."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import JobStore, StoreError
from .json_store import JsonJobStore

if TYPE_CHECKING:
    from ..config.schema import Config


def open_store(config: Config) -> JobStore:
    """Build the job store selected in ``config.store.backend``."""
    if config.store.backend == "supabase":
        from .supabase_store import SupabaseJobStore

        return SupabaseJobStore(
            url=config.supabase.url,
            service_key=config.supabase.service_key,
            table=config.supabase.table,
            timeout=config.supabase.timeout,
        )
    return JsonJobStore(config.store_path)


__all__ = ["JobStore", "JsonJobStore", "StoreError", "open_store"]
