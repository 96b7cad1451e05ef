"""
Supabase Database Client.

Wraps the official Supabase Python client with typed helpers for the
``tasks`` table. Construct it once at startup and pass it to whatever
needs it. Helpers raise :class:`StorageError` on any client failure so
callers can decide how to degrade.
"""

from __future__ import annotations

from typing import Any

from supabase import Client, create_client

from repairdesk.config import Settings, get_settings
from repairdesk.errors import ConfigurationError, StorageError
from repairdesk.logging_config import get_logger

logger = get_logger(__name__)

OPEN_STATUSES = ("pending", "in_progress")


class DatabaseClient:
    """Wrapper around the official Supabase Python client."""

    def __init__(self, client: Client, tasks_table: str = "tasks") -> None:
        self._client = client
        self.tasks_table = tasks_table

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> DatabaseClient:
        settings = settings or get_settings()
        if not settings.supabase_configured:
            raise ConfigurationError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
        try:
            client = create_client(settings.supabase_url, settings.supabase_service_key)
        except Exception as e:
            logger.error("supabase_init_failed", error=str(e))
            raise ConfigurationError(f"Could not initialize Supabase client: {e}") from e
        logger.info("supabase_client_initialized", url=settings.supabase_url)
        return cls(client, tasks_table=settings.tasks_table)

    @property
    def client(self) -> Client:
        """Access the raw Supabase client."""
        return self._client

    async def find_open_task(self, dedupe_key: str) -> dict[str, Any] | None:
        """Return a not-yet-closed task carrying this dedupe key, if any."""
        try:
            response = (
                self.client.table(self.tasks_table)
                .select("id, task_number, status, priority")
                .eq("metadata->>dedupe_key", dedupe_key)
                .in_("status", list(OPEN_STATUSES))
                .is_("deleted_at", "null")
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("task_lookup_failed", dedupe_key=dedupe_key, error=str(e))
            raise StorageError(f"Task lookup failed: {e}") from e
        return response.data[0] if response.data else None

    async def insert_task(self, row: dict[str, Any]) -> dict[str, Any]:
        try:
            response = self.client.table(self.tasks_table).insert(row).execute()
        except Exception as e:
            logger.error("task_insert_failed", customer=row.get("customer_name"), error=str(e))
            raise StorageError(f"Task insert failed: {e}") from e
        if not response.data:
            raise StorageError("Task insert returned no row")
        return response.data[0]
