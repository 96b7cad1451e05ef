"""
Task Upsert Gateway.

The persistence boundary for service tasks. ``create`` never raises:
storage problems come back as an unsuccessful :class:`TaskCreateResult`
so the chat flow can fall back to a generic acknowledgement.

Creation is idempotent per open request. A request whose dedupe key
(phone, source, normalized problem text) matches a task that is still
open returns that task instead of inserting a second one.
"""

from __future__ import annotations

import itertools
import uuid
from datetime import datetime, timezone
from typing import Any, Protocol

from repairdesk.db import DatabaseClient
from repairdesk.errors import StorageError
from repairdesk.logging_config import get_logger
from repairdesk.schemas.task import TaskCreateRequest, TaskCreateResult, TaskStatus

logger = get_logger(__name__)


class TaskUpsertGateway(Protocol):
    async def create(self, request: TaskCreateRequest) -> TaskCreateResult: ...


class SupabaseTaskGateway:
    """Writes tasks to the Supabase ``tasks`` table."""

    def __init__(self, db: DatabaseClient) -> None:
        self._db = db

    async def create(self, request: TaskCreateRequest) -> TaskCreateResult:
        try:
            existing = await self._db.find_open_task(request.dedupe_key)
            if existing:
                logger.info("task_already_open", task_id=existing["id"], source=request.source.value)
                return TaskCreateResult(
                    success=True,
                    task_id=str(existing["id"]),
                    task_number=existing.get("task_number"),
                    duplicate=True,
                )

            row = await self._db.insert_task(request.to_row())
        except StorageError as e:
            return TaskCreateResult(success=False, error=str(e))

        logger.info(
            "task_created",
            task_id=row.get("id"),
            task_number=row.get("task_number"),
            priority=request.priority.value,
            source=request.source.value,
        )
        return TaskCreateResult(
            success=True,
            task_id=str(row["id"]) if row.get("id") is not None else None,
            task_number=row.get("task_number"),
        )


class InMemoryTaskGateway:
    """Process-local task store for development without Supabase credentials."""

    def __init__(self) -> None:
        self._tasks: dict[str, dict[str, Any]] = {}
        self._numbers = itertools.count(1)

    @property
    def tasks(self) -> list[dict[str, Any]]:
        return list(self._tasks.values())

    async def create(self, request: TaskCreateRequest) -> TaskCreateResult:
        row = request.to_row()
        dedupe_key = row["metadata"]["dedupe_key"]
        for task in self._tasks.values():
            if task["metadata"].get("dedupe_key") == dedupe_key and task["status"] in (
                TaskStatus.PENDING.value,
                TaskStatus.IN_PROGRESS.value,
            ):
                return TaskCreateResult(
                    success=True, task_id=task["id"], task_number=task["task_number"], duplicate=True
                )

        task_id = str(uuid.uuid4())
        task_number = f"TASK-{next(self._numbers):05d}"
        self._tasks[task_id] = {
            **row,
            "id": task_id,
            "task_number": task_number,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        logger.info("task_created", task_id=task_id, task_number=task_number, store="memory")
        return TaskCreateResult(success=True, task_id=task_id, task_number=task_number)
