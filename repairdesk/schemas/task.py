"""
Data models for service tasks written to the task store.
"""

from __future__ import annotations

import hashlib
import re
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from repairdesk.schemas.classification import Priority

MIN_PHONE_DIGITS = 10
TITLE_PREVIEW_LENGTH = 50


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    # Set by staff from the dashboard; the classifiers never produce it.
    URGENT = "urgent"


class TaskSource(str, Enum):
    CHAT_FAILED_CALL = "chat-failed-call"
    CHAT_AGENT = "chat-agent"


TASK_PRIORITY_BY_PRIORITY: dict[Priority, TaskPriority] = {
    Priority.HIGH: TaskPriority.HIGH,
    Priority.MEDIUM: TaskPriority.MEDIUM,
    Priority.LOW: TaskPriority.LOW,
}


def to_task_priority(priority: Priority) -> TaskPriority:
    """The one place the 1/2/3 scale is mapped onto the store's enumeration."""
    return TASK_PRIORITY_BY_PRIORITY[Priority(priority)]


def clean_phone_number(raw: str) -> str:
    """Strip separators and a leading +91 / 91 country code."""
    digits = re.sub(r"\D", "", raw or "")
    if len(digits) == 12 and digits.startswith("91"):
        digits = digits[2:]
    return digits


class TaskCreateRequest(BaseModel):
    """Normalized payload handed to the task store."""
    customer_name: str = Field(min_length=1)
    phone_number: str
    problem_description: str = Field(min_length=1)
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    source: TaskSource = TaskSource.CHAT_AGENT
    location: Optional[str] = None
    ai_priority_reason: Optional[str] = None
    urgency_keywords: Optional[list[str]] = None
    chat_context: Optional[list[dict[str, Any]]] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("customer_name", "problem_description", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("location", mode="before")
    @classmethod
    def _strip_optional(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator("phone_number", mode="before")
    @classmethod
    def _validate_phone(cls, value: Any) -> str:
        cleaned = clean_phone_number(str(value or ""))
        if len(cleaned) < MIN_PHONE_DIGITS:
            raise ValueError(f"phone number must have at least {MIN_PHONE_DIGITS} digits")
        return cleaned

    @property
    def title(self) -> str:
        preview = self.problem_description[:TITLE_PREVIEW_LENGTH]
        if len(self.problem_description) > TITLE_PREVIEW_LENGTH:
            preview += "..."
        return f"Service request: {preview}"

    @property
    def dedupe_key(self) -> str:
        """Stable key identifying the same open request submitted twice."""
        basis = "|".join(
            [self.phone_number, self.source.value, " ".join(self.problem_description.lower().split())]
        )
        return hashlib.sha256(basis.encode("utf-8")).hexdigest()[:24]

    def to_row(self) -> dict[str, Any]:
        """Column mapping for the ``tasks`` table."""
        return {
            "customer_name": self.customer_name,
            "phone_number": self.phone_number,
            "title": self.title,
            "problem_description": self.problem_description,
            "location": self.location,
            "status": self.status.value,
            "priority": self.priority.value,
            "source": self.source.value,
            "ai_priority_reason": self.ai_priority_reason,
            "urgency_keywords": self.urgency_keywords,
            "chat_context": self.chat_context,
            "metadata": {**self.metadata, "dedupe_key": self.dedupe_key},
        }


class TaskCreateResult(BaseModel):
    success: bool
    task_id: Optional[str] = None
    task_number: Optional[str] = None
    error: Optional[str] = None
    duplicate: bool = False
