"""
Data models for priority analysis and interaction classification.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Iterable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class Priority(IntEnum):
    """Canonical priority scale used throughout the core (lower is more urgent)."""
    HIGH = 1
    MEDIUM = 2
    LOW = 3


class UrgencyLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class InteractionCategory(str, Enum):
    FAILED_CALL = "failed_call"
    SERVICE_REQUEST = "service_request"
    MIXED = "mixed"
    UNCLEAR = "unclear"


class ServiceType(str, Enum):
    AC_REPAIR = "ac_repair"
    REFRIGERATOR_REPAIR = "refrigerator_repair"
    SPARE_PARTS = "spare_parts"
    ELECTRONICS = "electronics"
    OTHER = "other"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


URGENCY_BY_PRIORITY: dict[Priority, UrgencyLevel] = {
    Priority.HIGH: UrgencyLevel.HIGH,
    Priority.MEDIUM: UrgencyLevel.MEDIUM,
    Priority.LOW: UrgencyLevel.LOW,
}

RESPONSE_TIME_BY_PRIORITY: dict[Priority, str] = {
    Priority.HIGH: "2-4 hours",
    Priority.MEDIUM: "24 hours",
    Priority.LOW: "2-3 business days",
}


class ClassificationResult(BaseModel):
    """
    Outcome of a priority analysis.

    Immutable. ``urgency_level`` is derived from ``priority`` so the two
    can never disagree. ``tags`` behaves as a set but is stored sorted so
    equal results serialize identically.
    """
    model_config = ConfigDict(frozen=True)

    priority: Priority
    reasoning: str
    estimated_response_time: str
    tags: tuple[str, ...] = ()

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value: Iterable[str] | None) -> tuple[str, ...]:
        if value is None:
            return ()
        return tuple(sorted({str(tag).strip().lower() for tag in value if str(tag).strip()}))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def urgency_level(self) -> UrgencyLevel:
        return URGENCY_BY_PRIORITY[self.priority]

    @classmethod
    def build(
        cls,
        priority: Priority,
        reasoning: str,
        tags: Iterable[str] = (),
        estimated_response_time: str | None = None,
    ) -> ClassificationResult:
        return cls(
            priority=priority,
            reasoning=reasoning,
            estimated_response_time=estimated_response_time or RESPONSE_TIME_BY_PRIORITY[priority],
            tags=tuple(tags),
        )


class InteractionClassification(BaseModel):
    """What kind of conversation a message belongs to (failed call, service request, ...)."""
    model_config = ConfigDict(frozen=True)

    is_failed_call: bool = False
    is_service_request: bool = False
    category: InteractionCategory = InteractionCategory.UNCLEAR
    service_type: Optional[ServiceType] = None
    urgency_level: UrgencyLevel = UrgencyLevel.MEDIUM
    sentiment: Sentiment = Sentiment.NEUTRAL
    requires_immediate: bool = False
    confidence: float = Field(default=50.0, ge=0.0, le=100.0)
    reasoning: str = ""


class FailedCallDetection(BaseModel):
    """Signals that the customer tried to phone the business and could not get through."""
    model_config = ConfigDict(frozen=True)

    has_indicator: bool
    matched_keywords: tuple[str, ...] = ()
    suggested_priority: UrgencyLevel = UrgencyLevel.MEDIUM
    extracted_context: Optional[str] = None


# ── Tagged result of parsing a model response ────────────────────


@dataclass(frozen=True)
class ParseOk:
    result: ClassificationResult
    interaction: InteractionClassification


@dataclass(frozen=True)
class ParseError:
    reason: str
    raw: str = ""


ParseOutcome = Union[ParseOk, ParseError]
