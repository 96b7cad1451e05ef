"""
Priority Resolver.

Single entry point for "how urgent is this?". Tries the AI classifier,
falls back to the rule-based classifier on any upstream or parse failure,
then applies the time-of-day and customer-type adjustments:

1. After hours (default 22:00-06:00): lower by one tier unless already
   the highest tier.
2. Otherwise, commercial customer during business hours: raise by one
   tier unless already the highest tier.

The two rules never both apply to one result.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence
from zoneinfo import ZoneInfo

from repairdesk.config import Settings, get_settings
from repairdesk.errors import UpstreamError
from repairdesk.logging_config import get_logger
from repairdesk.schemas.classification import (
    ClassificationResult,
    InteractionClassification,
    ParseError,
    Priority,
)
from repairdesk.schemas.conversation import CustomerProfile
from repairdesk.services.ai_classifier import AIClassifier
from repairdesk.services.fallback_classifier import FallbackClassifier

logger = get_logger(__name__)

DEGRADED_TAG = "degraded"


@dataclass(frozen=True)
class HourWindows:
    """Local-hour windows; ``end`` is exclusive and a window may wrap midnight."""
    after_hours_start: int = 22
    after_hours_end: int = 6
    business_start: int = 9
    business_end: int = 18

    @classmethod
    def from_settings(cls, settings: Settings) -> HourWindows:
        return cls(
            after_hours_start=settings.after_hours_start,
            after_hours_end=settings.after_hours_end,
            business_start=settings.business_hours_start,
            business_end=settings.business_hours_end,
        )

    def is_after_hours(self, hour: int) -> bool:
        return _in_window(hour, self.after_hours_start, self.after_hours_end)

    def is_business_hours(self, hour: int) -> bool:
        return _in_window(hour, self.business_start, self.business_end)


def _in_window(hour: int, start: int, end: int) -> bool:
    if start <= end:
        return start <= hour < end
    return hour >= start or hour < end


@dataclass(frozen=True)
class ProblemInput:
    description: str
    context: Optional[str] = None
    customer: Optional[CustomerProfile] = None


class PriorityResolver:
    """Combines the classifiers and the scheduling adjustments."""

    def __init__(
        self,
        fallback: Optional[FallbackClassifier],
        ai: Optional[AIClassifier] = None,
        windows: Optional[HourWindows] = None,
        timezone: str | None = None,
    ) -> None:
        settings = get_settings()
        self._fallback = fallback
        self._ai = ai
        self._windows = windows or HourWindows.from_settings(settings)
        self._tz = ZoneInfo(timezone or settings.timezone)
        if ai is None:
            logger.info("ai_classifier_disabled", reason="no Gemini credential configured")

    async def analyze(
        self,
        problem_text: str,
        context: Optional[str] = None,
        customer: Optional[CustomerProfile] = None,
        now: Optional[datetime] = None,
    ) -> ClassificationResult:
        result, _ = await self.analyze_with_interaction(problem_text, context, customer, now)
        return result

    async def analyze_with_interaction(
        self,
        problem_text: str,
        context: Optional[str] = None,
        customer: Optional[CustomerProfile] = None,
        now: Optional[datetime] = None,
    ) -> tuple[ClassificationResult, InteractionClassification]:
        """Like :meth:`analyze`, also returning the interaction classification."""
        base, interaction = await self._classify(problem_text, context, customer)
        adjusted = self.adjust(base, self._local_time(now), customer)
        logger.info(
            "priority_analyzed",
            priority=int(adjusted.priority),
            base_priority=int(base.priority),
            category=interaction.category.value,
            degraded=DEGRADED_TAG in adjusted.tags,
        )
        return adjusted, interaction

    async def batch_analyze(
        self,
        problems: Sequence[ProblemInput],
        now: Optional[datetime] = None,
    ) -> list[ClassificationResult]:
        return list(
            await asyncio.gather(
                *(self.analyze(p.description, p.context, p.customer, now) for p in problems)
            )
        )

    def adjust(
        self,
        result: ClassificationResult,
        local_time: datetime,
        customer: Optional[CustomerProfile] = None,
    ) -> ClassificationResult:
        hour = local_time.hour
        commercial = customer is not None and customer.is_commercial

        if result.priority == Priority.HIGH:
            return result

        if self._windows.is_after_hours(hour) and not (commercial and self._windows.is_business_hours(hour)):
            return self._shift(result, +1, "lowered one tier for after-hours request", "after-hours")

        if commercial and self._windows.is_business_hours(hour):
            return self._shift(result, -1, "raised one tier for commercial customer during business hours", "commercial")

        return result

    async def _classify(
        self,
        problem_text: str,
        context: Optional[str],
        customer: Optional[CustomerProfile],
    ) -> tuple[ClassificationResult, InteractionClassification]:
        if self._ai is not None:
            try:
                outcome = await self._ai.classify(problem_text, context, customer)
            except UpstreamError as e:
                logger.warning("ai_classifier_failed", error=str(e))
                return self._degraded(problem_text, context, f"AI unavailable: {e}")
            if isinstance(outcome, ParseError):
                logger.warning("ai_response_rejected", reason=outcome.reason)
                return self._degraded(problem_text, context, outcome.reason)
            return outcome.result, outcome.interaction

        return self._rule_based(problem_text, context)

    def _rule_based(
        self, problem_text: str, context: Optional[str]
    ) -> tuple[ClassificationResult, InteractionClassification]:
        if self._fallback is None:
            raise UpstreamError("No classifier is configured")
        text = f"{problem_text}\n{context}" if context else problem_text
        return self._fallback.classify(text), self._fallback.classify_interaction(text)

    def _degraded(
        self, problem_text: str, context: Optional[str], cause: str
    ) -> tuple[ClassificationResult, InteractionClassification]:
        if self._fallback is None:
            raise UpstreamError(f"AI classification failed and no fallback is configured: {cause}")
        result, interaction = self._rule_based(problem_text, context)
        degraded = ClassificationResult.build(
            priority=result.priority,
            reasoning=f"[fallback] {result.reasoning}",
            tags=tuple(result.tags) + (DEGRADED_TAG,),
            estimated_response_time=result.estimated_response_time,
        )
        return degraded, interaction

    def _local_time(self, now: Optional[datetime]) -> datetime:
        if now is None:
            return datetime.now(self._tz)
        if now.tzinfo is None:
            # Naive datetimes are taken as already local
            return now
        return now.astimezone(self._tz)

    @staticmethod
    def _shift(result: ClassificationResult, delta: int, note: str, tag: str) -> ClassificationResult:
        new_priority = Priority(min(max(int(result.priority) + delta, Priority.HIGH), Priority.LOW))
        if new_priority == result.priority:
            return result
        return ClassificationResult.build(
            priority=new_priority,
            reasoning=f"{result.reasoning}; {note}",
            tags=tuple(result.tags) + (tag,),
        )
