"""
Rule-Based Fallback Classifier.

Deterministic priority and interaction classification using the keyword
tables in :mod:`repairdesk.services.keyword_rules`. It never fails and
holds no state, so the same text always produces the same result. It is
the only engine when no Gemini key is configured and the safety net
whenever the AI path errors.
"""

from __future__ import annotations

from typing import Optional

from repairdesk.schemas.classification import (
    ClassificationResult,
    InteractionCategory,
    InteractionClassification,
    Priority,
    Sentiment,
    ServiceType,
    UrgencyLevel,
)
from repairdesk.services.keyword_rules import (
    CONTEXT_BOOSTERS,
    DEFAULT_TAGS,
    FAILED_CALL_KEYWORDS,
    IMMEDIATE_KEYWORDS,
    NO_INDICATOR_REASON,
    PRIORITY_TIERS,
    SENTIMENT_KEYWORDS,
    SERVICE_REQUEST_KEYWORDS,
    SERVICE_TYPE_PATTERNS,
    matched_keywords,
    normalize_text,
)

RULE_BASED_CONFIDENCE = 60.0


class FallbackClassifier:
    """Keyword-driven classifier with a fixed tier precedence: urgent > high > medium > low."""

    def classify(
        self,
        problem_text: str,
        default_priority: Optional[Priority] = None,
    ) -> ClassificationResult:
        text = normalize_text(problem_text)

        priority: Priority | None = None
        reasons: list[str] = []
        tags: list[str] = []

        for tier in PRIORITY_TIERS:
            hits = matched_keywords(text, tier.keywords)
            if hits:
                priority = tier.priority
                reasons.append(f"{tier.reason_prefix}: {', '.join(hits)}")
                tags.extend(tier.tags)
                break

        boosts = self._context_boosts(text)
        escalate = bool(boosts) and (priority is None or priority > Priority.HIGH)
        for description, hits, tag in boosts:
            tags.append(tag)
            if escalate:
                reasons.append(f"escalated to high priority for {description}: {', '.join(hits)}")
            else:
                reasons.append(f"{description} escalation factor: {', '.join(hits)}")

        if escalate:
            priority = Priority.HIGH
        elif priority is None:
            priority = Priority(default_priority) if default_priority is not None else Priority.MEDIUM
            reasons.insert(0, NO_INDICATOR_REASON)
            tags.extend(DEFAULT_TAGS)

        service_type = detect_service_type(text)
        if service_type is not None:
            tags.append(service_type.value.replace("_", "-"))

        return ClassificationResult.build(
            priority=priority,
            reasoning="; ".join(reasons),
            tags=tags,
        )

    def classify_interaction(self, text: str) -> InteractionClassification:
        """Decide whether a message reports a failed call, a service need, or both."""
        lowered = normalize_text(text)

        is_failed_call = bool(matched_keywords(lowered, FAILED_CALL_KEYWORDS))
        is_service_request = bool(matched_keywords(lowered, SERVICE_REQUEST_KEYWORDS))
        is_urgent = bool(matched_keywords(lowered, IMMEDIATE_KEYWORDS))

        if is_failed_call and is_service_request:
            category = InteractionCategory.MIXED
        elif is_failed_call:
            category = InteractionCategory.FAILED_CALL
        elif is_service_request:
            category = InteractionCategory.SERVICE_REQUEST
        else:
            category = InteractionCategory.UNCLEAR

        return InteractionClassification(
            is_failed_call=is_failed_call,
            is_service_request=is_service_request,
            category=category,
            service_type=detect_service_type(lowered),
            urgency_level=UrgencyLevel.HIGH if is_urgent else UrgencyLevel.MEDIUM,
            sentiment=detect_sentiment(lowered),
            requires_immediate=is_urgent,
            confidence=RULE_BASED_CONFIDENCE,
            reasoning="Classified using rule-based fallback system",
        )

    @staticmethod
    def _context_boosts(text: str) -> list[tuple[str, list[str], str]]:
        found = []
        for booster in CONTEXT_BOOSTERS:
            hits = matched_keywords(text, booster.keywords)
            if hits:
                found.append((booster.description, hits, booster.tag))
        return found


def detect_service_type(text: str) -> ServiceType | None:
    for service_type, pattern in SERVICE_TYPE_PATTERNS:
        if pattern.search(text):
            return service_type
    return None


def detect_sentiment(text: str) -> Sentiment:
    lowered = normalize_text(text)
    for sentiment, keywords in SENTIMENT_KEYWORDS:
        if matched_keywords(lowered, keywords):
            return sentiment
    return Sentiment.NEUTRAL
