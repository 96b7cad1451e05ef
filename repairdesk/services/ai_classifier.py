"""
AI Priority Classifier.

Asks the LLM to grade a customer's problem against the business rules
and parses the JSON it returns. The raw response is treated as untrusted
text: the first well-formed JSON object is pulled out of whatever prose
surrounds it, and every field is validated on its own, with out-of-range
values replaced by safe defaults.

Transport failures raise :class:`UpstreamError`. An unusable response is
returned as :class:`ParseError` so the caller has to decide what to do
with it.
"""

from __future__ import annotations

import json
from typing import Any, Optional, Protocol, TypeVar

from repairdesk.config import get_settings
from repairdesk.errors import FieldValidationError
from repairdesk.logging_config import get_logger
from repairdesk.schemas.classification import (
    RESPONSE_TIME_BY_PRIORITY,
    ClassificationResult,
    InteractionCategory,
    InteractionClassification,
    ParseError,
    ParseOk,
    ParseOutcome,
    Priority,
    Sentiment,
    ServiceType,
    UrgencyLevel,
)
from repairdesk.schemas.conversation import CustomerProfile

logger = get_logger(__name__)

E = TypeVar("E", bound=Any)

DEFAULT_TAGS_BY_PRIORITY: dict[Priority, tuple[str, ...]] = {
    Priority.HIGH: ("urgent", "emergency"),
    Priority.MEDIUM: ("standard", "service-request"),
    Priority.LOW: ("routine", "maintenance"),
}
DEFAULT_CONFIDENCE = 50.0


class TextGenerator(Protocol):
    async def generate(self, prompt: str) -> str: ...


PRIORITY_PROMPT = """You are an expert customer service priority analyzer for {business_name}, an AC and refrigerator service company in {business_location}.

TASK: Analyze the customer's message, assign a priority level from 1-3 and classify the interaction:
- Priority 1 (HIGH): Emergency situations requiring immediate response (within 2-4 hours)
- Priority 2 (MEDIUM): Important issues requiring same-day or next-day response (within 24 hours)
- Priority 3 (LOW): Routine issues that can wait 2-3 business days

PRIORITY 1 (HIGH) INDICATORS:
- Complete breakdown of essential appliances (AC in summer heat, refrigerator food spoilage)
- Safety hazards (electrical issues, gas leaks, overheating)
- Water damage or flooding from appliances
- Customer explicitly states "emergency" or "urgent"
- Business operations affected (commercial customers)
- Extreme weather conditions (AC failure during heat wave)
- Health-related concerns (medicines in fridge, elderly/children affected)

PRIORITY 2 (MEDIUM) INDICATORS:
- Partial functionality loss but appliance still working
- Intermittent problems affecting daily routine
- Service appointments and maintenance
- Parts availability issues
- Customer has backup solutions available
- Non-critical electrical or cooling issues

PRIORITY 3 (LOW) INDICATORS:
- Routine maintenance requests
- Cosmetic issues or minor repairs
- Information inquiries and general questions
- Scheduled service appointments with flexible timing
- Non-urgent parts replacement
- Performance optimization requests

INTERACTION RULES:
- Mentions of "couldn't reach", "no answer", "line busy", "callback" mean a failed call
- Specific appliance issues, repair needs or service booking mean a service request
- Both communication issues AND service needs mean "mixed"
- Sentiment: positive (polite, patient), neutral (matter-of-fact), negative (frustrated, angry)

CUSTOMER PROBLEM:
"{problem}"
{context_block}{customer_block}
Return ONLY a JSON object in this exact format:
{{
  "priority": 1,
  "reasoning": "Brief explanation of why this priority was assigned",
  "urgencyLevel": "high",
  "estimatedResponseTime": "2-4 hours",
  "tags": ["emergency", "ac-failure", "heat-wave"],
  "isFailedCall": false,
  "isServiceRequest": true,
  "category": "service_request",
  "serviceType": "ac_repair",
  "sentiment": "neutral",
  "requiresImmediate": true,
  "confidence": 85
}}

Allowed values: urgencyLevel in [high, medium, low]; category in [failed_call, service_request, mixed, unclear]; serviceType in [ac_repair, refrigerator_repair, spare_parts, electronics, other, null]; sentiment in [positive, neutral, negative]; confidence from 0 to 100."""


def build_prompt(
    problem_text: str,
    context: Optional[str] = None,
    customer: Optional[CustomerProfile] = None,
) -> str:
    settings = get_settings()
    context_block = f'\nCONVERSATION CONTEXT:\n"{context}"\n' if context else ""
    customer_block = ""
    if customer is not None:
        customer_json = json.dumps(customer.model_dump(mode="json", exclude_none=True), indent=2)
        customer_block = f"\nCUSTOMER INFO:\n{customer_json}\n"
    return PRIORITY_PROMPT.format(
        business_name=settings.business_name,
        business_location=settings.business_location,
        problem=problem_text,
        context_block=context_block,
        customer_block=customer_block,
    )


class AIClassifier:
    """LLM-backed classifier. Construct one per application and inject it."""

    def __init__(self, generator: TextGenerator) -> None:
        self._generator = generator

    async def classify(
        self,
        problem_text: str,
        context: Optional[str] = None,
        customer: Optional[CustomerProfile] = None,
    ) -> ParseOutcome:
        prompt = build_prompt(problem_text, context, customer)
        # UpstreamError propagates to the resolver
        raw = await self._generator.generate(prompt)
        return parse_response(raw)


# ── Response parsing ─────────────────────────────────────────────


def extract_json_object(text: str) -> dict[str, Any] | None:
    """
    Return the first balanced ``{...}`` block in ``text`` that parses as a JSON object.

    Braces inside string literals are ignored while scanning.
    """
    start = text.find("{")
    while start != -1:
        end = _matching_brace(text, start)
        if end is None:
            start = text.find("{", start + 1)
            continue
        try:
            candidate = json.loads(text[start:end + 1])
        except json.JSONDecodeError:
            candidate = None
        if isinstance(candidate, dict):
            return candidate
        start = text.find("{", start + 1)
    return None


def _matching_brace(text: str, start: int) -> int | None:
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return None


def parse_response(raw: str) -> ParseOutcome:
    payload = extract_json_object(raw or "")
    if payload is None:
        logger.warning("ai_response_unparseable", preview=(raw or "")[:200])
        return ParseError(reason="No JSON object found in model response", raw=raw or "")

    # Some models nest the interaction fields the way older prompts asked for
    extracted = payload.get("extractedInfo")
    details = {**extracted, **payload} if isinstance(extracted, dict) else payload

    priority = validate_priority(payload.get("priority"))

    reasoning = payload.get("reasoning")
    if not isinstance(reasoning, str) or not reasoning.strip():
        reasoning = "AI analysis completed"

    response_time = payload.get("estimatedResponseTime")
    if not isinstance(response_time, str) or not response_time.strip():
        response_time = RESPONSE_TIME_BY_PRIORITY[priority]

    tags = payload.get("tags")
    if isinstance(tags, list) and all(isinstance(tag, str) for tag in tags):
        tag_values: tuple[str, ...] = tuple(tags)
    else:
        tag_values = DEFAULT_TAGS_BY_PRIORITY[priority]

    result = ClassificationResult.build(
        priority=priority,
        reasoning=reasoning.strip(),
        tags=tag_values,
        estimated_response_time=response_time.strip(),
    )

    service_type_raw = details.get("serviceType")
    interaction = InteractionClassification(
        is_failed_call=bool(details.get("isFailedCall")),
        is_service_request=bool(details.get("isServiceRequest")),
        category=validate_enum("category", details.get("category"), InteractionCategory, InteractionCategory.UNCLEAR),
        service_type=(
            None if service_type_raw in (None, "", "null")
            else validate_enum("serviceType", service_type_raw, ServiceType, None)
        ),
        urgency_level=validate_enum("urgencyLevel", details.get("urgencyLevel"), UrgencyLevel, UrgencyLevel.MEDIUM),
        sentiment=validate_enum(
            "sentiment", details.get("sentiment", details.get("customerSentiment")), Sentiment, Sentiment.NEUTRAL
        ),
        requires_immediate=bool(details.get("requiresImmediate")),
        confidence=validate_confidence(details.get("confidence")),
        reasoning=result.reasoning,
    )

    return ParseOk(result=result, interaction=interaction)


def validate_priority(value: Any) -> Priority:
    candidate: int | None = None
    if isinstance(value, bool):
        candidate = None
    elif isinstance(value, int):
        candidate = value
    elif isinstance(value, float) and value.is_integer():
        candidate = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        candidate = int(value.strip())

    if candidate in (1, 2, 3):
        return Priority(candidate)

    _log_substitution(FieldValidationError("priority", value, Priority.MEDIUM.value))
    return Priority.MEDIUM


def validate_enum(field: str, value: Any, enum_cls: type[E], default: E) -> E:
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            pass
    _log_substitution(FieldValidationError(field, value, getattr(default, "value", default)))
    return default


def validate_confidence(value: Any) -> float:
    if isinstance(value, bool):
        return DEFAULT_CONFIDENCE
    try:
        number = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    if number != number:  # NaN
        return DEFAULT_CONFIDENCE
    return max(0.0, min(100.0, number))


def _log_substitution(error: FieldValidationError) -> None:
    logger.warning("ai_field_invalid", field=error.field, value=repr(error.value), default=error.default)
