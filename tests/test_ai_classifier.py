"""
Unit tests for the AI classifier, its response parser, and the Gemini client.

The text generator is mocked; the HTTP client runs on httpx.MockTransport.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from repairdesk.errors import ConfigurationError, UpstreamError
from repairdesk.schemas.classification import (
    InteractionCategory,
    ParseError,
    ParseOk,
    Priority,
    Sentiment,
    ServiceType,
    UrgencyLevel,
)
from repairdesk.schemas.conversation import CustomerProfile, CustomerType
from repairdesk.services.ai_classifier import (
    AIClassifier,
    build_prompt,
    extract_json_object,
    parse_response,
    validate_confidence,
    validate_priority,
)
from repairdesk.services.llm_client import GeminiClient

PROSE_RESPONSE = """Sure! Here is my analysis of the customer's message:

```json
{
  "priority": 1,
  "reasoning": "AC failure with an elderly occupant during hot weather",
  "urgencyLevel": "high",
  "estimatedResponseTime": "2-4 hours",
  "tags": ["emergency", "AC-Failure"],
  "isFailedCall": false,
  "isServiceRequest": true,
  "category": "service_request",
  "serviceType": "ac_repair",
  "sentiment": "negative",
  "requiresImmediate": true,
  "confidence": 92
}
```

Let me know if you need anything else."""


def _generator(response=None, error=None):
    generator = MagicMock()
    generator.generate = AsyncMock(return_value=response, side_effect=error)
    return generator


class TestAIClassifier:
    @pytest.mark.asyncio
    async def test_json_in_prose(self):
        classifier = AIClassifier(_generator(PROSE_RESPONSE))
        outcome = await classifier.classify("AC dead, elderly mother at home")

        assert isinstance(outcome, ParseOk)
        assert outcome.result.priority == Priority.HIGH
        assert outcome.result.estimated_response_time == "2-4 hours"
        assert outcome.result.tags == ("ac-failure", "emergency")
        assert outcome.interaction.category == InteractionCategory.SERVICE_REQUEST
        assert outcome.interaction.service_type == ServiceType.AC_REPAIR
        assert outcome.interaction.sentiment == Sentiment.NEGATIVE
        assert outcome.interaction.confidence == 92

    @pytest.mark.asyncio
    async def test_prompt_carries_problem_and_context(self):
        generator = _generator('{"priority": 2}')
        classifier = AIClassifier(generator)
        await classifier.classify("fridge noisy", context="customer: it started yesterday")

        prompt = generator.generate.await_args.args[0]
        assert "fridge noisy" in prompt
        assert "it started yesterday" in prompt
        assert "Priority 1 (HIGH)" in prompt

    @pytest.mark.asyncio
    async def test_no_json_is_parse_error(self):
        classifier = AIClassifier(_generator("I'm sorry, I can't help with that."))
        outcome = await classifier.classify("AC broken")
        assert isinstance(outcome, ParseError)
        assert outcome.raw.startswith("I'm sorry")

    @pytest.mark.asyncio
    async def test_upstream_error_propagates(self):
        classifier = AIClassifier(_generator(error=UpstreamError("timed out")))
        with pytest.raises(UpstreamError):
            await classifier.classify("AC broken")


class TestParseResponse:
    def test_out_of_range_priority_defaults_to_medium(self):
        outcome = parse_response('{"priority": 7, "reasoning": "odd"}')
        assert isinstance(outcome, ParseOk)
        assert outcome.result.priority == Priority.MEDIUM
        assert outcome.result.estimated_response_time == "24 hours"

    def test_missing_fields_get_defaults(self):
        outcome = parse_response('{"priority": "3"}')
        assert outcome.result.priority == Priority.LOW
        assert outcome.result.reasoning == "AI analysis completed"
        assert outcome.result.tags == ("maintenance", "routine")
        assert outcome.interaction.category == InteractionCategory.UNCLEAR
        assert outcome.interaction.confidence == 50.0

    def test_invalid_enums_are_substituted(self):
        payload = {
            "priority": 2,
            "category": "complaint",
            "serviceType": "plumbing",
            "sentiment": "furious",
            "urgencyLevel": "extreme",
        }
        outcome = parse_response(json.dumps(payload))
        assert outcome.interaction.category == InteractionCategory.UNCLEAR
        assert outcome.interaction.service_type is None
        assert outcome.interaction.sentiment == Sentiment.NEUTRAL
        assert outcome.interaction.urgency_level == UrgencyLevel.MEDIUM

    def test_nested_extracted_info(self):
        raw = json.dumps(
            {
                "priority": 1,
                "extractedInfo": {"serviceType": "refrigerator_repair", "customerSentiment": "positive"},
            }
        )
        outcome = parse_response(raw)
        assert outcome.interaction.service_type == ServiceType.REFRIGERATOR_REPAIR
        assert outcome.interaction.sentiment == Sentiment.POSITIVE

    def test_non_string_tags_use_defaults(self):
        outcome = parse_response('{"priority": 1, "tags": "urgent"}')
        assert outcome.result.tags == ("emergency", "urgent")

    def test_answer_after_unclosed_aside(self):
        outcome = parse_response('Thinking {about this case... Answer: {"priority": 1, "reasoning": "gas leak"}')
        assert isinstance(outcome, ParseOk)
        assert outcome.result.priority == Priority.HIGH
        assert outcome.result.reasoning == "gas leak"


class TestExtractJsonObject:
    def test_braces_inside_strings(self):
        raw = 'Result: {"reasoning": "uses {braces} inside", "priority": 2} done'
        assert extract_json_object(raw) == {"reasoning": "uses {braces} inside", "priority": 2}

    def test_skips_malformed_block(self):
        raw = 'Note {not json} then {"priority": 3}'
        assert extract_json_object(raw) == {"priority": 3}

    def test_unbalanced(self):
        assert extract_json_object('{"priority": 1') is None

    def test_unclosed_brace_in_prose(self):
        raw = 'Thinking {about this case... Answer: {"priority": 1, "reasoning": "gas leak"}'
        assert extract_json_object(raw) == {"priority": 1, "reasoning": "gas leak"}

    def test_no_object(self):
        assert extract_json_object("[1, 2, 3]") is None


@pytest.mark.parametrize(
    "value, expected",
    [
        (1, Priority.HIGH),
        (3.0, Priority.LOW),
        (" 2 ", Priority.MEDIUM),
        ("1", Priority.HIGH),
        (0, Priority.MEDIUM),
        (True, Priority.MEDIUM),
        ("high", Priority.MEDIUM),
        (None, Priority.MEDIUM),
        (1.5, Priority.MEDIUM),
    ],
)
def test_validate_priority(value, expected):
    assert validate_priority(value) == expected


@pytest.mark.parametrize(
    "value, expected",
    [(85, 85.0), (150, 100.0), (-3, 0.0), ("70", 70.0), ("high", 50.0), (None, 50.0), (float("nan"), 50.0)],
)
def test_validate_confidence(value, expected):
    assert validate_confidence(value) == expected


def test_build_prompt_includes_customer():
    customer = CustomerProfile(name="Hotel Paradise", customer_type=CustomerType.COMMERCIAL)
    prompt = build_prompt("freezer warm", customer=customer)
    assert "CUSTOMER INFO" in prompt
    assert '"customer_type": "commercial"' in prompt


class TestGeminiClient:
    def _client(self, handler):
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return GeminiClient(api_key="test-key", model="gemini-2.0-flash", http_client=http_client)

    @pytest.mark.asyncio
    async def test_generate_returns_text(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["key"] = request.headers.get("x-goog-api-key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"candidates": [{"content": {"parts": [{"text": '{"priority": 1}'}]}}]},
            )

        text = await self._client(handler).generate("classify this")

        assert text == '{"priority": 1}'
        assert seen["url"].endswith("/models/gemini-2.0-flash:generateContent")
        assert seen["key"] == "test-key"
        assert seen["body"]["contents"][0]["parts"][0]["text"] == "classify this"

    @pytest.mark.asyncio
    async def test_http_error_raises_upstream(self):
        client = self._client(lambda request: httpx.Response(503, json={"error": "busy"}))
        with pytest.raises(UpstreamError, match="HTTP 503"):
            await client.generate("classify this")

    @pytest.mark.asyncio
    async def test_timeout_raises_upstream(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(UpstreamError, match="timed out"):
            await self._client(handler).generate("classify this")

    @pytest.mark.asyncio
    async def test_no_candidates_raises_upstream(self):
        client = self._client(lambda request: httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}}))
        with pytest.raises(UpstreamError):
            await client.generate("classify this")

    def test_missing_key_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            GeminiClient(api_key="", model="gemini-2.0-flash")
