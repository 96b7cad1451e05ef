"""
Unit tests for the priority resolver: classifier selection, fallback, and
time-of-day / customer-type adjustments.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from repairdesk.errors import UpstreamError
from repairdesk.schemas.classification import ClassificationResult, Priority
from repairdesk.schemas.conversation import CustomerProfile, CustomerType
from repairdesk.services.ai_classifier import AIClassifier
from repairdesk.services.priority_resolver import HourWindows, PriorityResolver, ProblemInput

MEDIUM_PROBLEM = "Fridge making a rattling noise"
COMMERCIAL = CustomerProfile(name="Hotel Paradise", customer_type=CustomerType.COMMERCIAL)
RESIDENTIAL = CustomerProfile(name="Anu")


def at(hour, minute=0):
    return datetime(2026, 3, 10, hour, minute)


def _ai(response=None, error=None):
    generator = MagicMock()
    generator.generate = AsyncMock(return_value=response, side_effect=error)
    return AIClassifier(generator)


class TestAdjustments:
    @pytest.mark.asyncio
    async def test_after_hours_lowers_medium(self, resolver):
        result = await resolver.analyze(MEDIUM_PROBLEM, customer=RESIDENTIAL, now=at(23, 30))
        assert result.priority == Priority.LOW
        assert "after-hours" in result.tags
        assert result.estimated_response_time == "2-3 business days"

    @pytest.mark.asyncio
    async def test_commercial_business_hours_raises_medium(self, resolver):
        result = await resolver.analyze(MEDIUM_PROBLEM, customer=COMMERCIAL, now=at(11))
        assert result.priority == Priority.HIGH
        assert "commercial" in result.tags

    @pytest.mark.asyncio
    async def test_commercial_after_hours_is_lowered(self, resolver):
        result = await resolver.analyze(MEDIUM_PROBLEM, customer=COMMERCIAL, now=at(23))
        assert result.priority == Priority.LOW

    @pytest.mark.asyncio
    async def test_high_never_lowered(self, resolver):
        result = await resolver.analyze("sparks from the AC plug", now=at(2))
        assert result.priority == Priority.HIGH
        assert "after-hours" not in result.tags

    @pytest.mark.asyncio
    async def test_low_stays_low_after_hours(self, resolver):
        result = await resolver.analyze("routine cleaning", now=at(23))
        assert result.priority == Priority.LOW
        assert "after-hours" not in result.tags

    @pytest.mark.asyncio
    async def test_daytime_residential_unchanged(self, resolver):
        result = await resolver.analyze(MEDIUM_PROBLEM, customer=RESIDENTIAL, now=at(12))
        assert result.priority == Priority.MEDIUM

    @pytest.mark.parametrize("hour, lowered", [(21, False), (22, True), (5, True), (6, False)])
    def test_after_hours_boundaries(self, resolver, hour, lowered):
        base = ClassificationResult.build(Priority.MEDIUM, "Standard service issue detected: noise")
        result = resolver.adjust(base, at(hour))
        assert (result.priority == Priority.LOW) is lowered

    @pytest.mark.parametrize("hour, raised", [(8, False), (9, True), (17, True), (18, False)])
    def test_business_hours_boundaries(self, resolver, hour, raised):
        base = ClassificationResult.build(Priority.MEDIUM, "Standard service issue detected: noise")
        result = resolver.adjust(base, at(hour), COMMERCIAL)
        assert (result.priority == Priority.HIGH) is raised

    @pytest.mark.asyncio
    async def test_aware_datetime_converted_to_local(self, resolver):
        # 18:00 UTC is 23:30 in Asia/Kolkata
        now = datetime(2026, 3, 10, 18, 0, tzinfo=timezone.utc)
        result = await resolver.analyze(MEDIUM_PROBLEM, now=now)
        assert result.priority == Priority.LOW


class TestClassifierSelection:
    @pytest.mark.asyncio
    async def test_ai_result_used(self, fallback):
        ai = _ai('Analysis: {"priority": 3, "reasoning": "cosmetic dent", "tags": ["cosmetic"]}')
        resolver = PriorityResolver(fallback, ai=ai, windows=HourWindows(), timezone="Asia/Kolkata")

        result = await resolver.analyze("AC not cooling", now=at(12))

        assert result.priority == Priority.LOW
        assert result.reasoning == "cosmetic dent"
        assert "degraded" not in result.tags

    @pytest.mark.asyncio
    async def test_upstream_failure_degrades_to_rules(self, fallback):
        ai = _ai(error=UpstreamError("timed out"))
        resolver = PriorityResolver(fallback, ai=ai, windows=HourWindows(), timezone="Asia/Kolkata")

        result = await resolver.analyze("AC not cooling", now=at(12))

        assert result.priority == Priority.HIGH
        assert result.reasoning.startswith("[fallback] Major malfunction detected")
        assert "degraded" in result.tags

    @pytest.mark.asyncio
    async def test_unparseable_response_degrades(self, fallback):
        resolver = PriorityResolver(
            fallback, ai=_ai("no idea, sorry"), windows=HourWindows(), timezone="Asia/Kolkata"
        )
        result, interaction = await resolver.analyze_with_interaction("fridge making noise", now=at(12))
        assert result.priority == Priority.MEDIUM
        assert "degraded" in result.tags
        assert interaction.confidence == 60.0

    @pytest.mark.asyncio
    async def test_no_fallback_reports_error(self):
        resolver = PriorityResolver(
            None, ai=_ai(error=UpstreamError("down")), windows=HourWindows(), timezone="Asia/Kolkata"
        )
        with pytest.raises(UpstreamError):
            await resolver.analyze("AC not cooling", now=at(12))

    @pytest.mark.asyncio
    async def test_context_feeds_rule_based_path(self, resolver):
        result = await resolver.analyze("it's acting up", context="customer: there is smoke", now=at(12))
        assert result.priority == Priority.HIGH


class TestBatchAnalyze:
    @pytest.mark.asyncio
    async def test_results_in_input_order(self, resolver):
        problems = [
            ProblemInput("gas leak near the fridge"),
            ProblemInput(MEDIUM_PROBLEM),
            ProblemInput("annual cleaning, no rush"),
        ]
        results = await resolver.batch_analyze(problems, now=at(12))
        assert [r.priority for r in results] == [Priority.HIGH, Priority.MEDIUM, Priority.LOW]
