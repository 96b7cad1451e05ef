"""
Service construction from settings.

Shared by the API lifespan and the CLI scripts so both run the same
classifier and storage wiring.
"""

from __future__ import annotations

from repairdesk.config import Settings, get_settings
from repairdesk.db import DatabaseClient
from repairdesk.errors import ConfigurationError
from repairdesk.logging_config import get_logger
from repairdesk.services.ai_classifier import AIClassifier
from repairdesk.services.fallback_classifier import FallbackClassifier
from repairdesk.services.llm_client import GeminiClient
from repairdesk.services.priority_resolver import PriorityResolver
from repairdesk.services.task_gateway import InMemoryTaskGateway, SupabaseTaskGateway, TaskUpsertGateway

logger = get_logger(__name__)


def build_resolver(settings: Settings | None = None) -> PriorityResolver:
    """Rule-based classifier always; AI classifier only with a Gemini key."""
    settings = settings or get_settings()
    ai = None
    try:
        ai = AIClassifier(GeminiClient.from_settings(settings))
    except ConfigurationError as e:
        logger.warning("ai_classifier_unavailable", reason=str(e))
    return PriorityResolver(FallbackClassifier(), ai=ai, timezone=settings.timezone)


def build_gateway(settings: Settings | None = None) -> TaskUpsertGateway:
    """
    Supabase-backed gateway when credentials exist.

    Outside production a missing credential falls back to the in-memory
    store; in production it is a startup error.
    """
    settings = settings or get_settings()
    try:
        return SupabaseTaskGateway(DatabaseClient.from_settings(settings))
    except ConfigurationError as e:
        if settings.is_production:
            raise
        logger.warning("task_store_in_memory", reason=str(e))
        return InMemoryTaskGateway()
