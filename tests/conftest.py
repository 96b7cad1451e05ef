"""
Shared pytest configuration and fixtures for the triage core tests.

Every test runs against default settings with no Gemini key and no
Supabase credentials, so nothing reaches the network.
"""

import pytest

from repairdesk.config import Settings, get_settings
from repairdesk.services.chat_service import ChatService, SessionStore
from repairdesk.services.fallback_classifier import FallbackClassifier
from repairdesk.services.priority_resolver import HourWindows, PriorityResolver
from repairdesk.services.task_gateway import InMemoryTaskGateway


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Drop credentials from the environment and rebuild cached settings."""
    for name in ("GEMINI_API_KEY", "SUPABASE_URL", "SUPABASE_SERVICE_KEY", "ENVIRONMENT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir("/")  # keep a developer's .env.local out of the tests
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def fallback():
    return FallbackClassifier()


@pytest.fixture
def resolver(fallback):
    """Rule-based resolver on the default 22-06 / 9-18 windows."""
    return PriorityResolver(fallback, windows=HourWindows(), timezone="Asia/Kolkata")


@pytest.fixture
def gateway():
    return InMemoryTaskGateway()


@pytest.fixture
def chat_service(resolver, gateway, settings):
    return ChatService(resolver, gateway, sessions=SessionStore(settings), settings=settings)
