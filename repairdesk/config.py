"""
Application configuration via environment variables.

Uses Pydantic BaseSettings to load and validate all config from env vars
or a .env.local file. Every setting has a sensible default for local
development so the triage core can start with no credentials at all: without
a Gemini key the rule-based classifier runs on its own, and without Supabase
credentials tasks are kept in memory.
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Deployment environment selector."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """
    Central configuration for the RepairDesk triage service.

    Values are loaded from environment variables first, falling back
    to a `.env.local` file in the project root.
    """

    model_config = SettingsConfigDict(
        env_file=".env.local",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Environment ──────────────────────────────────────────────
    environment: Environment = Environment.DEVELOPMENT

    # ── Gemini ───────────────────────────────────────────────────
    gemini_api_key: str = Field(default="", description="Google AI API key; empty disables the AI classifier")
    gemini_model: str = Field(default="gemini-2.0-flash", description="Gemini model used for classification")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini REST API base URL",
    )
    gemini_timeout_seconds: float = Field(default=15.0, gt=0, le=120, description="Per-request timeout for the LLM call")
    gemini_temperature: float = Field(default=0.3, ge=0.0, le=2.0, description="Sampling temperature for priority analysis")

    # ── Supabase ─────────────────────────────────────────────────
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_service_key: str = Field(default="", description="Supabase service-role key")
    tasks_table: str = Field(default="tasks", description="Table that holds service tasks")

    # ── Business Identity ────────────────────────────────────────
    business_name: str = Field(default="Cool Wind Services", description="Name used in replies and prompts")
    business_phone: str = Field(default="+91 85472 29991", description="Phone number quoted to customers")
    business_location: str = Field(default="Thiruvalla, Kerala", description="Shop location")
    business_hours_text: str = Field(default="Mon-Sat 9:00 AM - 6:00 PM", description="Opening hours shown to customers")
    service_areas: list[str] = Field(
        default_factory=lambda: ["Thiruvalla", "Pathanamthitta"],
        description="Areas with on-site service",
    )

    # ── Scheduling Windows (local hours, 0-23) ───────────────────
    timezone: str = Field(default="Asia/Kolkata", description="IANA timezone for time-of-day adjustments")
    after_hours_start: int = Field(default=22, ge=0, le=23)
    after_hours_end: int = Field(default=6, ge=0, le=23)
    business_hours_start: int = Field(default=9, ge=0, le=23)
    business_hours_end: int = Field(default=18, ge=0, le=24)

    # ── Conversation ─────────────────────────────────────────────
    history_limit: int = Field(default=10, ge=1, le=100, description="Messages retained per session")
    escalation_message_threshold: int = Field(
        default=12, ge=1, description="Escalate once a session exceeds this many messages unresolved"
    )
    session_ttl_minutes: int = Field(default=30, ge=1, description="Idle minutes before a chat session is discarded")

    # ── API ──────────────────────────────────────────────────────
    rate_limit_window_seconds: int = Field(default=60, ge=1)
    rate_limit_max_requests: int = Field(default=100, ge=1)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO", description="Root log level")

    # ── Derived helpers ──────────────────────────────────────────

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return cached Settings instance.

    Using lru_cache ensures we read env vars exactly once, and every
    module that calls ``get_settings()`` gets the same object.
    """
    return Settings()
