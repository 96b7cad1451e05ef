"""
Gemini text-generation client.

Thin async wrapper over the Gemini ``generateContent`` REST endpoint.
Every transport problem (connection error, timeout, non-2xx status,
response without text) surfaces as :class:`UpstreamError`; there are no
retries here.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from repairdesk.config import Settings, get_settings
from repairdesk.errors import ConfigurationError, UpstreamError
from repairdesk.logging_config import get_logger

logger = get_logger(__name__)


class GeminiClient:
    """Sends a single prompt and returns the model's raw text."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 15.0,
        temperature: float = 0.3,
        max_output_tokens: int = 500,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError("A Gemini API key is required for the AI classifier")
        self.model = model
        self._api_key = api_key
        self._url = f"{base_url.rstrip('/')}/models/{model}:generateContent"
        self._timeout = timeout
        self._generation_config = {
            "temperature": temperature,
            "topK": 10,
            "topP": 0.8,
            "maxOutputTokens": max_output_tokens,
        }
        self._http_client = http_client

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> GeminiClient:
        settings = settings or get_settings()
        return cls(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            base_url=settings.gemini_base_url,
            timeout=settings.gemini_timeout_seconds,
            temperature=settings.gemini_temperature,
        )

    async def generate(self, prompt: str) -> str:
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": self._generation_config,
        }
        headers = {"x-goog-api-key": self._api_key, "Content-Type": "application/json"}

        try:
            if self._http_client is not None:
                response = await self._http_client.post(
                    self._url, headers=headers, json=payload, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self._url, headers=headers, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            logger.warning("llm_timeout", model=self.model, timeout=self._timeout)
            raise UpstreamError(f"Gemini request timed out after {self._timeout}s") from e
        except httpx.HTTPStatusError as e:
            logger.warning("llm_http_error", model=self.model, status=e.response.status_code)
            raise UpstreamError(f"Gemini returned HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("llm_request_failed", model=self.model, error=str(e))
            raise UpstreamError(f"Gemini request failed: {e}") from e

        return _extract_text(data)


def _extract_text(data: dict[str, Any]) -> str:
    try:
        parts = data["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError) as e:
        feedback = data.get("promptFeedback") if isinstance(data, dict) else None
        raise UpstreamError(f"Gemini response had no candidates (feedback={feedback})") from e

    text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
    if not text.strip():
        raise UpstreamError("Gemini response contained no text")
    return text
