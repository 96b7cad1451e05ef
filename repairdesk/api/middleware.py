"""
API Middleware.

Request ID injection, per-client rate limiting, and structured access
logging for every incoming API request.
"""

from __future__ import annotations

import time
from collections import defaultdict
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from repairdesk.config import get_settings
from repairdesk.logging_config import generate_trace_id, get_logger, session_id_var, trace_id_var

logger = get_logger(__name__)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a request ID to the log context and echo it on the response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_trace_id()
        trace_id_var.set(request_id)
        session_id_var.set("")

        start = time.monotonic()
        response = await call_next(request)
        elapsed_ms = round((time.monotonic() - start) * 1000, 1)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time-Ms"] = str(elapsed_ms)

        logger.info(
            "api_request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            elapsed_ms=elapsed_ms,
        )
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window request limit per client IP, held in process memory."""

    def __init__(
        self,
        app: ASGIApp,
        window_seconds: Optional[int] = None,
        max_requests: Optional[int] = None,
    ) -> None:
        super().__init__(app)
        settings = get_settings()
        self.window_seconds = window_seconds or settings.rate_limit_window_seconds
        self.max_requests = max_requests or settings.rate_limit_max_requests
        self._hits: dict[str, list[float]] = defaultdict(list)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path == "/health":
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.time()
        hits = [t for t in self._hits[client_ip] if now - t < self.window_seconds]

        if len(hits) >= self.max_requests:
            self._hits[client_ip] = hits
            logger.warning("rate_limit_exceeded", client_ip=client_ip)
            return Response(
                content='{"detail": "Rate limit exceeded"}',
                status_code=429,
                media_type="application/json",
                headers={"Retry-After": str(self.window_seconds)},
            )

        hits.append(now)
        self._hits[client_ip] = hits
        return await call_next(request)
