"""
FastAPI API Server.

REST API for the chat widget and the priority / failed-call analysis
used by the admin dashboard.

Start with:
    uvicorn repairdesk.api_server:app --reload --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from dotenv import load_dotenv
load_dotenv(".env.local")

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from repairdesk.api.analysis import router as analysis_router
from repairdesk.api.chat import router as chat_router
from repairdesk.api.middleware import RateLimitMiddleware, RequestIdMiddleware
from repairdesk.bootstrap import build_gateway, build_resolver
from repairdesk.config import Settings, get_settings
from repairdesk.logging_config import get_logger, setup_logging
from repairdesk.services.chat_service import ChatService, SessionStore
from repairdesk.services.priority_resolver import PriorityResolver
from repairdesk.services.task_gateway import TaskUpsertGateway

setup_logging()
logger = get_logger(__name__)

SERVICE_NAME = "repairdesk"
VERSION = "0.1.0"


def create_app(
    settings: Optional[Settings] = None,
    resolver: Optional[PriorityResolver] = None,
    gateway: Optional[TaskUpsertGateway] = None,
) -> FastAPI:
    """Build the app; explicit services override the settings-driven wiring."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("api_server_starting", environment=settings.environment.value)
        app.state.resolver = resolver or build_resolver(settings)
        app.state.gateway = gateway or build_gateway(settings)
        app.state.chat_service = ChatService(
            app.state.resolver,
            app.state.gateway,
            sessions=SessionStore(settings),
            settings=settings,
        )
        yield
        logger.info("api_server_stopping", sessions=len(app.state.chat_service.sessions))

    app = FastAPI(
        title="RepairDesk Triage API",
        description="Chat triage and priority analysis for appliance repair requests",
        version=VERSION,
        lifespan=lifespan,
    )

    # Middleware: last added runs first
    app.add_middleware(
        RateLimitMiddleware,
        window_seconds=settings.rate_limit_window_seconds,
        max_requests=settings.rate_limit_max_requests,
    )
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(chat_router)
    app.include_router(analysis_router)

    @app.get("/health", tags=["System"])
    async def health_check() -> dict[str, str]:
        return {"status": "ok", "service": SERVICE_NAME}

    @app.get("/", tags=["System"])
    async def root() -> dict[str, str]:
        return {"service": SERVICE_NAME, "version": VERSION, "docs": "/docs"}

    return app


app = create_app()
