"""
FastAPI dependencies resolving the services built in the app lifespan.
"""

from __future__ import annotations

from fastapi import Request

from repairdesk.services.chat_service import ChatService
from repairdesk.services.priority_resolver import PriorityResolver


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def get_resolver(request: Request) -> PriorityResolver:
    return request.app.state.resolver
