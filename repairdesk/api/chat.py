"""
API Router: Chat Endpoints.

Entry point for the website chat widget: one message in, one reply out.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from repairdesk.api.dependencies import get_chat_service
from repairdesk.logging_config import get_logger
from repairdesk.schemas.chat import ChatReply, ChatRequest, ClearSessionRequest
from repairdesk.services.chat_service import ChatService

logger = get_logger(__name__)
router = APIRouter(prefix="/chat", tags=["Chat"])


@router.post("", response_model=ChatReply)
async def chat(body: ChatRequest, service: ChatService = Depends(get_chat_service)) -> ChatReply:
    """Process one customer message and return the assistant reply."""
    return await service.handle_message(body.session_id, body.message, customer=body.customer)


@router.post("/clear")
async def clear_session(
    body: ClearSessionRequest, service: ChatService = Depends(get_chat_service)
) -> dict[str, object]:
    cleared = service.clear_session(body.session_id)
    return {"session_id": body.session_id, "cleared": cleared}
