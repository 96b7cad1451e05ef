"""
Request/response models for the chat and analysis endpoints.
"""

from typing import Optional

from pydantic import BaseModel, Field

from repairdesk.schemas.classification import ClassificationResult
from repairdesk.schemas.conversation import ConversationStage, CustomerProfile, Intent


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=4000)
    session_id: Optional[str] = None
    customer: Optional[CustomerProfile] = None


class ChatReply(BaseModel):
    session_id: str
    text: str
    intent: Intent
    stage: ConversationStage
    escalated: bool = False
    next_action: str = "continue"
    task_id: Optional[str] = None
    task_number: Optional[str] = None
    classification: Optional[ClassificationResult] = None
    missing_fields: list[str] = Field(default_factory=list)


class ClearSessionRequest(BaseModel):
    session_id: str


class PriorityAnalysisRequest(BaseModel):
    problem_description: str = Field(min_length=1, max_length=4000)
    context: Optional[str] = None
    customer: Optional[CustomerProfile] = None


class FailedCallDetectRequest(BaseModel):
    message_text: str = Field(min_length=1, max_length=4000)
