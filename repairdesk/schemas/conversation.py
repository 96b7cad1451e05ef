"""
Data models for chat sessions: messages, intents, and per-session state.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_HISTORY_LIMIT = 10
GENERAL_INTENT = "GENERAL"


class ConversationStage(str, Enum):
    """Coarse phases of a chat session."""
    GREETING = "greeting"
    INQUIRY = "inquiry"
    DETAILS = "details"
    RESOLUTION = "resolution"
    ESCALATION = "escalation"


class IntentName(str, Enum):
    SPARE_PARTS_INQUIRY = "SPARE_PARTS_INQUIRY"
    SERVICE_REQUEST = "SERVICE_REQUEST"
    SALES_INQUIRY = "SALES_INQUIRY"
    BUSINESS_INFO = "BUSINESS_INFO"
    EMERGENCY = "EMERGENCY"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class CustomerType(str, Enum):
    RESIDENTIAL = "residential"
    COMMERCIAL = "commercial"


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: MessageRole
    text: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Intent(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = GENERAL_INTENT
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    entities: dict[str, str] = Field(default_factory=dict)


class CustomerInfo(BaseModel):
    """Contact details gathered during a chat."""
    name: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None


class CustomerProfile(BaseModel):
    """Caller-supplied facts about the customer, used by priority analysis."""
    name: Optional[str] = None
    phone: Optional[str] = None
    previous_interactions: int = Field(default=0, ge=0)
    customer_type: CustomerType = CustomerType.RESIDENTIAL
    is_returning_customer: bool = False
    previous_issues: list[str] = Field(default_factory=list)

    @property
    def is_commercial(self) -> bool:
        return self.customer_type == CustomerType.COMMERCIAL


@dataclass
class ConversationContextData:
    """Mutable state of one chat session. Never shared between sessions."""
    customer_info: CustomerInfo = field(default_factory=CustomerInfo)
    current_intent: str = GENERAL_INTENT
    inquiry_details: dict[str, str] = field(default_factory=dict)
    conversation_stage: ConversationStage = ConversationStage.GREETING
    previous_messages: deque[ChatMessage] = field(
        default_factory=lambda: deque(maxlen=DEFAULT_HISTORY_LIMIT)
    )
    # Total messages seen, including those evicted from the window
    message_count: int = 0
    # Problem waiting on contact details before a task can be logged
    pending_problem: Optional[str] = None
    pending_failed_call: bool = False
    pending_keywords: tuple[str, ...] = ()
    task_id: Optional[str] = None
    task_number: Optional[str] = None
