"""
Conversation Context for the chat widget.

Tracks one chat session: recognized intent, extracted entities, the
sliding window of recent messages, and the conversation stage. Stages
move forward one step per user message:

    greeting -> inquiry -> details -> resolution

and any stage can jump to ``escalation`` when the customer asks for a
person, complains, raises something the bot should not handle, or the
session drags on unresolved. Escalation sticks until :meth:`reset`.
"""

from __future__ import annotations

from collections import deque
from typing import Optional

from repairdesk.config import get_settings
from repairdesk.logging_config import get_logger
from repairdesk.schemas.conversation import (
    GENERAL_INTENT,
    ChatMessage,
    ConversationContextData,
    ConversationStage,
    CustomerInfo,
    Intent,
    IntentName,
    MessageRole,
)
from repairdesk.services.keyword_rules import (
    COMPLAINT_KEYWORDS,
    COMPLEX_TECHNICAL_KEYWORDS,
    CONFIDENCE_DIVISOR,
    ENTITY_VOCABULARIES,
    HUMAN_REQUEST_KEYWORDS,
    INTENT_RULES,
    KEYWORD_SCORE,
    PATTERN_SCORE,
    URGENCY_ENTITY_KEYWORDS,
    matched_keywords,
    normalize_text,
)

logger = get_logger(__name__)

# More than this many entity keys counts as "specific details"
DETAIL_THRESHOLD = 2


def recognize_intent(message: str) -> Intent:
    """
    Score the message against every intent rule and return the best one.

    Pure function of the message. Ties on confidence go to the rule with
    the higher weight, then to the rule declared first.
    """
    lowered = normalize_text(message)
    entities = extract_entities(message)

    best_name = GENERAL_INTENT
    best_confidence = 0.0
    best_weight = 0

    for rule in INTENT_RULES:
        keyword_hits = len(matched_keywords(lowered, rule.keywords))
        pattern_hits = sum(1 for pattern in rule.patterns if pattern.search(message or ""))
        score = (keyword_hits * KEYWORD_SCORE + pattern_hits * PATTERN_SCORE) * rule.weight
        confidence = min(score / CONFIDENCE_DIVISOR, 1.0)

        if confidence <= 0:
            continue
        if confidence > best_confidence or (confidence == best_confidence and rule.weight > best_weight):
            best_name = rule.name.value
            best_confidence = confidence
            best_weight = rule.weight

    return Intent(name=best_name, confidence=best_confidence, entities=entities)


def extract_entities(message: str) -> dict[str, str]:
    """First-match-wins scans for appliance type, brand, urgency and location."""
    entities: dict[str, str] = {}
    lowered = normalize_text(message)

    for key, vocabulary in ENTITY_VOCABULARIES:
        for value, pattern in vocabulary:
            if pattern.search(lowered):
                entities[key] = value
                break

    if matched_keywords(lowered, URGENCY_ENTITY_KEYWORDS):
        entities["urgency"] = "high"

    return entities


def _clean(value: Optional[str]) -> Optional[str]:
    """Blank or whitespace-only details count as not given."""
    if value is None:
        return None
    return value.strip() or None


class ConversationContext:
    """
    Per-session state machine.

    Each chat session owns exactly one instance; nothing here is shared
    across sessions, so no locking is needed.
    """

    def __init__(
        self,
        history_limit: Optional[int] = None,
        escalation_threshold: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self._history_limit = history_limit or settings.history_limit
        self._escalation_threshold = escalation_threshold or settings.escalation_message_threshold
        self._data = self._fresh_data()

    @property
    def data(self) -> ConversationContextData:
        return self._data

    @property
    def stage(self) -> ConversationStage:
        return self._data.conversation_stage

    @property
    def current_intent(self) -> str:
        return self._data.current_intent

    @property
    def inquiry_details(self) -> dict[str, str]:
        return dict(self._data.inquiry_details)

    @property
    def customer_info(self) -> CustomerInfo:
        return self._data.customer_info

    @property
    def previous_messages(self) -> list[ChatMessage]:
        return list(self._data.previous_messages)

    @property
    def is_escalated(self) -> bool:
        return self._data.conversation_stage == ConversationStage.ESCALATION

    def add_message(self, role: MessageRole | str, text: str) -> ChatMessage:
        """Append a message; the window keeps only the most recent entries."""
        message = ChatMessage(role=MessageRole(role), text=text)
        self._data.previous_messages.append(message)
        self._data.message_count += 1
        return message

    def update_customer_info(
        self,
        name: Optional[str] = None,
        phone: Optional[str] = None,
        location: Optional[str] = None,
    ) -> None:
        info = self._data.customer_info
        self._data.customer_info = CustomerInfo(
            name=_clean(name) or info.name,
            phone=_clean(phone) or info.phone,
            location=_clean(location) or info.location,
        )

    def recognize_intent(self, message: str) -> Intent:
        """Recognize the message's intent and make it the session's current intent."""
        intent = recognize_intent(message)
        self._data.current_intent = intent.name
        self._data.inquiry_details.update(intent.entities)
        logger.debug(
            "intent_recognized",
            intent=intent.name,
            confidence=round(intent.confidence, 2),
            entities=intent.entities,
        )
        return intent

    def update_stage(self) -> ConversationStage:
        """Advance the stage machine by at most one step, then check escalation."""
        stage = self._data.conversation_stage
        new_stage = stage

        if stage == ConversationStage.GREETING:
            if self._data.current_intent and self._data.current_intent != GENERAL_INTENT:
                new_stage = ConversationStage.INQUIRY
        elif stage == ConversationStage.INQUIRY:
            if self.has_specific_details():
                new_stage = ConversationStage.DETAILS
        elif stage == ConversationStage.DETAILS:
            if self.is_ready_for_resolution():
                new_stage = ConversationStage.RESOLUTION

        self._data.conversation_stage = new_stage
        if self.should_escalate():
            new_stage = ConversationStage.ESCALATION
            self._data.conversation_stage = new_stage

        if new_stage != stage:
            logger.info("conversation_stage_changed", old=stage.value, new=new_stage.value)
        return new_stage

    def should_escalate(self) -> bool:
        return any(
            (
                self.is_escalated,
                self._last_user_message_mentions(COMPLEX_TECHNICAL_KEYWORDS),
                self._last_user_message_mentions(COMPLAINT_KEYWORDS),
                self._last_user_message_mentions(HUMAN_REQUEST_KEYWORDS),
                self._is_stuck(),
            )
        )

    def has_specific_details(self) -> bool:
        return len(self._data.inquiry_details) > DETAIL_THRESHOLD

    def is_ready_for_resolution(self) -> bool:
        intent = self._data.current_intent
        if intent == IntentName.BUSINESS_INFO.value:
            return True
        if intent in (IntentName.SERVICE_REQUEST.value, IntentName.SPARE_PARTS_INQUIRY.value):
            return self.has_specific_details()
        return False

    def transcript(self, last: Optional[int] = None, role: Optional[MessageRole] = None) -> str:
        messages = self.previous_messages
        if role is not None:
            messages = [m for m in messages if m.role == role]
        if last is not None:
            messages = messages[-last:]
        return "\n".join(f"{m.role.value}: {m.text}" for m in messages)

    def chat_context(self) -> list[dict[str, str]]:
        """Recent messages in the JSON shape stored alongside a task."""
        return [
            {"role": m.role.value, "text": m.text, "timestamp": m.timestamp.isoformat()}
            for m in self._data.previous_messages
        ]

    def reset(self) -> None:
        self._data = self._fresh_data()

    def _fresh_data(self) -> ConversationContextData:
        return ConversationContextData(previous_messages=deque(maxlen=self._history_limit))

    def _last_user_message(self) -> ChatMessage | None:
        for message in reversed(self._data.previous_messages):
            if message.role == MessageRole.USER:
                return message
        return None

    def _last_user_message_mentions(self, keywords: tuple[str, ...]) -> bool:
        message = self._last_user_message()
        if message is None:
            return False
        return bool(matched_keywords(normalize_text(message.text), keywords))

    def _is_stuck(self) -> bool:
        return (
            self._data.message_count > self._escalation_threshold
            and self._data.conversation_stage != ConversationStage.RESOLUTION
        )
