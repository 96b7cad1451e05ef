"""
Chat Service.

Handles one customer chat message end to end:

1. Record the message and pick up any contact details in it.
2. Recognize the intent and advance the conversation stage.
3. Hand escalated sessions to a person.
4. For failed calls and service requests, collect missing contact details,
   resolve a priority, and log a callback task.
5. Otherwise answer from the per-intent templates.

Sessions live in a process-local :class:`SessionStore`.
"""

from __future__ import annotations

import time
import uuid
from datetime import datetime
from typing import Callable, Optional

from pydantic import ValidationError

from repairdesk.config import Settings, get_settings
from repairdesk.logging_config import get_logger, session_id_var
from repairdesk.schemas.chat import ChatReply
from repairdesk.schemas.classification import ClassificationResult, InteractionClassification, Priority
from repairdesk.schemas.conversation import (
    ConversationStage,
    CustomerProfile,
    Intent,
    IntentName,
    MessageRole,
)
from repairdesk.schemas.task import TaskCreateRequest, TaskSource, to_task_priority
from repairdesk.services.conversation_context import ConversationContext
from repairdesk.services.failed_call_detector import (
    detect_failed_call,
    extract_customer_details,
    identify_missing_fields,
    missing_info_request,
)
from repairdesk.services.priority_resolver import PriorityResolver
from repairdesk.services.task_gateway import TaskUpsertGateway

logger = get_logger(__name__)

# Recent customer messages handed to the classifier as context
PROMPT_HISTORY = 5

TASK_INTENTS = frozenset({IntentName.SERVICE_REQUEST.value, IntentName.EMERGENCY.value})

# Task request fields collected in chat, with the label used when asking again
FIELD_PROMPTS = {
    "customer_name": "name",
    "phone_number": "phone number",
    "problem_description": "problem description",
}
CUSTOMER_INFO_FIELDS = {"customer_name": "name", "phone_number": "phone"}

PRIORITY_REPLIES: dict[Priority, str] = {
    Priority.HIGH: (
        "Thanks for letting me know, {name}. I've logged this as urgent and you'll receive "
        "a callback within the next few hours about your {topic}."
    ),
    Priority.MEDIUM: (
        "Noted, {name}! Someone will reach out to you via WhatsApp or phone call by tomorrow "
        "to help with your {topic}."
    ),
    Priority.LOW: (
        "I've recorded this, {name}. Expect a callback within 1-2 business days to help "
        "with your {topic}."
    ),
}
GENERIC_ACK = (
    "Thanks for letting me know, {name}. I've noted this for follow-up and you'll receive "
    "a callback soon. If it's urgent, call us at {phone}."
)
EXISTING_TASK_REPLY = (
    "Your request {reference}is already logged and our team will contact you soon. "
    "For anything urgent, call us at {phone}."
)
ESCALATION_REPLY = (
    "I'll pass this to our team so a person can help you directly. "
    "You can also call us at {phone} during {hours}."
)
INTENT_REPLIES: dict[str, str] = {
    IntentName.BUSINESS_INFO.value: (
        "{business} is located in {location}. We're open {hours} and provide on-site "
        "service in {areas}. Call us at {phone}."
    ),
    IntentName.SPARE_PARTS_INQUIRY.value: (
        "We stock genuine spare parts for most AC and refrigerator brands{brand}. Share the "
        "model number and we'll check availability and price for you."
    ),
    IntentName.SALES_INQUIRY.value: (
        "We sell new and refurbished ACs and refrigerators. Tell me the capacity or budget "
        "you have in mind and we'll suggest a few options."
    ),
}
GREETING_REPLY = "Hi! Welcome to {business}. How can I help with your AC or refrigerator today?"
GENERAL_REPLY = (
    "I can help with repairs, spare parts, new appliances, or our shop details. "
    "What do you need?"
)


class SessionStore:
    """
    Process-local map of session id to conversation context.

    Sessions idle for longer than ``ttl_seconds`` are discarded on the next
    access to the store.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings or get_settings()
        self._ttl = ttl_seconds or self._settings.session_ttl_minutes * 60
        self._clock = clock
        self._sessions: dict[str, ConversationContext] = {}
        self._last_seen: dict[str, float] = {}

    def get(self, session_id: str) -> ConversationContext:
        now = self._clock()
        self._evict_idle(now)
        context = self._sessions.get(session_id)
        if context is None:
            context = ConversationContext(
                history_limit=self._settings.history_limit,
                escalation_threshold=self._settings.escalation_message_threshold,
            )
            self._sessions[session_id] = context
        self._last_seen[session_id] = now
        return context

    def clear(self, session_id: str) -> bool:
        self._last_seen.pop(session_id, None)
        return self._sessions.pop(session_id, None) is not None

    def _evict_idle(self, now: float) -> None:
        expired = [sid for sid, seen in self._last_seen.items() if now - seen > self._ttl]
        for session_id in expired:
            self.clear(session_id)
        if expired:
            logger.info("chat_sessions_expired", count=len(expired), remaining=len(self._sessions))

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)


class ChatService:
    def __init__(
        self,
        resolver: PriorityResolver,
        gateway: TaskUpsertGateway,
        sessions: Optional[SessionStore] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._resolver = resolver
        self._gateway = gateway
        self._settings = settings or get_settings()
        self._sessions = sessions or SessionStore(self._settings)

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    async def handle_message(
        self,
        session_id: Optional[str],
        message: str,
        customer: Optional[CustomerProfile] = None,
        now: Optional[datetime] = None,
    ) -> ChatReply:
        session_id = session_id or str(uuid.uuid4())
        session_id_var.set(session_id)
        context = self._sessions.get(session_id)

        context.add_message(MessageRole.USER, message)
        details = extract_customer_details(message)
        context.update_customer_info(
            name=details.name or (customer.name if customer else None),
            phone=details.phone or (customer.phone if customer else None),
            location=details.location,
        )

        intent = context.recognize_intent(message)
        stage = context.update_stage()
        detection = detect_failed_call(message)

        reply = ChatReply(session_id=session_id, text="", intent=intent, stage=stage)

        if context.is_escalated:
            reply.text = ESCALATION_REPLY.format(
                phone=self._settings.business_phone, hours=self._settings.business_hours_text
            )
            reply.escalated = True
            reply.next_action = "escalate_to_human"
            logger.info("chat_escalated", intent=intent.name, message_count=context.data.message_count)
        elif context.data.task_id:
            reference = f"{context.data.task_number} " if context.data.task_number else ""
            reply.text = EXISTING_TASK_REPLY.format(reference=reference, phone=self._settings.business_phone)
            reply.task_id = context.data.task_id
            reply.task_number = context.data.task_number
            reply.next_action = "task_exists"
        elif detection.has_indicator or intent.name in TASK_INTENTS or context.data.pending_problem:
            if context.data.pending_problem is None:
                context.data.pending_problem = message
                context.data.pending_failed_call = detection.has_indicator
                context.data.pending_keywords = detection.matched_keywords
                if detection.has_indicator:
                    logger.info("failed_call_detected", context=detection.extracted_context)
            await self._handle_task_request(context, reply, customer, now)
        else:
            reply.text = self._intent_reply(intent, stage)

        context.add_message(MessageRole.ASSISTANT, reply.text)
        reply.stage = context.stage
        return reply

    def clear_session(self, session_id: str) -> bool:
        cleared = self._sessions.clear(session_id)
        logger.info("chat_session_cleared", session_id=session_id, existed=cleared)
        return cleared

    async def _handle_task_request(
        self,
        context: ConversationContext,
        reply: ChatReply,
        customer: Optional[CustomerProfile],
        now: Optional[datetime],
    ) -> None:
        data = context.data
        info = context.customer_info
        missing = identify_missing_fields(info, data.pending_problem, require_location=False)
        if missing:
            reply.text = missing_info_request(missing)
            reply.missing_fields = missing
            reply.next_action = "collect_missing_info"
            return

        profile = customer or CustomerProfile(name=info.name, phone=info.phone)
        classification, interaction = await self._resolver.analyze_with_interaction(
            data.pending_problem,
            context=context.transcript(last=PROMPT_HISTORY, role=MessageRole.USER),
            customer=profile,
            now=now,
        )
        reply.classification = classification

        try:
            request = self._task_request(context, classification, interaction, reply.session_id)
        except ValidationError as e:
            rejected = {err["loc"][0] for err in e.errors() if err["loc"]}
            missing = [label for field, label in FIELD_PROMPTS.items() if field in rejected]
            if not missing:
                raise
            logger.warning("task_request_invalid", fields=missing, error=str(e))
            data.customer_info = info.model_copy(
                update={CUSTOMER_INFO_FIELDS[field]: None for field in rejected if field in CUSTOMER_INFO_FIELDS}
            )
            if "problem_description" in rejected:
                data.pending_problem = None
            reply.text = missing_info_request(missing)
            reply.missing_fields = missing
            reply.next_action = "collect_missing_info"
            return

        result = await self._gateway.create(request)
        name = info.name.split()[0]
        if not result.success:
            logger.warning("task_create_degraded", error=result.error)
            reply.text = GENERIC_ACK.format(name=name, phone=self._settings.business_phone)
            reply.next_action = "acknowledged"
            return

        data.task_id = result.task_id
        data.task_number = result.task_number
        data.pending_problem = None
        data.pending_keywords = ()
        reply.task_id = result.task_id
        reply.task_number = result.task_number
        reply.next_action = "task_exists" if result.duplicate else "task_created"

        text = PRIORITY_REPLIES[classification.priority].format(
            name=name, topic=_topic(context.inquiry_details)
        )
        if result.task_number:
            text += f" Your reference number is {result.task_number}."
        reply.text = text

    def _task_request(
        self,
        context: ConversationContext,
        classification: ClassificationResult,
        interaction: InteractionClassification,
        session_id: str,
    ) -> TaskCreateRequest:
        data = context.data
        info = context.customer_info
        return TaskCreateRequest(
            customer_name=info.name,
            phone_number=info.phone,
            problem_description=data.pending_problem,
            location=info.location,
            priority=to_task_priority(classification.priority),
            source=TaskSource.CHAT_FAILED_CALL if data.pending_failed_call else TaskSource.CHAT_AGENT,
            ai_priority_reason=classification.reasoning,
            urgency_keywords=list(data.pending_keywords) or None,
            chat_context=context.chat_context(),
            metadata={
                "session_id": session_id,
                "intent": data.current_intent,
                "interaction_category": interaction.category.value,
                "service_type": interaction.service_type.value if interaction.service_type else None,
                "sentiment": interaction.sentiment.value,
                "classification_tags": list(classification.tags),
                "estimated_response_time": classification.estimated_response_time,
            },
        )

    def _intent_reply(self, intent: Intent, stage: ConversationStage) -> str:
        template = INTENT_REPLIES.get(intent.name)
        if template is None:
            if stage == ConversationStage.GREETING:
                return GREETING_REPLY.format(business=self._settings.business_name)
            return GENERAL_REPLY

        brand = intent.entities.get("brand")
        return template.format(
            business=self._settings.business_name,
            location=self._settings.business_location,
            hours=self._settings.business_hours_text,
            areas=", ".join(self._settings.service_areas),
            phone=self._settings.business_phone,
            brand=f", including {brand.title()}" if brand else "",
        )


def _topic(details: dict[str, str]) -> str:
    appliance = details.get("appliance_type")
    if appliance == "ac":
        return "AC service"
    if appliance:
        return f"{appliance} service"
    return "service request"
