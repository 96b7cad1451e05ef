"""
Unit tests for intent recognition, entity extraction, and the
conversation stage machine.
"""

import pytest

from repairdesk.schemas.conversation import GENERAL_INTENT, ConversationStage, IntentName, MessageRole
from repairdesk.services.conversation_context import ConversationContext, extract_entities, recognize_intent


def _say(context, text):
    context.add_message(MessageRole.USER, text)
    context.recognize_intent(text)
    return context.update_stage()


class TestRecognizeIntent:
    def test_spare_parts_with_entities(self):
        intent = recognize_intent("I need a compressor part for my Samsung AC")
        assert intent.name == IntentName.SPARE_PARTS_INQUIRY.value
        assert intent.confidence == pytest.approx(0.6)
        assert intent.entities["brand"] == "samsung"
        assert intent.entities["appliance_type"] == "ac"

    def test_service_request(self):
        intent = recognize_intent("My fridge is not working")
        assert intent.name == IntentName.SERVICE_REQUEST.value

    def test_emergency_weight_wins(self):
        intent = recognize_intent("Emergency! Need urgent repair immediately")
        assert intent.name == IntentName.EMERGENCY.value
        assert intent.entities["urgency"] == "high"

    def test_no_match_is_general(self):
        intent = recognize_intent("hello")
        assert intent.name == GENERAL_INTENT
        assert intent.confidence == 0.0

    def test_confidence_capped(self):
        intent = recognize_intent("emergency urgent immediately asap critical urgent repair emergency service")
        assert intent.confidence == 1.0

    def test_pure(self):
        text = "Where are you located?"
        assert recognize_intent(text) == recognize_intent(text)


class TestExtractEntities:
    def test_word_boundaries(self):
        entities = extract_entities("Can I get a quote for a fridge in Kottayam?")
        assert entities == {"appliance_type": "fridge", "location": "kottayam"}

    def test_ac_not_matched_inside_words(self):
        assert "appliance_type" not in extract_entities("please contact me")

    def test_first_match_wins(self):
        entities = extract_entities("LG or Samsung AC")
        assert entities["brand"] == "samsung"


class TestStageMachine:
    def test_greeting_to_inquiry(self):
        context = ConversationContext()
        assert _say(context, "My fridge is not working") == ConversationStage.INQUIRY

    def test_general_message_stays_in_greeting(self):
        context = ConversationContext()
        assert _say(context, "hello") == ConversationStage.GREETING

    def test_one_step_per_message(self):
        context = ConversationContext()
        stage = _say(context, "Samsung AC not cooling in Thiruvalla, need repair")
        assert stage == ConversationStage.INQUIRY
        assert _say(context, "It is a split unit") == ConversationStage.DETAILS
        assert _say(context, "Please fix it soon") == ConversationStage.RESOLUTION

    def test_speak_to_human_escalates(self):
        context = ConversationContext()
        assert _say(context, "I want to speak to human") == ConversationStage.ESCALATION
        assert context.is_escalated

    def test_complaint_escalates(self):
        context = ConversationContext()
        _say(context, "My AC is broken")
        assert _say(context, "I want to file a complaint") == ConversationStage.ESCALATION

    def test_escalation_is_sticky(self):
        context = ConversationContext()
        _say(context, "real person please")
        assert _say(context, "My fridge is not working") == ConversationStage.ESCALATION

    def test_long_unresolved_session_escalates(self):
        context = ConversationContext(escalation_threshold=12)
        for _ in range(12):
            context.add_message(MessageRole.USER, "hmm")
        assert context.update_stage() == ConversationStage.GREETING
        context.add_message(MessageRole.USER, "hmm")
        assert context.update_stage() == ConversationStage.ESCALATION

    def test_reset(self):
        context = ConversationContext()
        _say(context, "speak to someone")
        context.reset()
        assert context.stage == ConversationStage.GREETING
        assert context.previous_messages == []
        assert context.current_intent == GENERAL_INTENT


class TestHistory:
    def test_window_keeps_last_ten(self):
        context = ConversationContext(history_limit=10)
        for i in range(15):
            context.add_message(MessageRole.USER, f"message {i}")
        messages = context.previous_messages
        assert len(messages) == 10
        assert messages[0].text == "message 5"
        assert messages[-1].text == "message 14"
        assert context.data.message_count == 15

    def test_transcript_and_chat_context(self):
        context = ConversationContext()
        context.add_message(MessageRole.USER, "AC broken")
        context.add_message(MessageRole.ASSISTANT, "What's your name?")
        assert context.transcript() == "user: AC broken\nassistant: What's your name?"
        assert context.transcript(last=1) == "assistant: What's your name?"
        assert context.chat_context()[0]["role"] == "user"

    def test_customer_info_merges(self):
        context = ConversationContext()
        context.update_customer_info(name="Ravi")
        context.update_customer_info(phone="9876543210")
        assert context.customer_info.name == "Ravi"
        assert context.customer_info.phone == "9876543210"
