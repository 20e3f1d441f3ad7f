"""Tests for intent_classifier.py - Keyword and pattern intent scoring."""
import pytest

from intent_classifier import DEFAULT_INTENTS, classify, get_suggestions, score_intent
from models import UNKNOWN_INTENT, IntentDefinition


@pytest.mark.unit
class TestClassify:
    def test_access_request_with_entity(self):
        result = classify("I need access to Figma")
        assert result.intent == "access_request"
        assert result.entity == "Figma"
        assert result.confidence > 0.5

    def test_empty_text_is_unknown(self):
        result = classify("")
        assert result.intent == UNKNOWN_INTENT
        assert result.confidence == 0.0
        assert result.entity is None

    @pytest.mark.parametrize("text", [None, 42, "   ", ["need access"]])
    def test_invalid_input_never_raises(self, text):
        result = classify(text)
        assert result.intent == UNKNOWN_INTENT
        assert result.confidence == 0.0

    def test_non_matching_text_is_unknown(self):
        result = classify("zzzz qqqq")
        assert result.intent == UNKNOWN_INTENT
        assert result.confidence == 0.0

    @pytest.mark.parametrize(
        "text",
        [
            "I need access to Figma",
            "My laptop is broken",
            "show me all open tickets",
            "hello there",
            "what is the status of my request",
            "access need permission grant allow enable need access to everything",
        ],
    )
    def test_confidence_bounded_and_deterministic(self, text):
        first = classify(text)
        second = classify(text)
        assert 0.0 <= first.confidence <= 1.0
        assert (first.intent, first.confidence, first.entity) == (second.intent, second.confidence, second.entity)

    def test_ticket_creation_intent(self):
        result = classify("I'm having a problem with the printer")
        assert result.intent == "ticket_creation"
        assert result.entity == "the printer"

    def test_ties_keep_definition_order(self):
        first = IntentDefinition.build("first", [r"reset (\w+)"], ["reset"], 1.0)
        second = IntentDefinition.build("second", [r"reset (\w+)"], ["reset"], 1.0)
        assert classify("reset password", definitions=[first, second]).intent == "first"
        assert classify("reset password", definitions=[second, first]).intent == "second"

    def test_first_matching_pattern_supplies_entity(self):
        definition = IntentDefinition.build("d", [r"access to (\w+)", r"need (\w+)"], [], 1.0)
        score, entity = score_intent("need access to Slack", definition)
        assert entity == "Slack"
        assert score == pytest.approx(0.6)

    def test_score_is_scaled_by_weight(self):
        definition = IntentDefinition.build("d", [r"hello"], ["hello", "world"], 0.5)
        score, _ = score_intent("hello", definition)
        assert score == pytest.approx((0.5 * 0.4 + 0.6) * 0.5)


@pytest.mark.unit
class TestSuggestions:
    def test_known_intent_suggestions(self):
        assert "I need access to Figma" in get_suggestions("access_request")

    def test_unknown_intent_falls_back(self):
        assert get_suggestions("does_not_exist") == get_suggestions(UNKNOWN_INTENT)

    def test_access_request_is_first_definition(self):
        assert [d.id for d in DEFAULT_INTENTS][0] == "access_request"
