"""
Tests for newsbot/rag/gate.py
Relevance threshold and out-of-domain intent classification.
"""
import pytest

from conftest import make_result
from newsbot.rag.gate import (
    REFUSAL_PREFIX,
    QueryIntent,
    RetrievalGate,
    classify_intent,
    refusal_message,
)


class TestThreshold:
    """Strict ``score > threshold`` filtering."""

    def test_score_at_threshold_excluded(self):
        decision = RetrievalGate(threshold=0.3).gate("markets", [make_result(0.3)])
        assert decision.accepted == []
        assert decision.is_in_domain is False

    def test_score_above_threshold_included(self):
        result = make_result(0.3000001)
        decision = RetrievalGate(threshold=0.3).gate("markets", [result])
        assert decision.accepted == [result]
        assert decision.is_in_domain is True
        assert decision.intent is None

    def test_order_preserved(self):
        results = [make_result(0.9, "a"), make_result(0.2, "b"), make_result(0.5, "c")]
        decision = RetrievalGate().gate("markets", results)
        assert [result.title for result in decision.accepted] == ["a", "c"]

    def test_override_threshold_per_call(self):
        decision = RetrievalGate(threshold=0.3).gate(
            "markets", [make_result(0.5)], threshold=0.6
        )
        assert decision.is_in_domain is False

    def test_default_threshold(self):
        assert RetrievalGate().threshold == 0.3

    def test_no_results_is_out_of_domain(self):
        decision = RetrievalGate().gate("hello there", [])
        assert decision.is_in_domain is False
        assert decision.intent is QueryIntent.GREETING


class TestIntent:
    """Refusal template selection."""

    @pytest.mark.parametrize("query", ["hello", "Hey!", "Good morning", "how are you doing"])
    def test_greetings(self, query):
        assert classify_intent(query) is QueryIntent.GREETING

    @pytest.mark.parametrize("query", ["Who are you?", "what's your name", "tell me about yourself"])
    def test_personal(self, query):
        assert classify_intent(query) is QueryIntent.PERSONAL

    def test_generic(self):
        assert classify_intent("recipe for lasagna") is QueryIntent.GENERIC

    def test_greeting_wins_over_personal(self):
        assert classify_intent("hello, who are you?") is QueryIntent.GREETING

    def test_substring_match(self):
        # "hi" inside "this" counts as a greeting
        assert classify_intent("is this real") is QueryIntent.GREETING


class TestRefusalMessage:
    def test_greeting_template(self):
        message = refusal_message(QueryIntent.GREETING)
        assert message.startswith(REFUSAL_PREFIX + "Hello!")
        assert "• Technology and AI developments" in message

    def test_generic_template(self):
        message = refusal_message(QueryIntent.GENERIC)
        assert "couldn't find relevant news articles" in message
