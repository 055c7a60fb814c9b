"""Tests for the FAQ responder and the structured analyzer."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from helpdesk.errors import TransientError
from helpdesk.prompts import ANALYSIS_PROMPT, get_faq_prompt
from helpdesk.responders import FaqResponder, StructuredAnalyzer
from helpdesk.retry import RetryOrchestrator


class TestFaqResponder:
    def test_single_call_with_faq_prompt(self, scripted_model):
        model = scripted_model(["We accept Visa, Mastercard and PayPal."])

        answer = FaqResponder(model).answer("  What payment methods do you accept?  ")

        assert answer == "We accept Visa, Mastercard and PayPal."
        assert len(model.calls) == 1
        messages, tools, _ = model.calls[0]
        assert tools is None
        assert messages[0].role == "system"
        assert messages[0].content == get_faq_prompt()
        assert messages[1].content == "What payment methods do you accept?"

    def test_faq_prompt_embeds_knowledge_base(self):
        prompt = get_faq_prompt()
        assert "Q: What is your return policy?" in prompt
        assert "support@example.com" in prompt

    def test_errors_propagate(self, scripted_model):
        with pytest.raises(TransientError):
            FaqResponder(scripted_model([TransientError("down")])).answer("Hi")


class TestStructuredAnalyzer:
    def test_analyze_validates_model_output(self, scripted_model):
        model = scripted_model([json.dumps({
            "intent": "account_help",
            "confidence": 0.8,
            "entities": {"email": "john.doe@example.com"},
            "response": "I can help with your account.",
            "requiresHuman": False,
        })])
        analyzer = StructuredAnalyzer(RetryOrchestrator(model, sleep=MagicMock()))

        result = analyzer.analyze("Help with john.doe@example.com")

        assert result.response.intent == "account_help"
        assert result.response.entities.email == "john.doe@example.com"
        messages = model.calls[0][0]
        assert messages[0].content == ANALYSIS_PROMPT
        assert messages[1].content == "Help with john.doe@example.com"

    def test_analyze_falls_back(self, scripted_model):
        analyzer = StructuredAnalyzer(
            RetryOrchestrator(scripted_model(["nonsense"]), sleep=MagicMock()),
        )
        result = analyzer.analyze("???")
        assert result.fallback is True
        assert result.response.requires_human is True
