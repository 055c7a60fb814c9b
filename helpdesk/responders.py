"""Single-shot responders that sit beside the agent loop.

* ``FaqResponder`` — one model call, no tools, the FAQ knowledge base in the
  system prompt.  Errors propagate to the caller.
* ``StructuredAnalyzer`` — classifies a customer message into a validated
  ``StructuredResponse`` through the retry orchestrator.
"""

from __future__ import annotations

import logging

from helpdesk.models import Message
from helpdesk.prompts import ANALYSIS_PROMPT, get_faq_prompt
from helpdesk.retry import AnalysisResult, RetryOrchestrator
from helpdesk.services.llm import ChatModel

logger = logging.getLogger(__name__)


class FaqResponder:
    def __init__(self, model: ChatModel) -> None:
        self._model = model
        self._system_prompt = get_faq_prompt()

    def answer(self, question: str) -> str:
        reply = self._model.complete_chat(
            [Message.system(self._system_prompt), Message.user(question.strip())],
        )
        logger.debug("FAQ answer: %d chars", len(reply.content))
        return reply.content


class StructuredAnalyzer:
    def __init__(self, orchestrator: RetryOrchestrator) -> None:
        self._orchestrator = orchestrator

    def analyze(self, message: str) -> AnalysisResult:
        def build_request() -> list[Message]:
            return [Message.system(ANALYSIS_PROMPT), Message.user(message)]

        result = self._orchestrator.call_with_retry(build_request)
        logger.info(
            "Analysis: intent=%s confidence=%.2f human=%s (attempt %d)",
            result.response.intent,
            result.response.confidence,
            result.response.requires_human,
            result.attempt,
        )
        return result
