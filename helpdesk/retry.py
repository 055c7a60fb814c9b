"""Bounded retry with exponential backoff for structured-output model calls.

Each attempt calls the model in structured mode and runs the validator on
the reply.  Failures are classified by the error taxonomy:

  * non-retryable ``ModelError`` (authentication, quota) → re-raised at once
  * retryable ``ModelError`` or a ``ValidationError``    → back off and retry

Backoff is pure exponential without jitter: ``base_delay_ms * 2**attempt``
for the 0-based attempt that just failed (1 s, 2 s, … by default).  When
every attempt fails the orchestrator returns a deterministic fallback
response instead of raising.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from pydantic import BaseModel

from helpdesk.errors import ModelError, ValidationError
from helpdesk.models import Message, ResponseFormat
from helpdesk.services.llm import ChatModel
from helpdesk.services.metrics import MetricsClient
from helpdesk.validation import Entities, StructuredResponse, validate

logger = logging.getLogger(__name__)

# ── Retry configuration ─────────────────────────────────────────────
MAX_ATTEMPTS = 3
BASE_DELAY_MS = 1000

FALLBACK_MODEL = "fallback"
FALLBACK_MESSAGE = (
    "I apologize, but I'm having trouble processing your request right now. "
    "Please try again or contact our support team directly for immediate assistance."
)
FALLBACK_ACTIONS = ("Try rephrasing your question", "Contact support directly")

RequestBuilder = Callable[[], list[Message]]
Validator = Callable[[str], StructuredResponse | ValidationError]


class AnalysisResult(BaseModel):
    """A validated (or fallback) structured response plus retry bookkeeping."""

    response: StructuredResponse
    attempt: int
    model: str
    fallback: bool = False
    error: str | None = None


def fallback_response() -> StructuredResponse:
    """The safe response returned when every attempt failed."""
    return StructuredResponse(
        intent="unknown",
        confidence=0.0,
        entities=Entities(),
        response=FALLBACK_MESSAGE,
        requires_human=True,
        suggested_actions=list(FALLBACK_ACTIONS),
    )


def backoff_ms(attempt: int, base_delay_ms: int = BASE_DELAY_MS) -> int:
    """Delay after the 0-based *attempt* failed."""
    return base_delay_ms * (2 ** attempt)


class RetryOrchestrator:
    """Runs a structured model call with validation, retry and fallback."""

    def __init__(
        self,
        model: ChatModel,
        *,
        max_attempts: int = MAX_ATTEMPTS,
        base_delay_ms: int = BASE_DELAY_MS,
        sleep: Callable[[float], None] = time.sleep,
        metrics: MetricsClient | None = None,
        operation: str = "analyze",
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._model = model
        self._max_attempts = max_attempts
        self._base_delay_ms = base_delay_ms
        self._sleep = sleep
        self._metrics = metrics
        self._operation = operation

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def call_with_retry(
        self,
        request_builder: RequestBuilder,
        validator: Validator = validate,
    ) -> AnalysisResult:
        last_error: Exception | None = None

        for attempt in range(self._max_attempts):
            t0 = time.perf_counter()
            try:
                reply = self._model.complete_chat(
                    request_builder(), response_format=ResponseFormat.STRUCTURED,
                )
            except ModelError as exc:
                self._record_call(t0, type(exc).__name__)
                if not exc.retryable:
                    logger.error(
                        "%s attempt %d failed with non-retryable %s",
                        self._operation, attempt + 1, type(exc).__name__,
                    )
                    raise
                last_error = exc
            else:
                self._record_call(t0, None)
                result = validator(reply.content)
                if isinstance(result, StructuredResponse):
                    logger.info(
                        "%s: validated response on attempt %d", self._operation, attempt + 1,
                    )
                    return AnalysisResult(
                        response=result, attempt=attempt + 1, model=self._model.name,
                    )
                last_error = result

            logger.warning(
                "%s attempt %d/%d failed: %s",
                self._operation, attempt + 1, self._max_attempts, last_error,
            )
            if attempt < self._max_attempts - 1:
                delay_ms = backoff_ms(attempt, self._base_delay_ms)
                logger.info("Retrying %s in %dms…", self._operation, delay_ms)
                if self._metrics:
                    self._metrics.record_retry(self._operation, attempt + 1)
                self._sleep(delay_ms / 1000)

        logger.error(
            "All %d %s attempts failed. Using fallback.", self._max_attempts, self._operation,
        )
        if self._metrics:
            self._metrics.record_fallback(self._operation)
        return AnalysisResult(
            response=fallback_response(),
            attempt=self._max_attempts,
            model=FALLBACK_MODEL,
            fallback=True,
            error=str(last_error) if last_error else None,
        )

    def _record_call(self, t0: float, error_type: str | None) -> None:
        if self._metrics:
            elapsed = (time.perf_counter() - t0) * 1000
            self._metrics.record_model_call(self._operation, elapsed, error_type=error_type)
