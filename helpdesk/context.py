"""Explicit application context.

Every long-lived collaborator (model clients, tool registry, conversation
log, metrics) is built once by ``build_context`` from ``Settings`` and passed
by reference to whoever needs it.  The FastAPI lifespan stores the context
on ``app.state``; the CLI keeps it in a local.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from helpdesk.agent import AgentLoop
from helpdesk.config import Settings
from helpdesk.responders import FaqResponder, StructuredAnalyzer
from helpdesk.retry import RetryOrchestrator
from helpdesk.services.chat import ChatService
from helpdesk.services.conversation_log import SQLiteConversationLog
from helpdesk.services.llm import AnthropicChatModel
from helpdesk.services.locks import ConversationLocks
from helpdesk.services.metrics import MetricsClient
from helpdesk.tools.registry import ToolRegistry, default_registry

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    registry: ToolRegistry
    log: SQLiteConversationLog
    metrics: MetricsClient
    chat: ChatService
    analyzer: StructuredAnalyzer
    faq: FaqResponder

    def close(self) -> None:
        self.metrics.flush()
        self.log.close()


def build_context(settings: Settings) -> AppContext:
    metrics = MetricsClient(enabled=settings.metrics_enabled)
    registry = default_registry()
    log = SQLiteConversationLog(settings.database_path)

    agent_model = AnthropicChatModel(
        settings.anthropic_api_key,
        settings.model_name,
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
    )
    analysis_model = AnthropicChatModel(
        settings.anthropic_api_key,
        settings.analysis_model_name,
        temperature=settings.temperature,
        max_tokens=settings.analysis_max_tokens,
    )

    agent = AgentLoop(
        agent_model,
        registry,
        max_iterations=settings.max_agent_iterations,
        metrics=metrics,
    )
    chat = ChatService(
        agent,
        log,
        ConversationLocks(),
        turn_timeout_seconds=settings.turn_timeout_seconds,
    )
    orchestrator = RetryOrchestrator(
        analysis_model,
        max_attempts=settings.retry_max_attempts,
        base_delay_ms=settings.retry_base_delay_ms,
        metrics=metrics,
    )

    logger.debug(
        "Context built: agent model: %s, analysis model: %s, tools: %d",
        settings.model_name, settings.analysis_model_name, len(registry),
    )
    return AppContext(
        settings=settings,
        registry=registry,
        log=log,
        metrics=metrics,
        chat=chat,
        analyzer=StructuredAnalyzer(orchestrator),
        faq=FaqResponder(agent_model),
    )
