"""Language-model contract and its Anthropic implementation.

Everything above this module talks to the model through one call:

    ChatModel.complete_chat(messages, tools=None, response_format=TEXT) -> ModelReply

``AnthropicChatModel`` implements it with LangChain's ``ChatAnthropic``.  It
translates our ``Message`` history to LangChain messages, binds the tool
descriptors, and maps ``anthropic`` SDK exceptions onto the error taxonomy:

  * 401 / 403            → ``AuthenticationError``  (fatal)
  * 429                  → ``QuotaExceededError``   (fatal)
  * connection / timeout → ``TransientError``
  * 5xx / overloaded     → ``TransientError``

SDK-level retries are disabled (``max_retries=0``): the retry orchestrator
owns retry policy for the structured path, and the agent loop fails fast.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import Any

import anthropic
from langchain_anthropic import ChatAnthropic
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from helpdesk.errors import (
    AuthenticationError,
    MalformedOutputError,
    ModelError,
    QuotaExceededError,
    TransientError,
)
from helpdesk.models import Message, ModelReply, ResponseFormat, ToolInvocation
from helpdesk.tools.registry import ToolDescriptor

logger = logging.getLogger(__name__)

STRUCTURED_INSTRUCTION = (
    "Respond with a single JSON object only. "
    "Do not wrap it in Markdown and do not add any text before or after it."
)

_FENCE_RE = re.compile(r"^```(?:json)?\s*\n?(.*?)\n?\s*```$", re.DOTALL)


class ChatModel(ABC):
    """Abstract model-call contract."""

    name: str = "model"

    @abstractmethod
    def complete_chat(
        self,
        messages: list[Message],
        tools: list[ToolDescriptor] | None = None,
        response_format: ResponseFormat = ResponseFormat.TEXT,
    ) -> ModelReply:
        """Send *messages* to the model and return its reply."""


# ── Conversions ──────────────────────────────────────────────────────


def to_langchain_messages(messages: list[Message]) -> list[BaseMessage]:
    """Translate our history into LangChain messages.

    Tool invocations that were never answered (the agent skips unknown tool
    names) are dropped from the assistant message, because the provider
    rejects a tool call without a matching result.
    """
    answered = {m.tool_call_id for m in messages if m.role == "tool"}
    converted: list[BaseMessage] = []
    for message in messages:
        if message.role == "system":
            converted.append(SystemMessage(content=message.content))
        elif message.role == "user":
            converted.append(HumanMessage(content=message.content))
        elif message.role == "tool":
            converted.append(
                ToolMessage(
                    content=message.content,
                    tool_call_id=message.tool_call_id or "",
                    name=message.name,
                )
            )
        else:
            tool_calls = [
                {"name": inv.name, "args": dict(inv.arguments), "id": inv.call_id}
                for inv in message.tool_invocations
                if inv.call_id in answered
            ]
            if not message.content and not tool_calls:
                continue
            converted.append(AIMessage(content=message.content, tool_calls=tool_calls))
    return converted


def to_anthropic_tools(tools: list[ToolDescriptor]) -> list[dict[str, Any]]:
    return [
        {"name": t.name, "description": t.description, "input_schema": t.parameters}
        for t in tools
    ]


def content_text(content: str | list) -> str:
    """Flatten an AIMessage ``content`` (string or content blocks) into text."""
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def strip_code_fences(text: str) -> str:
    """Return the body of a single fenced block, or *text* unchanged."""
    stripped = text.strip()
    match = _FENCE_RE.match(stripped)
    return match.group(1).strip() if match else stripped


def _with_structured_instruction(messages: list[BaseMessage]) -> list[BaseMessage]:
    # Anthropic accepts a single leading system prompt, so extend it in place.
    if messages and isinstance(messages[0], SystemMessage):
        merged = f"{content_text(messages[0].content)}\n\n{STRUCTURED_INSTRUCTION}"
        return [SystemMessage(content=merged), *messages[1:]]
    return [SystemMessage(content=STRUCTURED_INSTRUCTION), *messages]


def map_provider_error(exc: Exception) -> ModelError | None:
    """Translate an ``anthropic`` SDK exception; ``None`` if it is not one."""
    if isinstance(exc, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
        return AuthenticationError(str(exc))
    if isinstance(exc, anthropic.RateLimitError):
        return QuotaExceededError(str(exc))
    if isinstance(exc, anthropic.APIConnectionError):
        return TransientError(str(exc))
    if isinstance(exc, anthropic.APIStatusError):
        if exc.status_code >= 500:
            return TransientError(str(exc))
        return ModelError(str(exc))
    return None


# ── Anthropic implementation ─────────────────────────────────────────


class AnthropicChatModel(ChatModel):
    """``ChatModel`` backed by ``langchain_anthropic.ChatAnthropic``."""

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        temperature: float = 0.7,
        max_tokens: int = 1024,
    ) -> None:
        self.name = model
        self._llm = ChatAnthropic(
            model=model,
            api_key=api_key,
            temperature=temperature,
            max_tokens=max_tokens,
            max_retries=0,
        )

    def complete_chat(
        self,
        messages: list[Message],
        tools: list[ToolDescriptor] | None = None,
        response_format: ResponseFormat = ResponseFormat.TEXT,
    ) -> ModelReply:
        structured = response_format == ResponseFormat.STRUCTURED
        lc_messages = to_langchain_messages(messages)
        if structured:
            lc_messages = _with_structured_instruction(lc_messages)

        llm = self._llm.bind_tools(to_anthropic_tools(tools)) if tools else self._llm

        try:
            response = llm.invoke(lc_messages)
        except anthropic.AnthropicError as exc:
            mapped = map_provider_error(exc)
            if mapped is None:
                raise
            raise mapped from exc

        text = content_text(response.content)
        invocations = [
            ToolInvocation(call_id=call["id"], name=call["name"], arguments=call.get("args") or {})
            for call in getattr(response, "tool_calls", None) or []
        ]

        if structured:
            text = strip_code_fences(text)
            if not text:
                raise MalformedOutputError("Model returned no content in structured mode")

        logger.debug(
            "%s replied: %d chars, %d tool call(s)", self.name, len(text), len(invocations),
        )
        return ModelReply(content=text, tool_invocations=invocations)
