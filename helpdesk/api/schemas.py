"""Pydantic schemas for the FastAPI endpoints.

Wire names are camelCase (``conversationId``, ``toolsUsed``); the Python
attributes stay snake_case.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("Message is required and must be a non-empty string")
    return value


class ChatRequest(_CamelModel):
    """Incoming chat message from the frontend."""

    message: str = Field(..., min_length=1, max_length=2000, description="The user's message")
    conversation_id: str | None = Field(
        default=None,
        alias="conversationId",
        max_length=100,
        description="Existing conversation to continue; a new one is created if omitted or empty",
    )

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, value: str) -> str:
        return _not_blank(value)


class ChatResponse(_CamelModel):
    """Response from the agent."""

    response: str = Field(..., description="The agent's response message")
    conversation_id: str = Field(..., alias="conversationId")
    tools_used: list[str] = Field(default_factory=list, alias="toolsUsed")


class ToolCallOut(_CamelModel):
    id: str
    name: str
    arguments: dict[str, Any]


class MessageOut(_CamelModel):
    role: str
    content: str
    tool_calls: list[ToolCallOut] | None = Field(default=None, alias="toolCalls")


class ConversationResponse(_CamelModel):
    id: str
    created_at: str = Field(..., alias="createdAt")
    updated_at: str = Field(..., alias="updatedAt")
    messages: list[MessageOut]


class ConversationSummaryOut(_CamelModel):
    id: str
    created_at: str = Field(..., alias="createdAt")
    updated_at: str = Field(..., alias="updatedAt")
    message_count: int = Field(..., alias="messageCount")


class ConversationListResponse(_CamelModel):
    conversations: list[ConversationSummaryOut]
    total: int


class AnalyzeRequest(_CamelModel):
    """Customer message for structured analysis."""

    message: str = Field(..., min_length=1, max_length=500)
    conversation_id: str | None = Field(default=None, alias="conversationId", max_length=100)

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, value: str) -> str:
        return _not_blank(value)


class AnalyzeResponse(_CamelModel):
    success: bool = True
    data: dict[str, Any]


class FaqRequest(_CamelModel):
    message: str = Field(..., min_length=1, max_length=2000)

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, value: str) -> str:
        return _not_blank(value)


class FaqResponse(_CamelModel):
    response: str
    timestamp: str = Field(default_factory=_now_iso)


class HealthResponse(_CamelModel):
    """Health check response."""

    status: str = "ok"
    service: str = "helpdesk-agent"
    timestamp: str = Field(default_factory=_now_iso)
