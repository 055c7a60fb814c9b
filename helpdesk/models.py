"""Domain models shared by the agent loop, the model contract and the log."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["system", "user", "assistant", "tool"]


class ResponseFormat(str, Enum):
    """Output mode requested from the model."""

    TEXT = "text"
    STRUCTURED = "structured"


class ToolInvocation(BaseModel):
    """A tool call requested by the model."""

    model_config = ConfigDict(frozen=True)

    call_id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class Message(BaseModel):
    """One turn of a conversation.  Never mutated once appended."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str = ""
    tool_invocations: list[ToolInvocation] = Field(default_factory=list)
    tool_call_id: str | None = None
    name: str | None = None

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role="user", content=content)

    @classmethod
    def assistant(
        cls, content: str = "", tool_invocations: list[ToolInvocation] | None = None,
    ) -> Message:
        return cls(role="assistant", content=content, tool_invocations=tool_invocations or [])

    @classmethod
    def tool(cls, content: str, *, tool_call_id: str, name: str) -> Message:
        return cls(role="tool", content=content, tool_call_id=tool_call_id, name=name)


class ModelReply(BaseModel):
    """What the model returned for one call: text and/or tool invocations."""

    model_config = ConfigDict(frozen=True)

    content: str = ""
    tool_invocations: list[ToolInvocation] = Field(default_factory=list)

    def to_message(self) -> Message:
        return Message.assistant(self.content, list(self.tool_invocations))


class ConversationMeta(BaseModel):
    """Conversation record without its messages."""

    id: str
    created_at: str
    updated_at: str


class ConversationSummary(ConversationMeta):
    """Conversation record with a message count, used for listings."""

    message_count: int
