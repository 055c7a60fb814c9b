"""Shared test fixtures for the helpdesk test suite."""

from __future__ import annotations

import os

import pytest

from helpdesk.models import ModelReply, ToolInvocation
from helpdesk.services.conversation_log import SQLiteConversationLog
from helpdesk.services.llm import ChatModel
from helpdesk.tools.registry import default_registry


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    ``helpdesk.server`` builds its settings at import, and the lifespan run
    by ``TestClient`` must find a key and an in-memory database.
    """
    os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key-123")
    os.environ.setdefault("DATABASE_PATH", ":memory:")
    os.environ.setdefault("METRICS_ENABLED", "false")


class ScriptedModel(ChatModel):
    """A ``ChatModel`` that replays a fixed script of replies or errors.

    Every call is recorded in ``calls`` as ``(messages, tools, response_format)``.
    Once the script runs out, the last entry is repeated.
    """

    name = "scripted"

    def __init__(self, script):
        self._script = list(script)
        self.calls = []

    def complete_chat(self, messages, tools=None, response_format=None):
        self.calls.append((list(messages), tools, response_format))
        index = min(len(self.calls), len(self._script)) - 1
        step = self._script[index]
        if isinstance(step, Exception):
            raise step
        if isinstance(step, str):
            return ModelReply(content=step)
        return step


def tool_reply(name: str, arguments: dict, call_id: str = "call_1", content: str = "") -> ModelReply:
    """A model reply that requests a single tool call."""
    return ModelReply(
        content=content,
        tool_invocations=[ToolInvocation(call_id=call_id, name=name, arguments=arguments)],
    )


@pytest.fixture
def scripted_model():
    """Factory fixture: ``scripted_model([reply, error, ...])``."""
    return ScriptedModel


@pytest.fixture
def registry():
    return default_registry()


@pytest.fixture
def conversation_log():
    log = SQLiteConversationLog(":memory:")
    yield log
    log.close()


@pytest.fixture
def make_tool_reply():
    """Factory fixture: ``make_tool_reply(name, arguments, call_id=...)``."""
    return tool_reply
