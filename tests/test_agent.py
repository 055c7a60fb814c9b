"""Tests for the tool-calling agent loop.

Covers:
  - Routing helpers (tool calls vs final answer, cap and stop checks)
  - End-to-end runs with a scripted model
  - Iteration cap, unknown tools, invalid arguments and cancellation
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from langgraph.graph import END

from helpdesk.agent import (
    ABORT_MESSAGE,
    AgentLoop,
    AgentState,
    LoopState,
    _route_after_tools,
    should_use_tools,
)
from helpdesk.errors import TransientError
from helpdesk.models import Message, ToolInvocation


def _state(messages, **overrides) -> AgentState:
    state: AgentState = {
        "messages": messages,
        "tools_used": [],
        "iterations": 0,
        "outcome": LoopState.REQUESTING.value,
        "response_text": "",
        "stop_requested": False,
    }
    state.update(overrides)
    return state


# ── TestRouting ──────────────────────────────────────────────────────


class TestRouting:
    def test_tool_invocations_route_to_dispatch(self):
        message = Message.assistant(
            "", [ToolInvocation(call_id="c1", name="search_kb", arguments={"query": "x"})],
        )
        assert should_use_tools(_state([message])) == "tool_dispatch"

    def test_plain_answer_routes_to_end(self):
        assert should_use_tools(_state([Message.assistant("Hi there!")])) == END

    def test_cap_reached_routes_to_aborted(self):
        route = _route_after_tools(3)
        assert route(_state([], iterations=3)) == "aborted"

    def test_stop_request_routes_to_cancelled(self):
        route = _route_after_tools(3)
        assert route(_state([], iterations=1, stop_requested=True)) == "cancelled"

    def test_cap_wins_over_stop_request(self):
        route = _route_after_tools(2)
        assert route(_state([], iterations=2, stop_requested=True)) == "aborted"

    def test_otherwise_loops_back(self):
        route = _route_after_tools(3)
        assert route(_state([], iterations=1)) == "requesting"


# ── TestAgentRun ─────────────────────────────────────────────────────


class TestAgentRun:
    def test_direct_answer_without_tools(self, scripted_model, registry):
        model = scripted_model(["Hello! How can I help you today?"])
        result = AgentLoop(model, registry).run([Message.user("Hi")])

        assert result.outcome == LoopState.DONE
        assert result.response_text == "Hello! How can I help you today?"
        assert result.tools_used == []
        assert result.iterations == 1
        assert len(model.calls) == 1

    def test_knowledge_base_lookup_then_answer(self, scripted_model, registry, make_tool_reply):
        model = scripted_model([
            make_tool_reply("search_kb", {"query": "return policy"}),
            "You can return items within 30 days for a full refund.",
        ])
        result = AgentLoop(model, registry).run([Message.user("What's your return policy?")])

        assert result.outcome == LoopState.DONE
        assert result.tools_used == ["search_kb"]
        assert result.iterations == 2
        assert "30 days" in result.response_text

        roles = [m.role for m in result.new_messages]
        assert roles == ["assistant", "tool", "assistant"]
        tool_message = result.new_messages[1]
        assert tool_message.tool_call_id == "call_1"
        assert tool_message.name == "search_kb"
        assert tool_message.content.startswith("RETURN POLICY:")

    def test_second_model_call_sees_tool_result(self, scripted_model, registry, make_tool_reply):
        model = scripted_model([
            make_tool_reply("get_account", {"identifier": "CUST001"}),
            "Your account is in good standing.",
        ])
        AgentLoop(model, registry).run([Message.user("Check CUST001")])

        second_history = model.calls[1][0]
        assert second_history[-1].role == "tool"
        assert "John Doe" in second_history[-1].content

    def test_tool_descriptors_are_sent_to_model(self, scripted_model, registry):
        model = scripted_model(["ok"])
        AgentLoop(model, registry).run([Message.user("Hi")])

        tools = model.calls[0][1]
        assert [t.name for t in tools] == ["search_kb", "get_account", "escalate_to_human"]

    def test_system_prompt_is_prepended(self, scripted_model, registry):
        model = scripted_model(["ok"])
        AgentLoop(model, registry, system_prompt="Be brief.").run([Message.user("Hi")])

        sent = model.calls[0][0]
        assert sent[0].role == "system"
        assert sent[0].content == "Be brief."

    def test_existing_system_message_is_kept(self, scripted_model, registry):
        model = scripted_model(["ok"])
        history = [Message.system("Custom prompt"), Message.user("Hi")]
        AgentLoop(model, registry, system_prompt="unused").run(history)

        sent = model.calls[0][0]
        assert [m.content for m in sent if m.role == "system"] == ["Custom prompt"]

    def test_result_messages_exclude_injected_system_prompt(self, scripted_model, registry):
        model = scripted_model(["ok"])
        result = AgentLoop(model, registry).run([Message.user("Hi")])
        assert [m.role for m in result.messages] == ["user", "assistant"]

    def test_tools_used_is_deduplicated_in_first_use_order(
        self, scripted_model, registry, make_tool_reply,
    ):
        model = scripted_model([
            make_tool_reply("get_account", {"identifier": "CUST002"}, call_id="a"),
            make_tool_reply("search_kb", {"query": "shipping"}, call_id="b"),
            make_tool_reply("get_account", {"identifier": "CUST003"}, call_id="c"),
            "Done.",
        ])
        result = AgentLoop(model, registry).run([Message.user("Help")])
        assert result.tools_used == ["get_account", "search_kb"]

    def test_on_message_receives_every_new_message_in_order(
        self, scripted_model, registry, make_tool_reply,
    ):
        emitted = []
        model = scripted_model([
            make_tool_reply("search_kb", {"query": "warranty"}),
            "All products have a 1-year warranty.",
        ])
        result = AgentLoop(model, registry).run(
            [Message.user("Warranty?")], on_message=emitted.append,
        )
        assert emitted == result.new_messages

    def test_model_error_propagates(self, scripted_model, registry):
        model = scripted_model([TransientError("connection reset")])
        with pytest.raises(TransientError):
            AgentLoop(model, registry).run([Message.user("Hi")])
        assert len(model.calls) == 1

    def test_metrics_record_loop_outcome(self, scripted_model, registry):
        metrics = MagicMock()
        AgentLoop(scripted_model(["ok"]), registry, metrics=metrics).run([Message.user("Hi")])
        metrics.record_loop_outcome.assert_called_once_with("done", 1)

    def test_rejects_non_positive_cap(self, scripted_model, registry):
        with pytest.raises(ValueError):
            AgentLoop(scripted_model(["ok"]), registry, max_iterations=0)


# ── TestLoopLimits ───────────────────────────────────────────────────


class TestLoopLimits:
    def test_endless_tool_calls_abort_after_cap(self, scripted_model, registry, make_tool_reply):
        model = scripted_model([make_tool_reply("search_kb", {"query": "shipping"})])
        result = AgentLoop(model, registry).run([Message.user("Loop forever")])

        assert len(model.calls) == 10
        assert result.outcome == LoopState.ABORTED
        assert result.response_text == ABORT_MESSAGE
        assert result.iterations == 10

    def test_custom_cap(self, scripted_model, registry, make_tool_reply):
        model = scripted_model([make_tool_reply("search_kb", {"query": "shipping"})])
        result = AgentLoop(model, registry, max_iterations=3).run([Message.user("Loop")])

        assert len(model.calls) == 3
        assert result.outcome == LoopState.ABORTED

    def test_answer_on_last_allowed_call_is_done(
        self, scripted_model, registry, make_tool_reply,
    ):
        model = scripted_model([
            make_tool_reply("search_kb", {"query": "shipping"}),
            "Free shipping over $50.",
        ])
        result = AgentLoop(model, registry, max_iterations=2).run([Message.user("Shipping?")])
        assert result.outcome == LoopState.DONE
        assert result.response_text == "Free shipping over $50."

    def test_unknown_tool_is_skipped(self, scripted_model, registry, make_tool_reply):
        model = scripted_model([
            make_tool_reply("launch_rockets", {"count": 3}),
            "Sorry, I can't do that.",
        ])
        result = AgentLoop(model, registry).run([Message.user("Launch")])

        assert result.outcome == LoopState.DONE
        assert result.tools_used == []
        assert [m.role for m in result.new_messages] == ["assistant", "assistant"]

    def test_invalid_arguments_produce_error_tool_message(
        self, scripted_model, registry, make_tool_reply,
    ):
        model = scripted_model([
            make_tool_reply("get_account", {"wrong": "CUST001"}),
            "Could you share your customer ID?",
        ])
        result = AgentLoop(model, registry).run([Message.user("My account")])

        tool_message = result.new_messages[1]
        assert tool_message.role == "tool"
        assert tool_message.content.startswith("Error:")
        assert result.tools_used == []

    def test_stop_request_cancels_after_tool_dispatch(
        self, scripted_model, registry, make_tool_reply,
    ):
        emitted = []
        model = scripted_model([make_tool_reply("search_kb", {"query": "shipping"})])
        result = AgentLoop(model, registry).run(
            [Message.user("Shipping?")],
            on_message=emitted.append,
            should_stop=lambda: True,
        )

        assert result.outcome == LoopState.CANCELLED
        assert result.response_text == ABORT_MESSAGE
        assert len(model.calls) == 1
        assert [m.role for m in emitted] == ["assistant", "tool"]
