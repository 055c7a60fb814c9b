"""Tool-calling agent loop for the helpdesk.

Architecture:
  The loop is a LangGraph ``StateGraph`` whose nodes are the loop states:

    1. **requesting**     — send the full history plus the tool descriptors
                            to the model; append its reply unconditionally
    2. **tool_dispatch**  — run each requested tool in order and append one
                            ``tool`` message per call, tagged with its call id
    3. **aborted**        — iteration cap reached without a final answer
    4. **cancelled**      — the caller asked to stop between iterations

  Routing:
    requesting → (tool calls?)    → tool_dispatch → (cap reached?) → aborted   → END
                                                  → (stop asked?)  → cancelled → END
                                                  → otherwise      → requesting
    requesting → (no tool calls?) → END  (done)

  The cap counts model calls: with ``max_iterations=10`` the model is called
  at most ten times per turn.  Unknown tool names are skipped (logged, not
  fatal).  Model/transport errors are *not* retried here; they propagate so
  the caller can retry the whole turn.

  Every message the loop produces is passed to ``on_message`` as soon as it
  exists, so a caller that persists through it never loses messages, even
  when the loop ends early.
"""

from __future__ import annotations

import logging
import operator
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Annotated

from langgraph.graph import END, StateGraph
from typing_extensions import TypedDict

from helpdesk.errors import InvalidToolArgumentsError, ModelError, UnknownToolError
from helpdesk.models import Message
from helpdesk.prompts import SYSTEM_PROMPT
from helpdesk.services.llm import ChatModel
from helpdesk.services.metrics import MetricsClient
from helpdesk.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 10

ABORT_MESSAGE = (
    "I apologize, but I'm having trouble processing your request. "
    "Please try again or contact our support team directly."
)

MessageSink = Callable[[Message], None]
StopCheck = Callable[[], bool]


class LoopState(str, Enum):
    REQUESTING = "requesting"
    TOOL_DISPATCH = "tool_dispatch"
    DONE = "done"
    ABORTED = "aborted"
    CANCELLED = "cancelled"


# ── State schema ─────────────────────────────────────────────────────


class AgentState(TypedDict):
    """The state that flows through the graph.

    ``messages`` and ``tools_used`` use an append reducer so each node only
    returns what it added.  ``outcome`` holds the current ``LoopState`` value.
    """

    messages: Annotated[list[Message], operator.add]
    tools_used: Annotated[list[str], operator.add]
    iterations: int
    outcome: str
    response_text: str
    stop_requested: bool


@dataclass
class AgentRunResult:
    """What one run of the loop produced."""

    response_text: str
    messages: list[Message]
    new_messages: list[Message]
    tools_used: list[str]
    outcome: LoopState
    iterations: int


# ── Conditional edges ────────────────────────────────────────────────


def should_use_tools(state: AgentState) -> str:
    """Route to tool dispatch if the model's last reply requested tools."""
    last_message = state["messages"][-1]
    if last_message.tool_invocations:
        return "tool_dispatch"
    return END


def _route_after_tools(max_iterations: int) -> Callable[[AgentState], str]:
    def route(state: AgentState) -> str:
        if state["iterations"] >= max_iterations:
            return "aborted"
        if state.get("stop_requested"):
            return "cancelled"
        return "requesting"

    return route


# ── The loop ─────────────────────────────────────────────────────────


class AgentLoop:
    """Bounded tool-calling agent over a ``ChatModel`` and a ``ToolRegistry``."""

    def __init__(
        self,
        model: ChatModel,
        registry: ToolRegistry,
        *,
        max_iterations: int = MAX_ITERATIONS,
        system_prompt: str = SYSTEM_PROMPT,
        metrics: MetricsClient | None = None,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self._model = model
        self._registry = registry
        self._max_iterations = max_iterations
        self._system_prompt = system_prompt
        self._metrics = metrics

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    # ── Nodes ────────────────────────────────────────────────────────

    def _make_requesting_node(self, emit: MessageSink):
        """Create the node that calls the model with the accumulated history."""
        tools = self._registry.describe()

        def requesting_node(state: AgentState) -> dict:
            iteration = state["iterations"] + 1
            logger.debug("Agent iteration %d", iteration)
            t0 = time.perf_counter()
            try:
                reply = self._model.complete_chat(state["messages"], tools=tools)
            except ModelError as exc:
                self._record_model_call(t0, type(exc).__name__)
                raise
            self._record_model_call(t0, None)

            message = reply.to_message()
            emit(message)
            if message.tool_invocations:
                logger.debug(
                    "Model requested %d tool call(s)", len(message.tool_invocations),
                )
                outcome = LoopState.TOOL_DISPATCH
            else:
                outcome = LoopState.DONE
            return {
                "messages": [message],
                "iterations": iteration,
                "outcome": outcome.value,
                "response_text": reply.content,
            }

        return requesting_node

    def _make_tool_dispatch_node(self, emit: MessageSink, should_stop: StopCheck | None):
        """Create the node that executes the tool calls of the last reply."""

        def tool_dispatch_node(state: AgentState) -> dict:
            added: list[Message] = []
            used: list[str] = []
            for invocation in state["messages"][-1].tool_invocations:
                logger.info("Calling tool %s %s", invocation.name, invocation.arguments)
                try:
                    result = self._registry.invoke(invocation.name, invocation.arguments)
                except UnknownToolError:
                    logger.error("Unknown tool requested: %s (skipped)", invocation.name)
                    self._record_tool_call(invocation.name, "unknown")
                    continue
                except InvalidToolArgumentsError as exc:
                    logger.warning("%s", exc)
                    self._record_tool_call(invocation.name, "invalid")
                    result = f"Error: {exc}. Check the parameters and try again."
                else:
                    used.append(invocation.name)
                    self._record_tool_call(invocation.name, "ok")

                message = Message.tool(
                    result, tool_call_id=invocation.call_id, name=invocation.name,
                )
                emit(message)
                added.append(message)

            stop = bool(should_stop and should_stop())
            return {"messages": added, "tools_used": used, "stop_requested": stop}

        return tool_dispatch_node

    def _make_terminal_node(self, outcome: LoopState):
        def terminal_node(state: AgentState) -> dict:
            logger.warning(
                "Agent loop %s after %d iteration(s)", outcome.value, state["iterations"],
            )
            return {"outcome": outcome.value, "response_text": ABORT_MESSAGE}

        return terminal_node

    # ── Graph assembly ───────────────────────────────────────────────

    def _build_graph(self, emit: MessageSink, should_stop: StopCheck | None):
        graph = StateGraph(AgentState)

        graph.add_node("requesting", self._make_requesting_node(emit))
        graph.add_node("tool_dispatch", self._make_tool_dispatch_node(emit, should_stop))
        graph.add_node("aborted", self._make_terminal_node(LoopState.ABORTED))
        graph.add_node("cancelled", self._make_terminal_node(LoopState.CANCELLED))

        graph.set_entry_point("requesting")
        graph.add_conditional_edges(
            "requesting", should_use_tools, {"tool_dispatch": "tool_dispatch", END: END},
        )
        graph.add_conditional_edges(
            "tool_dispatch",
            _route_after_tools(self._max_iterations),
            {"requesting": "requesting", "aborted": "aborted", "cancelled": "cancelled"},
        )
        graph.add_edge("aborted", END)
        graph.add_edge("cancelled", END)
        return graph.compile()

    def run(
        self,
        messages: list[Message],
        *,
        on_message: MessageSink | None = None,
        should_stop: StopCheck | None = None,
    ) -> AgentRunResult:
        """Drive the loop from *messages* to a final answer, the cap, or a stop.

        ``on_message`` receives every message the loop appends, in order.
        ``should_stop`` is polled after each tool dispatch (never mid-tool).
        """
        seeded = list(messages)
        if not seeded or seeded[0].role != "system":
            seeded.insert(0, Message.system(self._system_prompt))

        emit: MessageSink = on_message or (lambda _message: None)
        graph = self._build_graph(emit, should_stop)
        final = graph.invoke(
            {
                "messages": seeded,
                "tools_used": [],
                "iterations": 0,
                "outcome": LoopState.REQUESTING.value,
                "response_text": "",
                "stop_requested": False,
            },
            config={"recursion_limit": 2 * self._max_iterations + 5},
        )

        history: list[Message] = final["messages"]
        outcome = LoopState(final["outcome"])
        tools_used = list(dict.fromkeys(final["tools_used"]))
        if self._metrics:
            self._metrics.record_loop_outcome(outcome.value, final["iterations"])
        logger.info(
            "Agent loop %s in %d iteration(s); tools used: %s",
            outcome.value, final["iterations"], ", ".join(tools_used) or "none",
        )

        return AgentRunResult(
            response_text=final["response_text"],
            messages=history[1:],
            new_messages=history[len(seeded):],
            tools_used=tools_used,
            outcome=outcome,
            iterations=final["iterations"],
        )

    # ── Metrics helpers ──────────────────────────────────────────────

    def _record_model_call(self, t0: float, error_type: str | None) -> None:
        if self._metrics:
            elapsed = (time.perf_counter() - t0) * 1000
            self._metrics.record_model_call("agent_turn", elapsed, error_type=error_type)

    def _record_tool_call(self, name: str, status: str) -> None:
        if self._metrics:
            self._metrics.record_tool_call(name, status)
