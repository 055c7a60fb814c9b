"""Helpdesk Agent — an AI customer-support agent for an e-commerce store.

Architecture Overview
=====================

The conversational agent is a **LangGraph** state machine with two working
nodes:

1. **requesting** — Sends the conversation history and the tool descriptions
   to the model. The model either answers or asks for tool calls.

2. **tool_dispatch** — Runs each requested tool through the registry and
   appends the results to the history, then loops back to ``requesting``.

Routing: requesting → (tool calls?) → tool_dispatch → requesting … → END.
The loop is capped at ``max_iterations`` model calls; past the cap the turn
ends with a fixed apology (``aborted``).

Beside the agent sit two single-shot responders: an FAQ responder (knowledge
base in the prompt, no tools) and a structured analyzer whose JSON output is
validated against a strict pydantic schema and retried with exponential
backoff before falling back to a safe default.

Key Design Decisions
--------------------
- **LLM**: Claude via ``langchain-anthropic``; SDK errors are mapped onto the
  ``helpdesk.errors`` taxonomy so retry logic never inspects provider types.
- **Memory**: every conversation is an append-only SQLite log. Messages are
  appended as soon as they exist, so an interrupted turn leaves a consistent
  prefix behind.
- **Concurrency**: turns on the same conversation are serialised by a
  per-conversation lock; different conversations run in parallel.
- **Dual Interface**: FastAPI server (production) + CLI chat loop (development).

Package Structure
-----------------
- ``helpdesk/agent.py`` — LangGraph agent loop
- ``helpdesk/retry.py`` — retry orchestrator with fallback
- ``helpdesk/validation.py`` — structured response schema
- ``helpdesk/context.py`` — application wiring from ``Settings``
- ``helpdesk/config.py`` — configuration from env / ``.env`` / SSM
- ``helpdesk/prompts.py`` — system prompts
- ``helpdesk/server.py`` — FastAPI application
- ``helpdesk/main.py`` — CLI chat interface
- ``helpdesk/services/`` — model adapter, conversation log, locks, chat, metrics
- ``helpdesk/tools/`` — LangChain tools and the tool registry
- ``helpdesk/api/`` — FastAPI routes and Pydantic schemas
"""
