"""FastAPI route definitions for the helpdesk API."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime

from fastapi import APIRouter, HTTPException, Request

from helpdesk.api.schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    ChatRequest,
    ChatResponse,
    ConversationListResponse,
    ConversationResponse,
    ConversationSummaryOut,
    FaqRequest,
    FaqResponse,
    HealthResponse,
    MessageOut,
    ToolCallOut,
)
from helpdesk.context import AppContext
from helpdesk.errors import AuthenticationError, ModelError, QuotaExceededError
from helpdesk.retry import FALLBACK_MESSAGE
from helpdesk.services.chat import generate_conversation_id

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_context(request: Request) -> AppContext:
    """Retrieve the application context from app state.

    The context is built once during the FastAPI lifespan (see
    ``server.py``).
    """
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise HTTPException(
            status_code=503,
            detail="The assistant is still starting up. Please try again in a moment.",
        )
    return context


def _failure(exc: Exception, request_id: str) -> HTTPException:
    """Map a failure to a customer-facing HTTP error without leaking internals."""
    if isinstance(exc, AuthenticationError):
        logger.error("[%s] Model authentication failed", request_id)
        return HTTPException(
            status_code=500,
            detail="The assistant is misconfigured. Please contact support.",
        )
    if isinstance(exc, QuotaExceededError):
        logger.error("[%s] Model quota exceeded", request_id)
        return HTTPException(
            status_code=429,
            detail="The assistant is over capacity right now. Please try again later.",
        )
    if isinstance(exc, ModelError):
        logger.warning("[%s] Model call failed: %s", request_id, exc)
        return HTTPException(status_code=503, detail=FALLBACK_MESSAGE)

    logger.exception("[%s] Error processing request", request_id)
    return HTTPException(
        status_code=500,
        detail="An internal error occurred. Please try again.",
    )


# ── Endpoints ────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse()


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, http_request: Request):
    """Send a message to the agent and get a response.

    ``conversationId`` continues an existing conversation; without it a new
    one is created and its id returned.

    The turn is a blocking call (it talks to the model API), so it is
    offloaded with ``asyncio.to_thread`` to keep the event loop responsive.
    """
    context = _get_context(http_request)
    request_id = getattr(http_request.state, "request_id", "?")
    conversation_id = request.conversation_id or generate_conversation_id()

    try:
        turn = await asyncio.to_thread(
            context.chat.handle_turn, request.message, conversation_id,
        )
    except Exception as e:
        raise _failure(e, request_id) from e

    logger.info(
        "[%s] %s answered (%s); tools used: %s",
        request_id, turn.conversation_id, turn.outcome.value,
        ", ".join(turn.tools_used) or "none",
    )
    return ChatResponse(
        response=turn.response,
        conversation_id=turn.conversation_id,
        tools_used=turn.tools_used,
    )


@router.get("/conversation/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(conversation_id: str, http_request: Request):
    """Conversation metadata and its customer-visible messages."""
    context = _get_context(http_request)
    meta = context.log.get_metadata(conversation_id)
    if meta is None:
        raise HTTPException(status_code=404, detail="Conversation not found")

    messages = [
        MessageOut(
            role=m.role,
            content=m.content,
            tool_calls=[
                ToolCallOut(id=inv.call_id, name=inv.name, arguments=inv.arguments)
                for inv in m.tool_invocations
            ] or None,
        )
        for m in context.log.list_messages(conversation_id)
        if m.role not in ("system", "tool")
    ]
    return ConversationResponse(
        id=meta.id,
        created_at=meta.created_at,
        updated_at=meta.updated_at,
        messages=messages,
    )


@router.get("/conversations", response_model=ConversationListResponse)
async def list_conversations(http_request: Request):
    """All conversations, most recently updated first."""
    context = _get_context(http_request)
    conversations = [
        ConversationSummaryOut(
            id=s.id,
            created_at=s.created_at,
            updated_at=s.updated_at,
            message_count=s.message_count,
        )
        for s in context.log.list_all()
    ]
    return ConversationListResponse(conversations=conversations, total=len(conversations))


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze(request: AnalyzeRequest, http_request: Request):
    """Classify a message into intent, entities and a validated reply.

    Validation failures are retried with backoff and degrade to a fallback
    response; only authentication and quota errors surface as HTTP errors.
    """
    context = _get_context(http_request)
    request_id = getattr(http_request.state, "request_id", "?")

    try:
        result = await asyncio.to_thread(context.analyzer.analyze, request.message)
    except Exception as e:
        raise _failure(e, request_id) from e

    data = result.response.to_document()
    data.update(
        conversationId=request.conversation_id or generate_conversation_id(),
        timestamp=datetime.now(UTC).isoformat(),
        model=result.model,
        attempt=result.attempt,
    )
    if result.error:
        data["error"] = result.error
    return AnalyzeResponse(data=data)


@router.post("/faq", response_model=FaqResponse)
async def faq(request: FaqRequest, http_request: Request):
    """Answer a single question from the FAQ knowledge base."""
    context = _get_context(http_request)
    request_id = getattr(http_request.state, "request_id", "?")

    try:
        answer = await asyncio.to_thread(context.faq.answer, request.message)
    except Exception as e:
        raise _failure(e, request_id) from e

    return FaqResponse(response=answer)
