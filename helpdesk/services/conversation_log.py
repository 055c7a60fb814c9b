"""Append-only conversation log backed by SQLAlchemy on SQLite.

Design decisions
────────────────
• **Two tables** (``ConversationRow`` and ``MessageRow``): conversation id
  with timestamps, and messages with an autoincrement id, the conversation
  foreign key, role, content, JSON tool calls, tool call id, tool name and a
  timestamp.  Message order is the autoincrement id, so replay order equals
  insertion order.
• **Durable appends**: every ``append`` runs in one session transaction that
  commits before returning.
• **threading.Lock** around every session, so the conversation insert,
  message insert and timestamp update of an append are atomic with respect
  to the FastAPI worker threads.
• **Sequence numbers**: ``list_messages(id, since=n)`` returns the messages
  after the first *n*, so callers never slice history to find new entries.
• ``":memory:"`` maps to ``sqlite://`` on a ``StaticPool`` so every session
  sees the same in-memory database.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Column,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    event,
    func,
    select,
    update,
)
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from helpdesk.models import ConversationMeta, ConversationSummary, Message, ToolInvocation

logger = logging.getLogger(__name__)

Base = declarative_base()


class ConversationRow(Base):
    __tablename__ = "conversations"

    id = Column(String, primary_key=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class MessageRow(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(
        String, ForeignKey("conversations.id"), nullable=False, index=True,
    )
    role = Column(String(16), nullable=False)
    content = Column(Text, nullable=False, default="")
    tool_calls = Column(JSON, nullable=True)
    tool_call_id = Column(String, nullable=True)
    name = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, UTC).isoformat()


def _make_engine(path: str):
    if path == ":memory:":
        engine = create_engine(
            "sqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_engine(
            f"sqlite:///{path}", connect_args={"check_same_thread": False},
        )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

    return engine


def _to_message(row: MessageRow) -> Message:
    return Message(
        role=row.role,
        content=row.content,
        tool_invocations=[ToolInvocation(**item) for item in row.tool_calls or []],
        tool_call_id=row.tool_call_id,
        name=row.name,
    )


class SQLiteConversationLog:
    """Per-conversation message history with creation/update timestamps."""

    def __init__(self, path: str = "conversations.db") -> None:
        self._path = path
        self._engine = _make_engine(path)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        self._lock = threading.Lock()
        logger.info("Conversation log initialised at %s", path)

    # ── Writes ───────────────────────────────────────────────────────

    def append(self, conversation_id: str, message: Message) -> None:
        """Append *message*, creating the conversation record if needed."""
        now = time.time()
        tool_calls = [inv.model_dump() for inv in message.tool_invocations] or None

        with self._lock, self._session_factory.begin() as session:
            exists = session.execute(
                select(ConversationRow.id).where(ConversationRow.id == conversation_id)
            ).scalar_one_or_none()
            if exists is None:
                session.add(
                    ConversationRow(id=conversation_id, created_at=now, updated_at=now)
                )
                session.flush()
            else:
                session.execute(
                    update(ConversationRow)
                    .where(ConversationRow.id == conversation_id)
                    .values(updated_at=now)
                )
            session.add(
                MessageRow(
                    conversation_id=conversation_id,
                    role=message.role,
                    content=message.content or "",
                    tool_calls=tool_calls,
                    tool_call_id=message.tool_call_id,
                    name=message.name,
                    created_at=now,
                )
            )
        logger.debug("Appended %s message to %s", message.role, conversation_id)

    def delete(self, conversation_id: str) -> bool:
        """Remove a conversation and its messages.  Returns ``True`` if it existed."""
        with self._lock, self._session_factory.begin() as session:
            session.execute(
                delete(MessageRow).where(MessageRow.conversation_id == conversation_id)
            )
            result = session.execute(
                delete(ConversationRow).where(ConversationRow.id == conversation_id)
            )
        deleted = result.rowcount > 0
        if deleted:
            logger.info("Deleted conversation %s", conversation_id)
        return deleted

    # ── Reads ────────────────────────────────────────────────────────

    def list_messages(self, conversation_id: str, since: int = 0) -> list[Message]:
        """Messages in insertion order, skipping the first *since*.

        An unknown conversation yields an empty list.
        """
        with self._lock, self._session_factory() as session:
            rows = session.execute(
                select(MessageRow)
                .where(MessageRow.conversation_id == conversation_id)
                .order_by(MessageRow.id)
                .offset(max(since, 0))
            ).scalars().all()
            return [_to_message(row) for row in rows]

    def get_metadata(self, conversation_id: str) -> ConversationMeta | None:
        with self._lock, self._session_factory() as session:
            row = session.get(ConversationRow, conversation_id)
            if row is None:
                return None
            return ConversationMeta(
                id=row.id,
                created_at=_iso(row.created_at),
                updated_at=_iso(row.updated_at),
            )

    def list_all(self) -> list[ConversationSummary]:
        """All conversations, most recently updated first."""
        query = (
            select(
                ConversationRow.id,
                ConversationRow.created_at,
                ConversationRow.updated_at,
                func.count(MessageRow.id).label("message_count"),
            )
            .outerjoin(MessageRow, MessageRow.conversation_id == ConversationRow.id)
            .group_by(ConversationRow.id)
            .order_by(ConversationRow.updated_at.desc(), func.max(MessageRow.id).desc())
        )
        with self._lock, self._session_factory() as session:
            rows = session.execute(query).all()
        return [
            ConversationSummary(
                id=row.id,
                created_at=_iso(row.created_at),
                updated_at=_iso(row.updated_at),
                message_count=row.message_count,
            )
            for row in rows
        ]

    def close(self) -> None:
        with self._lock:
            self._engine.dispose()
        logger.info("Conversation log closed")
