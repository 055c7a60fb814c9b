"""One customer turn through the tool-calling agent.

``ChatService.handle_turn`` is the read-modify-append sequence for a
conversation, run under that conversation's lock:

  1. read the stored history
  2. append the new user message
  3. run the agent loop; each message it produces is appended to the log as
     soon as it exists
  4. return the reply, the conversation id and the tools used
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass

from helpdesk.agent import AgentLoop, LoopState
from helpdesk.models import Message
from helpdesk.services.conversation_log import SQLiteConversationLog
from helpdesk.services.locks import ConversationLocks

logger = logging.getLogger(__name__)


def generate_conversation_id() -> str:
    """Opaque id of the form ``conv_<epoch-ms>_<9 chars>``."""
    return f"conv_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


@dataclass
class ChatTurn:
    response: str
    conversation_id: str
    tools_used: list[str]
    outcome: LoopState


class ChatService:
    """Runs agent turns against the persisted conversation log."""

    def __init__(
        self,
        agent: AgentLoop,
        log: SQLiteConversationLog,
        locks: ConversationLocks | None = None,
        *,
        turn_timeout_seconds: float | None = None,
    ) -> None:
        self._agent = agent
        self._log = log
        self._locks = locks or ConversationLocks()
        self._turn_timeout_seconds = turn_timeout_seconds

    @property
    def log(self) -> SQLiteConversationLog:
        return self._log

    def handle_turn(self, message: str, conversation_id: str | None = None) -> ChatTurn:
        conversation_id = conversation_id or generate_conversation_id()

        with self._locks.hold(conversation_id):
            history = self._log.list_messages(conversation_id)
            user_message = Message.user(message)
            self._log.append(conversation_id, user_message)
            logger.info(
                "Turn on %s (%d prior message(s))", conversation_id, len(history),
            )

            should_stop = None
            if self._turn_timeout_seconds:
                deadline = time.monotonic() + self._turn_timeout_seconds
                should_stop = lambda: time.monotonic() >= deadline  # noqa: E731

            result = self._agent.run(
                [*history, user_message],
                on_message=lambda m: self._log.append(conversation_id, m),
                should_stop=should_stop,
            )

        return ChatTurn(
            response=result.response_text,
            conversation_id=conversation_id,
            tools_used=result.tools_used,
            outcome=result.outcome,
        )
