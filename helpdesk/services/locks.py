"""Per-conversation mutual exclusion.

Two concurrent turns on the same conversation would both read the history
and then append to it, interleaving or duplicating messages.  ``hold(id)``
serialises turns per conversation id while different conversations run in
parallel.  A lock lives only while some turn holds or waits on it, so the
map stays bounded by the number of in-flight turns.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class ConversationLocks:
    """Reference-counted ``threading.Lock`` per conversation id."""

    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._holders: dict[str, int] = {}
        self._guard = threading.Lock()

    def _acquire_entry(self, conversation_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(conversation_id)
            if lock is None:
                lock = self._locks[conversation_id] = threading.Lock()
            self._holders[conversation_id] = self._holders.get(conversation_id, 0) + 1
            return lock

    def _release_entry(self, conversation_id: str) -> None:
        with self._guard:
            remaining = self._holders[conversation_id] - 1
            if remaining:
                self._holders[conversation_id] = remaining
            else:
                del self._holders[conversation_id]
                del self._locks[conversation_id]

    @contextmanager
    def hold(self, conversation_id: str) -> Iterator[None]:
        lock = self._acquire_entry(conversation_id)
        try:
            if lock.locked():
                logger.debug("Waiting for active turn on %s", conversation_id)
            with lock:
                yield
        finally:
            self._release_entry(conversation_id)

    def is_active(self, conversation_id: str) -> bool:
        with self._guard:
            lock = self._locks.get(conversation_id)
        return lock is not None and lock.locked()
