"""In-process session store with sliding expiry."""

import threading
import time
from typing import Callable

import structlog

from prompt2form.schemas.session import ConversationTurn
from prompt2form.stores.base import BaseSessionStore

logger = structlog.get_logger(__name__)


class InMemorySessionStore(BaseSessionStore):
    """
    Per-session transcripts held in a dict with:
    - sliding TTL (expires ttl_seconds after last append)
    - thread-safe operations

    Expired sessions are dropped lazily on access.
    """

    store_name = "memory"

    def __init__(self, ttl_seconds: int = 3600, clock: Callable[[], float] = time.monotonic):
        super().__init__(ttl_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        # session_id -> (turns, expires_at)
        self._items: dict[str, tuple[list[ConversationTurn], float]] = {}

    def _live_turns_unlocked(self, session_id: str) -> list[ConversationTurn] | None:
        item = self._items.get(session_id)
        if item is None:
            return None
        turns, expires_at = item
        if expires_at <= self._clock():
            del self._items[session_id]
            logger.debug("Session expired", session_id=session_id)
            return None
        return turns

    def append(self, session_id: str, turn: ConversationTurn) -> None:
        with self._lock:
            turns = self._live_turns_unlocked(session_id) or []
            turns.append(turn.model_copy())
            self._items[session_id] = (turns, self._clock() + self.ttl_seconds)
        logger.debug("Turn appended", session_id=session_id, role=turn.role)

    def read(self, session_id: str) -> list[ConversationTurn]:
        with self._lock:
            turns = self._live_turns_unlocked(session_id)
            return [t.model_copy() for t in turns] if turns else []

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._items.pop(session_id, None)

    def sweep_expired(self) -> int:
        """
        Delete expired sessions.

        Returns how many entries were removed.
        """
        now = self._clock()
        with self._lock:
            expired = [k for k, (_, expires_at) in self._items.items() if expires_at <= now]
            for k in expired:
                del self._items[k]
        return len(expired)
