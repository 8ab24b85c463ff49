"""Redis-backed session store.

Each session is a Redis list under ``<prefix><session_id>`` whose items are
JSON-encoded ``{"role", "content"}`` objects. Every append refreshes the key's
expiry, giving a sliding time-to-live measured from the last write.
"""

import json
from typing import Optional

import redis
import structlog
from pydantic import ValidationError
from redis.exceptions import RedisError

from prompt2form.errors import StoreUnavailable
from prompt2form.schemas.session import ConversationTurn
from prompt2form.stores.base import BaseSessionStore

logger = structlog.get_logger(__name__)


class RedisSessionStore(BaseSessionStore):
    """Session transcripts in Redis lists with key expiry."""

    store_name = "redis"

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        ttl_seconds: int = 3600,
        key_prefix: str = "form_session:",
        client: Optional[redis.Redis] = None,
    ):
        super().__init__(ttl_seconds)
        self.url = url
        self.key_prefix = key_prefix
        self._client = client

    def _key(self, session_id: str) -> str:
        return f"{self.key_prefix}{session_id}"

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            raise StoreUnavailable("Redis client is not connected")
        return self._client

    def open(self) -> None:
        """Connect and verify the server answers."""
        if self._client is None:
            self._client = redis.Redis.from_url(self.url, decode_responses=True)
        try:
            self._client.ping()
        except RedisError as e:
            logger.error("Redis connection failed", url=self.url, error=str(e))
            raise StoreUnavailable(f"Session store unavailable: {e}") from e
        logger.info("Redis client ready", url=self.url)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info("Redis connection closed")

    def append(self, session_id: str, turn: ConversationTurn) -> None:
        key = self._key(session_id)
        payload = json.dumps({"role": turn.role, "content": turn.content}, ensure_ascii=False)
        try:
            pipe = self.client.pipeline(transaction=True)
            pipe.rpush(key, payload)
            pipe.expire(key, self.ttl_seconds)
            pipe.execute()
        except RedisError as e:
            logger.error("Session append failed", session_id=session_id, error=str(e))
            raise StoreUnavailable(f"Session store unavailable: {e}") from e
        logger.debug("Turn appended", session_id=session_id, role=turn.role)

    def read(self, session_id: str) -> list[ConversationTurn]:
        try:
            items = self.client.lrange(self._key(session_id), 0, -1)
        except RedisError as e:
            logger.error("Session read failed", session_id=session_id, error=str(e))
            raise StoreUnavailable(f"Session store unavailable: {e}") from e

        try:
            turns = [ConversationTurn.model_validate_json(item) for item in items]
        except ValidationError as e:
            logger.error(
                "Corrupt session transcript", session_id=session_id, errors=e.error_count()
            )
            raise StoreUnavailable(f"Corrupt session transcript: {session_id}") from e
        logger.debug("Fetched session turns", session_id=session_id, turns=len(turns))
        return turns

    def delete(self, session_id: str) -> None:
        try:
            self.client.delete(self._key(session_id))
        except RedisError as e:
            logger.error("Session delete failed", session_id=session_id, error=str(e))
            raise StoreUnavailable(f"Session store unavailable: {e}") from e
        logger.info("Session cleared", session_id=session_id)
