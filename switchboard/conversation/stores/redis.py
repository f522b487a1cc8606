"""Redis implementation of SessionStore.

Sessions are stored as JSON documents with a TTL. A sorted set scored by
last interaction time indexes them for ``list_active``.
"""

import redis.asyncio as redis

from switchboard.config.models.storage import RedisConfig
from switchboard.conversation.models import Session
from switchboard.conversation.store import SessionStore
from switchboard.errors import ConnectionError
from switchboard.observability.logging import get_logger

logger = get_logger(__name__)


class RedisSessionStore(SessionStore):
    """Redis implementation of SessionStore.

    Key structure:
    - {prefix}:data:{session_id} - Session JSON (TTL refreshed on save)
    - {prefix}:index:active - Sorted set of session IDs by last interaction
    """

    def __init__(
        self,
        client: redis.Redis,
        config: RedisConfig | None = None,
    ) -> None:
        """Initialize Redis session store.

        Args:
            client: Redis client instance
            config: Redis configuration (uses defaults if not provided)
        """
        self._client = client
        self._config = config or RedisConfig()
        self._prefix = self._config.session_key_prefix

    def _data_key(self, session_id: str) -> str:
        return f"{self._prefix}:data:{session_id}"

    def _active_index_key(self) -> str:
        return f"{self._prefix}:index:active"

    async def get(self, session_id: str) -> Session | None:
        """Get a session by ID."""
        try:
            data = await self._client.get(self._data_key(session_id))
        except redis.RedisError as e:
            logger.error("redis_get_error", session_id=session_id, error=str(e))
            raise ConnectionError(f"Failed to get session: {e}", cause=e) from e

        if not data:
            logger.debug("session_not_found", session_id=session_id)
            return None
        return Session.model_validate_json(data)

    async def save(self, session: Session) -> str:
        """Save a session and refresh its index entry.

        SET and ZADD run in one MULTI/EXEC so a retry after a failure
        rewrites the same state.
        """
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.set(
                    self._data_key(session.session_id),
                    session.model_dump_json(),
                    ex=self._config.session_ttl_seconds,
                )
                pipe.zadd(
                    self._active_index_key(),
                    {session.session_id: session.last_interaction.timestamp()},
                )
                await pipe.execute()
        except redis.RedisError as e:
            logger.error("redis_save_error", session_id=session.session_id, error=str(e))
            raise ConnectionError(f"Failed to save session: {e}", cause=e) from e

        logger.debug("session_saved", session_id=session.session_id)
        return session.session_id

    async def delete(self, session_id: str) -> bool:
        """Delete a session."""
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.delete(self._data_key(session_id))
                pipe.zrem(self._active_index_key(), session_id)
                deleted, _ = await pipe.execute()
        except redis.RedisError as e:
            logger.error("redis_delete_error", session_id=session_id, error=str(e))
            raise ConnectionError(f"Failed to delete session: {e}", cause=e) from e

        return bool(deleted)

    async def list_active(self, *, limit: int = 100) -> list[Session]:
        """List stored sessions, most recently active first.

        Index entries whose document has expired are pruned on the way.
        """
        try:
            session_ids = await self._client.zrevrange(
                self._active_index_key(), 0, limit - 1
            )
            results: list[Session] = []
            stale: list[str] = []
            for raw_id in session_ids:
                session_id = raw_id.decode() if isinstance(raw_id, bytes) else raw_id
                data = await self._client.get(self._data_key(session_id))
                if data:
                    results.append(Session.model_validate_json(data))
                else:
                    stale.append(session_id)
            if stale:
                await self._client.zrem(self._active_index_key(), *stale)
        except redis.RedisError as e:
            logger.error("redis_list_error", error=str(e))
            raise ConnectionError(f"Failed to list sessions: {e}", cause=e) from e

        return results
