"""Redis implementation of HandoffQueue.

Key structure:
- {prefix}:ticket:{ticket_id} - Ticket JSON
- {prefix}:pending - List of open ticket IDs awaiting a representative
- {prefix}:replies:{ticket_id} - List of human replies, oldest first

Closed tickets and their reply lists expire after closed_ticket_ttl_seconds.
"""

import redis.asyncio as redis

from switchboard.config.models.storage import RedisConfig
from switchboard.errors import ConnectionError, TicketNotFoundError
from switchboard.handoff.models import HandoffTicket
from switchboard.handoff.queue import HandoffQueue
from switchboard.observability.logging import get_logger

logger = get_logger(__name__)


class RedisHandoffQueue(HandoffQueue):
    """Redis-backed HandoffQueue shared by orchestrator replicas and the CSR side."""

    def __init__(
        self,
        client: redis.Redis,
        config: RedisConfig | None = None,
    ) -> None:
        self._client = client
        self._config = config or RedisConfig()
        self._prefix = self._config.ticket_key_prefix

    def _ticket_key(self, ticket_id: str) -> str:
        return f"{self._prefix}:ticket:{ticket_id}"

    def _pending_key(self) -> str:
        return f"{self._prefix}:pending"

    def _replies_key(self, ticket_id: str) -> str:
        return f"{self._prefix}:replies:{ticket_id}"

    async def enqueue(self, ticket: HandoffTicket) -> str:
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.set(self._ticket_key(ticket.ticket_id), ticket.model_dump_json())
                pipe.rpush(self._pending_key(), ticket.ticket_id)
                await pipe.execute()
        except redis.RedisError as e:
            logger.error("redis_enqueue_error", ticket_id=ticket.ticket_id, error=str(e))
            raise ConnectionError(f"Failed to enqueue ticket: {e}", cause=e) from e
        return ticket.ticket_id

    async def get(self, ticket_id: str) -> HandoffTicket | None:
        try:
            data = await self._client.get(self._ticket_key(ticket_id))
        except redis.RedisError as e:
            logger.error("redis_get_error", ticket_id=ticket_id, error=str(e))
            raise ConnectionError(f"Failed to get ticket: {e}", cause=e) from e

        if not data:
            return None
        return HandoffTicket.model_validate_json(data)

    async def update(self, ticket: HandoffTicket) -> None:
        """Overwrite an existing ticket.

        A ticket moving to a terminal state leaves the pending list, and its
        record and reply inbox expire after ``closed_ticket_ttl_seconds`` so
        late replies stay readable for audit.
        """
        key = self._ticket_key(ticket.ticket_id)
        try:
            if not ticket.state.is_terminal:
                # XX: only overwrite a ticket that already exists
                updated = await self._client.set(key, ticket.model_dump_json(), xx=True)
            else:
                ttl = self._config.closed_ticket_ttl_seconds
                async with self._client.pipeline(transaction=True) as pipe:
                    pipe.set(key, ticket.model_dump_json(), xx=True, ex=ttl)
                    pipe.lrem(self._pending_key(), 0, ticket.ticket_id)
                    pipe.expire(self._replies_key(ticket.ticket_id), ttl)
                    results = await pipe.execute()
                updated = results[0]
        except redis.RedisError as e:
            logger.error("redis_update_error", ticket_id=ticket.ticket_id, error=str(e))
            raise ConnectionError(f"Failed to update ticket: {e}", cause=e) from e

        if not updated:
            raise TicketNotFoundError(f"Ticket {ticket.ticket_id} not found")

    async def poll(self, ticket_id: str) -> str | None:
        try:
            reply = await self._client.lpop(self._replies_key(ticket_id))
        except redis.RedisError as e:
            logger.error("redis_poll_error", ticket_id=ticket_id, error=str(e))
            raise ConnectionError(f"Failed to poll replies: {e}", cause=e) from e

        if reply is None:
            return None
        return reply.decode() if isinstance(reply, bytes) else reply

    async def submit_reply(self, ticket_id: str, message: str) -> None:
        try:
            exists = await self._client.exists(self._ticket_key(ticket_id))
            if not exists:
                raise TicketNotFoundError(f"Ticket {ticket_id} not found")
            await self._client.rpush(self._replies_key(ticket_id), message)
        except redis.RedisError as e:
            logger.error("redis_reply_error", ticket_id=ticket_id, error=str(e))
            raise ConnectionError(f"Failed to submit reply: {e}", cause=e) from e

    async def pending(self) -> list[HandoffTicket]:
        try:
            ticket_ids = await self._client.lrange(self._pending_key(), 0, -1)
            if not ticket_ids:
                return []
            keys = [
                self._ticket_key(t.decode() if isinstance(t, bytes) else t)
                for t in ticket_ids
            ]
            records = await self._client.mget(keys)
        except redis.RedisError as e:
            logger.error("redis_pending_error", error=str(e))
            raise ConnectionError(f"Failed to list pending tickets: {e}", cause=e) from e

        # Records that already expired are skipped
        return [HandoffTicket.model_validate_json(r) for r in records if r]
