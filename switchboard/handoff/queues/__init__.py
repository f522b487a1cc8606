"""HandoffQueue implementations."""

from switchboard.handoff.queues.inmemory import InMemoryHandoffQueue
from switchboard.handoff.queues.redis import RedisHandoffQueue

__all__ = [
    "InMemoryHandoffQueue",
    "RedisHandoffQueue",
]
