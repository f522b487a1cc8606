"""Session stores for conversation management."""

from switchboard.conversation.store import SessionStore
from switchboard.conversation.stores.inmemory import InMemorySessionStore
from switchboard.conversation.stores.redis import RedisSessionStore

__all__ = [
    "SessionStore",
    "InMemorySessionStore",
    "RedisSessionStore",
]
