"""Runtime primitives shared by the orchestrator components."""

from switchboard.runtime.mutex import (
    InProcessSessionMutex,
    RedisSessionMutex,
    SessionMutex,
)

__all__ = [
    "InProcessSessionMutex",
    "RedisSessionMutex",
    "SessionMutex",
]
