"""SessionStore abstract interface."""

from abc import ABC, abstractmethod

from switchboard.conversation.models import Session


class SessionStore(ABC):
    """Abstract interface for session storage.

    All operations are idempotent on retry. Implementations must be safe
    for concurrent use by several orchestrator instances.
    """

    @abstractmethod
    async def get(self, session_id: str) -> Session | None:
        """Get a session by ID."""
        pass

    @abstractmethod
    async def save(self, session: Session) -> str:
        """Save a session, returning its ID."""
        pass

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        """Delete a session."""
        pass

    @abstractmethod
    async def list_active(self, *, limit: int = 100) -> list[Session]:
        """List stored sessions, most recently active first."""
        pass
