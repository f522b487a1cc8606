"""In-memory implementation of SessionStore."""

from switchboard.conversation.models import Session
from switchboard.conversation.store import SessionStore


class InMemorySessionStore(SessionStore):
    """In-memory implementation of SessionStore for testing and development.

    Stores deep copies on save and hands out deep copies on get, so a
    caller mutating a loaded session never changes durable state until it
    saves again. Not suitable for multi-replica deployments.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    async def get(self, session_id: str) -> Session | None:
        """Get a session by ID."""
        session = self._sessions.get(session_id)
        if session is None:
            return None
        return session.model_copy(deep=True)

    async def save(self, session: Session) -> str:
        """Save a session, returning its ID."""
        self._sessions[session.session_id] = session.model_copy(deep=True)
        return session.session_id

    async def delete(self, session_id: str) -> bool:
        """Delete a session."""
        if session_id in self._sessions:
            del self._sessions[session_id]
            return True
        return False

    async def list_active(self, *, limit: int = 100) -> list[Session]:
        """List stored sessions, most recently active first."""
        results = [s.model_copy(deep=True) for s in self._sessions.values()]
        results.sort(key=lambda x: x.last_interaction, reverse=True)
        return results[:limit]
