"""Session lifecycle management.

SessionManager is the only component that loads and saves sessions. Every
load -> mutate -> persist sequence for a conversation runs inside
``SessionManager.session``, which holds the per-session mutex and keeps
the last durably saved copy so a failed save can be rolled back.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

from switchboard.auth.machine import AuthStateMachine
from switchboard.config.models.storage import StorageConfig
from switchboard.conversation.models import (
    ConversationMessage,
    MessageRole,
    Session,
    utc_now,
)
from switchboard.conversation.store import SessionStore
from switchboard.errors import SessionNotFoundError, SessionPersistError, StoreError
from switchboard.observability.logging import get_logger
from switchboard.observability.metrics import ACTIVE_SESSIONS, PERSIST_FAILURES
from switchboard.runtime.mutex import SessionMutex

logger = get_logger(__name__)


class SessionManager:
    """Creates, loads, persists and deletes sessions."""

    def __init__(
        self,
        store: SessionStore,
        mutex: SessionMutex,
        auth_machine: AuthStateMachine,
        *,
        persist_max_attempts: int = 3,
        persist_backoff: float = 0.1,
    ) -> None:
        """Initialize the manager.

        Args:
            store: Durable session storage
            mutex: Per-session lock
            auth_machine: Used to lapse sessions loaded past their expiry
            persist_max_attempts: Save attempts before rolling back
            persist_backoff: Initial delay between save attempts (seconds)
        """
        self._store = store
        self._mutex = mutex
        self._auth_machine = auth_machine
        self._persist_max_attempts = max(persist_max_attempts, 1)
        self._persist_backoff = persist_backoff
        # session_id -> last durably saved copy (None: never saved)
        self._durable: dict[str, Session | None] = {}

    @classmethod
    def from_config(
        cls,
        config: StorageConfig,
        *,
        store: SessionStore,
        mutex: SessionMutex,
        auth_machine: AuthStateMachine,
    ) -> "SessionManager":
        return cls(
            store,
            mutex,
            auth_machine,
            persist_max_attempts=config.persist_max_attempts,
            persist_backoff=config.persist_backoff_seconds,
        )

    @property
    def store(self) -> SessionStore:
        return self._store

    async def _load(self, session_id: str) -> Session | None:
        try:
            return await self._store.get(session_id)
        except SessionNotFoundError:
            return None

    def _prepare(
        self,
        session_id: str,
        stored: Session | None,
        now: datetime | None = None,
    ) -> Session:
        if stored is None:
            logger.info("session_created", session_id=session_id)
            return Session(session_id=session_id)

        now = now or utc_now()
        if stored.expiry is not None and now > stored.expiry:
            stored.auth = self._auth_machine.expire(stored.auth).context
            stored.expiry = None
            logger.info("session_expired", session_id=session_id)
        return stored

    async def get_or_create(self, session_id: str, now: datetime | None = None) -> Session:
        """Load a session, or start a fresh anonymous one.

        A session found past its expiry has its auth lapsed to Expired and
        its expiry cleared; history is kept.
        """
        return self._prepare(session_id, await self._load(session_id), now)

    @asynccontextmanager
    async def session(self, session_id: str) -> AsyncIterator[Session]:
        """Hold the session's critical section.

        Usage:
            async with manager.session(session_id) as session:
                manager.append_message(session, MessageRole.USER, text)
                await manager.persist(session)

        Nothing is saved implicitly: leaving the block without ``persist``
        (for example through cancellation) discards the changes.
        """
        async with self._mutex.acquire(session_id):
            ACTIVE_SESSIONS.inc()
            try:
                stored = await self._load(session_id)
                self._durable[session_id] = (
                    stored.model_copy(deep=True) if stored is not None else None
                )
                yield self._prepare(session_id, stored)
            finally:
                self._durable.pop(session_id, None)
                ACTIVE_SESSIONS.dec()

    def append_message(
        self,
        session: Session,
        role: MessageRole,
        content: str,
    ) -> ConversationMessage:
        """Append a message to the history and bump ``last_interaction``."""
        message = ConversationMessage(role=role, content=content)
        session.history = [*session.history, message]
        session.last_interaction = message.timestamp
        return message

    async def persist(self, session: Session) -> None:
        """Save the session, retrying with exponential backoff.

        Raises:
            SessionPersistError: When every attempt failed. The session has
                been rolled back in place to its last durable state.
        """
        last_error: StoreError | None = None

        for attempt in range(self._persist_max_attempts):
            try:
                await self._store.save(session)
            except StoreError as e:
                last_error = e
                logger.warning(
                    "session_persist_failed",
                    session_id=session.session_id,
                    attempt=attempt + 1,
                    max_attempts=self._persist_max_attempts,
                    error=str(e),
                )
                if attempt < self._persist_max_attempts - 1:
                    await asyncio.sleep(self._persist_backoff * (2**attempt))
                continue

            if session.session_id in self._durable:
                self._durable[session.session_id] = session.model_copy(deep=True)
            return

        PERSIST_FAILURES.inc()
        self._rollback(session)
        logger.error("session_rolled_back", session_id=session.session_id)
        raise SessionPersistError(
            f"Failed to persist session {session.session_id}", cause=last_error
        ) from last_error

    def _rollback(self, session: Session) -> None:
        snapshot = self._durable.get(session.session_id)
        if snapshot is None:
            snapshot = Session(session_id=session.session_id, created_at=session.created_at)
        restored = snapshot.model_copy(deep=True)
        for field in Session.model_fields:
            setattr(session, field, getattr(restored, field))

    async def delete(self, session_id: str) -> bool:
        """Delete a session. Must not be called inside ``session()`` for the same ID."""
        async with self._mutex.acquire(session_id):
            deleted = await self._store.delete(session_id)
        if deleted:
            logger.info("session_deleted", session_id=session_id)
        return deleted

    async def list_active(self, *, limit: int = 100) -> list[Session]:
        """List stored sessions, most recently active first."""
        return await self._store.list_active(limit=limit)
