"""Bootstrap module for wiring a full Switchboard stack from settings.

Handles:
- Configuring logging from the observability section
- Creating stores, the handoff queue and the session mutex (in-memory or Redis)
- Creating the session manager, auth machine, routing engine and coordinator
- Creating the Orchestrator with the given capability providers

Example usage:

    from switchboard.bootstrap import bootstrap

    orchestrator, ctx = bootstrap()

    response = await orchestrator.handle_message("session-1", "What is my balance?")
"""

from dataclasses import dataclass

import redis.asyncio as redis

from switchboard.auth.machine import AuthStateMachine
from switchboard.config import Settings, get_settings
from switchboard.conversation.manager import SessionManager
from switchboard.conversation.store import SessionStore
from switchboard.conversation.stores.inmemory import InMemorySessionStore
from switchboard.conversation.stores.redis import RedisSessionStore
from switchboard.handoff.coordinator import HandoffCoordinator
from switchboard.handoff.queue import HandoffQueue
from switchboard.handoff.queues.inmemory import InMemoryHandoffQueue
from switchboard.handoff.queues.redis import RedisHandoffQueue
from switchboard.observability.logging import get_logger, setup_logging
from switchboard.orchestration.models import Capabilities
from switchboard.orchestration.orchestrator import Orchestrator
from switchboard.providers.base import CustomerNotifier, Summarizer
from switchboard.providers.invoker import ProviderInvoker
from switchboard.providers.mock import (
    KeywordClassifier,
    MockCustomerDirectory,
    MockFAQProvider,
    MockSuggestionProvider,
    MockSummarizer,
)
from switchboard.runtime.mutex import (
    InProcessSessionMutex,
    RedisSessionMutex,
    SessionMutex,
)

logger = get_logger(__name__)


@dataclass
class BootstrapContext:
    """Components created by bootstrap, exposed for tests and tooling."""

    settings: Settings
    session_store: SessionStore
    handoff_queue: HandoffQueue
    mutex: SessionMutex
    sessions: SessionManager
    handoff: HandoffCoordinator
    redis_client: redis.Redis | None


def mock_capabilities() -> Capabilities:
    """Deterministic capability set backed by the mock customer directory."""
    directory = MockCustomerDirectory()
    return Capabilities(
        classifier=KeywordClassifier(),
        faq=MockFAQProvider(),
        identity=directory,
        verification=directory,
        account_data=directory,
        suggestions=MockSuggestionProvider(),
    )


def bootstrap(
    settings: Settings | None = None,
    capabilities: Capabilities | None = None,
    summarizer: Summarizer | None = None,
    notifier: CustomerNotifier | None = None,
    configure_logging: bool = True,
) -> tuple[Orchestrator, BootstrapContext]:
    """Bootstrap a fully-configured Orchestrator.

    Args:
        settings: Settings to use (default: get_settings())
        capabilities: Capability providers (default: mock_capabilities())
        summarizer: Handoff summarizer (default: MockSummarizer)
        notifier: Out-of-band customer notifier (default: none)
        configure_logging: Whether to call setup_logging

    Returns:
        Tuple of (Orchestrator, BootstrapContext)
    """
    settings = settings or get_settings()
    storage = settings.storage

    if configure_logging:
        log_config = settings.observability.logging
        setup_logging(
            level=log_config.level,
            format=log_config.format,
            redact_pii=log_config.redact_pii,
        )

    uses_redis = "redis" in (
        storage.session_backend,
        storage.handoff_backend,
        storage.lock.backend,
    )
    redis_client = redis.from_url(storage.redis.url) if uses_redis else None

    session_store: SessionStore
    if storage.session_backend == "redis" and redis_client is not None:
        session_store = RedisSessionStore(redis_client, storage.redis)
    else:
        session_store = InMemorySessionStore()

    handoff_queue: HandoffQueue
    if storage.handoff_backend == "redis" and redis_client is not None:
        handoff_queue = RedisHandoffQueue(redis_client, storage.redis)
    else:
        handoff_queue = InMemoryHandoffQueue()

    mutex: SessionMutex
    if storage.lock.backend == "redis" and redis_client is not None:
        mutex = RedisSessionMutex(
            redis_client,
            lock_timeout=storage.lock.lock_timeout_seconds,
            blocking_timeout=storage.lock.blocking_timeout_seconds,
        )
    else:
        mutex = InProcessSessionMutex()

    auth_machine = AuthStateMachine.from_config(settings.auth)
    invoker = ProviderInvoker.from_config(settings.providers)
    sessions = SessionManager.from_config(
        storage, store=session_store, mutex=mutex, auth_machine=auth_machine
    )
    handoff = HandoffCoordinator.from_config(
        settings.handoff,
        queue=handoff_queue,
        mutex=mutex,
        invoker=invoker,
        summarizer=summarizer or MockSummarizer(),
        notifier=notifier,
    )

    orchestrator = Orchestrator.from_config(
        routing_config=settings.routing,
        providers_config=settings.providers,
        handoff_config=settings.handoff,
        sessions=sessions,
        auth_machine=auth_machine,
        handoff=handoff,
        invoker=invoker,
        capabilities=capabilities or mock_capabilities(),
    )

    logger.info(
        "orchestrator_bootstrapped",
        session_backend=storage.session_backend,
        handoff_backend=storage.handoff_backend,
        lock_backend=storage.lock.backend,
    )

    ctx = BootstrapContext(
        settings=settings,
        session_store=session_store,
        handoff_queue=handoff_queue,
        mutex=mutex,
        sessions=sessions,
        handoff=handoff,
        redis_client=redis_client,
    )
    return orchestrator, ctx
