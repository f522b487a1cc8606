"""Shared test fixtures for the Switchboard test suite."""

import os
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from switchboard.auth.machine import AuthStateMachine
from switchboard.conversation.manager import SessionManager
from switchboard.conversation.stores.inmemory import InMemorySessionStore
from switchboard.handoff.coordinator import HandoffCoordinator
from switchboard.handoff.queues.inmemory import InMemoryHandoffQueue
from switchboard.providers.invoker import ProviderInvoker
from switchboard.providers.mock import MockSummarizer, RecordingNotifier
from switchboard.runtime.mutex import InProcessSessionMutex


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Create a temporary config directory for testing."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def mock_toml_files(test_config_dir: Path) -> Callable[[dict[str, str]], None]:
    """Factory fixture to create TOML files in the test config directory.

    Usage:
        def test_something(mock_toml_files):
            mock_toml_files({
                "default.toml": "app_name = 'test'",
                "development.toml": "debug = true",
            })
    """

    def _create_toml_files(files: dict[str, str]) -> None:
        for filename, content in files.items():
            toml_file = test_config_dir / filename
            toml_file.write_text(content)

    return _create_toml_files


class EnvOverrideContext:
    """Context manager for temporarily setting environment variables."""

    def __init__(self, overrides: dict[str, str]) -> None:
        self.overrides = overrides
        self.original_env: dict[str, str | None] = {}

    def __enter__(self) -> None:
        for key, value in self.overrides.items():
            self.original_env[key] = os.environ.get(key)
            os.environ[key] = value

    def __exit__(self, *args: Any) -> None:
        for key in self.overrides:
            original = self.original_env[key]
            if original is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = original


@pytest.fixture
def env_override() -> Generator[Callable[[dict[str, str]], EnvOverrideContext], None, None]:
    """Context manager for temporarily setting environment variables.

    Usage:
        def test_something(env_override):
            with env_override({"SWITCHBOARD_DEBUG": "true"}):
                # test code here
    """

    def _env_override(overrides: dict[str, str]) -> EnvOverrideContext:
        return EnvOverrideContext(overrides)

    yield _env_override


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Clear the settings cache before and after each test."""
    from switchboard.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# Component fixtures
# =============================================================================


@pytest.fixture
def auth_machine() -> AuthStateMachine:
    return AuthStateMachine()


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def mutex() -> InProcessSessionMutex:
    return InProcessSessionMutex()


@pytest.fixture
def invoker() -> ProviderInvoker:
    """Invoker with short timeouts and no backoff delay."""
    return ProviderInvoker(call_timeout=1.0, max_retries=1, retry_backoff=0.0)


@pytest.fixture
def session_manager(
    session_store: InMemorySessionStore,
    mutex: InProcessSessionMutex,
    auth_machine: AuthStateMachine,
) -> SessionManager:
    return SessionManager(
        session_store, mutex, auth_machine, persist_max_attempts=3, persist_backoff=0.0
    )


@pytest.fixture
def handoff_queue() -> InMemoryHandoffQueue:
    return InMemoryHandoffQueue()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def coordinator(
    handoff_queue: InMemoryHandoffQueue,
    mutex: InProcessSessionMutex,
    invoker: ProviderInvoker,
    notifier: RecordingNotifier,
) -> HandoffCoordinator:
    return HandoffCoordinator(
        handoff_queue,
        mutex,
        invoker,
        MockSummarizer(),
        notifier,
        wait_timeout=5.0,
        poll_interval=0.01,
    )
