"""Unit tests for configuration Pydantic models."""

import pytest
from pydantic import ValidationError

from switchboard.config.models import (
    AuthConfig,
    HandoffConfig,
    LockConfig,
    LoggingConfig,
    MetricsConfig,
    ObservabilityConfig,
    ProvidersConfig,
    RedisConfig,
    RoutingConfig,
    StorageConfig,
)


class TestAuthConfig:
    """Tests for AuthConfig model."""

    def test_defaults(self) -> None:
        """Default values are correct."""
        config = AuthConfig()
        assert config.required_factors == 1
        assert config.max_failed_attempts == 3
        assert config.session_ttl_seconds == 1800

    def test_max_failed_attempts_capped_at_three(self) -> None:
        """max_failed_attempts cannot exceed 3."""
        with pytest.raises(ValidationError):
            AuthConfig(max_failed_attempts=4)

    def test_required_factors_must_be_positive(self) -> None:
        """required_factors must be >= 1."""
        with pytest.raises(ValidationError):
            AuthConfig(required_factors=0)

    def test_session_ttl_must_be_positive(self) -> None:
        """session_ttl_seconds must be > 0."""
        with pytest.raises(ValidationError):
            AuthConfig(session_ttl_seconds=0)


class TestRoutingConfig:
    """Tests for RoutingConfig model."""

    def test_defaults(self) -> None:
        """Default values are correct."""
        config = RoutingConfig()
        assert config.confidence_threshold == 0.6
        assert config.history_window == 10

    def test_threshold_range(self) -> None:
        """confidence_threshold must be within [0, 1]."""
        with pytest.raises(ValidationError):
            RoutingConfig(confidence_threshold=1.5)
        with pytest.raises(ValidationError):
            RoutingConfig(confidence_threshold=-0.1)


class TestProvidersConfig:
    """Tests for ProvidersConfig model."""

    def test_defaults(self) -> None:
        """Default values are correct."""
        config = ProvidersConfig()
        assert config.call_timeout_seconds == 30.0
        assert config.max_retries == 1
        assert config.retry_backoff_seconds == 0.5
        assert config.suggestion_timeout_seconds == 5.0

    def test_timeout_must_be_positive(self) -> None:
        """call_timeout_seconds must be > 0."""
        with pytest.raises(ValidationError):
            ProvidersConfig(call_timeout_seconds=0)

    def test_retries_bounded(self) -> None:
        """max_retries must be between 0 and 5."""
        assert ProvidersConfig(max_retries=0).max_retries == 0
        with pytest.raises(ValidationError):
            ProvidersConfig(max_retries=6)


class TestHandoffConfig:
    """Tests for HandoffConfig model."""

    def test_defaults(self) -> None:
        """Default values are correct."""
        config = HandoffConfig()
        assert config.wait_timeout_seconds == 300.0
        assert config.poll_interval_seconds == 1.0
        assert config.close_session_on_resolution is True
        assert config.default_department == "customer_service"

    def test_poll_interval_must_be_positive(self) -> None:
        """poll_interval_seconds must be > 0."""
        with pytest.raises(ValidationError):
            HandoffConfig(poll_interval_seconds=0)


class TestStorageConfig:
    """Tests for StorageConfig and its nested sections."""

    def test_defaults(self) -> None:
        """Everything defaults to in-memory backends."""
        config = StorageConfig()
        assert config.session_backend == "inmemory"
        assert config.handoff_backend == "inmemory"
        assert config.lock.backend == "inmemory"
        assert config.persist_max_attempts == 3

    def test_invalid_backend(self) -> None:
        """Only inmemory and redis backends are accepted."""
        with pytest.raises(ValidationError):
            StorageConfig(session_backend="postgres")

    def test_redis_defaults(self) -> None:
        """Redis key layout defaults."""
        config = RedisConfig()
        assert config.url == "redis://localhost:6379/0"
        assert config.session_key_prefix == "session"
        assert config.ticket_key_prefix == "handoff"

    def test_lock_timeouts_must_be_positive(self) -> None:
        """Lock timeouts must be > 0."""
        with pytest.raises(ValidationError):
            LockConfig(lock_timeout_seconds=0)

    def test_persist_attempts_at_least_one(self) -> None:
        """persist_max_attempts must be >= 1."""
        with pytest.raises(ValidationError):
            StorageConfig(persist_max_attempts=0)

    def test_nested_from_dict(self) -> None:
        """Nested sections are built from plain dicts."""
        config = StorageConfig.model_validate(
            {"session_backend": "redis", "redis": {"url": "redis://cache:6379/2"}}
        )
        assert config.session_backend == "redis"
        assert config.redis.url == "redis://cache:6379/2"
        assert config.redis.session_key_prefix == "session"


class TestLoggingConfig:
    """Tests for LoggingConfig model."""

    def test_defaults(self) -> None:
        """Default values are correct."""
        config = LoggingConfig()
        assert config.level == "INFO"
        assert config.format == "json"
        assert config.redact_pii is True

    def test_invalid_level(self) -> None:
        """Unknown log levels are rejected."""
        with pytest.raises(ValidationError):
            LoggingConfig(level="VERBOSE")

    def test_invalid_format(self) -> None:
        """Only json and console formats are accepted."""
        with pytest.raises(ValidationError):
            LoggingConfig(format="xml")


class TestMetricsConfig:
    """Tests for MetricsConfig model."""

    def test_defaults(self) -> None:
        """Default values are correct."""
        config = MetricsConfig()
        assert config.enabled is True
        assert config.port == 9090

    def test_port_range(self) -> None:
        """Port must be a valid TCP port."""
        with pytest.raises(ValidationError):
            MetricsConfig(port=0)
        with pytest.raises(ValidationError):
            MetricsConfig(port=70000)


class TestObservabilityConfig:
    """Tests for ObservabilityConfig model."""

    def test_nested_defaults(self) -> None:
        """Nested sections get their defaults."""
        config = ObservabilityConfig()
        assert config.logging.level == "INFO"
        assert config.metrics.enabled is True
