"""Configuration model exports.

    from switchboard.config.models import AuthConfig, StorageConfig
"""

from switchboard.config.models.auth import AuthConfig
from switchboard.config.models.handoff import HandoffConfig
from switchboard.config.models.observability import (
    LoggingConfig,
    MetricsConfig,
    ObservabilityConfig,
)
from switchboard.config.models.providers import ProvidersConfig
from switchboard.config.models.routing import RoutingConfig
from switchboard.config.models.storage import (
    LockConfig,
    RedisConfig,
    StorageConfig,
)

__all__ = [
    "AuthConfig",
    "HandoffConfig",
    "LockConfig",
    "LoggingConfig",
    "MetricsConfig",
    "ObservabilityConfig",
    "ProvidersConfig",
    "RedisConfig",
    "RoutingConfig",
    "StorageConfig",
]
