"""Storage backend configuration models."""

from typing import Literal

from pydantic import BaseModel, Field

BackendType = Literal["inmemory", "redis"]


class RedisConfig(BaseModel):
    """Redis connection and key layout."""

    url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )
    session_key_prefix: str = Field(
        default="session",
        description="Prefix for session keys",
    )
    ticket_key_prefix: str = Field(
        default="handoff",
        description="Prefix for handoff ticket keys",
    )
    session_ttl_seconds: int = Field(
        default=604800,  # 7 days
        gt=0,
        description="Time-to-live for persisted session records",
    )
    closed_ticket_ttl_seconds: int = Field(
        default=604800,  # 7 days
        gt=0,
        description="How long closed tickets and their replies are kept",
    )


class LockConfig(BaseModel):
    """Per-session mutex configuration."""

    backend: BackendType = Field(default="inmemory", description="Lock backend")
    lock_timeout_seconds: int = Field(
        default=30,
        gt=0,
        description="How long a distributed lock is held before auto-release",
    )
    blocking_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="How long to wait when acquiring a distributed lock",
    )


class StorageConfig(BaseModel):
    """Backends for sessions, tickets and locks."""

    session_backend: BackendType = Field(
        default="inmemory",
        description="Session store backend",
    )
    handoff_backend: BackendType = Field(
        default="inmemory",
        description="Handoff queue backend",
    )
    redis: RedisConfig = Field(default_factory=RedisConfig)
    lock: LockConfig = Field(default_factory=LockConfig)
    persist_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts for each session save before rolling back",
    )
    persist_backoff_seconds: float = Field(
        default=0.1,
        ge=0,
        description="Initial backoff between save attempts",
    )
