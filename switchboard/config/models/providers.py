"""Capability provider call configuration."""

from pydantic import BaseModel, Field


class ProvidersConfig(BaseModel):
    """Timeouts and retry policy for capability provider calls."""

    call_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Upper bound for a single capability call",
    )
    max_retries: int = Field(
        default=1,
        ge=0,
        le=5,
        description="Retries after the first failed attempt",
    )
    retry_backoff_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Initial backoff between attempts, doubled per retry",
    )
    suggestion_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Upper bound for follow-up suggestion calls",
    )
