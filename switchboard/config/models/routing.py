"""Routing configuration."""

from pydantic import BaseModel, Field


class RoutingConfig(BaseModel):
    """Routing engine settings."""

    confidence_threshold: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Classifications below this confidence are rejected",
    )
    history_window: int = Field(
        default=10,
        ge=0,
        description="Recent messages passed to the classifier",
    )
