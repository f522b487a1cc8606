"""Human handoff configuration."""

from pydantic import BaseModel, Field


class HandoffConfig(BaseModel):
    """Handoff ticket waiting behaviour."""

    wait_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        description="How long to wait for a human reply before timing out",
    )
    poll_interval_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Interval between queue polls while waiting",
    )
    close_session_on_resolution: bool = Field(
        default=True,
        description="Delete the session once a human resolves its ticket",
    )
    default_department: str = Field(
        default="customer_service",
        description="Department used when none is suggested",
    )
