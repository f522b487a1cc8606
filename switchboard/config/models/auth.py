"""In-band authentication configuration."""

from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    """Identity verification settings.

    The failed-attempt ceiling is fixed at 3; a lower value may be
    configured for stricter deployments but never a higher one.
    """

    required_factors: int = Field(
        default=1,
        ge=1,
        description="Correct verification answers needed to authenticate",
    )
    max_failed_attempts: int = Field(
        default=3,
        ge=1,
        le=3,
        description="Incorrect answers before the session is locked out",
    )
    session_ttl_seconds: int = Field(
        default=1800,
        gt=0,
        description="Lifetime of an authenticated session (seconds)",
    )
