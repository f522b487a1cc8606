"""Auth state machine result types."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from switchboard.conversation.models import AuthContext


class AuthAction(str, Enum):
    """Follow-up work the caller must perform after a transition."""

    REQUEST_IDENTIFIER = "request_identifier"
    ISSUE_VERIFICATION_QUESTION = "issue_verification_question"
    RETRY_VERIFICATION = "retry_verification"
    RESUME_PENDING_QUERY = "resume_pending_query"
    NOTIFY_LOCKED_OUT = "notify_locked_out"


class AuthTransition(BaseModel):
    """Outcome of one state machine transition.

    ``context`` is a new AuthContext; the input context is left untouched.
    ``expiry`` is set only when the transition authenticated the session.
    """

    model_config = ConfigDict(frozen=True)

    context: AuthContext
    actions: list[AuthAction] = Field(default_factory=list)
    expiry: datetime | None = None

    def has(self, action: AuthAction) -> bool:
        """Check whether the transition requested ``action``."""
        return action in self.actions
