"""Session models for the conversation domain."""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from switchboard.conversation.models.enums import AuthState, MessageRole

# Mirrors the failed-attempt ceiling enforced by the auth state machine
MAX_FAILED_ATTEMPTS = 3

# Auth states in which the next user message is an auth-flow answer
AUTH_FLOW_STATES: frozenset[AuthState] = frozenset({
    AuthState.IN_PROGRESS,
    AuthState.IDENTITY_PROVIDED,
    AuthState.VERIFYING,
})


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


class ConversationMessage(BaseModel):
    """A single message in the conversation history."""

    model_config = ConfigDict(frozen=True)

    role: MessageRole = Field(..., description="Who sent the message")
    content: str = Field(..., description="Message text")
    timestamp: datetime = Field(default_factory=utc_now, description="Arrival time")


class AuthContext(BaseModel):
    """Identity verification state embedded in a session.

    Mutated only through AuthStateMachine transitions, which return a new
    context rather than changing this one in place.
    """

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    state: AuthState = Field(default=AuthState.ANONYMOUS, description="Current auth state")
    identifying_info: str | None = Field(
        default=None, description="Phone, email or account number supplied by the user"
    )
    verified_factors: set[str] = Field(
        default_factory=set, description="Factors answered correctly"
    )
    failed_attempts: int = Field(
        default=0,
        ge=0,
        le=MAX_FAILED_ATTEMPTS,
        description="Consecutive incorrect answers",
    )
    authenticated_at: datetime | None = Field(
        default=None, description="When authentication completed"
    )
    user_id: str | None = Field(default=None, description="Resolved customer account id")
    customer_name: str | None = Field(default=None, description="Resolved customer name")
    pending_factor: str | None = Field(
        default=None, description="Factor asked by the last verification question"
    )

    @property
    def in_flow(self) -> bool:
        """True while the user is answering identification or verification prompts."""
        return self.state in AUTH_FLOW_STATES

    def is_authenticated(self, expiry: datetime | None, now: datetime | None = None) -> bool:
        """True for an Authenticated context whose expiry has not passed."""
        if self.state != AuthState.AUTHENTICATED or expiry is None:
            return False
        return expiry > (now or utc_now())


class Session(BaseModel):
    """Runtime conversation state.

    Tracks authentication, the query parked behind an auth detour, the
    append-only message history and any open handoff ticket.
    """

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    session_id: str = Field(..., min_length=1, description="Unique conversation identifier")
    created_at: datetime = Field(default_factory=utc_now, description="Creation time")
    last_interaction: datetime = Field(default_factory=utc_now, description="Last activity")
    expiry: datetime | None = Field(
        default=None, description="When the authenticated session lapses"
    )
    auth: AuthContext = Field(default_factory=AuthContext, description="Auth state")
    pending_query: str | None = Field(
        default=None, description="Question to replay once authenticated"
    )
    history: list[ConversationMessage] = Field(
        default_factory=list, description="Messages in arrival order"
    )
    active_ticket_id: str | None = Field(
        default=None, description="Open human handoff ticket"
    )

    def recent_history(self, window: int) -> list[ConversationMessage]:
        """Return the last ``window`` messages."""
        if window <= 0:
            return []
        return list(self.history[-window:])
