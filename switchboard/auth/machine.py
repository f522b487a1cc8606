"""In-band authentication state machine.

    Anonymous -> InProgress -> IdentityProvided -> Verifying
        -> Authenticated | LockedOut
    Authenticated -> Expired (lazily, on access past expiry)
    Expired -> InProgress (re-authentication)

Every transition is a plain method that takes the current AuthContext and
returns an AuthTransition holding a fresh context plus the follow-up
actions the caller has to carry out. Nothing here touches a session, a
store or a capability provider.
"""

from datetime import datetime, timedelta

from switchboard.auth.models import AuthAction, AuthTransition
from switchboard.config.models.auth import AuthConfig
from switchboard.conversation.models import MAX_FAILED_ATTEMPTS, AuthContext, AuthState, utc_now
from switchboard.errors import InvalidAuthTransitionError
from switchboard.observability.logging import get_logger
from switchboard.observability.metrics import AUTH_LOCKOUTS, AUTH_TRANSITIONS

logger = get_logger(__name__)


class AuthStateMachine:
    """Governs the identity-verification flow of one session at a time."""

    def __init__(
        self,
        required_factors: int = 1,
        max_failed_attempts: int = MAX_FAILED_ATTEMPTS,
        session_ttl: timedelta = timedelta(minutes=30),
    ) -> None:
        """Initialize the state machine.

        Args:
            required_factors: Correct answers needed to authenticate
            max_failed_attempts: Incorrect answers before lockout (at most 3)
            session_ttl: Lifetime of an authenticated session
        """
        if required_factors < 1:
            raise ValueError("required_factors must be at least 1")
        if not 1 <= max_failed_attempts <= MAX_FAILED_ATTEMPTS:
            raise ValueError(f"max_failed_attempts must be between 1 and {MAX_FAILED_ATTEMPTS}")

        self._required_factors = required_factors
        self._max_failed_attempts = max_failed_attempts
        self._session_ttl = session_ttl

    @classmethod
    def from_config(cls, config: AuthConfig) -> "AuthStateMachine":
        """Build a state machine from the auth config section."""
        return cls(
            required_factors=config.required_factors,
            max_failed_attempts=config.max_failed_attempts,
            session_ttl=timedelta(seconds=config.session_ttl_seconds),
        )

    @property
    def required_factors(self) -> int:
        return self._required_factors

    @property
    def session_ttl(self) -> timedelta:
        return self._session_ttl

    def remaining_attempts(self, ctx: AuthContext) -> int:
        """Incorrect answers still allowed before lockout."""
        return max(self._max_failed_attempts - ctx.failed_attempts, 0)

    # =========================================================================
    # Transitions
    # =========================================================================

    def begin(self, ctx: AuthContext) -> AuthTransition:
        """Start (or restart after expiry) identification."""
        self._require(ctx, "begin", AuthState.ANONYMOUS, AuthState.EXPIRED)

        new = AuthContext(state=AuthState.IN_PROGRESS)
        return self._emit(ctx, new, [AuthAction.REQUEST_IDENTIFIER])

    def provide_identity(
        self,
        ctx: AuthContext,
        identifying_info: str,
        user_id: str,
        customer_name: str | None = None,
    ) -> AuthTransition:
        """Record identifying info that resolved to a candidate account."""
        self._require(ctx, "provide_identity", AuthState.IN_PROGRESS)

        new = ctx.model_copy(deep=True)
        new.identifying_info = identifying_info
        new.user_id = user_id
        new.customer_name = customer_name
        new.failed_attempts = 0
        new.verified_factors = set()
        new.pending_factor = None
        new.state = AuthState.IDENTITY_PROVIDED
        return self._emit(ctx, new, [AuthAction.ISSUE_VERIFICATION_QUESTION])

    def question_issued(self, ctx: AuthContext, factor: str) -> AuthTransition:
        """Record that a verification question about ``factor`` was asked."""
        self._require(
            ctx, "question_issued", AuthState.IDENTITY_PROVIDED, AuthState.VERIFYING
        )

        new = ctx.model_copy(deep=True)
        new.pending_factor = factor
        new.state = AuthState.VERIFYING
        return self._emit(ctx, new, [])

    def record_answer(
        self,
        ctx: AuthContext,
        correct: bool,
        now: datetime | None = None,
    ) -> AuthTransition:
        """Apply the outcome of checking a verification answer."""
        self._require(ctx, "record_answer", AuthState.VERIFYING)

        new = ctx.model_copy(deep=True)

        if correct:
            factor = ctx.pending_factor or f"factor_{len(ctx.verified_factors) + 1}"
            new.verified_factors = {*ctx.verified_factors, factor}
            new.pending_factor = None

            if len(new.verified_factors) < self._required_factors:
                return self._emit(ctx, new, [AuthAction.ISSUE_VERIFICATION_QUESTION])

            authenticated_at = now or utc_now()
            new.authenticated_at = authenticated_at
            new.state = AuthState.AUTHENTICATED
            return self._emit(
                ctx,
                new,
                [AuthAction.RESUME_PENDING_QUERY],
                expiry=authenticated_at + self._session_ttl,
            )

        new.failed_attempts = min(ctx.failed_attempts + 1, MAX_FAILED_ATTEMPTS)
        if new.failed_attempts >= self._max_failed_attempts:
            new.failed_attempts = MAX_FAILED_ATTEMPTS
            new.pending_factor = None
            new.state = AuthState.LOCKED_OUT
            AUTH_LOCKOUTS.inc()
            return self._emit(ctx, new, [AuthAction.NOTIFY_LOCKED_OUT])

        return self._emit(ctx, new, [AuthAction.RETRY_VERIFICATION])

    def expire(self, ctx: AuthContext) -> AuthTransition:
        """Lapse the session after its expiry.

        No-op for Anonymous and Expired. LockedOut stays LockedOut so that
        waiting out the TTL never unlocks a session.
        """
        if ctx.state in (AuthState.ANONYMOUS, AuthState.EXPIRED, AuthState.LOCKED_OUT):
            return AuthTransition(context=ctx.model_copy(deep=True))

        new = ctx.model_copy(deep=True)
        new.verified_factors = set()
        new.pending_factor = None
        new.failed_attempts = 0
        new.authenticated_at = None
        new.state = AuthState.EXPIRED
        return self._emit(ctx, new, [])

    def restart(self, ctx: AuthContext) -> AuthTransition:
        """Recover from a defect by returning to Anonymous.

        LockedOut is kept; only ``reset`` leaves it.
        """
        if ctx.state == AuthState.LOCKED_OUT:
            return AuthTransition(context=ctx.model_copy(deep=True))
        return self._emit(ctx, AuthContext(), [])

    def reset(self, ctx: AuthContext) -> AuthTransition:
        """Explicit external reset, e.g. a human-assisted unlock."""
        return self._emit(ctx, AuthContext(), [])

    # =========================================================================
    # Helpers
    # =========================================================================

    def _require(self, ctx: AuthContext, attempted: str, *allowed: AuthState) -> None:
        if ctx.state not in allowed:
            raise InvalidAuthTransitionError(ctx.state.value, attempted)

    def _emit(
        self,
        old: AuthContext,
        new: AuthContext,
        actions: list[AuthAction],
        expiry: datetime | None = None,
    ) -> AuthTransition:
        if old.state != new.state:
            AUTH_TRANSITIONS.labels(
                from_state=old.state.value, to_state=new.state.value
            ).inc()
            logger.info(
                "auth_transition",
                from_state=old.state.value,
                to_state=new.state.value,
                failed_attempts=new.failed_attempts,
                verified_factors=len(new.verified_factors),
            )
        return AuthTransition(context=new, actions=actions, expiry=expiry)
