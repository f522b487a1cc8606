"""Tests for AuthStateMachine transitions."""

from datetime import UTC, datetime, timedelta

import pytest

from switchboard.auth.machine import AuthStateMachine
from switchboard.auth.models import AuthAction
from switchboard.config.models.auth import AuthConfig
from switchboard.conversation.models import AuthContext, AuthState
from switchboard.errors import InvalidAuthTransitionError

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=UTC)


def _verifying(machine: AuthStateMachine, factor: str = "ssn_last_four") -> AuthContext:
    ctx = machine.begin(AuthContext()).context
    ctx = machine.provide_identity(ctx, "555-1234", "1234567890", "John Smith").context
    return machine.question_issued(ctx, factor).context


# =============================================================================
# Tests: construction
# =============================================================================


class TestAuthStateMachineInit:
    """Tests for AuthStateMachine construction."""

    def test_defaults(self) -> None:
        """Defaults to one factor and a 30 minute TTL."""
        machine = AuthStateMachine()
        assert machine.required_factors == 1
        assert machine.session_ttl == timedelta(minutes=30)

    def test_from_config(self) -> None:
        """Builds from the auth config section."""
        machine = AuthStateMachine.from_config(
            AuthConfig(required_factors=2, max_failed_attempts=2, session_ttl_seconds=60)
        )
        assert machine.required_factors == 2
        assert machine.session_ttl == timedelta(seconds=60)

    def test_rejects_more_than_three_attempts(self) -> None:
        """The failed-attempt ceiling cannot be raised above three."""
        with pytest.raises(ValueError):
            AuthStateMachine(max_failed_attempts=4)

    def test_rejects_zero_factors(self) -> None:
        with pytest.raises(ValueError):
            AuthStateMachine(required_factors=0)


# =============================================================================
# Tests: happy path
# =============================================================================


class TestAuthFlow:
    """Tests for the identification and verification flow."""

    def test_begin_from_anonymous(self, auth_machine: AuthStateMachine) -> None:
        """Anonymous moves to InProgress and asks for an identifier."""
        transition = auth_machine.begin(AuthContext())
        assert transition.context.state == AuthState.IN_PROGRESS
        assert transition.has(AuthAction.REQUEST_IDENTIFIER)

    def test_begin_from_expired(self, auth_machine: AuthStateMachine) -> None:
        """Expired sessions can re-authenticate."""
        transition = auth_machine.begin(AuthContext(state=AuthState.EXPIRED))
        assert transition.context.state == AuthState.IN_PROGRESS

    def test_provide_identity(self, auth_machine: AuthStateMachine) -> None:
        """Identity is recorded and a question is requested."""
        ctx = auth_machine.begin(AuthContext()).context
        transition = auth_machine.provide_identity(ctx, "555-1234", "1234567890", "John Smith")

        assert transition.context.state == AuthState.IDENTITY_PROVIDED
        assert transition.context.identifying_info == "555-1234"
        assert transition.context.user_id == "1234567890"
        assert transition.context.customer_name == "John Smith"
        assert transition.has(AuthAction.ISSUE_VERIFICATION_QUESTION)

    def test_question_issued_records_factor(self, auth_machine: AuthStateMachine) -> None:
        ctx = _verifying(auth_machine, "date_of_birth")
        assert ctx.state == AuthState.VERIFYING
        assert ctx.pending_factor == "date_of_birth"

    def test_correct_answer_authenticates(self, auth_machine: AuthStateMachine) -> None:
        """One correct answer authenticates with the default k=1."""
        ctx = _verifying(auth_machine)
        transition = auth_machine.record_answer(ctx, correct=True, now=NOW)

        assert transition.context.state == AuthState.AUTHENTICATED
        assert transition.context.authenticated_at == NOW
        assert transition.context.verified_factors == {"ssn_last_four"}
        assert transition.expiry == NOW + timedelta(minutes=30)
        assert transition.has(AuthAction.RESUME_PENDING_QUERY)

    def test_two_factors_required(self) -> None:
        """With k=2 the first correct answer asks for another factor."""
        machine = AuthStateMachine(required_factors=2)
        ctx = _verifying(machine, "ssn_last_four")

        first = machine.record_answer(ctx, correct=True, now=NOW)
        assert first.context.state == AuthState.VERIFYING
        assert first.has(AuthAction.ISSUE_VERIFICATION_QUESTION)
        assert first.expiry is None

        ctx = machine.question_issued(first.context, "date_of_birth").context
        second = machine.record_answer(ctx, correct=True, now=NOW)
        assert second.context.state == AuthState.AUTHENTICATED
        assert second.context.verified_factors == {"ssn_last_four", "date_of_birth"}

    def test_input_context_never_mutated(self, auth_machine: AuthStateMachine) -> None:
        """Transitions return new contexts."""
        ctx = _verifying(auth_machine)
        before = ctx.model_copy(deep=True)

        auth_machine.record_answer(ctx, correct=False)
        auth_machine.record_answer(ctx, correct=True)

        assert ctx == before


# =============================================================================
# Tests: failures and lockout
# =============================================================================


class TestLockout:
    """Tests for failed attempts and LockedOut."""

    def test_incorrect_answer_retries(self, auth_machine: AuthStateMachine) -> None:
        ctx = _verifying(auth_machine)
        transition = auth_machine.record_answer(ctx, correct=False)

        assert transition.context.state == AuthState.VERIFYING
        assert transition.context.failed_attempts == 1
        assert transition.has(AuthAction.RETRY_VERIFICATION)
        assert auth_machine.remaining_attempts(transition.context) == 2

    def test_three_failures_lock_out(self, auth_machine: AuthStateMachine) -> None:
        """Three consecutive incorrect answers lock the session out."""
        ctx = _verifying(auth_machine)
        for _ in range(2):
            ctx = auth_machine.record_answer(ctx, correct=False).context
            assert ctx.state == AuthState.VERIFYING

        transition = auth_machine.record_answer(ctx, correct=False)
        assert transition.context.state == AuthState.LOCKED_OUT
        assert transition.context.failed_attempts == 3
        assert transition.has(AuthAction.NOTIFY_LOCKED_OUT)

    def test_locked_out_rejects_answers(self, auth_machine: AuthStateMachine) -> None:
        """No further verification attempts are accepted once locked out."""
        locked = AuthContext(state=AuthState.LOCKED_OUT, failed_attempts=3)
        with pytest.raises(InvalidAuthTransitionError):
            auth_machine.record_answer(locked, correct=True)

    def test_locked_out_survives_begin_expire_restart(
        self, auth_machine: AuthStateMachine
    ) -> None:
        """LockedOut leaves only through reset."""
        locked = AuthContext(state=AuthState.LOCKED_OUT, failed_attempts=3)

        with pytest.raises(InvalidAuthTransitionError):
            auth_machine.begin(locked)
        assert auth_machine.expire(locked).context.state == AuthState.LOCKED_OUT
        assert auth_machine.restart(locked).context.state == AuthState.LOCKED_OUT

        reset = auth_machine.reset(locked).context
        assert reset.state == AuthState.ANONYMOUS
        assert reset.failed_attempts == 0

    def test_lower_attempt_ceiling(self) -> None:
        """A configured ceiling below three locks out sooner."""
        machine = AuthStateMachine(max_failed_attempts=1)
        ctx = _verifying(machine)
        transition = machine.record_answer(ctx, correct=False)
        assert transition.context.state == AuthState.LOCKED_OUT
        assert transition.context.failed_attempts == 3


# =============================================================================
# Tests: expiry and invalid transitions
# =============================================================================


class TestExpiryAndInvalidTransitions:
    """Tests for expire and guarded transitions."""

    def test_expire_authenticated(self, auth_machine: AuthStateMachine) -> None:
        ctx = auth_machine.record_answer(_verifying(auth_machine), correct=True, now=NOW).context
        expired = auth_machine.expire(ctx).context

        assert expired.state == AuthState.EXPIRED
        assert expired.verified_factors == set()
        assert expired.authenticated_at is None

    def test_expire_anonymous_is_noop(self, auth_machine: AuthStateMachine) -> None:
        assert auth_machine.expire(AuthContext()).context.state == AuthState.ANONYMOUS

    @pytest.mark.parametrize(
        "state",
        [AuthState.IN_PROGRESS, AuthState.VERIFYING, AuthState.AUTHENTICATED],
    )
    def test_begin_rejected_mid_flow(
        self, auth_machine: AuthStateMachine, state: AuthState
    ) -> None:
        with pytest.raises(InvalidAuthTransitionError) as exc_info:
            auth_machine.begin(AuthContext(state=state))
        assert exc_info.value.current_state == state.value
        assert exc_info.value.attempted == "begin"

    def test_answer_before_question_rejected(self, auth_machine: AuthStateMachine) -> None:
        ctx = auth_machine.begin(AuthContext()).context
        with pytest.raises(InvalidAuthTransitionError):
            auth_machine.record_answer(ctx, correct=True)

    def test_restart_returns_to_anonymous(self, auth_machine: AuthStateMachine) -> None:
        ctx = _verifying(auth_machine)
        assert auth_machine.restart(ctx).context == AuthContext()
