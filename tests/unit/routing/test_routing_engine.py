"""Tests for RoutingEngine."""

from datetime import UTC, datetime, timedelta

import pytest

from switchboard.config.models.routing import RoutingConfig
from switchboard.conversation.models import AuthContext, AuthState
from switchboard.routing.engine import RoutingEngine
from switchboard.routing.models import (
    ClassificationResult,
    QuestionCategory,
    RoutingDecision,
)

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=UTC)


@pytest.fixture
def engine() -> RoutingEngine:
    return RoutingEngine()


@pytest.fixture
def authenticated() -> AuthContext:
    return AuthContext(
        state=AuthState.AUTHENTICATED,
        user_id="1234567890",
        verified_factors={"ssn_last_four"},
        authenticated_at=NOW - timedelta(minutes=5),
    )


def _classified(category: QuestionCategory, confidence: float = 0.9) -> ClassificationResult:
    return ClassificationResult(category=category, confidence=confidence)


class TestCategoryRouting:
    """Tests for category-based routing above the confidence threshold."""

    def test_billing_faq(self, engine: RoutingEngine) -> None:
        decision = engine.route(_classified(QuestionCategory.BILLING_FAQ), AuthContext())
        assert decision == RoutingDecision.DISPATCH_FAQ

    def test_account_data_anonymous_requires_auth(self, engine: RoutingEngine) -> None:
        """Balance question while anonymous goes through auth first."""
        decision = engine.route(
            _classified(QuestionCategory.ACCOUNT_DATA, 0.92), AuthContext(), now=NOW
        )
        assert decision == RoutingDecision.REQUIRE_AUTH_THEN_DISPATCH_DATA
        assert decision.requires_auth

    def test_account_data_authenticated(
        self, engine: RoutingEngine, authenticated: AuthContext
    ) -> None:
        decision = engine.route(
            _classified(QuestionCategory.ACCOUNT_DATA),
            authenticated,
            expiry=NOW + timedelta(minutes=10),
            now=NOW,
        )
        assert decision == RoutingDecision.DISPATCH_DATA

    def test_account_data_expired_auth_requires_auth(
        self, engine: RoutingEngine, authenticated: AuthContext
    ) -> None:
        """Authenticated state past its expiry is not trusted."""
        decision = engine.route(
            _classified(QuestionCategory.ACCOUNT_DATA),
            authenticated,
            expiry=NOW - timedelta(seconds=1),
            now=NOW,
        )
        assert decision == RoutingDecision.REQUIRE_AUTH_THEN_DISPATCH_DATA

    def test_service_request(self, engine: RoutingEngine) -> None:
        decision = engine.route(_classified(QuestionCategory.SERVICE_REQUEST), AuthContext())
        assert decision == RoutingDecision.ESCALATE_SERVICE_REQUEST
        assert decision.is_escalation

    def test_out_of_scope(self, engine: RoutingEngine) -> None:
        decision = engine.route(_classified(QuestionCategory.OUT_OF_SCOPE), AuthContext())
        assert decision == RoutingDecision.REJECT_OUT_OF_SCOPE
        assert not decision.is_escalation


class TestConfidenceThreshold:
    """Tests for the low-confidence override."""

    @pytest.mark.parametrize(
        "category",
        [
            QuestionCategory.BILLING_FAQ,
            QuestionCategory.ACCOUNT_DATA,
            QuestionCategory.SERVICE_REQUEST,
            QuestionCategory.OUT_OF_SCOPE,
        ],
    )
    def test_low_confidence_rejects(
        self, engine: RoutingEngine, authenticated: AuthContext, category: QuestionCategory
    ) -> None:
        """Below 0.6 every category except HumanRequested is rejected."""
        decision = engine.route(
            _classified(category, 0.59),
            authenticated,
            expiry=NOW + timedelta(minutes=10),
            now=NOW,
        )
        assert decision == RoutingDecision.REJECT_OUT_OF_SCOPE

    def test_threshold_is_inclusive(self, engine: RoutingEngine) -> None:
        decision = engine.route(_classified(QuestionCategory.BILLING_FAQ, 0.6), AuthContext())
        assert decision == RoutingDecision.DISPATCH_FAQ

    @pytest.mark.parametrize("confidence", [0.0, 0.3, 0.59, 1.0])
    def test_human_requested_always_escalates(
        self, engine: RoutingEngine, confidence: float
    ) -> None:
        """HumanRequested escalates at any confidence, bypassing auth."""
        decision = engine.route(
            _classified(QuestionCategory.HUMAN_REQUESTED, confidence), AuthContext()
        )
        assert decision == RoutingDecision.ESCALATE_HUMAN_REQUESTED

    def test_configured_threshold(self) -> None:
        engine = RoutingEngine.from_config(RoutingConfig(confidence_threshold=0.8))
        assert engine.confidence_threshold == 0.8
        decision = engine.route(_classified(QuestionCategory.BILLING_FAQ, 0.75), AuthContext())
        assert decision == RoutingDecision.REJECT_OUT_OF_SCOPE


class TestPurity:
    """Routing never changes its inputs."""

    def test_inputs_unchanged(self, engine: RoutingEngine) -> None:
        auth = AuthContext()
        classification = _classified(QuestionCategory.ACCOUNT_DATA)

        engine.route(classification, auth)

        assert auth == AuthContext()
        assert classification == _classified(QuestionCategory.ACCOUNT_DATA)

    def test_deterministic(self, engine: RoutingEngine) -> None:
        classification = _classified(QuestionCategory.SERVICE_REQUEST, 0.7)
        decisions = {engine.route(classification, AuthContext()) for _ in range(10)}
        assert decisions == {RoutingDecision.ESCALATE_SERVICE_REQUEST}
