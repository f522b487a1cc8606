"""Routing engine.

Maps a classification result plus the session's auth state to a routing
decision. Rules, in precedence order:

1. HumanRequested -> escalate (any confidence, bypasses auth)
2. confidence below threshold -> reject as out of scope
3. BillingFAQ -> FAQ
4. AccountData -> data when authenticated and unexpired, else auth first
5. ServiceRequest -> escalate
6. OutOfScope -> reject

The engine never mutates its inputs; storing the pending query on an
auth detour is the caller's job.
"""

from datetime import datetime

from switchboard.config.models.routing import RoutingConfig
from switchboard.conversation.models import AuthContext, utc_now
from switchboard.routing.models import (
    ClassificationResult,
    QuestionCategory,
    RoutingDecision,
)


class RoutingEngine:
    """Deterministic, side-effect-free routing."""

    def __init__(self, confidence_threshold: float = 0.6) -> None:
        self._confidence_threshold = confidence_threshold

    @classmethod
    def from_config(cls, config: RoutingConfig) -> "RoutingEngine":
        return cls(confidence_threshold=config.confidence_threshold)

    @property
    def confidence_threshold(self) -> float:
        return self._confidence_threshold

    def route(
        self,
        classification: ClassificationResult,
        auth: AuthContext,
        *,
        expiry: datetime | None = None,
        now: datetime | None = None,
    ) -> RoutingDecision:
        """Decide where a classified message goes.

        Args:
            classification: Classifier output for the message
            auth: Current auth context of the session
            expiry: Session expiry used to judge whether auth is still valid
            now: Reference time (defaults to current UTC time)
        """
        category = classification.category

        if category == QuestionCategory.HUMAN_REQUESTED:
            return RoutingDecision.ESCALATE_HUMAN_REQUESTED

        if classification.confidence < self._confidence_threshold:
            return RoutingDecision.REJECT_OUT_OF_SCOPE

        if category == QuestionCategory.BILLING_FAQ:
            return RoutingDecision.DISPATCH_FAQ

        if category == QuestionCategory.ACCOUNT_DATA:
            if auth.is_authenticated(expiry, now or utc_now()):
                return RoutingDecision.DISPATCH_DATA
            return RoutingDecision.REQUIRE_AUTH_THEN_DISPATCH_DATA

        if category == QuestionCategory.SERVICE_REQUEST:
            return RoutingDecision.ESCALATE_SERVICE_REQUEST

        return RoutingDecision.REJECT_OUT_OF_SCOPE
