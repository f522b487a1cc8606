"""Routing input and output models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class QuestionCategory(str, Enum):
    """Category assigned to a customer message by the classifier."""

    BILLING_FAQ = "BillingFAQ"
    ACCOUNT_DATA = "AccountData"
    SERVICE_REQUEST = "ServiceRequest"
    OUT_OF_SCOPE = "OutOfScope"
    HUMAN_REQUESTED = "HumanRequested"


class ClassificationResult(BaseModel):
    """Structured classifier output, treated as immutable evidence."""

    model_config = ConfigDict(frozen=True)

    category: QuestionCategory = Field(..., description="Assigned category")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Classifier confidence")
    requires_auth: bool = Field(default=False, description="Whether answering needs identity")
    question_type: str | None = Field(
        default=None, description="Known question type id, e.g. 'balance-inquiry'"
    )
    reasoning: str = Field(default="", description="Why this category was chosen")


class RoutingDecision(str, Enum):
    """Where a classified message goes next."""

    DISPATCH_FAQ = "dispatch_faq"
    REQUIRE_AUTH_THEN_DISPATCH_DATA = "require_auth_then_dispatch_data"
    DISPATCH_DATA = "dispatch_data"
    ESCALATE_SERVICE_REQUEST = "escalate_service_request"
    ESCALATE_HUMAN_REQUESTED = "escalate_human_requested"
    REJECT_OUT_OF_SCOPE = "reject_out_of_scope"

    @property
    def is_escalation(self) -> bool:
        return self in (
            RoutingDecision.ESCALATE_SERVICE_REQUEST,
            RoutingDecision.ESCALATE_HUMAN_REQUESTED,
        )

    @property
    def requires_auth(self) -> bool:
        return self == RoutingDecision.REQUIRE_AUTH_THEN_DISPATCH_DATA
