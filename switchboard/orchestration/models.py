"""Orchestrator inputs and outputs."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from switchboard.providers.base import (
    AccountDataProvider,
    Classifier,
    FAQProvider,
    IdentityLookup,
    SuggestedAction,
    SuggestionProvider,
    VerificationProvider,
)
from switchboard.routing.models import QuestionCategory, RoutingDecision


class RequiredAction(str, Enum):
    """What the client should expect next from the conversation."""

    NONE = "none"
    AUTHENTICATION_IN_PROGRESS = "authentication_in_progress"
    AUTHENTICATION_FAILED = "authentication_failed"
    HUMAN_HANDOFF_NEEDED = "human_handoff_needed"
    ESCALATION_PENDING = "escalation_pending"
    CLARIFICATION_NEEDED = "clarification_needed"


class OutboundResponse(BaseModel):
    """Reply to one inbound message."""

    session_id: str = Field(..., description="Conversation the reply belongs to")
    message: str = Field(..., description="Text shown to the user")
    category: QuestionCategory | None = Field(
        default=None, description="Category of the message that was answered"
    )
    decision: RoutingDecision | None = Field(
        default=None, description="Routing decision taken, if routing ran"
    )
    required_action: RequiredAction = Field(default=RequiredAction.NONE)
    ticket_id: str | None = Field(default=None, description="Handoff ticket, if any")
    suggested_actions: list[SuggestedAction] = Field(default_factory=list)


class Capabilities(BaseModel):
    """Capability providers the orchestrator dispatches to."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    classifier: Classifier
    faq: FAQProvider
    identity: IdentityLookup
    verification: VerificationProvider
    account_data: AccountDataProvider
    suggestions: SuggestionProvider | None = None
