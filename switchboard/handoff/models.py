"""Handoff ticket models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from switchboard.conversation.models import AuthContext, utc_now


class TicketState(str, Enum):
    """Lifecycle of a handoff ticket.

    created -> dispatched -> resolved | timed_out | cancelled
    """

    CREATED = "created"
    DISPATCHED = "dispatched"
    RESOLVED = "resolved"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (TicketState.RESOLVED, TicketState.TIMED_OUT, TicketState.CANCELLED)


class HandoffTicket(BaseModel):
    """Escalation record handed to a human representative.

    Lives independently of the session that raised it. Once terminal, only
    ``late_reply`` may still be filled in, and only once.
    """

    model_config = ConfigDict(validate_assignment=True)

    ticket_id: str = Field(..., description="Unique ticket identifier")
    session_id: str = Field(..., description="Conversation that escalated")
    summary: str = Field(..., description="Summary for the representative")
    original_question: str = Field(..., description="Question that led to escalation")
    escalation_reason: str = Field(..., description="Why a human is needed")
    suggested_department: str = Field(..., description="Department to route to")
    created_at: datetime = Field(default_factory=utc_now)
    state: TicketState = Field(default=TicketState.CREATED)

    customer_name: str | None = Field(default=None, description="Verified customer name")
    user_id: str | None = Field(default=None, description="Verified account number")
    auth_state: AuthContext | None = Field(
        default=None, description="Auth context at escalation time"
    )
    key_facts: list[str] = Field(default_factory=list)
    recommended_opening: str = Field(default="", description="Suggested first line for the CSR")
    conversation_duration_seconds: float = Field(default=0.0, ge=0)

    resolution: str | None = Field(default=None, description="Human reply that resolved it")
    resolved_at: datetime | None = Field(default=None)
    late_reply: str | None = Field(
        default=None, description="Reply received after timeout, kept for audit"
    )
    customer_notes: list[str] = Field(
        default_factory=list, description="Messages the customer sent while waiting"
    )


class ResolutionStatus(str, Enum):
    """How waiting on a ticket ended."""

    RESOLVED = "resolved"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class Resolution(BaseModel):
    """Result of waiting for a human reply."""

    model_config = ConfigDict(frozen=True)

    ticket_id: str
    status: ResolutionStatus
    message: str | None = Field(default=None, description="Human reply when resolved")


class ResolutionOutcome(str, Enum):
    """What record_resolution did with a human reply."""

    RECORDED = "recorded"
    LATE_RECORDED = "late_recorded"
