"""Conversation domain models.

Contains the Pydantic models for conversation state:
- Session for runtime conversation state
- AuthContext for in-band identity verification
- ConversationMessage for the append-only history
"""

from switchboard.conversation.models.enums import AuthState, MessageRole
from switchboard.conversation.models.session import (
    AUTH_FLOW_STATES,
    MAX_FAILED_ATTEMPTS,
    AuthContext,
    ConversationMessage,
    Session,
    utc_now,
)

__all__ = [
    # Enums
    "AuthState",
    "MessageRole",
    # Session models
    "AUTH_FLOW_STATES",
    "MAX_FAILED_ATTEMPTS",
    "AuthContext",
    "ConversationMessage",
    "Session",
    "utc_now",
]
