"""Enums for the conversation domain."""

from enum import Enum


class AuthState(str, Enum):
    """Position of a session in the in-band authentication flow."""

    ANONYMOUS = "anonymous"
    IN_PROGRESS = "in_progress"
    IDENTITY_PROVIDED = "identity_provided"
    VERIFYING = "verifying"
    AUTHENTICATED = "authenticated"
    EXPIRED = "expired"
    LOCKED_OUT = "locked_out"


class MessageRole(str, Enum):
    """Author of a conversation message."""

    USER = "user"
    ASSISTANT = "assistant"
