"""In-band authentication: state machine and its transition results."""

from switchboard.auth.machine import AuthStateMachine
from switchboard.auth.models import AuthAction, AuthTransition

__all__ = [
    "AuthAction",
    "AuthStateMachine",
    "AuthTransition",
]
