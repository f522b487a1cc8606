"""Conversation orchestration: the per-message entry point."""

from switchboard.orchestration.models import Capabilities, OutboundResponse, RequiredAction
from switchboard.orchestration.orchestrator import Orchestrator

__all__ = [
    "Capabilities",
    "OutboundResponse",
    "Orchestrator",
    "RequiredAction",
]
