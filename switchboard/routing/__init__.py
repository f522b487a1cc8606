"""Routing: classification result + auth state -> routing decision."""

from switchboard.routing.engine import RoutingEngine
from switchboard.routing.models import (
    ClassificationResult,
    QuestionCategory,
    RoutingDecision,
)

__all__ = [
    "ClassificationResult",
    "QuestionCategory",
    "RoutingDecision",
    "RoutingEngine",
]
