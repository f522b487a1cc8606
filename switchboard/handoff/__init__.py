"""Human handoff: tickets, the shared queue and the coordinator."""

from switchboard.handoff.coordinator import DELAY_NOTICE, HandoffCoordinator
from switchboard.handoff.models import (
    HandoffTicket,
    Resolution,
    ResolutionOutcome,
    ResolutionStatus,
    TicketState,
)
from switchboard.handoff.queue import HandoffQueue
from switchboard.handoff.queues import InMemoryHandoffQueue, RedisHandoffQueue

__all__ = [
    "DELAY_NOTICE",
    "HandoffCoordinator",
    "HandoffQueue",
    "HandoffTicket",
    "InMemoryHandoffQueue",
    "RedisHandoffQueue",
    "Resolution",
    "ResolutionOutcome",
    "ResolutionStatus",
    "TicketState",
]
