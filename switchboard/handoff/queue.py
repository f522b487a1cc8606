"""HandoffQueue abstract interface."""

from abc import ABC, abstractmethod

from switchboard.handoff.models import HandoffTicket


class HandoffQueue(ABC):
    """Shared storage between the orchestrator and the human side.

    Holds ticket records plus a reply inbox per ticket that the human-side
    transport writes into with ``submit_reply``.
    """

    @abstractmethod
    async def enqueue(self, ticket: HandoffTicket) -> str:
        """Store a new ticket and make it visible to representatives."""
        pass

    @abstractmethod
    async def get(self, ticket_id: str) -> HandoffTicket | None:
        """Get a ticket by ID."""
        pass

    @abstractmethod
    async def update(self, ticket: HandoffTicket) -> None:
        """Overwrite a stored ticket."""
        pass

    @abstractmethod
    async def poll(self, ticket_id: str) -> str | None:
        """Pop the oldest unread human reply for a ticket, if any."""
        pass

    @abstractmethod
    async def submit_reply(self, ticket_id: str, message: str) -> None:
        """Deliver a human reply for a ticket."""
        pass

    @abstractmethod
    async def pending(self) -> list[HandoffTicket]:
        """Open tickets awaiting a representative, oldest first.

        Closed tickets leave this list when they are updated to a terminal
        state.
        """
        pass
