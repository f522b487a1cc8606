"""In-memory implementation of HandoffQueue."""

from collections import deque

from switchboard.errors import TicketNotFoundError
from switchboard.handoff.models import HandoffTicket
from switchboard.handoff.queue import HandoffQueue


class InMemoryHandoffQueue(HandoffQueue):
    """In-memory HandoffQueue for testing and single-process use.

    Tickets are copied on the way in and out, like the in-memory session
    store.
    """

    def __init__(self) -> None:
        self._tickets: dict[str, HandoffTicket] = {}
        self._pending: deque[str] = deque()
        self._replies: dict[str, deque[str]] = {}

    async def enqueue(self, ticket: HandoffTicket) -> str:
        self._tickets[ticket.ticket_id] = ticket.model_copy(deep=True)
        self._pending.append(ticket.ticket_id)
        return ticket.ticket_id

    async def get(self, ticket_id: str) -> HandoffTicket | None:
        ticket = self._tickets.get(ticket_id)
        return ticket.model_copy(deep=True) if ticket else None

    async def update(self, ticket: HandoffTicket) -> None:
        if ticket.ticket_id not in self._tickets:
            raise TicketNotFoundError(f"Ticket {ticket.ticket_id} not found")
        self._tickets[ticket.ticket_id] = ticket.model_copy(deep=True)
        if ticket.state.is_terminal and ticket.ticket_id in self._pending:
            self._pending.remove(ticket.ticket_id)

    async def poll(self, ticket_id: str) -> str | None:
        replies = self._replies.get(ticket_id)
        if not replies:
            return None
        return replies.popleft()

    async def submit_reply(self, ticket_id: str, message: str) -> None:
        if ticket_id not in self._tickets:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        self._replies.setdefault(ticket_id, deque()).append(message)

    async def pending(self) -> list[HandoffTicket]:
        """Open tickets in the order they were enqueued."""
        return [self._tickets[t].model_copy(deep=True) for t in self._pending]
