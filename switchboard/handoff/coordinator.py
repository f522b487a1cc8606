"""Human handoff coordinator.

Creates handoff tickets with a summary package for the representative,
waits for the human side with a bounded poll loop, and records replies,
including replies that arrive after the wait has timed out. Ticket state
changes are serialized per ticket through the session mutex under
``ticket:{id}`` keys so replicas sharing a queue cannot double-resolve.
"""

import asyncio
from collections.abc import Awaitable, Callable, Coroutine
from datetime import datetime, timedelta
from typing import Any
from uuid import uuid4

from switchboard.config.models.handoff import HandoffConfig
from switchboard.conversation.models import Session, utc_now
from switchboard.errors import (
    ProviderUnavailableError,
    StoreError,
    TicketAlreadyClosedError,
    TicketNotFoundError,
)
from switchboard.handoff.models import (
    HandoffTicket,
    Resolution,
    ResolutionOutcome,
    ResolutionStatus,
    TicketState,
)
from switchboard.handoff.queue import HandoffQueue
from switchboard.observability.logging import get_logger
from switchboard.observability.metrics import HANDOFF_TICKETS
from switchboard.providers.base import ConversationSummary, CustomerNotifier, Summarizer
from switchboard.providers.invoker import ProviderInvoker
from switchboard.runtime.mutex import SessionMutex

logger = get_logger(__name__)

DELAY_NOTICE = (
    "Our representatives are taking longer than expected to respond. Your "
    "request is still with our customer service team and someone will "
    "follow up with you soon."
)

ResolutionCallback = Callable[[Resolution], Awaitable[None]]


class HandoffCoordinator:
    """Owns the lifecycle of handoff tickets."""

    def __init__(
        self,
        queue: HandoffQueue,
        mutex: SessionMutex,
        invoker: ProviderInvoker,
        summarizer: Summarizer | None = None,
        notifier: CustomerNotifier | None = None,
        *,
        wait_timeout: float = 300.0,
        poll_interval: float = 1.0,
        default_department: str = "customer_service",
    ) -> None:
        """Initialize the coordinator.

        Args:
            queue: Ticket storage shared with the human side
            mutex: Lock used to serialize ticket transitions
            invoker: Call policy for the summarizer and notifier
            summarizer: Builds the summary (plain transcript when absent)
            notifier: Delivers out-of-band messages to the customer
            wait_timeout: Default bound for wait_for_resolution (seconds)
            poll_interval: Delay between queue polls (seconds)
            default_department: Department used when none is suggested
        """
        self._queue = queue
        self._mutex = mutex
        self._invoker = invoker
        self._summarizer = summarizer
        self._notifier = notifier
        self._wait_timeout = wait_timeout
        self._poll_interval = poll_interval
        self._default_department = default_department
        self._tasks: set[asyncio.Task[Any]] = set()

    @classmethod
    def from_config(
        cls,
        config: HandoffConfig,
        *,
        queue: HandoffQueue,
        mutex: SessionMutex,
        invoker: ProviderInvoker,
        summarizer: Summarizer | None = None,
        notifier: CustomerNotifier | None = None,
    ) -> "HandoffCoordinator":
        return cls(
            queue,
            mutex,
            invoker,
            summarizer,
            notifier,
            wait_timeout=config.wait_timeout_seconds,
            poll_interval=config.poll_interval_seconds,
            default_department=config.default_department,
        )

    # =========================================================================
    # Ticket creation
    # =========================================================================

    async def create_ticket(
        self,
        session: Session,
        original_question: str,
        escalation_reason: str,
        suggested_department: str | None = None,
    ) -> str:
        """Create and dispatch a ticket for ``session``.

        Never waits on the human side. The ticket stays Created when the
        queue accepted it but could not be marked Dispatched.

        Raises:
            StoreError: If the queue rejected the ticket
        """
        summary = await self._summarize(session, escalation_reason, original_question)
        now = utc_now()
        duration = (
            (now - session.history[0].timestamp).total_seconds() if session.history else 0.0
        )

        ticket = HandoffTicket(
            ticket_id=str(uuid4()),
            session_id=session.session_id,
            summary=summary.summary,
            original_question=original_question,
            escalation_reason=escalation_reason,
            suggested_department=(
                suggested_department
                or summary.suggested_department
                or self._default_department
            ),
            created_at=now,
            customer_name=session.auth.customer_name,
            user_id=session.auth.user_id,
            auth_state=session.auth.model_copy(deep=True),
            key_facts=summary.key_facts,
            recommended_opening=build_recommended_opening(
                session.auth.customer_name, original_question
            ),
            conversation_duration_seconds=max(duration, 0.0),
        )

        await self._queue.enqueue(ticket)
        HANDOFF_TICKETS.labels(state=TicketState.CREATED.value).inc()

        ticket.state = TicketState.DISPATCHED
        try:
            await self._queue.update(ticket)
        except (StoreError, TicketNotFoundError) as e:
            logger.error(
                "ticket_dispatch_failed",
                ticket_id=ticket.ticket_id,
                error_type=type(e).__name__,
                error=str(e),
            )
        else:
            HANDOFF_TICKETS.labels(state=TicketState.DISPATCHED.value).inc()

        logger.info(
            "ticket_created",
            ticket_id=ticket.ticket_id,
            department=ticket.suggested_department,
            escalation_reason=escalation_reason,
            authenticated=ticket.user_id is not None,
        )
        return ticket.ticket_id

    async def _summarize(
        self,
        session: Session,
        escalation_reason: str,
        original_question: str,
    ) -> ConversationSummary:
        if self._summarizer is not None:
            try:
                return await self._invoker.call(
                    "summarizer",
                    self._summarizer.summarize,
                    list(session.history),
                    escalation_reason,
                    original_question,
                )
            except ProviderUnavailableError:
                logger.warning("summary_fallback_to_transcript", session_id=session.session_id)

        transcript = "\n".join(f"{m.role.value}: {m.content}" for m in session.history)
        return ConversationSummary(
            summary=transcript,
            escalation_reason=escalation_reason,
            original_question=original_question,
        )

    # =========================================================================
    # Ticket access and transitions
    # =========================================================================

    async def get_ticket(self, ticket_id: str) -> HandoffTicket:
        """Get a ticket by ID.

        Raises:
            TicketNotFoundError: If the queue has no such ticket
        """
        ticket = await self._queue.get(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        return ticket

    async def record_resolution(self, ticket_id: str, message: str) -> ResolutionOutcome:
        """Record the human reply for a ticket.

        An open ticket becomes Resolved. A TimedOut ticket keeps its state
        and stores the first late reply for audit.

        Raises:
            TicketAlreadyClosedError: Resolved or Cancelled ticket, or a
                TimedOut ticket that already has a late reply
            TicketNotFoundError: Unknown ticket
        """
        async with self._mutex.acquire(f"ticket:{ticket_id}"):
            ticket = await self.get_ticket(ticket_id)

            if not ticket.state.is_terminal:
                ticket.state = TicketState.RESOLVED
                ticket.resolution = message
                ticket.resolved_at = utc_now()
                await self._queue.update(ticket)
                HANDOFF_TICKETS.labels(state=TicketState.RESOLVED.value).inc()
                logger.info("ticket_resolved", ticket_id=ticket_id)
                return ResolutionOutcome.RECORDED

            if ticket.state == TicketState.TIMED_OUT and ticket.late_reply is None:
                ticket.late_reply = message
                await self._queue.update(ticket)
                logger.info("ticket_late_reply_recorded", ticket_id=ticket_id)
                return ResolutionOutcome.LATE_RECORDED

            raise TicketAlreadyClosedError(ticket_id, ticket.state.value)

    async def cancel(self, ticket_id: str) -> HandoffTicket:
        """Cancel an open ticket.

        Raises:
            TicketAlreadyClosedError: If the ticket is already terminal
        """
        async with self._mutex.acquire(f"ticket:{ticket_id}"):
            ticket = await self.get_ticket(ticket_id)
            if ticket.state.is_terminal:
                raise TicketAlreadyClosedError(ticket_id, ticket.state.value)

            ticket.state = TicketState.CANCELLED
            await self._queue.update(ticket)

        HANDOFF_TICKETS.labels(state=TicketState.CANCELLED.value).inc()
        logger.info("ticket_cancelled", ticket_id=ticket_id)
        return ticket

    async def add_customer_note(self, ticket_id: str, note: str) -> None:
        """Attach a message the customer sent while waiting.

        Raises:
            TicketAlreadyClosedError: If the ticket is already terminal
        """
        async with self._mutex.acquire(f"ticket:{ticket_id}"):
            ticket = await self.get_ticket(ticket_id)
            if ticket.state.is_terminal:
                raise TicketAlreadyClosedError(ticket_id, ticket.state.value)

            ticket.customer_notes = [*ticket.customer_notes, note]
            await self._queue.update(ticket)

        logger.debug("ticket_note_added", ticket_id=ticket_id, notes=len(ticket.customer_notes))

    async def expire_if_overdue(
        self,
        ticket: HandoffTicket,
        timeout: float | None = None,
        now: datetime | None = None,
    ) -> HandoffTicket:
        """Time out an open ticket whose wait deadline has passed.

        Enforces the deadline without a watcher, e.g. after a restart or on
        another replica. Returns the ticket as stored afterwards.
        """
        timeout = timeout if timeout is not None else self._wait_timeout
        deadline = ticket.created_at + timedelta(seconds=timeout)
        if ticket.state.is_terminal or (now or utc_now()) <= deadline:
            return ticket

        await self._time_out(ticket.ticket_id)
        return await self.get_ticket(ticket.ticket_id)

    async def _time_out(self, ticket_id: str) -> Resolution:
        async with self._mutex.acquire(f"ticket:{ticket_id}"):
            ticket = await self.get_ticket(ticket_id)
            if ticket.state.is_terminal:
                # Closed concurrently between the last poll and the deadline
                return _resolution_for(ticket)

            ticket.state = TicketState.TIMED_OUT
            await self._queue.update(ticket)

        HANDOFF_TICKETS.labels(state=TicketState.TIMED_OUT.value).inc()
        logger.warning("ticket_timed_out", ticket_id=ticket_id)
        return Resolution(ticket_id=ticket_id, status=ResolutionStatus.TIMED_OUT)

    # =========================================================================
    # Waiting
    # =========================================================================

    async def wait_for_resolution(
        self,
        ticket_id: str,
        timeout: float | None = None,
    ) -> Resolution:
        """Wait until the ticket is closed or ``timeout`` elapses.

        Replies delivered through the queue inbox are recorded as they are
        polled. On timeout the ticket moves to TimedOut.
        """
        timeout = timeout if timeout is not None else self._wait_timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            ticket = await self.get_ticket(ticket_id)
            if ticket.state.is_terminal:
                return _resolution_for(ticket)

            reply = await self._queue.poll(ticket_id)
            if reply is not None:
                try:
                    await self.record_resolution(ticket_id, reply)
                except TicketAlreadyClosedError as e:
                    logger.info("ticket_reply_ignored", ticket_id=ticket_id, state=e.state)
                continue

            remaining = deadline - loop.time()
            if remaining <= 0:
                return await self._time_out(ticket_id)
            await asyncio.sleep(min(self._poll_interval, remaining))

    def watch(
        self,
        ticket_id: str,
        timeout: float | None = None,
        on_resolved: ResolutionCallback | None = None,
    ) -> asyncio.Task[Resolution]:
        """Wait for a ticket in the background and notify the customer.

        The customer receives the human reply, or a delay notice on
        timeout. ``on_resolved`` runs after the notification is scheduled.
        """

        async def _watch() -> Resolution:
            resolution = await self.wait_for_resolution(ticket_id, timeout)
            ticket = await self.get_ticket(ticket_id)

            if resolution.status == ResolutionStatus.RESOLVED and resolution.message:
                self.notify_customer(ticket.session_id, resolution.message)
            elif resolution.status == ResolutionStatus.TIMED_OUT:
                self.notify_customer(ticket.session_id, DELAY_NOTICE)

            if on_resolved is not None:
                await on_resolved(resolution)
            return resolution

        return self._spawn(_watch(), name=f"handoff-watch-{ticket_id}")

    # =========================================================================
    # Customer notification
    # =========================================================================

    def notify_customer(self, session_id: str, message: str) -> None:
        """Send an out-of-band message to the customer without waiting."""
        if self._notifier is None:
            logger.debug("customer_notify_skipped", session_id=session_id)
            return
        self._spawn(
            self._deliver(self._notifier, session_id, message), name=f"notify-{session_id}"
        )

    async def _deliver(
        self, notifier: CustomerNotifier, session_id: str, message: str
    ) -> None:
        try:
            await self._invoker.call(
                "notifier", notifier.notify, session_id, message, retry=False
            )
        except ProviderUnavailableError as e:
            logger.warning(
                "customer_notify_failed",
                session_id=session_id,
                error=str(e.cause) if e.cause else e.message,
            )

    # =========================================================================
    # Background tasks
    # =========================================================================

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "handoff_task_failed",
                task=task.get_name(),
                error_type=type(error).__name__,
                error=str(error),
            )

    @property
    def pending_tasks(self) -> int:
        """Number of watchers and notifications still running."""
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for all background tasks, including ones they spawn."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel background tasks and wait for them to finish."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


def build_recommended_opening(customer_name: str | None, original_question: str) -> str:
    """First line suggested to the representative picking up the ticket."""
    greeting = f"Hello {customer_name}," if customer_name else "Hello,"
    return (
        f"{greeting} I'm following up on your recent chat with our virtual "
        f"assistant. I understand you need help with: {original_question}"
    )


def _resolution_for(ticket: HandoffTicket) -> Resolution:
    if ticket.state == TicketState.RESOLVED:
        return Resolution(
            ticket_id=ticket.ticket_id,
            status=ResolutionStatus.RESOLVED,
            message=ticket.resolution,
        )
    if ticket.state == TicketState.CANCELLED:
        return Resolution(ticket_id=ticket.ticket_id, status=ResolutionStatus.CANCELLED)
    return Resolution(ticket_id=ticket.ticket_id, status=ResolutionStatus.TIMED_OUT)
