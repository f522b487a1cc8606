"""Conversation orchestrator.

Entry point for every inbound user message. One call to ``handle_message``
runs inside the session's critical section:

1. Append the user message
2. Pick the branch: escalation pending, auth flow, or classify and route
3. Dispatch to the capability provider or the handoff coordinator
4. Append the assistant reply and persist

Handoff watchers are started only after the session has been persisted
and the lock released.
"""

import time

from structlog.contextvars import bound_contextvars

from switchboard.auth.machine import AuthStateMachine
from switchboard.auth.models import AuthAction, AuthTransition
from switchboard.config.models.handoff import HandoffConfig
from switchboard.config.models.providers import ProvidersConfig
from switchboard.config.models.routing import RoutingConfig
from switchboard.conversation.manager import SessionManager
from switchboard.conversation.models import AuthState, MessageRole, Session
from switchboard.errors import (
    InvalidAuthTransitionError,
    ProviderUnavailableError,
    StoreError,
    TicketAlreadyClosedError,
    TicketNotFoundError,
    UnauthorizedError,
)
from switchboard.handoff.coordinator import HandoffCoordinator
from switchboard.handoff.models import Resolution, ResolutionStatus, TicketState
from switchboard.observability.logging import get_logger
from switchboard.observability.metrics import (
    MESSAGE_LATENCY,
    MESSAGES_PROCESSED,
    ROUTING_DECISIONS,
)
from switchboard.orchestration.models import (
    Capabilities,
    OutboundResponse,
    RequiredAction,
)
from switchboard.providers.base import SuggestedAction
from switchboard.providers.invoker import ProviderInvoker
from switchboard.routing.engine import RoutingEngine
from switchboard.routing.models import (
    ClassificationResult,
    QuestionCategory,
    RoutingDecision,
)

logger = get_logger(__name__)

MAX_SUGGESTIONS = 2
LOCKOUT_DEPARTMENT = "account_security"

# Escalation reasons recorded on tickets
REASON_HUMAN_REQUESTED = "Customer requested a human representative"
REASON_SERVICE_REQUEST = "Service request requires a representative"
REASON_FAQ_MISS = "Question outside FAQ knowledge base"
REASON_ACCOUNT_MISS = "Account question beyond automated assistance"
REASON_LOCKED_OUT = "Identity verification failed too many times"
REASON_PROVIDER_DOWN = "Automated assistance unavailable"

ESCALATION_REASONS = {
    RoutingDecision.ESCALATE_SERVICE_REQUEST: REASON_SERVICE_REQUEST,
    RoutingDecision.ESCALATE_HUMAN_REQUESTED: REASON_HUMAN_REQUESTED,
}

MSG_ASK_IDENTIFIER = (
    "To help with your account, I need to verify your identity first. "
    "Please provide your phone number, email address, or account number."
)
MSG_IDENTITY_NOT_FOUND = (
    "I couldn't find an account matching that information. Please check it "
    "and provide your phone number, email address, or account number."
)
MSG_VERIFIED = "Thank you, your identity has been verified."
MSG_RESUME_FAILED = (
    "I'm having trouble looking up your question right now. "
    "Send me any message and I'll try it again."
)
MSG_LOCKED_OUT = (
    "I'm sorry, I couldn't verify your identity and your account access is "
    "now locked for security."
)
MSG_STILL_LOCKED = (
    "Your account access is locked for security after too many failed "
    "verification attempts. A customer service representative can help you "
    "unlock it."
)
MSG_HANDOFF = (
    "I've forwarded your request to a customer service representative. "
    "They'll reach out to you shortly to assist with your inquiry."
)
MSG_HANDOFF_UNAVAILABLE = (
    "I'm sorry, I couldn't reach our customer service team right now. "
    "Please try again in a few minutes."
)
MSG_ESCALATION_PENDING = (
    "A representative has your request and will reply here shortly. "
    "I've added your message to your ticket."
)
MSG_OUT_OF_SCOPE = (
    "I'm a utility billing assistant and can help you with billing questions, "
    "account information, and payment options. Could you please ask something "
    "related to your utility bill or account?"
)
MSG_UNCLEAR = (
    "I'm not sure I understood your question. Could you rephrase it or give "
    "me a bit more detail?"
)
MSG_APOLOGY = (
    "I'm sorry, I'm having trouble processing your request right now. "
    "Please try again in a moment."
)
MSG_AUTH_RESTART = (
    "Something went wrong while verifying your identity, so let's start over. "
    "How can I help you?"
)


class Orchestrator:
    """Drives one conversation turn at a time per session."""

    def __init__(
        self,
        sessions: SessionManager,
        auth_machine: AuthStateMachine,
        routing: RoutingEngine,
        handoff: HandoffCoordinator,
        invoker: ProviderInvoker,
        capabilities: Capabilities,
        *,
        history_window: int = 10,
        suggestion_timeout: float = 5.0,
        wait_timeout: float = 300.0,
        close_session_on_resolution: bool = True,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            sessions: Session lifecycle and critical section
            auth_machine: Pure auth transitions
            routing: Pure routing decisions
            handoff: Ticket lifecycle and customer notification
            invoker: Timeout and retry policy for capability calls
            capabilities: Capability providers to dispatch to
            history_window: Recent messages passed to the classifier
            suggestion_timeout: Bound for the best-effort suggestion call
            wait_timeout: How long a handoff watcher waits for a human
            close_session_on_resolution: Delete the session once resolved
        """
        self._sessions = sessions
        self._auth = auth_machine
        self._routing = routing
        self._handoff = handoff
        self._invoker = invoker
        self._caps = capabilities
        self._history_window = history_window
        self._suggestion_timeout = suggestion_timeout
        self._wait_timeout = wait_timeout
        self._close_session_on_resolution = close_session_on_resolution

    @classmethod
    def from_config(
        cls,
        *,
        routing_config: RoutingConfig,
        providers_config: ProvidersConfig,
        handoff_config: HandoffConfig,
        sessions: SessionManager,
        auth_machine: AuthStateMachine,
        handoff: HandoffCoordinator,
        invoker: ProviderInvoker,
        capabilities: Capabilities,
    ) -> "Orchestrator":
        return cls(
            sessions,
            auth_machine,
            RoutingEngine.from_config(routing_config),
            handoff,
            invoker,
            capabilities,
            history_window=routing_config.history_window,
            suggestion_timeout=providers_config.suggestion_timeout_seconds,
            wait_timeout=handoff_config.wait_timeout_seconds,
            close_session_on_resolution=handoff_config.close_session_on_resolution,
        )

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    @property
    def handoff(self) -> HandoffCoordinator:
        return self._handoff

    # =========================================================================
    # Public operations
    # =========================================================================

    async def handle_message(self, session_id: str, user_message: str) -> OutboundResponse:
        """Process one inbound message and return the reply.

        Raises:
            SessionBusyError: If the session lock could not be acquired
            SessionPersistError: If the turn could not be saved; the
                session is left as it was before the message
        """
        start = time.perf_counter()

        with bound_contextvars(session_id=session_id):
            logger.info("message_received", length=len(user_message))

            async with self._sessions.session(session_id) as session:
                ticket_before = session.active_ticket_id
                self._sessions.append_message(session, MessageRole.USER, user_message)

                response = await self._handle_turn(session, user_message)

                self._sessions.append_message(session, MessageRole.ASSISTANT, response.message)
                await self._sessions.persist(session)
                new_ticket = (
                    session.active_ticket_id
                    if session.active_ticket_id != ticket_before
                    else None
                )

            if new_ticket is not None:
                self._start_watch(session_id, new_ticket)

            MESSAGES_PROCESSED.labels(required_action=response.required_action.value).inc()
            MESSAGE_LATENCY.observe(time.perf_counter() - start)
            logger.info(
                "message_handled",
                required_action=response.required_action.value,
                decision=response.decision.value if response.decision else None,
                auth_state=session.auth.state.value,
                elapsed_ms=round((time.perf_counter() - start) * 1000, 1),
            )
            return response

    async def unlock(self, session_id: str) -> None:
        """Human-assisted reset of a session's authentication."""
        async with self._sessions.session(session_id) as session:
            previous = session.auth.state
            self._apply(session, self._auth.reset(session.auth))
            session.expiry = None
            session.pending_query = None
            await self._sessions.persist(session)

        logger.info("session_unlocked", session_id=session_id, previous_state=previous.value)

    async def end_session(self, session_id: str) -> bool:
        """Terminate a conversation, cancelling any open handoff ticket."""
        async with self._sessions.session(session_id) as session:
            ticket_id = session.active_ticket_id

        if ticket_id is not None:
            try:
                await self._handoff.cancel(ticket_id)
            except (TicketAlreadyClosedError, TicketNotFoundError) as e:
                logger.debug("ticket_not_cancelled", ticket_id=ticket_id, reason=e.message)

        return await self._sessions.delete(session_id)

    async def close(self) -> None:
        """Stop background handoff work."""
        await self._handoff.close()

    # =========================================================================
    # Branch selection
    # =========================================================================

    async def _handle_turn(self, session: Session, message: str) -> OutboundResponse:
        try:
            if session.active_ticket_id is not None:
                pending = await self._escalation_pending(
                    session, session.active_ticket_id, message
                )
                if pending is not None:
                    return pending

            if session.auth.in_flow:
                return await self._continue_auth(session, message)

            if session.pending_query is not None and session.auth.is_authenticated(
                session.expiry
            ):
                # The parked question comes before the new message
                return await self._resume_pending_query(session)

            return await self._classify_and_route(session, message)

        except InvalidAuthTransitionError as e:
            logger.error(
                "invalid_auth_transition",
                current_state=e.current_state,
                attempted=e.attempted,
            )
            self._apply(session, self._auth.restart(session.auth))
            if session.auth.state == AuthState.ANONYMOUS:
                session.expiry = None
            session.pending_query = None
            return self._reply(session, MSG_AUTH_RESTART)

    async def _escalation_pending(
        self, session: Session, ticket_id: str, message: str
    ) -> OutboundResponse | None:
        """Attach the message to the open ticket, or clear a closed one.

        A ticket past its wait deadline is timed out here, so the session is
        released even when no watcher is running. Returns None when the
        ticket is closed and normal handling should continue.
        """
        try:
            ticket = await self._handoff.get_ticket(ticket_id)
            ticket = await self._handoff.expire_if_overdue(ticket, self._wait_timeout)
            if not ticket.state.is_terminal:
                await self._handoff.add_customer_note(ticket_id, message)
                return self._reply(
                    session,
                    MSG_ESCALATION_PENDING,
                    required_action=RequiredAction.ESCALATION_PENDING,
                    ticket_id=ticket_id,
                )
            state = ticket.state
        except TicketAlreadyClosedError as e:
            state = TicketState(e.state)
        except TicketNotFoundError:
            state = None
        except StoreError as e:
            # Queue unreachable: keep the ticket and try again next turn
            logger.error("ticket_lookup_failed", ticket_id=ticket_id, error=str(e))
            return self._reply(session, MSG_APOLOGY, ticket_id=ticket_id)

        logger.info(
            "active_ticket_cleared",
            ticket_id=ticket_id,
            ticket_state=state.value if state else "missing",
        )
        session.active_ticket_id = None
        return None

    # =========================================================================
    # Classification and routing
    # =========================================================================

    async def _classify(
        self, session: Session, message: str
    ) -> ClassificationResult | None:
        """Classify ``message``; None when the classifier is unavailable."""
        try:
            return await self._invoker.call(
                "classifier",
                self._caps.classifier.classify,
                message,
                session.recent_history(self._history_window),
            )
        except ProviderUnavailableError:
            return None

    async def _classify_and_route(self, session: Session, message: str) -> OutboundResponse:
        classification = await self._classify(session, message)
        if classification is None:
            return self._reply(session, MSG_APOLOGY)
        return await self._route(session, message, classification)

    async def _route(
        self,
        session: Session,
        message: str,
        classification: ClassificationResult,
    ) -> OutboundResponse:
        decision = self._routing.route(classification, session.auth, expiry=session.expiry)
        ROUTING_DECISIONS.labels(decision=decision.value).inc()
        logger.info(
            "routing_decided",
            category=classification.category.value,
            confidence=classification.confidence,
            decision=decision.value,
        )

        if decision.requires_auth:
            return await self._require_auth(session, message, classification)

        if decision.is_escalation:
            return await self._escalate(
                session,
                message,
                ESCALATION_REASONS[decision],
                classification.category,
                decision,
            )

        match decision:
            case RoutingDecision.DISPATCH_FAQ:
                return await self._answer_faq(session, message, classification, decision)
            case RoutingDecision.DISPATCH_DATA:
                return await self._answer_account(session, message, classification, decision)
            case _:
                text = (
                    MSG_OUT_OF_SCOPE
                    if classification.category == QuestionCategory.OUT_OF_SCOPE
                    else MSG_UNCLEAR
                )
                return self._reply(
                    session,
                    text,
                    category=classification.category,
                    decision=decision,
                    required_action=RequiredAction.CLARIFICATION_NEEDED,
                )

    async def _answer_faq(
        self,
        session: Session,
        message: str,
        classification: ClassificationResult,
        decision: RoutingDecision,
    ) -> OutboundResponse:
        try:
            answer = await self._invoker.call(
                "faq",
                self._caps.faq.answer_faq,
                message,
                session.recent_history(self._history_window),
            )
        except ProviderUnavailableError:
            return await self._provider_failed(session, message, classification.category)

        if not answer.found_answer:
            return await self._escalate(
                session, message, REASON_FAQ_MISS, classification.category, decision
            )

        return self._reply(
            session,
            answer.text,
            category=classification.category,
            decision=decision,
            suggested_actions=await self._suggest(session, classification.category),
        )

    async def _answer_account(
        self,
        session: Session,
        message: str,
        classification: ClassificationResult,
        decision: RoutingDecision,
    ) -> OutboundResponse:
        try:
            answer = await self._invoker.call(
                "account_data",
                self._caps.account_data.answer_account_query,
                message,
                session.auth,
            )
        except UnauthorizedError:
            logger.info("account_data_unauthorized")
            self._apply(session, self._auth.expire(session.auth))
            session.expiry = None
            return await self._require_auth(session, message, classification)
        except ProviderUnavailableError:
            return await self._provider_failed(session, message, classification.category)

        if not answer.found_answer:
            return await self._escalate(
                session, message, REASON_ACCOUNT_MISS, classification.category, decision
            )

        return self._reply(
            session,
            answer.text,
            category=classification.category,
            decision=decision,
            suggested_actions=await self._suggest(session, classification.category),
        )

    async def _suggest(
        self, session: Session, category: QuestionCategory
    ) -> list[SuggestedAction]:
        if self._caps.suggestions is None:
            return []
        try:
            suggestions = await self._invoker.call(
                "suggestions",
                self._caps.suggestions.suggest,
                session.recent_history(self._history_window),
                category,
                session.auth.is_authenticated(session.expiry),
                timeout=self._suggestion_timeout,
                retry=False,
            )
        except ProviderUnavailableError:
            logger.info("suggestions_skipped", category=category.value)
            return []
        return suggestions[:MAX_SUGGESTIONS]

    async def _provider_failed(
        self, session: Session, message: str, category: QuestionCategory
    ) -> OutboundResponse:
        if category in (QuestionCategory.ACCOUNT_DATA, QuestionCategory.SERVICE_REQUEST):
            escalated = await self._escalate(session, message, REASON_PROVIDER_DOWN, category, None)
            if escalated.ticket_id is not None:
                return escalated.model_copy(
                    update={"message": f"{MSG_APOLOGY} {MSG_HANDOFF}"}
                )
            return escalated
        return self._reply(session, MSG_APOLOGY, category=category)

    # =========================================================================
    # Authentication flow
    # =========================================================================

    async def _require_auth(
        self,
        session: Session,
        message: str,
        classification: ClassificationResult,
    ) -> OutboundResponse:
        decision = RoutingDecision.REQUIRE_AUTH_THEN_DISPATCH_DATA

        if session.auth.state == AuthState.LOCKED_OUT:
            return self._reply(
                session,
                MSG_STILL_LOCKED,
                category=classification.category,
                decision=decision,
                required_action=RequiredAction.AUTHENTICATION_FAILED,
            )

        if session.auth.state == AuthState.AUTHENTICATED:
            # Authenticated but no longer valid
            self._apply(session, self._auth.expire(session.auth))
            session.expiry = None

        session.pending_query = message
        self._apply(session, self._auth.begin(session.auth))
        logger.info("pending_query_stored")
        return self._reply(
            session,
            MSG_ASK_IDENTIFIER,
            category=classification.category,
            decision=decision,
            required_action=RequiredAction.AUTHENTICATION_IN_PROGRESS,
        )

    async def _continue_auth(self, session: Session, message: str) -> OutboundResponse:
        state = session.auth.state

        if state == AuthState.IN_PROGRESS:
            try:
                candidate = await self._invoker.call(
                    "identity_lookup", self._caps.identity.lookup, message
                )
            except ProviderUnavailableError:
                return self._auth_reply(session, MSG_APOLOGY)

            if candidate is None:
                logger.info("identity_not_found")
                return self._auth_reply(session, MSG_IDENTITY_NOT_FOUND)

            self._apply(
                session,
                self._auth.provide_identity(
                    session.auth, message.strip(), candidate.user_id, candidate.name
                ),
            )
            return await self._ask_question(session, prefix=f"Thank you, {candidate.name}.")

        if state == AuthState.IDENTITY_PROVIDED:
            # The question was never delivered; ask it now
            return await self._ask_question(session)

        try:
            correct = await self._invoker.call(
                "verification", self._caps.verification.check_answer, session.auth, message
            )
        except ProviderUnavailableError:
            return self._auth_reply(session, MSG_APOLOGY)

        transition = self._auth.record_answer(session.auth, correct)
        self._apply(session, transition)

        if transition.has(AuthAction.RESUME_PENDING_QUERY):
            return await self._resume_pending_query(session, prefix=MSG_VERIFIED)

        if transition.has(AuthAction.ISSUE_VERIFICATION_QUESTION):
            return await self._ask_question(session, prefix="Thank you.")

        if transition.has(AuthAction.RETRY_VERIFICATION):
            remaining = self._auth.remaining_attempts(session.auth)
            return await self._ask_question(
                session,
                prefix=(
                    "That doesn't match our records. "
                    f"You have {remaining} attempt{'s' if remaining != 1 else ''} remaining."
                ),
            )

        return await self._locked_out(session, message)

    async def _ask_question(self, session: Session, prefix: str = "") -> OutboundResponse:
        try:
            question = await self._invoker.call(
                "verification",
                self._caps.verification.issue_verification_question,
                session.auth,
            )
        except ProviderUnavailableError:
            return self._auth_reply(session, MSG_APOLOGY)

        self._apply(session, self._auth.question_issued(session.auth, question.factor))
        text = f"{prefix} {question.prompt}" if prefix else question.prompt
        return self._auth_reply(session, text)

    async def _resume_pending_query(
        self, session: Session, prefix: str = ""
    ) -> OutboundResponse:
        """Answer the question parked when authentication started.

        If the classifier is down the question stays parked and is retried
        on the next turn.
        """
        pending = session.pending_query
        session.pending_query = None

        if not pending:
            return self._reply(session, f"{prefix} How can I help you with your account?".strip())

        classification = await self._classify(session, pending)
        if classification is None:
            session.pending_query = pending
            logger.warning("pending_query_deferred")
            return self._reply(session, f"{prefix} {MSG_RESUME_FAILED}".strip())

        logger.info("pending_query_resumed")
        response = await self._route(session, pending, classification)
        if not prefix:
            return response
        return response.model_copy(update={"message": f"{prefix} {response.message}"})

    async def _locked_out(self, session: Session, message: str) -> OutboundResponse:
        original_question = session.pending_query or message
        session.pending_query = None
        logger.warning("authentication_locked_out")

        escalated = await self._escalate(
            session,
            original_question,
            REASON_LOCKED_OUT,
            None,
            None,
            department=LOCKOUT_DEPARTMENT,
        )
        text = (
            f"{MSG_LOCKED_OUT} {MSG_HANDOFF}"
            if escalated.ticket_id is not None
            else MSG_LOCKED_OUT
        )
        return escalated.model_copy(
            update={
                "message": text,
                "required_action": RequiredAction.AUTHENTICATION_FAILED,
            }
        )

    # =========================================================================
    # Escalation
    # =========================================================================

    async def _escalate(
        self,
        session: Session,
        message: str,
        reason: str,
        category: QuestionCategory | None,
        decision: RoutingDecision | None,
        department: str | None = None,
    ) -> OutboundResponse:
        try:
            ticket_id = await self._handoff.create_ticket(
                session,
                original_question=message,
                escalation_reason=reason,
                suggested_department=department,
            )
        except StoreError as e:
            logger.error("ticket_create_failed", error=str(e))
            return self._reply(
                session, MSG_HANDOFF_UNAVAILABLE, category=category, decision=decision
            )

        session.active_ticket_id = ticket_id
        return self._reply(
            session,
            MSG_HANDOFF,
            category=category,
            decision=decision,
            required_action=RequiredAction.HUMAN_HANDOFF_NEEDED,
            ticket_id=ticket_id,
        )

    def _start_watch(self, session_id: str, ticket_id: str) -> None:
        async def on_resolved(resolution: Resolution) -> None:
            if (
                resolution.status == ResolutionStatus.RESOLVED
                and self._close_session_on_resolution
            ):
                await self._sessions.delete(session_id)
                logger.info(
                    "session_closed_after_handoff",
                    session_id=session_id,
                    ticket_id=ticket_id,
                )

        self._handoff.watch(ticket_id, self._wait_timeout, on_resolved)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _apply(self, session: Session, transition: AuthTransition) -> None:
        session.auth = transition.context
        if transition.expiry is not None:
            session.expiry = transition.expiry

    def _reply(
        self,
        session: Session,
        message: str,
        *,
        category: QuestionCategory | None = None,
        decision: RoutingDecision | None = None,
        required_action: RequiredAction = RequiredAction.NONE,
        ticket_id: str | None = None,
        suggested_actions: list[SuggestedAction] | None = None,
    ) -> OutboundResponse:
        return OutboundResponse(
            session_id=session.session_id,
            message=message,
            category=category,
            decision=decision,
            required_action=required_action,
            ticket_id=ticket_id,
            suggested_actions=suggested_actions or [],
        )

    def _auth_reply(self, session: Session, message: str) -> OutboundResponse:
        return self._reply(
            session, message, required_action=RequiredAction.AUTHENTICATION_IN_PROGRESS
        )
