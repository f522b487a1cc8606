"""Capability provider contracts and data models.

Each capability the orchestrator calls is an abstract base class with one
narrow async contract. Language-model-backed agents, knowledge bases and
customer systems plug in behind these; tests use the deterministic fakes
in ``switchboard.providers.mock``.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from switchboard.conversation.models import AuthContext, ConversationMessage
from switchboard.routing.models import ClassificationResult, QuestionCategory


class FAQAnswer(BaseModel):
    """Answer from the FAQ capability."""

    text: str = Field(..., description="Answer text")
    found_answer: bool = Field(
        default=True, description="False when the knowledge base has no answer"
    )


class AccountAnswer(BaseModel):
    """Answer from the account data capability."""

    text: str = Field(..., description="Answer text")
    found_answer: bool = Field(
        default=True, description="False when the question is beyond the agent"
    )


class CustomerCandidate(BaseModel):
    """Account that identifying info resolved to."""

    user_id: str = Field(..., description="Account number")
    name: str = Field(..., description="Customer name")


class VerificationQuestion(BaseModel):
    """Security question issued during verification."""

    factor: str = Field(..., description="Factor being checked, e.g. 'ssn_last_four'")
    prompt: str = Field(..., description="Question text shown to the user")


class ConversationSummary(BaseModel):
    """Summary handed to a human representative."""

    summary: str = Field(..., description="Concise summary of the conversation")
    escalation_reason: str = Field(..., description="Why a human is needed")
    original_question: str = Field(..., description="Question that started it")
    suggested_department: str | None = Field(
        default=None, description="Department best suited to the request"
    )
    key_facts: list[str] = Field(default_factory=list, description="Useful facts")


class SuggestedAction(BaseModel):
    """Follow-up question suggested to the user."""

    question_id: str = Field(..., description="Known question type id")
    suggested_question: str = Field(..., description="Question text to display")


class Classifier(ABC):
    """Assigns a category to a customer message."""

    @abstractmethod
    async def classify(
        self, message: str, history: list[ConversationMessage]
    ) -> ClassificationResult:
        pass


class FAQProvider(ABC):
    """Answers general billing questions from a knowledge base."""

    @abstractmethod
    async def answer_faq(
        self, message: str, history: list[ConversationMessage]
    ) -> FAQAnswer:
        pass


class IdentityLookup(ABC):
    """Resolves phone, email or account number to a candidate account."""

    @abstractmethod
    async def lookup(self, identifier: str) -> CustomerCandidate | None:
        pass


class VerificationProvider(ABC):
    """Issues security questions and checks answers."""

    @abstractmethod
    async def issue_verification_question(self, auth: AuthContext) -> VerificationQuestion:
        pass

    @abstractmethod
    async def check_answer(self, auth: AuthContext, answer: str) -> bool:
        pass


class AccountDataProvider(ABC):
    """Answers questions about an authenticated customer's account.

    Implementations raise UnauthorizedError when ``auth.state`` is not
    authenticated.
    """

    @abstractmethod
    async def answer_account_query(self, message: str, auth: AuthContext) -> AccountAnswer:
        pass


class Summarizer(ABC):
    """Summarizes a conversation for human handoff."""

    @abstractmethod
    async def summarize(
        self,
        history: list[ConversationMessage],
        escalation_reason: str,
        original_question: str,
    ) -> ConversationSummary:
        pass


class SuggestionProvider(ABC):
    """Suggests follow-up questions after a successful answer."""

    @abstractmethod
    async def suggest(
        self,
        history: list[ConversationMessage],
        category: QuestionCategory,
        authenticated: bool,
    ) -> list[SuggestedAction]:
        pass


class CustomerNotifier(ABC):
    """Delivers out-of-band messages to a session's transport."""

    @abstractmethod
    async def notify(self, session_id: str, message: str) -> None:
        pass
