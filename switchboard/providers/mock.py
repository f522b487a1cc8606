"""Deterministic capability providers for tests, demos and local runs.

No model calls: classification is keyword based, the FAQ is a small fixed
knowledge base, and identity/account data come from an in-memory customer
directory holding three test customers with different account states.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from switchboard.conversation.models import (
    AuthContext,
    AuthState,
    ConversationMessage,
    MessageRole,
)
from switchboard.errors import UnauthorizedError
from switchboard.providers.base import (
    AccountAnswer,
    AccountDataProvider,
    Classifier,
    ConversationSummary,
    CustomerCandidate,
    CustomerNotifier,
    FAQAnswer,
    FAQProvider,
    IdentityLookup,
    SuggestedAction,
    SuggestionProvider,
    Summarizer,
    VerificationProvider,
    VerificationQuestion,
)
from switchboard.routing.models import ClassificationResult, QuestionCategory

# =============================================================================
# Classifier
# =============================================================================

# (category, confidence, requires_auth, question_type, phrases), checked in order
_CLASSIFIER_RULES: list[tuple[QuestionCategory, float, bool, str | None, tuple[str, ...]]] = [
    (
        QuestionCategory.HUMAN_REQUESTED,
        0.95,
        False,
        None,
        ("representative", "human", "real person", "speak with", "talk to someone", "live agent"),
    ),
    (
        QuestionCategory.SERVICE_REQUEST,
        0.85,
        False,
        "service-change",
        ("extension", "check my meter", "rate plan", "start service", "stop service",
         "payment arrangement", "dispute"),
    ),
    (
        QuestionCategory.BILLING_FAQ,
        0.88,
        False,
        "payment-options",
        ("how can i pay", "pay my bill", "payment options", "assistance program",
         "late fee", "budget billing", "sign up for autopay"),
    ),
    (
        QuestionCategory.ACCOUNT_DATA,
        0.9,
        True,
        "balance-inquiry",
        ("balance", "my bill", "my account", "my payment", "due date", "my usage",
         "last payment", "am i on autopay"),
    ),
]


class KeywordClassifier(Classifier):
    """Keyword classifier with scripted overrides.

    Exact-message overrides set with ``set_response`` win over the keyword
    rules. Every call is recorded for test assertions.
    """

    def __init__(self, responses: dict[str, ClassificationResult] | None = None) -> None:
        self._responses = responses or {}
        self._call_history: list[dict[str, Any]] = []

    @property
    def call_history(self) -> list[dict[str, Any]]:
        """Return history of calls for testing assertions."""
        return self._call_history

    def set_response(self, message: str, result: ClassificationResult) -> None:
        """Script the classification for an exact message."""
        self._responses[message] = result

    async def classify(
        self, message: str, history: list[ConversationMessage]
    ) -> ClassificationResult:
        self._call_history.append({"message": message, "history": list(history)})

        if message in self._responses:
            return self._responses[message]

        text = message.lower()
        for category, confidence, requires_auth, question_type, phrases in _CLASSIFIER_RULES:
            matched = next((p for p in phrases if p in text), None)
            if matched:
                return ClassificationResult(
                    category=category,
                    confidence=confidence,
                    requires_auth=requires_auth,
                    question_type=question_type,
                    reasoning=f"Matched phrase '{matched}'",
                )

        return ClassificationResult(
            category=QuestionCategory.OUT_OF_SCOPE,
            confidence=0.8,
            reasoning="No utility billing phrase matched",
        )


# =============================================================================
# FAQ
# =============================================================================

DEFAULT_FAQ_ENTRIES: list[tuple[tuple[str, ...], str]] = [
    (
        ("how can i pay", "pay my bill", "payment options"),
        "You can pay online, through the mobile app, by phone, by mail, or in "
        "person at any authorized payment location.",
    ),
    (
        ("assistance program",),
        "We offer LIHEAP referrals, a hardship fund and budget billing for "
        "customers who need help paying their bill.",
    ),
    (
        ("late fee",),
        "A late fee of 1.5% of the past-due balance applies to payments "
        "received after the due date.",
    ),
    (
        ("budget billing",),
        "Budget billing spreads your annual energy cost evenly across twelve "
        "monthly payments.",
    ),
    (
        ("autopay",),
        "You can enroll in AutoPay online or in the app; payments are drafted "
        "on your due date each month.",
    ),
]


class MockFAQProvider(FAQProvider):
    """Answers from a fixed keyword knowledge base."""

    def __init__(self, entries: list[tuple[tuple[str, ...], str]] | None = None) -> None:
        self._entries = entries if entries is not None else DEFAULT_FAQ_ENTRIES

    async def answer_faq(
        self, message: str, history: list[ConversationMessage]
    ) -> FAQAnswer:
        text = message.lower()
        for phrases, answer in self._entries:
            if any(p in text for p in phrases):
                return FAQAnswer(text=answer)
        return FAQAnswer(
            text="I don't have an answer for that in our billing knowledge base.",
            found_answer=False,
        )


# =============================================================================
# Customer directory (identity lookup, verification, account data)
# =============================================================================


class MockCustomer(BaseModel):
    """Customer record in the mock customer information system."""

    account_number: str
    name: str
    phone: str
    email: str
    service_address: str
    last_four_ssn: str
    date_of_birth: date
    account_balance: Decimal
    due_date: date
    last_payment_amount: Decimal
    last_payment_date: date
    is_on_auto_pay: bool
    delinquency_status: str = Field(default="Current", description="Current, PastDue, Collections")
    monthly_kwh: list[int] = Field(default_factory=list, description="Recent monthly usage")


def default_customers(today: date | None = None) -> list[MockCustomer]:
    """Three test customers: current, on AutoPay, and past due."""
    today = today or date.today()
    return [
        MockCustomer(
            account_number="1234567890",
            name="John Smith",
            phone="555-1234",
            email="john.smith@example.com",
            service_address="123 Main St, Anytown, ST 12345",
            last_four_ssn="1234",
            date_of_birth=date(1985, 3, 15),
            account_balance=Decimal("187.43"),
            due_date=today + timedelta(days=12),
            last_payment_amount=Decimal("142.50"),
            last_payment_date=today - timedelta(days=18),
            is_on_auto_pay=False,
            monthly_kwh=[892, 1247],
        ),
        MockCustomer(
            account_number="9876543210",
            name="Maria Garcia",
            phone="555-5678",
            email="maria.garcia@example.com",
            service_address="456 Oak Ave, Anytown, ST 12345",
            last_four_ssn="5678",
            date_of_birth=date(1990, 7, 22),
            account_balance=Decimal("0.00"),
            due_date=today + timedelta(days=5),
            last_payment_amount=Decimal("98.50"),
            last_payment_date=today - timedelta(days=3),
            is_on_auto_pay=True,
            monthly_kwh=[654, 687],
        ),
        MockCustomer(
            account_number="5555555555",
            name="Robert Johnson",
            phone="555-9999",
            email="rjohnson@example.com",
            service_address="789 Elm St, Anytown, ST 12345",
            last_four_ssn="9999",
            date_of_birth=date(1972, 11, 8),
            account_balance=Decimal("423.67"),
            due_date=today - timedelta(days=5),
            last_payment_amount=Decimal("150.00"),
            last_payment_date=today - timedelta(days=45),
            is_on_auto_pay=False,
            delinquency_status="PastDue",
            monthly_kwh=[1100, 1350],
        ),
    ]


VERIFICATION_PROMPTS: dict[str, str] = {
    "ssn_last_four": "Please provide the last four digits of your Social Security number.",
    "date_of_birth": "Please provide your date of birth (MM/DD/YYYY).",
}

_DATE_FORMATS = ("%m/%d/%Y", "%Y-%m-%d", "%m-%d-%Y", "%B %d, %Y")


class MockCustomerDirectory(IdentityLookup, VerificationProvider, AccountDataProvider):
    """In-memory customer information system.

    Looks customers up by phone, email or account number appearing in the
    user's message, verifies last-four-SSN and date-of-birth factors, and
    answers simple balance, due date, payment, AutoPay and usage questions.
    """

    def __init__(self, customers: list[MockCustomer] | None = None) -> None:
        self._customers = customers if customers is not None else default_customers()
        self._by_account = {c.account_number: c for c in self._customers}

    def find_by_identifier(self, identifier: str) -> MockCustomer | None:
        """Find a customer whose phone, email or account number appears in ``identifier``."""
        text = identifier.strip().lower()
        for customer in self._customers:
            if (
                customer.phone in text
                or customer.email.lower() in text
                or customer.account_number in text
            ):
                return customer
        return None

    async def lookup(self, identifier: str) -> CustomerCandidate | None:
        customer = self.find_by_identifier(identifier)
        if customer is None:
            return None
        return CustomerCandidate(user_id=customer.account_number, name=customer.name)

    async def issue_verification_question(self, auth: AuthContext) -> VerificationQuestion:
        factor = auth.pending_factor or next(
            (f for f in VERIFICATION_PROMPTS if f not in auth.verified_factors),
            "ssn_last_four",
        )
        return VerificationQuestion(factor=factor, prompt=VERIFICATION_PROMPTS[factor])

    async def check_answer(self, auth: AuthContext, answer: str) -> bool:
        customer = self._by_account.get(auth.user_id or "")
        if customer is None:
            return False

        if auth.pending_factor == "date_of_birth":
            return _parse_date(answer) == customer.date_of_birth

        digits = "".join(ch for ch in answer if ch.isdigit())
        return digits == customer.last_four_ssn

    async def answer_account_query(self, message: str, auth: AuthContext) -> AccountAnswer:
        if auth.state != AuthState.AUTHENTICATED:
            raise UnauthorizedError("Account data requires an authenticated session")

        customer = self._by_account.get(auth.user_id or "")
        if customer is None:
            raise UnauthorizedError(f"Unknown account {auth.user_id}")

        text = message.lower()
        if "autopay" in text or "auto pay" in text:
            status = "enrolled in" if customer.is_on_auto_pay else "not enrolled in"
            return AccountAnswer(text=f"You are {status} AutoPay.")
        if "last payment" in text or "my payment" in text:
            return AccountAnswer(
                text=(
                    f"We received your last payment of ${customer.last_payment_amount:.2f} "
                    f"on {customer.last_payment_date:%B %d, %Y}."
                )
            )
        if "usage" in text or "high" in text:
            if len(customer.monthly_kwh) >= 2:
                previous, current = customer.monthly_kwh[-2:]
                return AccountAnswer(
                    text=(
                        f"You used {current} kWh this period compared with {previous} kWh "
                        "the period before."
                    )
                )
        if "balance" in text or "due" in text or "bill" in text or "owe" in text:
            answer = (
                f"Your current balance is ${customer.account_balance:.2f}, "
                f"due on {customer.due_date:%B %d, %Y}."
            )
            if customer.delinquency_status != "Current":
                answer += " Your account is past due."
            return AccountAnswer(text=answer)

        return AccountAnswer(
            text="I'm not able to answer that question about your account.",
            found_answer=False,
        )


def _parse_date(value: str) -> date | None:
    cleaned = value.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue
    return None


# =============================================================================
# Summarization, suggestions, notification
# =============================================================================


class MockSummarizer(Summarizer):
    """Builds a summary from the message history without a model call."""

    async def summarize(
        self,
        history: list[ConversationMessage],
        escalation_reason: str,
        original_question: str,
    ) -> ConversationSummary:
        user_messages = [m.content for m in history if m.role == MessageRole.USER]
        summary = (
            f"Customer asked: {original_question}. "
            f"{len(history)} messages exchanged; {len(user_messages)} from the customer."
        )
        return ConversationSummary(
            summary=summary,
            escalation_reason=escalation_reason,
            original_question=original_question,
            key_facts=user_messages[-3:],
        )


_SUGGESTIONS: dict[QuestionCategory, list[SuggestedAction]] = {
    QuestionCategory.BILLING_FAQ: [
        SuggestedAction(question_id="balance-inquiry", suggested_question="What is my current balance?"),
        SuggestedAction(question_id="autopay", suggested_question="How do I sign up for AutoPay?"),
    ],
    QuestionCategory.ACCOUNT_DATA: [
        SuggestedAction(question_id="payment-options", suggested_question="How can I pay my bill?"),
        SuggestedAction(question_id="high-bill", suggested_question="Why is my usage high?"),
    ],
}


class MockSuggestionProvider(SuggestionProvider):
    """Static follow-up suggestions per category."""

    async def suggest(
        self,
        history: list[ConversationMessage],
        category: QuestionCategory,
        authenticated: bool,
    ) -> list[SuggestedAction]:
        suggestions = _SUGGESTIONS.get(category, [])
        if not authenticated:
            suggestions = [s for s in suggestions if s.question_id != "high-bill"]
        return suggestions[:2]


class RecordingNotifier(CustomerNotifier):
    """Collects out-of-band notifications instead of delivering them."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[str, str]] = []
        self._fail = fail

    async def notify(self, session_id: str, message: str) -> None:
        if self._fail:
            raise RuntimeError("transport unavailable")
        self.sent.append((session_id, message))
