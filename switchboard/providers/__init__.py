"""Capability providers: contracts, call policy and deterministic fakes."""

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
from switchboard.providers.invoker import ProviderInvoker

__all__ = [
    "AccountAnswer",
    "AccountDataProvider",
    "Classifier",
    "ConversationSummary",
    "CustomerCandidate",
    "CustomerNotifier",
    "FAQAnswer",
    "FAQProvider",
    "IdentityLookup",
    "ProviderInvoker",
    "SuggestedAction",
    "SuggestionProvider",
    "Summarizer",
    "VerificationProvider",
    "VerificationQuestion",
]
