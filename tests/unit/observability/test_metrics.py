"""Tests for Prometheus metrics."""

import pytest
from prometheus_client import REGISTRY

from switchboard.auth.machine import AuthStateMachine
from switchboard.conversation.models import AuthContext
from switchboard.observability.metrics import (
    ACTIVE_SESSIONS,
    AUTH_LOCKOUTS,
    AUTH_TRANSITIONS,
    HANDOFF_TICKETS,
    MESSAGE_LATENCY,
    MESSAGES_PROCESSED,
    PERSIST_FAILURES,
    PROVIDER_CALLS,
    PROVIDER_LATENCY,
    ROUTING_DECISIONS,
)


def _sample(name: str, labels: dict[str, str] | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


class TestMetricDefinitions:
    """All metrics are registered and usable."""

    @pytest.mark.parametrize(
        "metric",
        [
            MESSAGES_PROCESSED,
            MESSAGE_LATENCY,
            ROUTING_DECISIONS,
            AUTH_TRANSITIONS,
            AUTH_LOCKOUTS,
            HANDOFF_TICKETS,
            PROVIDER_CALLS,
            PROVIDER_LATENCY,
            PERSIST_FAILURES,
            ACTIVE_SESSIONS,
        ],
    )
    def test_metric_exists(self, metric) -> None:
        assert metric is not None

    def test_labelled_counter_increment(self) -> None:
        """Labelled counters count per label value."""
        before = _sample("switchboard_routing_decisions_total", {"decision": "dispatch_faq"})
        ROUTING_DECISIONS.labels(decision="dispatch_faq").inc()
        after = _sample("switchboard_routing_decisions_total", {"decision": "dispatch_faq"})
        assert after == before + 1

    def test_histogram_observe(self) -> None:
        """Latency histogram records observations."""
        before = _sample("switchboard_message_latency_seconds_count")
        MESSAGE_LATENCY.observe(0.02)
        assert _sample("switchboard_message_latency_seconds_count") == before + 1


class TestAuthMetrics:
    """Auth state machine records its transitions."""

    def test_transition_counted(self) -> None:
        labels = {"from_state": "anonymous", "to_state": "in_progress"}
        before = _sample("switchboard_auth_transitions_total", labels)

        AuthStateMachine().begin(AuthContext())

        assert _sample("switchboard_auth_transitions_total", labels) == before + 1

    def test_lockout_counted(self) -> None:
        machine = AuthStateMachine(max_failed_attempts=1)
        ctx = machine.begin(AuthContext()).context
        ctx = machine.provide_identity(ctx, "555-1234", "1234567890").context
        ctx = machine.question_issued(ctx, "ssn_last_four").context
        before = _sample("switchboard_auth_lockouts_total")

        machine.record_answer(ctx, correct=False)

        assert _sample("switchboard_auth_lockouts_total") == before + 1
