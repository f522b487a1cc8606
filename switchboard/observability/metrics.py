"""Prometheus metrics for Switchboard.

Counters and histograms for message handling, routing, authentication,
handoff tickets and capability provider calls.
"""

from prometheus_client import Counter, Gauge, Histogram

MESSAGES_PROCESSED = Counter(
    "switchboard_messages_processed_total",
    "Total number of inbound messages processed",
    labelnames=["required_action"],
)

MESSAGE_LATENCY = Histogram(
    "switchboard_message_latency_seconds",
    "End-to-end latency of handle_message",
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

ROUTING_DECISIONS = Counter(
    "switchboard_routing_decisions_total",
    "Routing decisions by outcome",
    labelnames=["decision"],
)

AUTH_TRANSITIONS = Counter(
    "switchboard_auth_transitions_total",
    "Auth state machine transitions",
    labelnames=["from_state", "to_state"],
)

AUTH_LOCKOUTS = Counter(
    "switchboard_auth_lockouts_total",
    "Sessions locked out after too many failed verification attempts",
)

HANDOFF_TICKETS = Counter(
    "switchboard_handoff_tickets_total",
    "Handoff ticket state changes",
    labelnames=["state"],
)

PROVIDER_CALLS = Counter(
    "switchboard_provider_calls_total",
    "Capability provider calls",
    labelnames=["provider", "status"],
)

PROVIDER_LATENCY = Histogram(
    "switchboard_provider_latency_seconds",
    "Latency of capability provider calls",
    labelnames=["provider"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

PERSIST_FAILURES = Counter(
    "switchboard_persist_failures_total",
    "Session saves that failed after all retries",
)

ACTIVE_SESSIONS = Gauge(
    "switchboard_active_sessions",
    "Number of sessions currently held in the critical section",
)
