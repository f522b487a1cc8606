"""Tests for structured logging."""

import json
from io import StringIO

import pytest
import structlog

from switchboard.observability.logging import (
    PIIRedactor,
    get_logger,
    setup_logging,
)


def _capture(redact_pii: bool) -> StringIO:
    """Route JSON log output into a buffer with the same processor order as setup_logging."""
    output = StringIO()
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
    ]
    if redact_pii:
        processors.append(PIIRedactor())
    processors += [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ]
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(0),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(output),
        cache_logger_on_first_use=False,
    )
    return output


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_json_format(self) -> None:
        """Should configure JSON format for production."""
        setup_logging(level="INFO", format="json", redact_pii=False)
        logger = get_logger("test")
        # Should not raise
        logger.info("test_message")

    def test_setup_console_format(self) -> None:
        """Should configure console format for development."""
        setup_logging(level="DEBUG", format="console", redact_pii=False)
        logger = get_logger("test")
        logger.debug("test_message")

    def test_setup_with_pii_redaction(self) -> None:
        """Should configure PII redaction when enabled."""
        setup_logging(level="INFO", format="json", redact_pii=True)
        logger = get_logger("test")
        logger.info("test_message", email="user@example.com")

    def test_unknown_level_falls_back_to_info(self) -> None:
        """Unknown level names do not raise."""
        setup_logging(level="VERBOSE", format="json")
        get_logger("test").info("test_message")


class TestContextBinding:
    """Tests for context binding via structlog.contextvars."""

    def test_bound_session_id_appears_in_logs(self) -> None:
        """Context bound for a turn is merged into every event."""
        output = _capture(redact_pii=True)
        logger = structlog.get_logger("test")

        with structlog.contextvars.bound_contextvars(session_id="session-42"):
            logger.info("message_received", length=12)
        logger.info("after_turn")

        first, second = (json.loads(line) for line in output.getvalue().splitlines())
        assert first["session_id"] == "session-42"
        assert first["length"] == 12
        assert "session_id" not in second


class TestPIIRedactor:
    """Tests for PII redaction."""

    @pytest.fixture
    def redactor(self) -> PIIRedactor:
        return PIIRedactor()

    def test_redacts_identity_keys(self, redactor: PIIRedactor) -> None:
        """Values of identity and verification keys are replaced."""
        event_dict = {
            "identifying_info": "555-1234",
            "answer": "1234",
            "date_of_birth": "03/15/1985",
            "ticket_id": "t-1",
        }
        result = redactor(None, None, event_dict)  # type: ignore
        assert result["identifying_info"] == "[REDACTED]"
        assert result["answer"] == "[REDACTED]"
        assert result["date_of_birth"] == "[REDACTED]"
        assert result["ticket_id"] == "t-1"

    def test_key_match_is_case_insensitive(self, redactor: PIIRedactor) -> None:
        """Key lookup ignores case."""
        result = redactor(None, None, {"Email": "user@example.com"})  # type: ignore
        assert result["Email"] == "[REDACTED]"

    def test_redacts_ssn_by_key(self, redactor: PIIRedactor) -> None:
        """Should redact SSN values."""
        event_dict = {"ssn": "123-45-6789", "name": "John"}
        result = redactor(None, None, event_dict)  # type: ignore
        assert result["ssn"] == "[REDACTED]"
        assert result["name"] == "John"

    def test_redacts_email_pattern_in_string_value(self, redactor: PIIRedactor) -> None:
        """Should redact email patterns found in string values."""
        event_dict = {"error": "No account for maria.garcia@example.com"}
        result = redactor(None, None, event_dict)  # type: ignore
        assert "maria.garcia@example.com" not in result["error"]
        assert "[EMAIL]" in result["error"]

    def test_redacts_ssn_pattern_in_string_value(self, redactor: PIIRedactor) -> None:
        """Full SSNs in free text are masked."""
        result = redactor(None, None, {"error": "bad input 123-45-6789"})  # type: ignore
        assert result["error"] == "bad input [SSN]"

    def test_redacts_phone_pattern_in_string_value(self, redactor: PIIRedactor) -> None:
        """Should redact phone patterns found in string values."""
        event_dict = {"error": "Call me at +1-555-123-4567 please"}
        result = redactor(None, None, event_dict)  # type: ignore
        assert "+1-555-123-4567" not in result["error"]
        assert "[PHONE]" in result["error"]

    def test_handles_nested_dicts(self, redactor: PIIRedactor) -> None:
        """Should handle nested dictionaries."""
        event_dict = {
            "customer": {"phone": "555-1234", "name": "John"},
            "data": "ok",
        }
        result = redactor(None, None, event_dict)  # type: ignore
        assert result["customer"]["phone"] == "[REDACTED]"
        assert result["customer"]["name"] == "John"

    def test_handles_lists(self, redactor: PIIRedactor) -> None:
        """Strings inside lists are scrubbed."""
        event_dict = {"key_facts": ["reach me at user@example.com", "balance question"]}
        result = redactor(None, None, event_dict)  # type: ignore
        assert result["key_facts"] == ["reach me at [EMAIL]", "balance question"]

    def test_preserves_non_pii_data(self, redactor: PIIRedactor) -> None:
        """Should preserve non-PII data."""
        event_dict = {
            "event": "message_handled",
            "elapsed_ms": 15.2,
            "required_action": "none",
            "attempt": 2,
        }
        result = redactor(None, None, event_dict)  # type: ignore
        assert result == event_dict


class TestJSONLogging:
    """Tests for JSON log output format."""

    def test_json_output_is_valid_json(self) -> None:
        """Should produce valid JSON output."""
        output = _capture(redact_pii=False)

        structlog.get_logger("test").info("test_event", key="value")

        parsed = json.loads(output.getvalue().strip())
        assert parsed["event"] == "test_event"
        assert parsed["key"] == "value"
        assert "timestamp" in parsed
        assert "level" in parsed

    def test_timestamp_not_redacted(self) -> None:
        """The ISO timestamp is added after redaction and survives intact."""
        output = _capture(redact_pii=True)

        structlog.get_logger("test").info("test_event", email="user@example.com")

        parsed = json.loads(output.getvalue().strip())
        assert parsed["email"] == "[REDACTED]"
        assert "[PHONE]" not in parsed["timestamp"]
