"""Tests for logging configuration and the default outcome observer."""

import pytest
import structlog
from structlog.testing import capture_logs

from auditlog.config import AuditSettings
from auditlog.errors import AuditPersistenceError
from auditlog.models import AuditAction
from auditlog.observability import configure_logging, log_outcome
from auditlog.outcome import AuditOutcome, AuditStatus


@pytest.fixture
def reset_structlog():
    """Restore structlog defaults after the test."""
    yield
    structlog.reset_defaults()


class TestConfigureLogging:
    """Tests for configure_logging."""

    @pytest.mark.parametrize("json_logs", [True, False])
    def test_configures_structlog(self, reset_structlog, json_logs):
        """Verify both renderers can be configured."""
        configure_logging(AuditSettings(_env_file=None, json_logs=json_logs))

        assert structlog.is_configured()


class TestLogOutcome:
    """Tests for log_outcome."""

    def test_recorded_logs_debug(self):
        """Verify recorded outcomes log the record id."""
        outcome = AuditOutcome(
            status=AuditStatus.RECORDED,
            action=AuditAction.CREATE,
            table_name="widgets",
            record_id=5,
        )

        with capture_logs() as logs:
            log_outcome(outcome)

        assert logs == [
            {
                "event": "audit_recorded",
                "log_level": "debug",
                "record_id": 5,
                "action": "CREATE",
                "table_name": "widgets",
            }
        ]

    def test_skipped_logs_reason(self):
        """Verify skipped outcomes log why."""
        outcome = AuditOutcome(
            status=AuditStatus.SKIPPED,
            action=AuditAction.UPDATE,
            reason="audit_entity",
        )

        with capture_logs() as logs:
            log_outcome(outcome)

        assert logs[0]["event"] == "audit_skipped"
        assert logs[0]["reason"] == "audit_entity"

    def test_failed_logs_warning(self):
        """Verify failed outcomes are warnings carrying the error."""
        outcome = AuditOutcome(
            status=AuditStatus.FAILED,
            action=AuditAction.DELETE,
            table_name="widgets",
            reason="persistence_failed",
            error=AuditPersistenceError(),
        )

        with capture_logs() as logs:
            log_outcome(outcome)

        assert logs[0]["event"] == "audit_failed"
        assert logs[0]["log_level"] == "warning"
        assert logs[0]["error"] == "Audit record could not be persisted"
