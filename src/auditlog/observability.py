"""Logging setup and the default audit outcome observer."""

import logging

import structlog

from auditlog.config import AuditSettings, get_settings
from auditlog.outcome import AuditOutcome, AuditStatus


log = structlog.get_logger()


def configure_logging(settings: AuditSettings | None = None) -> None:
    """Configure structlog for the audit package.

    Applications that already configure structlog can skip this; the
    package only ever calls structlog.get_logger().

    Args:
        settings: Settings to read log level and format from
    """
    settings = settings or get_settings()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            (
                structlog.processors.JSONRenderer()
                if settings.json_logs
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.log_level)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def log_outcome(outcome: AuditOutcome) -> None:
    """Log an audit outcome.

    Recorded and skipped outcomes are routine and go to debug; failed
    ones are warnings so audit gaps show up in the logs.
    """
    fields = {
        "action": outcome.action.value,
        "table_name": outcome.table_name,
    }

    if outcome.status is AuditStatus.RECORDED:
        log.debug("audit_recorded", record_id=outcome.record_id, **fields)
    elif outcome.status is AuditStatus.SKIPPED:
        log.debug("audit_skipped", reason=outcome.reason, **fields)
    else:
        log.warning(
            "audit_failed",
            reason=outcome.reason,
            error=str(outcome.error) if outcome.error else None,
            **fields,
        )
