"""Audit trail for SQLAlchemy models.

Records a before/after snapshot of every create, update and delete
on audited models:

    factory = create_audit_session_factory(engine)
    register_audit_callbacks(Base, factory)

On SQLite, which allows a single writer per database file, keep the
audit table in its own database. Otherwise every audit insert waits on
the write lock held by the flush that triggered it and fails:

    factory = create_audit_session_factory(engine, audit_engine=audit_engine)
"""

from auditlog.config import AuditSettings, get_settings
from auditlog.errors import (
    AuditError,
    AuditPersistenceError,
    AuditRegistrationError,
    PriorStateLookupError,
    SnapshotError,
)
from auditlog.interceptor import AuditInterceptor, OperationContext
from auditlog.listeners import (
    audit_callback,
    audit_statement_callback,
    register_audit_callbacks,
    remove_audit_callbacks,
    unified_audit_callback,
)
from auditlog.models import AuditAction, AuditBase, AuditLog
from auditlog.observability import configure_logging
from auditlog.outcome import AuditOutcome, AuditStatus
from auditlog.session import create_audit_session_factory


__all__ = [
    "AuditAction",
    "AuditBase",
    "AuditError",
    "AuditInterceptor",
    "AuditLog",
    "AuditOutcome",
    "AuditPersistenceError",
    "AuditRegistrationError",
    "AuditSettings",
    "AuditStatus",
    "OperationContext",
    "PriorStateLookupError",
    "SnapshotError",
    "audit_callback",
    "audit_statement_callback",
    "configure_logging",
    "create_audit_session_factory",
    "get_settings",
    "register_audit_callbacks",
    "remove_audit_callbacks",
    "unified_audit_callback",
]
