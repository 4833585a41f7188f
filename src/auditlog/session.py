"""Isolated session factory for audit reads and writes."""

from sqlalchemy import Engine
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.orm import Session, sessionmaker

from auditlog.models import AuditBase


def _sync_engine(engine: Engine | AsyncEngine) -> Engine:
    """Return the synchronous engine behind an engine.

    Mapper events fired from an AsyncSession run inside SQLAlchemy's
    greenlet bridge, where the async engine's sync_engine is usable.
    """
    if isinstance(engine, AsyncEngine):
        return engine.sync_engine
    return engine


def create_audit_session_factory(
    engine: Engine | AsyncEngine,
    *,
    audit_engine: Engine | AsyncEngine | None = None,
) -> sessionmaker[Session]:
    """Create the session factory the audit hooks use.

    Every session it produces checks out its own connection, separate
    from whichever session triggered the hook.

    SQLite allows a single writer per database file and the triggering
    flush holds it while the hooks run, so with SQLite pass an
    audit_engine for a separate database file.

    Args:
        engine: Engine holding the audited tables
        audit_engine: Engine holding the audit table, if it lives in a
            different database

    Returns:
        A sessionmaker for isolated audit sessions

    Usage:
        factory = create_audit_session_factory(engine)
        register_audit_callbacks(Base, factory)

        # SQLite
        factory = create_audit_session_factory(engine, audit_engine=audit_engine)
    """
    binds = None
    if audit_engine is not None:
        binds = {AuditBase: _sync_engine(audit_engine)}

    return sessionmaker(
        bind=_sync_engine(engine),
        binds=binds,
        expire_on_commit=False,
        autoflush=False,
    )
