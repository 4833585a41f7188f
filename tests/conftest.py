"""Pytest configuration and shared fixtures for audit tests."""

from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy import Engine, create_engine, select
from sqlalchemy.orm import Mapper, Session, sessionmaker

from auditlog import (
    AuditBase,
    AuditInterceptor,
    AuditLog,
    AuditOutcome,
    AuditSettings,
    create_audit_session_factory,
    register_audit_callbacks,
    remove_audit_callbacks,
)
from tests.models import ModelBase


@pytest.fixture
def settings() -> AuditSettings:
    """Settings isolated from the environment and any .env file."""
    return AuditSettings(_env_file=None)


@pytest.fixture
def engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """Engine for the audited tables, backed by a temporary SQLite file."""
    engine = create_engine(f"sqlite:///{tmp_path / 'app.db'}")
    ModelBase.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def audit_engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """Engine for the audit table.

    SQLite allows a single writer per database file, so audit rows go
    to their own file while the audited flush holds its write lock.
    """
    engine = create_engine(f"sqlite:///{tmp_path / 'audit.db'}")
    AuditBase.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine, audit_engine: Engine) -> sessionmaker[Session]:
    """Isolated session factory used by the audit hooks."""
    return create_audit_session_factory(engine, audit_engine=audit_engine)


@pytest.fixture
def outcomes() -> list[AuditOutcome]:
    """Collects every outcome reported by the interceptor."""
    return []


@pytest.fixture
def audited(
    session_factory: sessionmaker[Session],
    settings: AuditSettings,
    outcomes: list[AuditOutcome],
) -> Generator[AuditInterceptor, None, None]:
    """Audit hooks registered on every mapper, removed after the test.

    Registering on Mapper means the audit table's own inserts reach
    the hooks too, so the recursion guard is always in play.
    """
    interceptor = register_audit_callbacks(
        Mapper,
        session_factory,
        settings=settings,
        observer=outcomes.append,
    )
    yield interceptor
    remove_audit_callbacks(Mapper)


@pytest.fixture
def db(engine: Engine) -> Generator[Session, None, None]:
    """Application session whose mutations get audited."""
    with Session(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def audit_rows(audit_engine: Engine):
    """Return a callable that reads back every audit row in insert order."""

    def read() -> list[AuditLog]:
        with Session(audit_engine) as session:
            return list(session.scalars(select(AuditLog).order_by(AuditLog.id)))

    return read
