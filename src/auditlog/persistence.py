"""Audit record persistence through an isolated session."""

from datetime import UTC, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from auditlog.errors import AuditPersistenceError
from auditlog.models import AuditAction, AuditLog


class AuditWriter:
    """Writes audit records with sessions independent of the caller's.

    Each write opens its own session and commits it, so the record is
    neither part of the triggering transaction nor rolled back with it.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    @staticmethod
    def build_record(
        action: AuditAction,
        table_name: str,
        new_state: bytes | None = None,
        old_state: bytes | None = None,
    ) -> AuditLog:
        """Assemble an audit record stamped with the current time."""
        return AuditLog(
            table_name=table_name,
            action=action.value,
            new_state=new_state,
            old_state=old_state,
            created_at=datetime.now(UTC),
        )

    def write(self, record: AuditLog) -> int:
        """Insert an audit record.

        Args:
            record: The record to insert

        Returns:
            The identifier the database assigned

        Raises:
            AuditPersistenceError: If the insert or commit fails
        """
        try:
            with self.session_factory() as session:
                session.add(record)
                session.flush()
                record_id = record.id
                session.commit()
        except SQLAlchemyError as exc:
            raise AuditPersistenceError(
                details={"table_name": record.table_name, "error": str(exc)},
            ) from exc
        return record_id
