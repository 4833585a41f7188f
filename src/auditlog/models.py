"""Audit log database model.

Stores one row per intercepted create, update or delete, holding
the serialized state of the entity before and after the change.
"""

from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import DateTime, Integer, LargeBinary, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from auditlog.config import get_settings
from auditlog.constants import MAX_ACTION_LENGTH, MAX_TABLE_NAME_LENGTH


class AuditAction(str, Enum):
    """Mutation type recorded in an audit entry."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class AuditBase(DeclarativeBase):
    """Declarative base holding the audit table.

    Kept apart from application bases so the audit table can live in
    its own metadata (and its own database, if the session factory
    binds it elsewhere).
    """

    pass


class AuditLog(AuditBase):
    """Audit log entry for a single mutation.

    Attributes:
        id: Identifier assigned by the database on insert
        table_name: Table of the entity that was mutated
        action: CREATE, UPDATE or DELETE
        new_state: JSON bytes of the entity after the change (None for DELETE)
        old_state: JSON bytes of the entity before the change (None for CREATE)
        created_at: When the audit entry was produced
    """

    __tablename__ = get_settings().table_name

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    table_name: Mapped[str] = mapped_column(
        String(MAX_TABLE_NAME_LENGTH),
        nullable=False,
        index=True,
    )
    action: Mapped[str] = mapped_column(
        String(MAX_ACTION_LENGTH),
        nullable=False,
    )

    # Data
    new_state: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    old_state: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)

    # Timestamp
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, action={self.action}, "
            f"table_name={self.table_name})>"
        )
