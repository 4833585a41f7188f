"""Audit interception: guard, capture, persist.

One AuditInterceptor serves all three lifecycle hooks. Each call runs
inline on the thread that flushed the mutation and never raises; the
result is reported as an AuditOutcome to an observer instead.
"""

from collections.abc import Callable
from dataclasses import dataclass
from functools import partial
from typing import Any

import structlog
from sqlalchemy import Connection
from sqlalchemy.orm import Mapper, ORMExecuteState, Session, object_session, sessionmaker

from auditlog.config import AuditSettings, get_settings
from auditlog.errors import AuditError, PriorStateLookupError, SnapshotError
from auditlog.models import AuditAction, AuditLog
from auditlog.observability import log_outcome
from auditlog.outcome import AuditOutcome, AuditStatus
from auditlog.persistence import AuditWriter
from auditlog.schema import EntityDescriptor, describe
from auditlog.snapshot import capture_state, lookup_prior_state


log = structlog.get_logger()

# Skip reasons
SKIP_OPERATION_FAILED = "operation_failed"
SKIP_METADATA_UNAVAILABLE = "metadata_unavailable"
SKIP_AUDIT_ENTITY = "audit_entity"
SKIP_EXCLUDED_TABLE = "excluded_table"

# Failure reasons
FAIL_PERSISTENCE = "persistence_failed"
FAIL_UNEXPECTED = "unexpected_error"

OutcomeObserver = Callable[[AuditOutcome], None]


@dataclass(frozen=True)
class OperationContext:
    """The in-flight operation a hook fired for.

    Attributes:
        action: Which mutation was applied
        mapper: Mapper of the mutated entity, if known
        target: The entity instance after the mutation, None for
            ORM-enabled statements
        error: Error already raised by the primary operation, if any
    """

    action: AuditAction
    mapper: Mapper[Any] | None
    target: Any
    error: BaseException | str | None = None

    @classmethod
    def from_event(
        cls,
        action: AuditAction,
        mapper: Mapper[Any],
        connection: Connection,
        target: Any,
    ) -> "OperationContext":
        """Build the context from mapper event arguments."""
        return cls(
            action=action,
            mapper=mapper,
            target=target,
            error=_ambient_error(connection, target),
        )

    @classmethod
    def from_statement(
        cls,
        action: AuditAction,
        state: ORMExecuteState,
    ) -> "OperationContext":
        """Build the context for an ORM-enabled INSERT, UPDATE or DELETE.

        Such statements are not tied to one instance, so target is None.
        """
        error = None
        if not state.session.is_active:
            error = "session transaction is inactive"

        return cls(
            action=action,
            mapper=state.bind_mapper,
            target=None,
            error=error,
        )


def _ambient_error(connection: Connection, target: Any) -> str | None:
    """Describe why the triggering flush is no longer healthy, if it isn't."""
    if connection.closed or connection.invalidated:
        return "connection is closed or invalidated"

    session = object_session(target)
    if session is not None and not session.is_active:
        return "session transaction is inactive"

    return None


class AuditInterceptor:
    """Produces one audit record per eligible mutation.

    Usage:
        interceptor = AuditInterceptor(session_factory)
        outcome = interceptor.handle(context)
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        settings: AuditSettings | None = None,
        observer: OutcomeObserver | None = None,
    ) -> None:
        """Initialize the interceptor.

        Args:
            session_factory: Factory for sessions isolated from the caller's
            settings: Audit settings (defaults to the cached settings)
            observer: Receives every outcome (defaults to logging it)
        """
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.observer = observer or log_outcome
        self.writer = AuditWriter(session_factory)

    def handle(self, context: OperationContext) -> AuditOutcome:
        """Audit one intercepted mutation.

        Never raises: failures end up in the returned outcome.
        """
        return self._run(context.action, lambda: context)

    def handle_event(
        self,
        action: AuditAction,
        mapper: Mapper[Any],
        connection: Connection,
        target: Any,
    ) -> AuditOutcome:
        """Audit one mapper event, building its context inside the guard."""
        return self._run(
            action,
            partial(OperationContext.from_event, action, mapper, connection, target),
        )

    def handle_statement(
        self,
        action: AuditAction,
        state: ORMExecuteState,
    ) -> AuditOutcome:
        """Audit one executed ORM-enabled statement."""
        return self._run(action, partial(OperationContext.from_statement, action, state))

    def _run(
        self,
        action: AuditAction,
        build_context: Callable[[], OperationContext],
    ) -> AuditOutcome:
        try:
            outcome = self._process(build_context())
        except Exception as exc:
            outcome = AuditOutcome(
                status=AuditStatus.FAILED,
                action=action,
                reason=FAIL_UNEXPECTED,
                error=exc,
            )

        self._notify(outcome)
        return outcome

    def _process(self, context: OperationContext) -> AuditOutcome:
        action = context.action

        if context.error is not None:
            return self._skipped(action, SKIP_OPERATION_FAILED)

        descriptor = describe(context.mapper)
        if descriptor is None:
            return self._skipped(action, SKIP_METADATA_UNAVAILABLE)

        # Recursion guard: the audit table's own inserts are never audited
        if issubclass(descriptor.entity, AuditLog):
            return self._skipped(action, SKIP_AUDIT_ENTITY, descriptor.table_name)

        if self.settings.is_excluded(descriptor.table_name):
            return self._skipped(action, SKIP_EXCLUDED_TABLE, descriptor.table_name)

        old_state = None
        new_state = None

        # Statement-level mutations have no instance to snapshot or key on
        if context.target is not None:
            if action in (AuditAction.UPDATE, AuditAction.DELETE):
                old_state = self._capture_prior(descriptor, context.target)

            if action in (AuditAction.CREATE, AuditAction.UPDATE):
                new_state = self._capture_current(descriptor, context.target)

        record = self.writer.build_record(
            action=action,
            table_name=descriptor.table_name,
            new_state=new_state,
            old_state=old_state,
        )

        try:
            record_id = self.writer.write(record)
        except AuditError as exc:
            return AuditOutcome(
                status=AuditStatus.FAILED,
                action=action,
                table_name=descriptor.table_name,
                reason=FAIL_PERSISTENCE,
                error=exc,
            )

        return AuditOutcome(
            status=AuditStatus.RECORDED,
            action=action,
            table_name=descriptor.table_name,
            record_id=record_id,
        )

    def _capture_current(
        self,
        descriptor: EntityDescriptor,
        target: Any,
    ) -> bytes | None:
        try:
            return capture_state(descriptor, target)
        except SnapshotError as exc:
            log.warning(
                "audit_snapshot_failed",
                table_name=descriptor.table_name,
                state="new",
                error=exc.message,
            )
            return None

    def _capture_prior(
        self,
        descriptor: EntityDescriptor,
        target: Any,
    ) -> bytes | None:
        try:
            return lookup_prior_state(
                self.session_factory,
                descriptor,
                target,
                allow_partial=self.settings.allow_partial_key_lookup,
            )
        except PriorStateLookupError as exc:
            log.warning(
                "audit_prior_lookup_failed",
                table_name=descriptor.table_name,
                error=exc.details.get("error"),
            )
        except SnapshotError as exc:
            log.warning(
                "audit_snapshot_failed",
                table_name=descriptor.table_name,
                state="old",
                error=exc.message,
            )
        return None

    @staticmethod
    def _skipped(
        action: AuditAction,
        reason: str,
        table_name: str | None = None,
    ) -> AuditOutcome:
        return AuditOutcome(
            status=AuditStatus.SKIPPED,
            action=action,
            table_name=table_name,
            reason=reason,
        )

    def _notify(self, outcome: AuditOutcome) -> None:
        try:
            self.observer(outcome)
        except Exception as exc:
            log.warning(
                "audit_observer_failed",
                action=outcome.action.value,
                error=str(exc),
            )
