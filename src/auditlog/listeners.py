"""Audit hook registration via SQLAlchemy events.

register_audit_callbacks() is the package's entry point: it attaches
one after_insert, after_update and after_delete listener to a mapped
class, a declarative base or a Mapper, all feeding one interceptor.
ORM-enabled INSERT, UPDATE and DELETE statements bypass those mapper
events, so each hook also watches Session.execute() for them.
"""

import warnings
from collections.abc import Callable
from operator import attrgetter
from typing import Any

import structlog
from sqlalchemy import Connection, event
from sqlalchemy.engine import Result
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Mapper, ORMExecuteState, Session, sessionmaker

from auditlog.config import AuditSettings, get_settings
from auditlog.constants import (
    AFTER_DELETE_EVENT,
    AFTER_INSERT_EVENT,
    AFTER_UPDATE_EVENT,
    CREATE_HOOK_NAME,
    DELETE_HOOK_NAME,
    DO_ORM_EXECUTE_EVENT,
    UPDATE_HOOK_NAME,
)
from auditlog.errors import AuditRegistrationError
from auditlog.interceptor import AuditInterceptor, OutcomeObserver
from auditlog.models import AuditAction


log = structlog.get_logger()

MapperCallback = Callable[[Mapper[Any], Connection, Any], None]
StatementCallback = Callable[[ORMExecuteState], Result[Any] | None]

# (action, mapper event, hook name)
_HOOKS: tuple[tuple[AuditAction, str, str], ...] = (
    (AuditAction.CREATE, AFTER_INSERT_EVENT, CREATE_HOOK_NAME),
    (AuditAction.UPDATE, AFTER_UPDATE_EVENT, UPDATE_HOOK_NAME),
    (AuditAction.DELETE, AFTER_DELETE_EVENT, DELETE_HOOK_NAME),
)

_STATEMENT_KINDS: dict[AuditAction, Callable[[ORMExecuteState], bool]] = {
    AuditAction.CREATE: attrgetter("is_insert"),
    AuditAction.UPDATE: attrgetter("is_update"),
    AuditAction.DELETE: attrgetter("is_delete"),
}

# target -> {hook name: [(listen target, event name, callback)]}
_registered: dict[Any, dict[str, list[tuple[Any, str, Callable[..., Any]]]]] = {}


def audit_callback(action: AuditAction, interceptor: AuditInterceptor) -> MapperCallback:
    """Build the mapper event listener for one action.

    Args:
        action: The action the listener records
        interceptor: Interceptor that handles each event

    Returns:
        A listener with the (mapper, connection, target) signature
    """

    def callback(mapper: Mapper[Any], connection: Connection, target: Any) -> None:
        interceptor.handle_event(action, mapper, connection, target)

    callback.__name__ = f"audit_{action.value.lower()}"
    return callback


def audit_statement_callback(
    action: AuditAction,
    target: Any,
    interceptor: AuditInterceptor,
) -> StatementCallback:
    """Build the do_orm_execute listener for one action.

    The listener runs matching statements itself and records one audit
    entry per statement once it has succeeded. A statement that raises
    is not audited.

    Args:
        action: The action the listener records
        target: Registration target the statement's mapper must fall under
        interceptor: Interceptor that handles each statement
    """
    is_kind = _STATEMENT_KINDS[action]

    def callback(state: ORMExecuteState) -> Result[Any] | None:
        mapper = state.bind_mapper
        if mapper is None or not is_kind(state) or not _covers(target, mapper):
            return None

        result = state.invoke_statement()
        interceptor.handle_statement(action, state)
        return result

    callback.__name__ = f"audit_{action.value.lower()}_statement"
    return callback


def unified_audit_callback(
    action: AuditAction,
    interceptor: AuditInterceptor,
) -> MapperCallback:
    """Deprecated alias of audit_callback()."""
    warnings.warn(
        "unified_audit_callback() is deprecated, use audit_callback() instead",
        DeprecationWarning,
        stacklevel=2,
    )
    return audit_callback(action, interceptor)


def _validate_target(target: Any) -> None:
    if isinstance(target, Mapper):
        return
    if isinstance(target, type):
        return
    raise AuditRegistrationError(
        f"Cannot attach audit hooks to {target!r}",
        details={"reason": "target must be a mapped class, base class or Mapper"},
    )


def _target_class(target: Any) -> type:
    if isinstance(target, Mapper):
        return target.class_
    return target


def _is_global(target: Any) -> bool:
    return isinstance(target, type) and issubclass(target, Mapper)


def _covers(target: Any, mapper: Mapper[Any]) -> bool:
    """Whether hooks registered on target apply to mapper."""
    if _is_global(target):
        return True
    if isinstance(target, Mapper):
        return mapper.isa(target)
    return issubclass(mapper.class_, target)


def _overlaps(target: Any, other: Any) -> bool:
    """Whether two registration targets would both fire for some mapper."""
    if _is_global(target) or _is_global(other):
        return True
    cls, other_cls = _target_class(target), _target_class(other)
    return issubclass(cls, other_cls) or issubclass(other_cls, cls)


def _propagates(target: Any) -> bool:
    # Listeners on the Mapper class already apply to every mapper
    return not _is_global(target)


def _detach(hooks: dict[str, list[tuple[Any, str, Callable[..., Any]]]]) -> None:
    for listeners in hooks.values():
        for listen_target, event_name, callback in listeners:
            if event.contains(listen_target, event_name, callback):
                event.remove(listen_target, event_name, callback)
    hooks.clear()


def _check_unregistered(target: Any) -> None:
    for other, hooks in _registered.items():
        if not hooks or not _overlaps(target, other):
            continue
        for _action, _event_name, hook_name in _HOOKS:
            if hook_name in hooks:
                raise AuditRegistrationError(
                    f"Audit hook {hook_name} is already registered on {other!r}",
                    hook=hook_name,
                    details={"registered_on": repr(other)},
                )


def register_audit_callbacks(
    target: Any,
    session_factory: sessionmaker[Session],
    *,
    settings: AuditSettings | None = None,
    observer: OutcomeObserver | None = None,
) -> AuditInterceptor:
    """Attach the create, update and delete audit hooks.

    Each hook runs after SQLAlchemy has executed the corresponding
    statement, so generated keys are already on the instance. Call this
    once during startup; a failure here should abort startup.

    Args:
        target: Mapped class, declarative base (hooks propagate to
            subclasses) or Mapper
        session_factory: Factory for sessions isolated from the caller's,
            see create_audit_session_factory()
        settings: Audit settings (defaults to the cached settings)
        observer: Receives the outcome of every intercepted mutation

    Returns:
        The interceptor behind the hooks

    Raises:
        AuditRegistrationError: If the target is invalid, hooks are
            already registered on it or on a target overlapping it
            (a base or subclass of it, or Mapper), or SQLAlchemy rejects
            the target
    """
    _validate_target(target)

    settings = settings or get_settings()
    interceptor = AuditInterceptor(session_factory, settings=settings, observer=observer)

    if not settings.enabled:
        log.info("audit_callbacks_disabled", target=repr(target))
        return interceptor

    _check_unregistered(target)

    hooks: dict[str, list[tuple[Any, str, Callable[..., Any]]]] = {}
    for action, event_name, hook_name in _HOOKS:
        listeners = hooks.setdefault(hook_name, [])
        try:
            callback = audit_callback(action, interceptor)
            event.listen(target, event_name, callback, propagate=_propagates(target))
            listeners.append((target, event_name, callback))

            statement_callback = audit_statement_callback(action, target, interceptor)
            event.listen(Session, DO_ORM_EXECUTE_EVENT, statement_callback)
            listeners.append((Session, DO_ORM_EXECUTE_EVENT, statement_callback))
        except SQLAlchemyError as exc:
            _detach(hooks)
            raise AuditRegistrationError(
                f"{hook_name}: {exc}",
                hook=hook_name,
            ) from exc

    _registered[target] = hooks
    log.info(
        "audit_callbacks_registered",
        target=repr(target),
        hooks=list(hooks),
    )
    return interceptor


def remove_audit_callbacks(target: Any) -> None:
    """Detach the audit hooks from a target.

    Does nothing if no hooks were registered on it.
    """
    hooks = _registered.pop(target, None)
    if not hooks:
        return

    _detach(hooks)
    log.info("audit_callbacks_removed", target=repr(target))


def registered_hooks(target: Any) -> list[str]:
    """Return the names of the audit hooks registered on a target."""
    return list(_registered.get(target, {}))
