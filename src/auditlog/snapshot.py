"""Snapshot capture for audited entities.

Turns entity state into compact JSON bytes and recovers the
pre-mutation row through an isolated session.
"""

import base64
import json
import math
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from auditlog.constants import SNAPSHOT_ENCODING, SNAPSHOT_SEPARATORS
from auditlog.errors import PriorStateLookupError, SnapshotError
from auditlog.schema import EntityDescriptor


log = structlog.get_logger()


def _serialize_value(value: Any) -> Any:
    """Serialize a value to JSON-compatible primitives.

    Recursively converts the types entities commonly hold. Values
    with no JSON representation raise instead of being stringified.

    Args:
        value: Any value to serialize

    Returns:
        JSON-serializable representation of the value

    Raises:
        SnapshotError: If the value cannot be represented
    """
    # Pass through JSON primitives
    if value is None or isinstance(value, str | int | bool):
        return value

    result: Any
    if isinstance(value, float):
        if not math.isfinite(value):
            raise SnapshotError(
                "Non-finite float cannot be serialized",
                details={"value": repr(value)},
            )
        result = value
    elif isinstance(value, UUID):
        result = str(value)
    elif isinstance(value, datetime | date | time):
        result = value.isoformat()
    elif isinstance(value, Decimal):
        result = str(value)
    elif isinstance(value, Enum):
        result = _serialize_value(value.value)
    elif isinstance(value, bytes | bytearray | memoryview):
        result = base64.b64encode(bytes(value)).decode("ascii")
    elif isinstance(value, dict):
        result = {str(k): _serialize_value(v) for k, v in value.items()}
    elif isinstance(value, list | tuple | set | frozenset):
        result = [_serialize_value(item) for item in value]
    else:
        raise SnapshotError(
            f"Unsupported value type: {type(value).__name__}",
            details={"type": type(value).__name__},
        )

    return result


def encode_snapshot(data: dict[str, Any]) -> bytes:
    """Encode entity state as compact JSON bytes.

    Args:
        data: Field name to value mapping

    Returns:
        UTF-8 JSON, e.g. b'{"id":7,"name":"a"}'

    Raises:
        SnapshotError: If any value cannot be represented
    """
    try:
        encoded = json.dumps(
            _serialize_value(data),
            separators=SNAPSHOT_SEPARATORS,
            allow_nan=False,
        )
    except (TypeError, ValueError) as exc:
        raise SnapshotError(str(exc)) from exc
    return encoded.encode(SNAPSHOT_ENCODING)


def entity_state(descriptor: EntityDescriptor, instance: Any) -> dict[str, Any]:
    """Collect the state of an instance for snapshotting.

    Entities that define __audit_snapshot__() choose their own fields;
    everything else contributes its loaded column attributes.
    """
    custom = getattr(instance, "__audit_snapshot__", None)
    if callable(custom):
        data = custom()
        if not isinstance(data, dict):
            raise SnapshotError(
                "__audit_snapshot__ must return a dict",
                details={"entity": descriptor.entity_name},
            )
        return data
    return descriptor.loaded_state(instance)


def capture_state(descriptor: EntityDescriptor, instance: Any) -> bytes:
    """Serialize the in-memory state of an instance."""
    return encode_snapshot(entity_state(descriptor, instance))


def key_predicate(
    descriptor: EntityDescriptor,
    instance: Any,
    allow_partial: bool = False,
) -> dict[str, Any]:
    """Build the equality predicate used to find the stored row.

    Zero-valued key components are left out. When a composite key has
    some zero components the predicate would match too broadly, so it
    is dropped entirely unless allow_partial is set.

    Args:
        descriptor: Descriptor of the entity
        instance: The in-flight instance
        allow_partial: Keep predicates built from a subset of the key

    Returns:
        Attribute name to value mapping; empty means "do not look up"
    """
    key_values = descriptor.key_values(instance)
    predicate = {kv.field.key: kv.value for kv in key_values if not kv.is_zero}

    if predicate and len(predicate) < len(key_values) and not allow_partial:
        log.warning(
            "audit_prior_lookup_partial_key",
            table_name=descriptor.table_name,
            missing=[kv.field.column for kv in key_values if kv.is_zero],
        )
        return {}

    return predicate


def lookup_prior_state(
    session_factory: sessionmaker[Session],
    descriptor: EntityDescriptor,
    instance: Any,
    allow_partial: bool = False,
) -> bytes | None:
    """Fetch and serialize the stored row behind an instance.

    The row is read with a fresh session, outside the transaction that
    is flushing the mutation, so it reflects the last committed state.

    Args:
        session_factory: Isolated session factory
        descriptor: Descriptor of the entity
        instance: The in-flight instance
        allow_partial: Passed through to key_predicate

    Returns:
        Serialized prior state, or None when there is no key to look up
        or no stored row

    Raises:
        PriorStateLookupError: If the query fails
        SnapshotError: If the stored row cannot be serialized
    """
    predicate = key_predicate(descriptor, instance, allow_partial)
    if not predicate:
        return None

    statement = select(descriptor.entity).filter_by(**predicate).limit(1)
    try:
        with session_factory() as session:
            prior = session.scalars(statement).first()
            if prior is None:
                return None
            return capture_state(descriptor, prior)
    except SQLAlchemyError as exc:
        raise PriorStateLookupError(
            details={"table_name": descriptor.table_name, "error": str(exc)},
        ) from exc
