"""Entity descriptors resolved from SQLAlchemy mappers.

The interceptor never inspects model classes directly. It asks for an
EntityDescriptor, which names the table, lists the primary-key fields
and reads their current values off an in-flight instance.
"""

from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from typing import Any
from uuid import UUID

from sqlalchemy import inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import Mapper


@dataclass(frozen=True)
class PrimaryKeyField:
    """A single primary-key component.

    Attributes:
        key: Attribute name on the mapped class
        column: Column name in the table
    """

    key: str
    column: str


@dataclass(frozen=True)
class KeyValue:
    """Current value of a primary-key field on an instance."""

    field: PrimaryKeyField
    value: Any
    is_zero: bool


@dataclass(frozen=True)
class EntityDescriptor:
    """Structural description of a mapped entity type.

    Attributes:
        entity: The mapped class
        entity_name: Class name, used in log events
        table_name: Table the entity persists to
        primary_key: Primary-key fields in mapper order
        column_keys: Column attribute names in mapper order
    """

    entity: type[Any]
    entity_name: str
    table_name: str
    primary_key: tuple[PrimaryKeyField, ...]
    column_keys: tuple[str, ...]

    def key_values(self, instance: Any) -> list[KeyValue]:
        """Read every primary-key value off an instance.

        Only already-loaded state is consulted, so this never emits SQL.
        Expired key attributes fall back to the identity key of a
        persistent instance.

        Args:
            instance: Mapped instance of this entity

        Returns:
            One KeyValue per primary-key field
        """
        state = inspect(instance)
        loaded = state.dict
        identity = state.identity
        values = []
        for index, pk_field in enumerate(self.primary_key):
            if pk_field.key in loaded or identity is None:
                value = loaded.get(pk_field.key)
            else:
                value = identity[index]
            values.append(KeyValue(pk_field, value, is_zero_value(value)))
        return values

    def loaded_state(self, instance: Any) -> dict[str, Any]:
        """Return the loaded column values of an instance in column order."""
        loaded = inspect(instance).dict
        return {key: loaded[key] for key in self.column_keys if key in loaded}


def is_zero_value(value: Any) -> bool:
    """Check whether a key value is its type's zero value.

    None, False, numeric zero, empty strings/bytes and the nil UUID
    count as zero. Anything else is a set value.
    """
    if value is None:
        return True
    if isinstance(value, bool):
        return not value
    if isinstance(value, int | float | Decimal):
        return value == 0
    if isinstance(value, str | bytes):
        return len(value) == 0
    if isinstance(value, UUID):
        return value.int == 0
    return False


@lru_cache(maxsize=None)
def describe_mapper(mapper: Mapper[Any]) -> EntityDescriptor | None:
    """Build the descriptor for a mapper.

    Args:
        mapper: SQLAlchemy mapper of the entity

    Returns:
        The descriptor, or None if the mapper does not map to a named
        table with a primary key
    """
    table_name = getattr(mapper.local_table, "name", None)
    if not table_name or not mapper.primary_key:
        return None

    primary_key = tuple(
        PrimaryKeyField(
            key=mapper.get_property_by_column(column).key,
            column=column.name,
        )
        for column in mapper.primary_key
    )

    return EntityDescriptor(
        entity=mapper.class_,
        entity_name=mapper.class_.__name__,
        table_name=table_name,
        primary_key=primary_key,
        column_keys=tuple(prop.key for prop in mapper.column_attrs),
    )


def describe(entity: Any) -> EntityDescriptor | None:
    """Resolve the descriptor for a mapped class, instance or mapper.

    Returns None for anything SQLAlchemy cannot inspect as mapped.
    """
    if entity is None:
        return None
    if isinstance(entity, Mapper):
        return describe_mapper(entity)

    try:
        insp = inspect(entity)
    except NoInspectionAvailable:
        return None

    mapper = insp if isinstance(insp, Mapper) else getattr(insp, "mapper", None)
    if not isinstance(mapper, Mapper):
        return None
    return describe_mapper(mapper)
