"""
Entity models and their table mapping.

Entities are plain pydantic models. Column metadata is declared next to each
field with an `Annotated` marker:

    class StaffInfo(Entity):
        __tablename__ = "staff_info"

        staff_id: Annotated[Optional[str], Column(primary_key=True)] = None
        staff_name: Annotated[Optional[str], Column("name")] = None
        position: Optional[str] = None

The mapping is read once, when the class is created, into an `EntitySchema`
descriptor. Statement builders only ever consult that descriptor.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

from sqltool.exceptions import ConfigurationError

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


@dataclass(frozen=True)
class Column:
    """
    Column metadata marker for an entity field.

    Attributes
    ----------
    name : str, optional
        Column name; defaults to the field name.
    primary_key : bool
        Whether the column is part of the primary key.
    hard : bool
        Always bind this column in soft saves, even when its value is None.
    """

    name: Optional[str] = None
    primary_key: bool = False
    hard: bool = False


@dataclass(frozen=True)
class FieldSpec:
    name: str
    column: str
    primary_key: bool = False
    hard: bool = False


@dataclass(frozen=True)
class EntitySchema:
    """Table name and ordered field/column bindings of one entity type."""

    table: str
    fields: Tuple[FieldSpec, ...]

    @property
    def primary_keys(self) -> Tuple[FieldSpec, ...]:
        return tuple(f for f in self.fields if f.primary_key)

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    def field(self, name: str) -> FieldSpec:
        for spec in self.fields:
            if spec.name == name:
                return spec
        raise ConfigurationError(f"Entity table '{self.table}' has no field named '{name}'")

    def column_map(self) -> Dict[str, str]:
        """Lower-cased column labels and field names mapped to field names."""
        mapping: Dict[str, str] = {}
        for spec in self.fields:
            mapping[spec.name.lower()] = spec.name
            mapping[spec.column.lower()] = spec.name
        return mapping


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


class Entity(BaseModel):
    """
    Base class for mapped entities.

    Set ``__tablename__`` to override the table name, which otherwise is the
    class name in snake case.
    """

    __tablename__: ClassVar[Optional[str]] = None
    __entity_schema__: ClassVar[EntitySchema]

    model_config = ConfigDict(validate_assignment=True, populate_by_name=True)

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        cls.__entity_schema__ = build_schema(cls)


def build_schema(entity_type: type) -> EntitySchema:
    """Read the column metadata of a pydantic model class into a descriptor."""
    fields: List[FieldSpec] = []
    for name, info in entity_type.model_fields.items():
        column = next((m for m in info.metadata if isinstance(m, Column)), Column())
        fields.append(
            FieldSpec(
                name=name,
                column=column.name or name,
                primary_key=column.primary_key,
                hard=column.hard,
            )
        )
    table = getattr(entity_type, "__tablename__", None) or camel_to_snake(entity_type.__name__)
    return EntitySchema(table=table, fields=tuple(fields))


def schema_of(target: Any) -> EntitySchema:
    """Return the descriptor of an entity instance or entity class."""
    entity_type = target if isinstance(target, type) else type(target)
    schema = getattr(entity_type, "__entity_schema__", None)
    if not isinstance(schema, EntitySchema):
        raise ConfigurationError(
            f"{entity_type.__name__} is not a mapped entity; derive it from sqltool.Entity"
        )
    return schema


def is_entity_type(target: Any) -> bool:
    return isinstance(target, type) and isinstance(
        getattr(target, "__entity_schema__", None), EntitySchema
    )


def params_of(obj: Any, fields: Sequence[str]) -> List[Any]:
    """Values of `fields` on `obj`, in order."""
    return [getattr(obj, name) for name in fields]


def ensure_homogeneous(rows: Iterable[Any]) -> type:
    """Type shared by every row of a batch."""
    types = {type(row) for row in rows}
    if len(types) != 1:
        raise ConfigurationError(
            "Batch operations require entities of a single type, got: "
            + ", ".join(sorted(t.__name__ for t in types))
        )
    return types.pop()


__all__ = [
    "Column",
    "Entity",
    "EntitySchema",
    "FieldSpec",
    "build_schema",
    "camel_to_snake",
    "ensure_homogeneous",
    "is_entity_type",
    "params_of",
    "schema_of",
]
