"""
Domain package for sqltool.

Exports the entity base class and the table-mapping descriptors consulted by
the statement builders.
"""

from sqltool.domain.entity import (
    Column,
    Entity,
    EntitySchema,
    FieldSpec,
    params_of,
    schema_of,
)

__all__ = [
    "Column",
    "Entity",
    "EntitySchema",
    "FieldSpec",
    "params_of",
    "schema_of",
]
