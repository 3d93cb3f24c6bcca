"""
Cached INSERT / DELETE / SELECT-by-key statements for entity types.

Each parser derives, once per (entity type, placeholder), the statement text
and the ordered list of fields whose values are bound to it. Delete and get
statements are constrained to primary-key columns; insert binds every
mapped column.
"""

from __future__ import annotations

import abc
import threading
from dataclasses import dataclass
from typing import Dict, Tuple

from sqltool.domain.entity import EntitySchema, schema_of
from sqltool.exceptions import ConfigurationError

DEFAULT_PLACEHOLDER = "%s"


@dataclass(frozen=True)
class DML:
    """Statement template plus the entity fields bound to it, in order."""

    sql: str
    fields: Tuple[str, ...]


class DMLParser(abc.ABC):
    """
    Template-method base: subclasses build the DML, the base caches it.

    The cache is shared by all threads; parsing the same type twice yields
    the same `DML` instance.
    """

    def __init__(self) -> None:
        self._cache: Dict[Tuple[type, str], DML] = {}
        self._lock = threading.Lock()

    def parse(self, entity_type: type, placeholder: str = DEFAULT_PLACEHOLDER) -> DML:
        key = (entity_type, placeholder)
        dml = self._cache.get(key)
        if dml is not None:
            return dml
        with self._lock:
            dml = self._cache.get(key)
            if dml is None:
                dml = self._build(schema_of(entity_type), placeholder)
                self._cache[key] = dml
            return dml

    @abc.abstractmethod
    def _build(self, schema: EntitySchema, placeholder: str) -> DML:  # pragma: no cover - interface only
        raise NotImplementedError


def _key_condition(schema: EntitySchema, placeholder: str, action: str) -> Tuple[str, Tuple[str, ...]]:
    keys = schema.primary_keys
    if not keys:
        raise ConfigurationError(
            f"Cannot {action} table '{schema.table}' by primary key: no field is marked primary_key"
        )
    condition = " AND ".join(f"{k.column} = {placeholder}" for k in keys)
    return condition, tuple(k.name for k in keys)


class InsertDMLParser(DMLParser):
    def _build(self, schema: EntitySchema, placeholder: str) -> DML:
        columns = ", ".join(f.column for f in schema.fields)
        values = ", ".join(placeholder for _ in schema.fields)
        return DML(f"INSERT INTO {schema.table} ({columns}) VALUES ({values})", schema.field_names)


class DeleteDMLParser(DMLParser):
    def _build(self, schema: EntitySchema, placeholder: str) -> DML:
        condition, fields = _key_condition(schema, placeholder, "delete from")
        return DML(f"DELETE FROM {schema.table} WHERE {condition}", fields)


class GetDMLParser(DMLParser):
    def _build(self, schema: EntitySchema, placeholder: str) -> DML:
        condition, fields = _key_condition(schema, placeholder, "select from")
        columns = ", ".join(f.column for f in schema.fields)
        return DML(f"SELECT {columns} FROM {schema.table} WHERE {condition}", fields)


__all__ = [
    "DML",
    "DMLParser",
    "InsertDMLParser",
    "DeleteDMLParser",
    "GetDMLParser",
]
