"""
Statement executor strategies.

An executor receives an open DB-API cursor on which the statement has just
been executed and turns it into the caller-facing result. The execution
utilities own the cursor; executors never close it.
"""

from __future__ import annotations

from typing import Any, Dict, Generic, List, Optional, Protocol, Sequence, TypeVar, runtime_checkable

from sqltool.domain.entity import is_entity_type, schema_of
from sqltool.sql.getters import get_value

T = TypeVar("T")


@runtime_checkable
class SQLExecutor(Protocol[T]):
    """Converts an executed cursor into a result."""

    def read(self, cursor: Any) -> T:
        ...


def _labels(cursor: Any) -> List[str]:
    return [str(column[0]) for column in cursor.description or ()]


def _map_row(row: Sequence[Any], labels: Sequence[str], result_type: type) -> Any:
    if result_type is dict:
        return dict(zip(labels, row))
    if is_entity_type(result_type):
        columns = schema_of(result_type).column_map()
        values: Dict[str, Any] = {}
        for label, value in zip(labels, row):
            field = columns.get(label.lower())
            if field is not None:
                values[field] = value
        return result_type.model_validate(values)
    return get_value(row[0], result_type)


class ExecuteSQLExecutor:
    """True when the statement produced a result set."""

    def read(self, cursor: Any) -> bool:
        return cursor.description is not None


class ExecuteUpdateSQLExecutor:
    """Number of affected rows (0 when the driver cannot tell)."""

    def read(self, cursor: Any) -> int:
        return max(cursor.rowcount or 0, 0)


class GetSQLExecutor(Generic[T]):
    """First row mapped to `result_type`, or None for an empty result."""

    def __init__(self, result_type: type) -> None:
        self.result_type = result_type

    def read(self, cursor: Any) -> Optional[T]:
        if cursor.description is None:
            return None
        row = cursor.fetchone()
        if row is None:
            return None
        return _map_row(row, _labels(cursor), self.result_type)


class SelectSQLExecutor(Generic[T]):
    """Every row mapped to `result_type`."""

    def __init__(self, result_type: type) -> None:
        self.result_type = result_type

    def read(self, cursor: Any) -> List[T]:
        if cursor.description is None:
            return []
        labels = _labels(cursor)
        return [_map_row(row, labels, self.result_type) for row in cursor.fetchall()]


__all__ = [
    "SQLExecutor",
    "ExecuteSQLExecutor",
    "ExecuteUpdateSQLExecutor",
    "GetSQLExecutor",
    "SelectSQLExecutor",
]
