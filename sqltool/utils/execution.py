"""
Statement execution against a caller-supplied DB-API connection.

Every helper opens its own cursor and closes it on every exit path; the
connection itself is left open so the caller can keep using it inside the
same transaction.

Usage:
    from sqltool.sql.executors import ExecuteUpdateSQLExecutor
    from sqltool.utils.execution import execute

    count = execute(conn, ExecuteUpdateSQLExecutor(), None,
                    "DELETE FROM staff_info WHERE staff_id = %s", ["01"])
"""

from __future__ import annotations

from contextlib import closing
from typing import Any, Iterable, Iterator, List, Optional, Sequence, Tuple, TypeVar

from sqltool.domain.entity import ensure_homogeneous, params_of
from sqltool.sql.dml import DML
from sqltool.sql.executors import SQLExecutor
from sqltool.utils.logging import get_sql_logger

T = TypeVar("T")

sql_log = get_sql_logger()


def _log_sql(show_sql: bool, sql_id: Optional[str], sql: str, params: Any) -> None:
    if not show_sql:
        return
    label = f"Execute SQL [{sql_id}]" if sql_id else "Execute SQL"
    sql_log.info(f"{label}: {sql}", extra={"sql_id": sql_id, "params": params})


def _chunks(rows: Sequence[Tuple[Any, ...]], size: int) -> Iterator[Sequence[Tuple[Any, ...]]]:
    for start in range(0, len(rows), size):
        yield rows[start : start + size]


def execute(
    connection: Any,
    executor: SQLExecutor[T],
    sql_id: Optional[str],
    sql: str,
    params: Optional[Iterable[Any]] = None,
    show_sql: bool = False,
) -> T:
    """
    Execute one statement and let `executor` read the result.

    Parameters
    ----------
    connection : DB-API connection
        Stays open afterwards.
    executor : SQLExecutor
        Strategy converting the executed cursor into the return value.
    sql_id : str, optional
        Template id, only used for logging.
    sql : str
        Statement text using the driver's placeholder style.
    params : iterable, optional
        Positional parameters.
    show_sql : bool
        Log the statement and parameters on the ``sqltool.sql`` logger.
    """
    bound = tuple(params or ())
    _log_sql(show_sql, sql_id, sql, list(bound))
    with closing(connection.cursor()) as cursor:
        cursor.execute(sql, bound)
        return executor.read(cursor)


def execute_batch(
    connection: Any,
    sql: str,
    rows: Sequence[Sequence[Any]],
    show_sql: bool = False,
    batch_size: int = 500,
) -> int:
    """
    Run `sql` once per parameter row with ``executemany``, `batch_size` rows at a time.

    Returns
    -------
    int
        Sum of affected rows reported by the driver.
    """
    if not rows:
        return 0
    bound: List[Tuple[Any, ...]] = [tuple(row) for row in rows]
    total = 0
    with closing(connection.cursor()) as cursor:
        for chunk in _chunks(bound, max(batch_size, 1)):
            _log_sql(show_sql, None, sql, f"<{len(chunk)} rows>")
            cursor.executemany(sql, chunk)
            total += max(cursor.rowcount or 0, 0)
    return total


def execute_dml_batch(
    connection: Any,
    dml: DML,
    entities: Sequence[Any],
    show_sql: bool = False,
    batch_size: int = 500,
) -> int:
    """Bind every entity against the same cached template and run them as a batch."""
    if not entities:
        return 0
    ensure_homogeneous(entities)
    rows = [params_of(entity, dml.fields) for entity in entities]
    return execute_batch(connection, dml.sql, rows, show_sql=show_sql, batch_size=batch_size)


__all__ = ["execute", "execute_batch", "execute_dml_batch"]
