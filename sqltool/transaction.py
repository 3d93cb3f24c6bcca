"""
Explicit transactions and the CRUD operations that run inside them.

`TransactionExecutor.begin_transaction` opens a dedicated (unpooled)
connection, switches it to manual commit and returns a `Transaction` handle.
Every operation takes that handle as its first argument, so the unit of work
a statement belongs to is always visible at the call site:

    executor = TransactionExecutor()
    tx = executor.begin_transaction({"url": "mysql://localhost:3306/app", "user": "u", "password": "p"})
    try:
        executor.insert(tx, StaffInfo(staff_id="01", staff_name="June"))
        executor.commit(tx)
    except Exception:
        executor.rollback(tx)
        raise

or, equivalently:

    with executor.transaction(options) as tx:
        executor.insert(tx, StaffInfo(staff_id="01", staff_name="June"))

After `commit` or `rollback` the handle is finished: its connection is
closed and any further operation on it raises `IllegalCallError`.
"""

from __future__ import annotations

from contextlib import contextmanager
from types import ModuleType
from typing import Any, Callable, Generator, List, Mapping, Optional, Sequence, TypeVar

from sqltool.config import DEFAULT_BATCH_SIZE, DataSourceConfig
from sqltool.dialects import SQLDialect, resolve_dialect
from sqltool.domain.entity import ensure_homogeneous, params_of
from sqltool.exceptions import IllegalCallError, SQLExecutionError
from sqltool.infrastructure.datasource import (
    check_connect_options,
    close_quietly,
    disable_autocommit,
    driver_name,
    load_driver,
    open_connection,
)
from sqltool.sql.dml import DML, DeleteDMLParser, GetDMLParser, InsertDMLParser
from sqltool.sql.dsql import DSQLFactory, NamedSQL, Params
from sqltool.sql.executors import (
    ExecuteSQLExecutor,
    ExecuteUpdateSQLExecutor,
    GetSQLExecutor,
    SelectSQLExecutor,
    SQLExecutor,
)
from sqltool.utils.execution import execute, execute_dml_batch
from sqltool.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")


class Transaction:
    """
    Handle of one unit of work.

    Holds the connection and the dialect resolved for it. The handle is
    active from creation until `TransactionExecutor.commit` or
    `TransactionExecutor.rollback`; both clear it completely.
    """

    def __init__(
        self,
        connection: Any,
        dialect: SQLDialect,
        driver: ModuleType,
        datasource: Optional[str] = None,
        release: Callable[[Any], None] = close_quietly,
    ) -> None:
        self.connection: Any = connection
        self.dialect: Optional[SQLDialect] = dialect
        self.driver: Optional[ModuleType] = driver
        self.datasource = datasource
        self._release = release

    @property
    def active(self) -> bool:
        return self.connection is not None

    def _finish(self) -> None:
        connection = self.connection
        self.connection = None
        self.dialect = None
        self.driver = None
        self._release(connection)

    def __repr__(self) -> str:
        state = "active" if self.active else "finished"
        return f"Transaction(datasource={self.datasource!r}, {state})"


def _is_batch(target: Any) -> bool:
    return isinstance(target, (list, tuple))


def _require(tx: Optional[Transaction]) -> Transaction:
    if tx is None or not tx.active:
        raise IllegalCallError("You must call begin_transaction first before you call this method")
    return tx


@contextmanager
def _driver_errors(tx: Transaction) -> Generator[None, None, None]:
    """Re-raise the driver's PEP 249 errors as SQLExecutionError."""
    try:
        yield
    except getattr(tx.driver, "Error", ()) as exc:
        raise SQLExecutionError(str(exc)) from exc


class TransactionExecutor:
    """
    CRUD and DSQL operations against an explicit `Transaction`.

    Parameters
    ----------
    dsql_factory : DSQLFactory, optional
        Resolves DSQL template ids; literal DSQL works without templates.
    show_sql : bool
        Log every statement on the ``sqltool.sql`` logger.
    default_batch_size : int
        Rows per ``executemany`` call for list arguments.
    """

    def __init__(
        self,
        dsql_factory: Optional[DSQLFactory] = None,
        show_sql: bool = True,
        default_batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self.dsql_factory = dsql_factory or DSQLFactory()
        self.show_sql = show_sql
        self.default_batch_size = default_batch_size
        self._insert_parser = InsertDMLParser()
        self._delete_parser = DeleteDMLParser()
        self._get_parser = GetDMLParser()

    # -- lifecycle ------------------------------------------------------

    def begin_transaction(self, options: Mapping[str, Any]) -> Transaction:
        """
        Open a dedicated connection with autocommit disabled.

        Parameters
        ----------
        options : mapping
            ``url`` (required), ``driver``, ``user``, ``password`` and any
            extra driver ``connect`` keyword.

        Raises
        ------
        ConfigurationError
            No dialect matches the URL, the options are invalid, or the driver
            cannot be imported.
        SQLExecutionError
            The driver failed to connect; nothing is left open.
        """
        dialect = resolve_dialect(options)
        config = DataSourceConfig.from_options(options)
        driver = load_driver(driver_name(config, dialect))
        check_connect_options(driver, dialect, config)
        connection = None
        try:
            connection = open_connection(driver, dialect, config)
            disable_autocommit(connection)
        except getattr(driver, "Error", ()) as exc:
            close_quietly(connection)
            raise SQLExecutionError(f"Unable to open connection to {config.url}") from exc
        except Exception:
            close_quietly(connection)
            raise
        log.debug("Transaction started", extra={"dialect": dialect.name})
        return Transaction(connection, dialect, driver)

    def commit(self, tx: Optional[Transaction]) -> None:
        """Commit, then close the connection and finish the handle."""
        tx = _require(tx)
        try:
            with _driver_errors(tx):
                tx.connection.commit()
        finally:
            tx._finish()
        log.debug("Transaction committed", extra={"datasource": tx.datasource})

    def rollback(self, tx: Optional[Transaction]) -> None:
        """Roll back, then close the connection and finish the handle."""
        tx = _require(tx)
        try:
            with _driver_errors(tx):
                tx.connection.rollback()
        finally:
            tx._finish()
        log.debug("Transaction rolled back", extra={"datasource": tx.datasource})

    @contextmanager
    def scope(self, tx: Transaction) -> Generator[Transaction, None, None]:
        """Commit `tx` when the block succeeds, roll it back when it raises."""
        try:
            yield tx
        except BaseException:
            if tx.active:
                try:
                    self.rollback(tx)
                except SQLExecutionError:
                    log.exception("Rollback failed", extra={"datasource": tx.datasource})
            raise
        if tx.active:
            self.commit(tx)

    @contextmanager
    def transaction(self, options: Mapping[str, Any]) -> Generator[Transaction, None, None]:
        """`begin_transaction` + `scope` in one block."""
        with self.scope(self.begin_transaction(options)) as tx:
            yield tx

    # -- entity operations ----------------------------------------------

    def insert(self, tx: Optional[Transaction], target: Any) -> int:
        """Insert one entity, or a list of entities as a batch. Returns affected rows."""
        tx = _require(tx)
        if _is_batch(target):
            return self._batch(tx, target, lambda t: self._insert_parser.parse(t, tx.dialect.placeholder))
        dml = self._insert_parser.parse(type(target), tx.dialect.placeholder)
        return self._update(tx, dml.sql, params_of(target, dml.fields))

    def save(self, tx: Optional[Transaction], target: Any, *hard_fields: str) -> int:
        """
        Soft upsert: null fields are neither inserted nor overwritten.

        Fields named in `hard_fields` (and ``Column(hard=True)`` fields) are
        written even when None.
        """
        tx = _require(tx)
        if _is_batch(target):
            return self._batch(tx, target, lambda t: tx.dialect.save_dml(t, hard_fields))
        script = tx.dialect.save(target, hard_fields)
        return self._update(tx, script.sql, script.params)

    def hard_save(self, tx: Optional[Transaction], target: Any) -> int:
        """Upsert writing every mapped field, null or not."""
        tx = _require(tx)
        if _is_batch(target):
            return self._batch(tx, target, tx.dialect.hard_save_dml)
        script = tx.dialect.hard_save(target)
        return self._update(tx, script.sql, script.params)

    def delete(self, tx: Optional[Transaction], target: Any) -> int:
        """Delete by primary key; lists are deleted as a batch."""
        tx = _require(tx)
        if _is_batch(target):
            return self._batch(tx, target, lambda t: self._delete_parser.parse(t, tx.dialect.placeholder))
        dml = self._delete_parser.parse(type(target), tx.dialect.placeholder)
        return self._update(tx, dml.sql, params_of(target, dml.fields))

    def get(
        self,
        tx: Optional[Transaction],
        target: Any,
        dsql: Optional[str] = None,
        params: Params = None,
    ) -> Any:
        """
        Fetch one object.

        ``get(tx, entity)`` reloads an entity by its primary key.
        ``get(tx, result_type, dsql, params)`` runs DSQL and maps the first
        row to `result_type`: an entity class, ``dict``, or a scalar type
        (first column). Returns None when there is no row.
        """
        tx = _require(tx)
        if dsql is None:
            dml = self._get_parser.parse(type(target), tx.dialect.placeholder)
            return self._run(tx, GetSQLExecutor(type(target)), None, dml.sql, params_of(target, dml.fields))
        return self._query(tx, self.dsql_factory.parse(dsql, params), GetSQLExecutor(target))

    def select(
        self,
        tx: Optional[Transaction],
        target: Any,
        dsql: Optional[str] = None,
        params: Params = None,
    ) -> List[Any]:
        """Like `get`, returning every row (an empty list when there is none)."""
        tx = _require(tx)
        if dsql is None:
            dml = self._get_parser.parse(type(target), tx.dialect.placeholder)
            return self._run(tx, SelectSQLExecutor(type(target)), None, dml.sql, params_of(target, dml.fields))
        return self._query(tx, self.dsql_factory.parse(dsql, params), SelectSQLExecutor(target))

    # -- DSQL statements ------------------------------------------------

    def execute(self, tx: Optional[Transaction], dsql: str, params: Params = None) -> bool:
        """Run DSQL; True when the first result is a result set."""
        tx = _require(tx)
        return self._query(tx, self.dsql_factory.parse(dsql, params), ExecuteSQLExecutor())

    def execute_update(self, tx: Optional[Transaction], dsql: str, params: Params = None) -> int:
        """Run DSQL insert/update/delete; returns affected rows."""
        tx = _require(tx)
        return self._query(tx, self.dsql_factory.parse(dsql, params), ExecuteUpdateSQLExecutor())

    # -- internals ------------------------------------------------------

    def _run(
        self,
        tx: Transaction,
        executor: SQLExecutor[T],
        sql_id: Optional[str],
        sql: str,
        params: Sequence[Any],
    ) -> T:
        with _driver_errors(tx):
            return execute(tx.connection, executor, sql_id, sql, params, self.show_sql)

    def _update(self, tx: Transaction, sql: str, params: Sequence[Any]) -> int:
        return self._run(tx, ExecuteUpdateSQLExecutor(), None, sql, params)

    def _query(self, tx: Transaction, named_sql: NamedSQL, executor: SQLExecutor[T]) -> T:
        script = self.dsql_factory.to_script(named_sql, tx.dialect.placeholder)
        return self._run(tx, executor, named_sql.id, script.sql, script.params)

    def _batch(self, tx: Transaction, rows: Sequence[Any], dml_for: Callable[[type], DML]) -> int:
        if not rows:
            return 0
        dml = dml_for(ensure_homogeneous(rows))
        with _driver_errors(tx):
            return execute_dml_batch(
                tx.connection, dml, rows, show_sql=self.show_sql, batch_size=self.default_batch_size
            )


__all__ = ["Transaction", "TransactionExecutor"]
