"""
Driver loading, raw connections and pooled datasources.

Two pool implementations back the `DataSource` interface:

- `PsycopgDataSource` uses psycopg_pool for the psycopg driver;
- `QueuePoolDataSource` wraps any other DB-API driver in SQLAlchemy's
  `QueuePool`.

Connections handed out by a datasource are returned to the pool when the
`connection()` block exits; committing or rolling back is the caller's job.
"""

from __future__ import annotations

import abc
import importlib
import inspect
import threading
from contextlib import contextmanager
from types import ModuleType
from typing import Any, ContextManager, FrozenSet, Generator, Optional

from psycopg_pool import ConnectionPool
from sqlalchemy.pool import QueuePool

from sqltool.config import DataSourceConfig
from sqltool.dialects import SQLDialect
from sqltool.exceptions import ConfigurationError
from sqltool.utils.logging import get_logger

log = get_logger(__name__)


def load_driver(name: str) -> ModuleType:
    """
    Import a DB-API driver module by name.

    Raises
    ------
    ConfigurationError
        If the module cannot be imported.
    """
    try:
        return importlib.import_module(name)
    except ImportError as exc:
        raise ConfigurationError(f"Database driver '{name}' cannot be loaded") from exc


def driver_name(config: DataSourceConfig, dialect: SQLDialect) -> str:
    return config.driver or dialect.default_driver


def _connect_keywords(driver: ModuleType, dialect: SQLDialect) -> Optional[FrozenSet[str]]:
    if dialect.connect_keywords is not None and driver.__name__ == dialect.default_driver:
        return dialect.connect_keywords
    try:
        signature = inspect.signature(driver.connect)
    except (TypeError, ValueError):
        return None
    accepted = set()
    for parameter in signature.parameters.values():
        if parameter.kind is inspect.Parameter.VAR_KEYWORD:
            return None
        if parameter.kind in (inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY):
            accepted.add(parameter.name)
    return frozenset(accepted)


def check_connect_options(driver: ModuleType, dialect: SQLDialect, config: DataSourceConfig) -> None:
    """
    Reject extra datasource options the driver's ``connect`` does not accept.

    Drivers taking arbitrary keywords, or whose signature cannot be read,
    are not checked.

    Raises
    ------
    ConfigurationError
        If an extra option is not a ``connect`` keyword of the driver.
    """
    accepted = _connect_keywords(driver, dialect)
    if accepted is None:
        return
    unknown = sorted(key for key in config.extras if key not in accepted)
    if unknown:
        raise ConfigurationError(
            f"Unsupported datasource option(s) {', '.join(unknown)} for driver '{driver.__name__}'"
        )


def open_connection(driver: ModuleType, dialect: SQLDialect, config: DataSourceConfig) -> Any:
    """Open a dedicated, unpooled connection."""
    return driver.connect(**dialect.connect_args(config))


def disable_autocommit(connection: Any) -> None:
    """Switch a DB-API connection to manual commit, whatever the driver's API."""
    mode = getattr(connection, "autocommit", None)
    if callable(mode):
        mode(False)
    elif mode is not None:
        connection.autocommit = False


def close_quietly(connection: Any) -> None:
    """Close a connection, suppressing close failures so they don't mask the primary error."""
    if connection is None:
        return
    try:
        connection.close()
    except Exception:  # noqa: BLE001 - cleanup must not raise
        log.debug("Ignoring failure while closing connection", exc_info=True)


class DataSource(abc.ABC):
    """Named, pooled source of connections for one configured database."""

    def __init__(
        self, name: str, config: DataSourceConfig, dialect: SQLDialect, driver: ModuleType
    ) -> None:
        self.name = name
        self.config = config
        self.dialect = dialect
        self.driver = driver

    @abc.abstractmethod
    def connection(self) -> ContextManager[Any]:  # pragma: no cover - interface only
        """Borrow a connection; it is returned to the pool on exit."""
        raise NotImplementedError

    @abc.abstractmethod
    def close(self) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, dialect={self.dialect.name!r})"


class PsycopgDataSource(DataSource):
    """psycopg_pool backed datasource; the pool opens on first use."""

    def __init__(
        self, name: str, config: DataSourceConfig, dialect: SQLDialect, driver: ModuleType
    ) -> None:
        super().__init__(name, config, dialect, driver)
        self._lock = threading.Lock()
        self._pool = ConnectionPool(
            kwargs=dialect.connect_args(config),
            min_size=config.min_size,
            max_size=config.max_size,
            timeout=config.timeout,
            name=f"sqltool-{name}",
            open=False,
        )
        self._opened = False

    def _ensure_open(self) -> ConnectionPool:
        with self._lock:
            if not self._opened:
                self._pool.open()
                self._opened = True
        return self._pool

    @contextmanager
    def connection(self) -> Generator[Any, None, None]:
        pool = self._ensure_open()
        conn = pool.getconn()
        try:
            yield conn
        finally:
            pool.putconn(conn)

    def close(self) -> None:
        with self._lock:
            if self._opened:
                self._pool.close()
                self._opened = False


class QueuePoolDataSource(DataSource):
    """SQLAlchemy `QueuePool` over an arbitrary DB-API driver."""

    def __init__(
        self,
        name: str,
        config: DataSourceConfig,
        dialect: SQLDialect,
        driver: ModuleType,
    ) -> None:
        super().__init__(name, config, dialect, driver)
        connect_args = dialect.connect_args(config)
        self._pool = QueuePool(
            lambda: driver.connect(**connect_args),
            pool_size=config.max_size,
            max_overflow=0,
            timeout=config.timeout,
        )

    @contextmanager
    def connection(self) -> Generator[Any, None, None]:
        conn = self._pool.connect()
        try:
            yield conn
        finally:
            conn.close()

    def close(self) -> None:
        self._pool.dispose()


def create_data_source(name: str, config: DataSourceConfig, dialect: SQLDialect) -> DataSource:
    """Build the pooled datasource matching the configured driver."""
    module_name = driver_name(config, dialect)
    driver = load_driver(module_name)
    check_connect_options(driver, dialect, config)
    if module_name == "psycopg":
        return PsycopgDataSource(name, config, dialect, driver)
    return QueuePoolDataSource(name, config, dialect, driver)


__all__ = [
    "DataSource",
    "PsycopgDataSource",
    "QueuePoolDataSource",
    "check_connect_options",
    "close_quietly",
    "create_data_source",
    "disable_autocommit",
    "driver_name",
    "load_driver",
    "open_connection",
]
