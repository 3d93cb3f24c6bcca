"""
Dao facade over the datasource registry.

Each CRUD call borrows a pooled connection, runs in its own transaction and
commits (or rolls back on error) before returning the connection:

    dao = Dao.build(load_properties("sqltool.properties"))
    dao.save(StaffInfo(staff_id="01", staff_name="June"))
    staff = dao.get(StaffInfo(staff_id="01"))
    names = dao.select(str, "SELECT staff_name FROM staff_info WHERE 1 = 1 #[AND position = :position]",
                       {"position": "dev"})

Several statements that must commit together share one `transaction()`:

    with dao.transaction() as tx:
        dao.executor.insert(tx, first)
        dao.executor.delete(tx, second)
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Generator, List, Mapping, Optional

from sqltool.config import Settings
from sqltool.exceptions import ConfigurationError
from sqltool.infrastructure.datasource import DataSource, create_data_source
from sqltool.infrastructure.registry import DataSourceFactory, DataSourceRegistry
from sqltool.sql.dsql import DSQLFactory, Params
from sqltool.transaction import Transaction, TransactionExecutor


def _keep_open(connection: Any) -> None:
    """Pooled connections go back to their pool when the borrow block exits."""


class Dao:
    """
    Per-call transactional access to the configured datasources.

    Every operation accepts ``datasource=<name>``; omitted, the default
    datasource is used.
    """

    def __init__(
        self,
        settings: Settings,
        registry: DataSourceRegistry,
        dsql_factory: Optional[DSQLFactory] = None,
    ) -> None:
        self.settings = settings
        self.registry = registry
        self.dsql_factory = dsql_factory or DSQLFactory.from_packages(
            settings.base_packages, settings.suffix
        )
        self.executor = TransactionExecutor(
            dsql_factory=self.dsql_factory,
            show_sql=settings.show_sql,
            default_batch_size=settings.default_batch_size,
        )

    @classmethod
    def build(
        cls,
        properties: Mapping[str, Any],
        factory: DataSourceFactory = create_data_source,
    ) -> "Dao":
        """Build settings, DSQL templates and datasources from a flat properties map."""
        settings = Settings.from_properties(properties)
        registry = DataSourceRegistry(properties, factory=factory)
        try:
            return cls(settings, registry)
        except Exception:
            registry.close()
            raise

    def data_source(self, name: Optional[str] = None) -> DataSource:
        data_source = self.registry.get(name)
        if data_source is None:
            raise ConfigurationError(f"No datasource named '{name}' is configured")
        return data_source

    @contextmanager
    def transaction(self, datasource: Optional[str] = None) -> Generator[Transaction, None, None]:
        """Borrow a pooled connection for a multi-statement unit of work."""
        data_source = self.data_source(datasource)
        with data_source.connection() as connection:
            tx = Transaction(
                connection,
                data_source.dialect,
                data_source.driver,
                datasource=data_source.name,
                release=_keep_open,
            )
            with self.executor.scope(tx):
                yield tx

    def insert(self, target: Any, datasource: Optional[str] = None) -> int:
        with self.transaction(datasource) as tx:
            return self.executor.insert(tx, target)

    def save(self, target: Any, *hard_fields: str, datasource: Optional[str] = None) -> int:
        with self.transaction(datasource) as tx:
            return self.executor.save(tx, target, *hard_fields)

    def hard_save(self, target: Any, datasource: Optional[str] = None) -> int:
        with self.transaction(datasource) as tx:
            return self.executor.hard_save(tx, target)

    def delete(self, target: Any, datasource: Optional[str] = None) -> int:
        with self.transaction(datasource) as tx:
            return self.executor.delete(tx, target)

    def get(
        self,
        target: Any,
        dsql: Optional[str] = None,
        params: Params = None,
        datasource: Optional[str] = None,
    ) -> Any:
        with self.transaction(datasource) as tx:
            return self.executor.get(tx, target, dsql, params)

    def select(
        self,
        target: Any,
        dsql: Optional[str] = None,
        params: Params = None,
        datasource: Optional[str] = None,
    ) -> List[Any]:
        with self.transaction(datasource) as tx:
            return self.executor.select(tx, target, dsql, params)

    def execute(self, dsql: str, params: Params = None, datasource: Optional[str] = None) -> bool:
        with self.transaction(datasource) as tx:
            return self.executor.execute(tx, dsql, params)

    def execute_update(self, dsql: str, params: Params = None, datasource: Optional[str] = None) -> int:
        with self.transaction(datasource) as tx:
            return self.executor.execute_update(tx, dsql, params)

    def close(self) -> None:
        self.registry.close()

    def __enter__(self) -> "Dao":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["Dao"]
