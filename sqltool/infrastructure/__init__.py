"""
Infrastructure package for sqltool.

Centralizes database connectivity concerns (driver loading, pooled
datasources and the datasource registry). Keep this layer focused on I/O and
resource management, decoupled from statement building.
"""

from sqltool.infrastructure.datasource import (
    DataSource,
    PsycopgDataSource,
    QueuePoolDataSource,
    check_connect_options,
    close_quietly,
    create_data_source,
    disable_autocommit,
    load_driver,
    open_connection,
)
from sqltool.infrastructure.registry import DataSourceRegistry

__all__ = [
    "DataSource",
    "DataSourceRegistry",
    "PsycopgDataSource",
    "QueuePoolDataSource",
    "check_connect_options",
    "close_quietly",
    "create_data_source",
    "disable_autocommit",
    "load_driver",
    "open_connection",
]
