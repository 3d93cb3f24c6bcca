"""
sqltool - a thin object-relational convenience layer over DB-API drivers.

It provides:

- entity CRUD (insert, save/hard-save upserts, delete, get, select) derived
  from declarative column metadata on pydantic models;
- dynamic SQL (DSQL) templates with named parameters and optional blocks;
- explicit transactions over dedicated connections, and a `Dao` facade with
  per-call transactions over pooled datasources configured from a flat
  ``sqltool.*`` properties map.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from sqltool.config import DataSourceConfig, Settings, get_settings, load_properties
from sqltool.dao import Dao
from sqltool.dialects import SQLDialect, register_dialect, resolve_dialect
from sqltool.domain import Column, Entity, EntitySchema, FieldSpec, schema_of
from sqltool.exceptions import (
    ConfigurationError,
    IllegalCallError,
    InitializationError,
    NoSuitableDialectError,
    SQLExecutionError,
    SqltoolError,
)
from sqltool.infrastructure import DataSource, DataSourceRegistry
from sqltool.sql import DSQLFactory, NamedSQL, Script
from sqltool.transaction import Transaction, TransactionExecutor
from sqltool.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "DataSourceConfig",
    "Settings",
    "get_settings",
    "load_properties",
    # Entities
    "Column",
    "Entity",
    "EntitySchema",
    "FieldSpec",
    "schema_of",
    # Dialects
    "SQLDialect",
    "register_dialect",
    "resolve_dialect",
    # Datasources
    "DataSource",
    "DataSourceRegistry",
    # DSQL
    "DSQLFactory",
    "NamedSQL",
    "Script",
    # Transactions
    "Dao",
    "Transaction",
    "TransactionExecutor",
    # Errors
    "ConfigurationError",
    "IllegalCallError",
    "InitializationError",
    "NoSuitableDialectError",
    "SQLExecutionError",
    "SqltoolError",
    # Logging
    "configure_logging",
    "get_logger",
]
