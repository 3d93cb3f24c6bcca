"""
PostgreSQL and SQLite dialects: ``INSERT ... ON CONFLICT (key) DO UPDATE``.

Both require the entity to declare a primary key, which becomes the conflict
target. When only key columns are bound the statement degrades to
``DO NOTHING``.
"""

from __future__ import annotations

from typing import Any, Dict, FrozenSet, Sequence

from sqlalchemy.engine import URL

from sqltool.config import DataSourceConfig
from sqltool.dialects.abstract import SQLDialect
from sqltool.domain.entity import EntitySchema, FieldSpec
from sqltool.exceptions import ConfigurationError

DEFAULT_PORT = 5432


class OnConflictDialect(SQLDialect):
    def _current(self, schema: EntitySchema, column: str) -> str:
        """Reference to the stored value of `column` inside DO UPDATE."""
        return f"{schema.table}.{column}"

    def _upsert(
        self, schema: EntitySchema, fields: Sequence[FieldSpec], soft: FrozenSet[str]
    ) -> str:
        keys = schema.primary_keys
        if not keys:
            raise ConfigurationError(
                f"Cannot save into table '{schema.table}': no field is marked primary_key"
            )
        insert = self._insert(schema, fields)
        target = ", ".join(k.column for k in keys)
        assignments = []
        for f in fields:
            if f.primary_key:
                continue
            if f.name in soft:
                current = self._current(schema, f.column)
                assignments.append(f"{f.column} = COALESCE(EXCLUDED.{f.column}, {current})")
            else:
                assignments.append(f"{f.column} = EXCLUDED.{f.column}")
        if not assignments:
            return f"{insert} ON CONFLICT ({target}) DO NOTHING"
        return f"{insert} ON CONFLICT ({target}) DO UPDATE SET {', '.join(assignments)}"


class PostgreSQLDialect(OnConflictDialect):
    name = "postgresql"
    placeholder = "%s"
    default_driver = "psycopg"

    def _url_args(self, url: URL, config: DataSourceConfig) -> Dict[str, Any]:
        return {
            "host": url.host or "localhost",
            "port": url.port or DEFAULT_PORT,
            "dbname": url.database,
            "user": config.user or url.username,
            "password": config.password or url.password,
        }


class SQLiteDialect(OnConflictDialect):
    name = "sqlite"
    placeholder = "?"
    default_driver = "sqlite3"
    connect_keywords = frozenset(
        {
            "database",
            "timeout",
            "detect_types",
            "isolation_level",
            "check_same_thread",
            "factory",
            "cached_statements",
            "uri",
            "autocommit",
        }
    )

    def _current(self, schema: EntitySchema, column: str) -> str:
        return column

    def _url_args(self, url: URL, config: DataSourceConfig) -> Dict[str, Any]:
        # Pooled connections move between threads.
        return {"database": url.database or ":memory:", "check_same_thread": False}


__all__ = ["OnConflictDialect", "PostgreSQLDialect", "SQLiteDialect"]
