"""MySQL / MariaDB dialect: ``INSERT ... ON DUPLICATE KEY UPDATE``."""

from __future__ import annotations

from typing import Any, Dict, FrozenSet, Sequence

from sqlalchemy.engine import URL

from sqltool.config import DataSourceConfig
from sqltool.dialects.abstract import SQLDialect
from sqltool.domain.entity import EntitySchema, FieldSpec

DEFAULT_PORT = 3306


class MySQLDialect(SQLDialect):
    name = "mysql"
    placeholder = "%s"
    default_driver = "pymysql"

    def _upsert(
        self, schema: EntitySchema, fields: Sequence[FieldSpec], soft: FrozenSet[str]
    ) -> str:
        assignments = []
        for f in fields:
            if f.name in soft:
                assignments.append(f"{f.column} = IFNULL(VALUES({f.column}), {f.column})")
            else:
                assignments.append(f"{f.column} = VALUES({f.column})")
        return f"{self._insert(schema, fields)} ON DUPLICATE KEY UPDATE {', '.join(assignments)}"

    def _url_args(self, url: URL, config: DataSourceConfig) -> Dict[str, Any]:
        return {
            "host": url.host or "localhost",
            "port": url.port or DEFAULT_PORT,
            "database": url.database,
            "user": config.user or url.username,
            "password": config.password or url.password,
        }


__all__ = ["MySQLDialect"]
