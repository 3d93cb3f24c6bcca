"""
SQL dialects and dialect resolution.

`resolve_dialect` picks the dialect whose marker occurs in a datasource URL.
New database families plug in through `register_dialect`.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from sqltool.dialects.abstract import SQLDialect, parse_url
from sqltool.dialects.mysql import MySQLDialect
from sqltool.dialects.postgresql import OnConflictDialect, PostgreSQLDialect, SQLiteDialect
from sqltool.exceptions import NoSuitableDialectError

_DIALECTS: Dict[str, SQLDialect] = {}


def register_dialect(marker: str, dialect: SQLDialect) -> None:
    """Map a URL substring to a dialect instance."""
    _DIALECTS[marker] = dialect


def resolve_dialect_for_url(url: Optional[str]) -> SQLDialect:
    if url:
        # Markers found in the scheme take precedence over database names.
        scheme = url.split("//", 1)[0]
        for haystack in (scheme, url):
            for marker, dialect in _DIALECTS.items():
                if marker in haystack:
                    return dialect
    raise NoSuitableDialectError(url)


def resolve_dialect(options: Mapping[str, Any]) -> SQLDialect:
    """
    Dialect for a datasource property map, chosen from its ``url`` value.

    Raises
    ------
    NoSuitableDialectError
        When the URL is missing or no registered marker occurs in it.
    """
    return resolve_dialect_for_url(options.get("url"))


register_dialect("mysql", MySQLDialect())
register_dialect("postgres", PostgreSQLDialect())
register_dialect("sqlite", SQLiteDialect())

__all__ = [
    "MySQLDialect",
    "OnConflictDialect",
    "PostgreSQLDialect",
    "SQLDialect",
    "SQLiteDialect",
    "parse_url",
    "register_dialect",
    "resolve_dialect",
    "resolve_dialect_for_url",
]
