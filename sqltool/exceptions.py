"""
Exception taxonomy for sqltool.

Configuration and illegal-call errors signal setup or programming mistakes;
SQL execution errors wrap failures raised by the underlying DB-API driver so
callers can decide when to roll back. The original cause is always chained.
"""

from __future__ import annotations

from typing import Optional


class SqltoolError(Exception):
    """Base class for every error raised by sqltool."""


class ConfigurationError(SqltoolError):
    """Missing or invalid configuration (datasource keys, driver, entity mapping)."""


class NoSuitableDialectError(ConfigurationError):
    """No registered SQL dialect matches a datasource URL."""

    def __init__(self, url: Optional[str]) -> None:
        super().__init__(f"There is no suitable SQL dialect provide for url: {url}")
        self.url = url


class InitializationError(SqltoolError):
    """A datasource could not be constructed."""


class SQLExecutionError(SqltoolError):
    """A statement, connect, commit or rollback failed in the database driver."""


class IllegalCallError(SqltoolError):
    """An operation was invoked without an active transaction."""


__all__ = [
    "SqltoolError",
    "ConfigurationError",
    "NoSuitableDialectError",
    "InitializationError",
    "SQLExecutionError",
    "IllegalCallError",
]
