"""
Utilities package for sqltool.

Exports shared helpers for logging and statement execution. Keep this package
free of transaction and configuration logic.
"""

from sqltool.utils.execution import execute, execute_batch, execute_dml_batch
from sqltool.utils.logging import configure_logging, get_logger, get_sql_logger

__all__ = [
    "configure_logging",
    "execute",
    "execute_batch",
    "execute_dml_batch",
    "get_logger",
    "get_sql_logger",
]
