"""
SQL building blocks: cached entity DML, DSQL templates, executor strategies
and scalar result getters.
"""

from sqltool.sql.dml import DML, DeleteDMLParser, GetDMLParser, InsertDMLParser
from sqltool.sql.dsql import DSQLFactory, NamedSQL, Params, Script, normalize_params
from sqltool.sql.executors import (
    ExecuteSQLExecutor,
    ExecuteUpdateSQLExecutor,
    GetSQLExecutor,
    SelectSQLExecutor,
    SQLExecutor,
)
from sqltool.sql.getters import get_value, register_getter

__all__ = [
    "DML",
    "DeleteDMLParser",
    "GetDMLParser",
    "InsertDMLParser",
    "DSQLFactory",
    "NamedSQL",
    "Params",
    "Script",
    "normalize_params",
    "ExecuteSQLExecutor",
    "ExecuteUpdateSQLExecutor",
    "GetSQLExecutor",
    "SelectSQLExecutor",
    "SQLExecutor",
    "get_value",
    "register_getter",
]
