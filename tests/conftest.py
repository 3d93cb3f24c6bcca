"""
Pytest configuration for sqltool.

Provides fixtures for:
- A file-backed SQLite database with the test schema
- Transaction options and properties maps pointing at it
"""

from __future__ import annotations

import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any, Callable, Dict, Generator, Tuple

import pytest

from entities import SCHEMA
from sqltool import Dao, TransactionExecutor


@pytest.fixture
def sqlite_path(tmp_path: Path) -> Path:
    """
    Fresh database file with the test schema applied.
    """
    path = tmp_path / "sqltool.db"
    with closing(sqlite3.connect(path)) as conn:
        conn.executescript(SCHEMA)
        conn.commit()
    return path


@pytest.fixture
def sqlite_options(sqlite_path: Path) -> Dict[str, str]:
    """
    Transaction options for `TransactionExecutor.begin_transaction`.
    """
    return {"url": f"sqlite:///{sqlite_path}"}


@pytest.fixture
def sqlite_properties(sqlite_path: Path) -> Dict[str, str]:
    """
    Flat properties map with a single implicit default datasource.
    """
    return {
        "sqltool.showSql": "true",
        "sqltool.defaultBatchSize": "2",
        "sqltool.datasource.url": f"sqlite:///{sqlite_path}",
        "sqltool.datasource.max_size": "2",
    }


@pytest.fixture
def executor() -> TransactionExecutor:
    return TransactionExecutor(show_sql=False, default_batch_size=2)


@pytest.fixture
def dao(sqlite_properties: Dict[str, str]) -> Generator[Dao, None, None]:
    dao = Dao.build(sqlite_properties)
    try:
        yield dao
    finally:
        dao.close()


@pytest.fixture
def row_counter(sqlite_path: Path) -> Callable[..., int]:
    """
    Count rows through an independent connection, which sees committed data only.
    """

    def _count(table: str, where: str = "1 = 1", params: Tuple[Any, ...] = ()) -> int:
        with closing(sqlite3.connect(sqlite_path)) as conn:
            return conn.execute(f"SELECT COUNT(*) FROM {table} WHERE {where}", params).fetchone()[0]

    return _count
