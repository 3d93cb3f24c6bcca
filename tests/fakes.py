"""Fake DB-API objects for tests that inspect cursor and connection handling."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Callable, List, Optional, Tuple


class FakeDriverError(Exception):
    """Stands in for a driver module's PEP 249 ``Error``."""


class FakeCursor:
    """Minimal DB-API cursor recording calls."""

    def __init__(
        self,
        rows: Optional[List[Tuple[Any, ...]]] = None,
        description: Optional[List[Tuple[Any, ...]]] = None,
        rowcount: int = 1,
        fail_with: Optional[Exception] = None,
    ) -> None:
        self.rows = list(rows or [])
        self.description = description
        self.rowcount = rowcount
        self.fail_with = fail_with
        self.executed: List[Tuple[str, Any]] = []
        self.closed = False

    def execute(self, sql: str, params: Any = None) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.executed.append((sql, params))

    def executemany(self, sql: str, rows: Any) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        rows = list(rows)
        self.executed.append((sql, rows))
        self.rowcount = len(rows)

    def fetchone(self) -> Optional[Tuple[Any, ...]]:
        return self.rows[0] if self.rows else None

    def fetchall(self) -> List[Tuple[Any, ...]]:
        return list(self.rows)

    def close(self) -> None:
        self.closed = True


class FakeConnection:
    """DB-API connection handing out a single `FakeCursor`."""

    def __init__(self, cursor: Optional[FakeCursor] = None) -> None:
        self.fake_cursor = cursor or FakeCursor()
        self.closed = False
        self.committed = 0
        self.rolled_back = 0
        self.autocommit = True

    def cursor(self) -> FakeCursor:
        return self.fake_cursor

    def commit(self) -> None:
        self.committed += 1

    def rollback(self) -> None:
        self.rolled_back += 1

    def close(self) -> None:
        self.closed = True


def fake_driver(connect: Callable[..., Any]) -> SimpleNamespace:
    """Module-like object exposing ``connect`` and ``Error``."""
    return SimpleNamespace(__name__="fake_driver", connect=connect, Error=FakeDriverError)
