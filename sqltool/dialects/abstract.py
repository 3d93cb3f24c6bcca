"""
SQL dialect strategy interface.

A dialect knows how its database family spells an upsert, which placeholder
its DB-API drivers expect, which driver to load when none is configured, and
how to turn a datasource URL into driver ``connect`` keyword arguments.

Dialects hold no per-call state; one instance is shared by every datasource
and transaction of that family.
"""

from __future__ import annotations

import abc
import threading
from typing import Any, Collection, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from sqltool.config import DataSourceConfig
from sqltool.domain.entity import EntitySchema, FieldSpec, params_of, schema_of
from sqltool.exceptions import ConfigurationError
from sqltool.sql.dml import DML
from sqltool.sql.dsql import Script


def parse_url(url: str) -> URL:
    """Parse a database URL, tolerating a leading ``jdbc:``."""
    raw = url[len("jdbc:") :] if url.startswith("jdbc:") else url
    try:
        return make_url(raw)
    except ArgumentError as exc:
        raise ConfigurationError(f"Invalid datasource url: {url}") from exc


class SQLDialect(abc.ABC):
    """
    Base strategy for one database family.

    Attributes
    ----------
    name : str
        Short identifier, e.g. "mysql".
    placeholder : str
        Positional parameter marker understood by the family's drivers.
    default_driver : str
        DB-API module imported when a datasource does not name one.
    connect_keywords : frozenset or None
        Keywords the default driver's ``connect`` accepts, for drivers whose
        signature cannot be introspected. None means introspect.
    """

    name: str
    placeholder: str = "%s"
    default_driver: str
    connect_keywords: Optional[FrozenSet[str]] = None

    def __init__(self) -> None:
        self._batch_cache: Dict[Tuple[type, bool, FrozenSet[str]], DML] = {}
        self._lock = threading.Lock()

    # -- single entity -------------------------------------------------

    def save(self, obj: Any, hard_fields: Collection[str] = ()) -> Script:
        """
        Upsert binding non-null fields, primary keys and hard fields only.

        A field is hard when it is listed in `hard_fields` or declared with
        ``Column(hard=True)``; hard fields are bound even when None.
        """
        schema = schema_of(obj)
        forced = self._hard_names(schema, hard_fields)
        fields = [
            f
            for f in schema.fields
            if f.primary_key or f.name in forced or getattr(obj, f.name) is not None
        ]
        return self._script(obj, schema, fields)

    def hard_save(self, obj: Any) -> Script:
        """Upsert binding every mapped field, null or not."""
        schema = schema_of(obj)
        return self._script(obj, schema, list(schema.fields))

    # -- batches ---------------------------------------------------------

    def save_dml(self, entity_type: type, hard_fields: Collection[str] = ()) -> DML:
        """
        One upsert template for a batch of soft saves.

        Every column is bound for every row; on conflict, a column that is
        neither key nor hard keeps its stored value when the row's value is
        null.
        """
        schema = schema_of(entity_type)
        return self._cached(entity_type, False, self._hard_names(schema, hard_fields))

    def hard_save_dml(self, entity_type: type) -> DML:
        """One upsert template for a batch of hard saves."""
        return self._cached(entity_type, True, frozenset())

    # -- connection ------------------------------------------------------

    def connect_args(self, config: DataSourceConfig) -> Dict[str, Any]:
        """Keyword arguments for the driver's ``connect`` call."""
        if not config.url:
            raise ConfigurationError("Datasource url is not configured")
        args = self._url_args(parse_url(config.url), config)
        args.update(config.extras)
        return {k: v for k, v in args.items() if v is not None}

    @abc.abstractmethod
    def _url_args(self, url: URL, config: DataSourceConfig) -> Dict[str, Any]:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def _upsert(
        self, schema: EntitySchema, fields: Sequence[FieldSpec], soft: FrozenSet[str]
    ) -> str:  # pragma: no cover - interface only
        """Upsert text for `fields`; `soft` names columns that must not be nulled."""
        raise NotImplementedError

    # -- helpers ---------------------------------------------------------

    def _insert(self, schema: EntitySchema, fields: Sequence[FieldSpec]) -> str:
        if not fields:
            raise ConfigurationError(f"Nothing to save into table '{schema.table}'")
        columns = ", ".join(f.column for f in fields)
        values = ", ".join(self.placeholder for _ in fields)
        return f"INSERT INTO {schema.table} ({columns}) VALUES ({values})"

    def _script(self, obj: Any, schema: EntitySchema, fields: List[FieldSpec]) -> Script:
        sql = self._upsert(schema, fields, frozenset())
        return Script(sql, params_of(obj, [f.name for f in fields]))

    def _cached(self, entity_type: type, hard: bool, forced: FrozenSet[str]) -> DML:
        key = (entity_type, hard, forced)
        dml = self._batch_cache.get(key)
        if dml is not None:
            return dml
        with self._lock:
            dml = self._batch_cache.get(key)
            if dml is None:
                schema = schema_of(entity_type)
                soft = (
                    frozenset()
                    if hard
                    else frozenset(
                        f.name
                        for f in schema.fields
                        if not (f.primary_key or f.hard or f.name in forced)
                    )
                )
                dml = DML(self._upsert(schema, schema.fields, soft), schema.field_names)
                self._batch_cache[key] = dml
            return dml

    @staticmethod
    def _hard_names(schema: EntitySchema, hard_fields: Iterable[str]) -> FrozenSet[str]:
        names = {schema.field(name).name for name in hard_fields}
        names.update(f.name for f in schema.fields if f.hard)
        return frozenset(names)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


__all__ = ["SQLDialect", "parse_url"]
