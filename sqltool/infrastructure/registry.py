"""
Datasource registry built from a flat ``sqltool.*`` properties map.

Construction groups the ``sqltool.datasource.*`` keys by datasource name,
resolves a dialect for each group and eagerly builds its pooled datasource.
The group named ``default`` is the default datasource; without one, the first
group encountered is promoted and is reachable under both names.
"""

from __future__ import annotations

import atexit
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqltool.config import DEFAULT_NAME, DataSourceConfig, group_datasource_properties
from sqltool.dialects import SQLDialect, resolve_dialect
from sqltool.exceptions import ConfigurationError, InitializationError
from sqltool.infrastructure.datasource import DataSource, create_data_source
from sqltool.utils.logging import get_logger

log = get_logger(__name__)

DataSourceFactory = Callable[[str, DataSourceConfig, SQLDialect], DataSource]


class DataSourceRegistry:
    """
    Named datasources of one application.

    Registered with `atexit` so pools are released on interpreter shutdown;
    `close()` may also be called explicitly and is idempotent.
    """

    def __init__(
        self,
        properties: Mapping[str, Any],
        factory: DataSourceFactory = create_data_source,
    ) -> None:
        groups, first_name = group_datasource_properties(properties)
        if not groups or first_name is None:
            raise ConfigurationError("No datasource is configured, please check the configuration")

        self._lock = threading.Lock()
        self._data_sources: Dict[str, DataSource] = {}
        self.default_name = DEFAULT_NAME if DEFAULT_NAME in groups else first_name
        ordered = [self.default_name] + [name for name in groups if name != self.default_name]
        try:
            for name in ordered:
                options = groups[name]
                dialect = resolve_dialect(options)
                config = DataSourceConfig.from_options(options)
                self._data_sources[name] = factory(name, config, dialect)
                log.debug(
                    "Datasource initialized",
                    extra={"datasource": name, "dialect": dialect.name},
                )
        except Exception as exc:
            self.close()
            raise InitializationError("An exception occurred while initializing datasource(s)") from exc

        self._default = self._data_sources[self.default_name]
        if self.default_name != DEFAULT_NAME:
            log.info(
                f"No '{DEFAULT_NAME}' datasource configured, promoting '{self.default_name}'",
                extra={"datasource": self.default_name},
            )
            self._data_sources[DEFAULT_NAME] = self._default
        atexit.register(self.close)

    @property
    def default(self) -> DataSource:
        return self._default

    def get(self, name: Optional[str] = None) -> Optional[DataSource]:
        """Datasource by name (the default one when `name` is None)."""
        if name is None:
            return self._default
        return self._data_sources.get(name)

    def __getitem__(self, name: str) -> DataSource:
        data_source = self._data_sources.get(name)
        if data_source is None:
            raise ConfigurationError(f"No datasource named '{name}' is configured")
        return data_source

    def __contains__(self, name: object) -> bool:
        return name in self._data_sources

    def names(self) -> List[str]:
        return list(self._data_sources)

    def dialect_of(self, name: Optional[str] = None) -> SQLDialect:
        return (self._default if name is None else self[name]).dialect

    def close(self) -> None:
        """Close every pool once, even when reachable under two names."""
        with self._lock:
            seen = set()
            for data_source in list(self._data_sources.values()):
                if id(data_source) in seen:
                    continue
                seen.add(id(data_source))
                data_source.close()
            self._data_sources.clear()
        atexit.unregister(self.close)


__all__ = ["DataSourceFactory", "DataSourceRegistry"]
