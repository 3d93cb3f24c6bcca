"""
Configuration for sqltool.

Two sources feed the same settings object:

- a flat properties map (``sqltool.showSql=true``) as read from a
  ``sqltool.properties`` file, converted with `Settings.from_properties`;
- environment variables / ``.env`` (``SQLTOOL_SHOW_SQL=true``) through
  Pydantic Settings.

Datasource definitions live in the same flat map under
``sqltool.datasource.<name>.<param>``; `group_datasource_properties` splits
them into one property group per datasource name.
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from sqltool.exceptions import ConfigurationError

DATASOURCE_PREFIX = "sqltool.datasource."
DEFAULT_NAME = "default"
DEFAULT_SUFFIX = ".dsql.xml"
DEFAULT_BATCH_SIZE = 500

_DATASOURCE_KEY = re.compile(r"^" + re.escape(DATASOURCE_PREFIX) + r"(?:([^.\s]+)\.)?([^.\s]+)$")

_PROPERTY_FIELDS = {
    "sqltool.basePackages": "base_packages",
    "sqltool.suffix": "suffix",
    "sqltool.showSql": "show_sql",
    "sqltool.defaultBatchSize": "default_batch_size",
    "sqltool.logLevel": "log_level",
}


class Settings(BaseSettings):
    # DSQL templates
    base_packages: Optional[str] = Field(None, alias="SQLTOOL_BASE_PACKAGES")
    suffix: str = Field(DEFAULT_SUFFIX, alias="SQLTOOL_SUFFIX")

    # Execution
    show_sql: bool = Field(False, alias="SQLTOOL_SHOW_SQL")
    default_batch_size: int = Field(DEFAULT_BATCH_SIZE, alias="SQLTOOL_DEFAULT_BATCH_SIZE", gt=0)

    # Application
    log_level: str = Field("INFO", alias="SQLTOOL_LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @classmethod
    def from_properties(cls, properties: Mapping[str, Any]) -> "Settings":
        """
        Build settings from a flat ``sqltool.*`` properties map.

        Keys that are absent fall back to the environment, then to defaults.
        """
        values = {
            field: properties[key] for key, field in _PROPERTY_FIELDS.items() if key in properties
        }
        return cls(**values)


class DataSourceConfig(BaseModel):
    """
    Connection parameters of one datasource.

    ``driver`` names the DB-API module to import; when omitted the dialect
    resolved from ``url`` supplies its default driver. Unknown keys are kept
    and passed through to the driver's ``connect``.
    """

    driver: Optional[str] = None
    url: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    min_size: int = Field(1, ge=0, alias="minSize")
    max_size: int = Field(10, gt=0, alias="maxSize")
    timeout: float = Field(30.0, gt=0)

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "DataSourceConfig":
        """Validate one datasource property group."""
        try:
            return cls.model_validate(dict(options))
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid datasource configuration: {exc}") from exc

    @property
    def extras(self) -> Dict[str, Any]:
        """Driver options that are not part of the known parameter set."""
        return dict(self.model_extra or {})


def group_datasource_properties(
    properties: Mapping[str, Any],
) -> Tuple[Dict[str, Dict[str, Any]], Optional[str]]:
    """
    Split ``sqltool.datasource.*`` keys into per-datasource property groups.

    ``sqltool.datasource.<name>.<param>`` belongs to ``<name>``;
    ``sqltool.datasource.<param>`` belongs to ``default``.

    Returns
    -------
    tuple
        The groups in encounter order, and the first datasource name seen
        (None when no datasource key is present).
    """
    groups: Dict[str, Dict[str, Any]] = {}
    first_name: Optional[str] = None
    for key, value in properties.items():
        match = _DATASOURCE_KEY.match(str(key))
        if match is None:
            continue
        name = match.group(1) or DEFAULT_NAME
        if first_name is None:
            first_name = name
        groups.setdefault(name, {})[match.group(2)] = value
    return groups, first_name


def load_properties(path: Union[str, Path]) -> Dict[str, str]:
    """
    Read a Java-style ``.properties`` file into a dict.

    Supports ``key=value`` and ``key: value`` lines; ``#`` and ``!`` start
    comments. Later keys override earlier ones.
    """
    properties: Dict[str, str] = {}
    with Path(path).open("r", encoding="utf-8") as f:
        for raw in f:
            line = raw.strip()
            if not line or line[0] in "#!":
                continue
            separator = min(
                (i for i in (line.find("="), line.find(":")) if i >= 0),
                default=-1,
            )
            if separator < 0:
                properties[line] = ""
                continue
            properties[line[:separator].strip()] = line[separator + 1 :].strip()
    return properties


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = [
    "DATASOURCE_PREFIX",
    "DEFAULT_NAME",
    "DataSourceConfig",
    "Settings",
    "get_settings",
    "group_datasource_properties",
    "load_properties",
]
