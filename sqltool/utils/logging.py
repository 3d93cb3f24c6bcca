"""
Logging setup for sqltool.

Library modules only ask for named loggers. Applications (and the CLI) call
`configure_logging` once. Statements run with show-SQL enabled go to the
``sqltool.sql`` logger with the template id and bound parameters attached as
``extra`` fields, which both formatters render.

Usage:
    from sqltool.utils.logging import configure_logging, get_logger

    configure_logging(level="WARNING", show_sql=True)
    log = get_logger(__name__)
    log.info("Transaction committed", extra={"datasource": "default"})
"""

from __future__ import annotations

import json
import logging
import logging.config
from typing import Any, Dict, Optional

SQL_LOGGER_NAME = "sqltool.sql"

# Attributes every LogRecord carries; anything else came in through `extra`.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime"}


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    fields = {
        key: value
        for key, value in vars(record).items()
        if key not in _RESERVED_ATTRS and key != "extra"
    }
    nested = getattr(record, "extra", None)
    if isinstance(nested, dict):
        fields.update(nested)
    return fields


def _json_formatter(record: logging.LogRecord) -> str:
    """Render a log record, extra fields included, as one JSON line."""
    payload: Dict[str, Any] = {
        "level": record.levelname,
        "logger": record.name,
        "message": record.getMessage(),
    }
    payload.update(_extra_fields(record))
    if record.exc_info:
        payload["exc_info"] = logging.Formatter().formatException(record.exc_info)
    if record.stack_info:
        payload["stack_info"] = record.stack_info
    return json.dumps(payload, default=str)


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        return _json_formatter(record)


class SqlFormatter(logging.Formatter):
    """Console rendering of show-SQL records: statement, then bound parameters."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        line = super().format(record)
        params = getattr(record, "params", None)
        if params is None:
            return line
        return f"{line}\n    params: {params!r}"


def configure_logging(
    level: str = "INFO",
    json_logs: bool = False,
    show_sql: bool = False,
) -> None:
    """
    Configure root logging and the show-SQL logger.

    Parameters
    ----------
    level : str
        Level name for the root and ``sqltool`` loggers (e.g. "DEBUG", "WARNING").
    json_logs : bool
        Emit JSON lines instead of the human-readable console format.
    show_sql : bool
        Emit ``sqltool.sql`` records at INFO regardless of `level`.
    """
    console = "json" if json_logs else "console"
    sql_level = "INFO" if show_sql else level

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "console": {
                    "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
                "sql": {
                    "()": SqlFormatter,
                    "format": "%(asctime)s | SQL | %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
                "json": {"()": JsonFormatter},
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": console,
                },
                "sql": {
                    "class": "logging.StreamHandler",
                    "formatter": "json" if json_logs else "sql",
                },
            },
            "loggers": {
                "sqltool": {"level": level},
                SQL_LOGGER_NAME: {"level": sql_level, "handlers": ["sql"], "propagate": False},
            },
            "root": {"handlers": ["default"], "level": level},
        }
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger with the given name. If name is None, returns the root logger.
    """
    return logging.getLogger(name)


def get_sql_logger() -> logging.Logger:
    """Logger that receives statements when show-SQL is enabled."""
    return logging.getLogger(SQL_LOGGER_NAME)


__all__ = [
    "JsonFormatter",
    "SQL_LOGGER_NAME",
    "SqlFormatter",
    "configure_logging",
    "get_logger",
    "get_sql_logger",
]
