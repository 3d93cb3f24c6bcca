"""
Scalar result getters.

When `get`/`select` target a plain type instead of an entity, the first
column of each row is converted with the getter registered for that type.
Drivers differ in what they hand back (sqlite returns ISO strings for dates,
MySQL drivers return `datetime` for DATETIME columns), so each getter
normalises the common representations.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict

ResultGetter = Callable[[Any], Any]


def _get_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value)).date()


def _get_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return datetime.fromisoformat(str(value))


def _get_decimal(value: Any) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _get_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "t", "y", "yes")
    return bool(value)


def _get_str(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8")
    return str(value)


_GETTERS: Dict[type, ResultGetter] = {
    str: _get_str,
    int: int,
    float: float,
    bool: _get_bool,
    Decimal: _get_decimal,
    date: _get_date,
    datetime: _get_datetime,
}


def register_getter(result_type: type, getter: ResultGetter) -> None:
    """Register (or replace) the converter used for `result_type`."""
    _GETTERS[result_type] = getter


def get_value(value: Any, result_type: type) -> Any:
    """Convert a raw column value to `result_type`; None stays None."""
    if value is None:
        return None
    getter = _GETTERS.get(result_type)
    if getter is None:
        return value if isinstance(value, result_type) else result_type(value)
    return getter(value)


__all__ = ["ResultGetter", "get_value", "register_getter"]
