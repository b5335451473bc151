"""Attribute casting.

Attributes are stored in their storage form (what goes into SQLite) and
converted to their Python form on read:

    set_attribute -> to_storage(cast, value)
    get_attribute -> from_storage(cast, value)

``None`` always passes through untouched.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from types import SimpleNamespace
from typing import Any

from row_orm.core.enums import CastType

DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value)
    return datetime.fromisoformat(str(value).strip())


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return _parse_datetime(value).date()


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ("", "0", "false")
    return bool(value)


def to_plain(value: Any) -> Any:
    """Turn namespaces produced by the object cast back into plain dicts."""
    if isinstance(value, SimpleNamespace):
        return {key: to_plain(item) for key, item in vars(value).items()}
    if isinstance(value, list):
        return [to_plain(item) for item in value]
    return value


def to_storage(cast: CastType, value: Any, date_format: str = DEFAULT_DATE_FORMAT) -> Any:
    """Convert a Python value to the form written to the database."""
    if value is None:
        return None

    if cast is CastType.INTEGER:
        return int(value)
    if cast is CastType.FLOAT:
        return float(value)
    if cast is CastType.STRING:
        return str(value)
    if cast is CastType.BOOLEAN:
        return int(_truthy(value))
    if cast in (CastType.ARRAY, CastType.OBJECT):
        if isinstance(value, (str, bytes)):
            return value
        return json.dumps(to_plain(value))
    if cast is CastType.DATE:
        return _parse_date(value).isoformat()
    if cast is CastType.DATETIME:
        return _parse_datetime(value).strftime(date_format)
    if cast is CastType.TIMESTAMP:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return int(value)
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            return int(value)
        return int(_parse_datetime(value).timestamp())
    return value


def from_storage(cast: CastType, value: Any, date_format: str = DEFAULT_DATE_FORMAT) -> Any:
    """Convert a stored value to its Python form."""
    if value is None:
        return None

    if cast is CastType.INTEGER:
        return int(value)
    if cast is CastType.FLOAT:
        return float(value)
    if cast is CastType.STRING:
        return str(value)
    if cast is CastType.BOOLEAN:
        return _truthy(value)
    if cast is CastType.ARRAY:
        return json.loads(value) if isinstance(value, (str, bytes)) else value
    if cast is CastType.OBJECT:
        if isinstance(value, (str, bytes)):
            return json.loads(value, object_hook=lambda d: SimpleNamespace(**d))
        return value
    if cast is CastType.DATE:
        return _parse_date(value)
    if cast is CastType.DATETIME:
        if isinstance(value, str):
            try:
                return datetime.strptime(value, date_format)
            except ValueError:
                return _parse_datetime(value)
        return _parse_datetime(value)
    if cast is CastType.TIMESTAMP:
        return to_storage(CastType.TIMESTAMP, value, date_format)
    return value
