"""Enumerations shared by the query builder and the entity model."""

from __future__ import annotations

from enum import Enum


class DatabaseBackend(Enum):
    """Supported database backends."""

    SQLITE = "sqlite"


class Boolean(Enum):
    """Connective joining a condition to the one before it."""

    AND = "AND"
    OR = "OR"


class WhereKind(Enum):
    """Shape of a WHERE condition."""

    BASIC = "basic"
    IN = "in"
    NOT_IN = "not_in"
    NULL = "null"
    NOT_NULL = "not_null"
    BETWEEN = "between"
    NOT_BETWEEN = "not_between"
    RAW = "raw"


class JoinType(Enum):
    """Supported join types."""

    INNER = "INNER"
    LEFT = "LEFT"
    RIGHT = "RIGHT"


class Direction(Enum):
    """ORDER BY direction."""

    ASC = "ASC"
    DESC = "DESC"


class CastType(Enum):
    """Declared attribute casts.

    Several spellings map to the same cast, see ``CastType.parse``.
    """

    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"
    DATE = "date"
    DATETIME = "datetime"
    TIMESTAMP = "timestamp"

    @classmethod
    def parse(cls, name: str | CastType) -> CastType | None:
        """Resolve a cast spelling, returning None when it is unknown."""
        if isinstance(name, CastType):
            return name
        return _CAST_ALIASES.get(name.lower())


_CAST_ALIASES: dict[str, CastType] = {
    "int": CastType.INTEGER,
    "integer": CastType.INTEGER,
    "float": CastType.FLOAT,
    "double": CastType.FLOAT,
    "real": CastType.FLOAT,
    "str": CastType.STRING,
    "string": CastType.STRING,
    "bool": CastType.BOOLEAN,
    "boolean": CastType.BOOLEAN,
    "array": CastType.ARRAY,
    "json": CastType.ARRAY,
    "object": CastType.OBJECT,
    "date": CastType.DATE,
    "datetime": CastType.DATETIME,
    "timestamp": CastType.TIMESTAMP,
}
