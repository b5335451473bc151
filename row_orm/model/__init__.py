"""Model layer - entities, attribute casting and relation definitions."""

from __future__ import annotations

from row_orm.model.base import Model, relation, snake_case
from row_orm.model.casts import DEFAULT_DATE_FORMAT, from_storage, to_storage

__all__ = [
    "Model",
    "relation",
    "snake_case",
    "DEFAULT_DATE_FORMAT",
    "to_storage",
    "from_storage",
]
