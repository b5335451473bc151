"""Relations layer - association descriptors and batched loading."""

from __future__ import annotations

from row_orm.relations.descriptors import (
    RELATION_KINDS,
    AnyRelation,
    BelongsTo,
    BelongsToMany,
    HasMany,
    HasManyThrough,
    HasOne,
    HasOneThrough,
    MorphMany,
    MorphOne,
    MorphTo,
    MorphToMany,
    Relation,
)
from row_orm.relations.eager import EagerLoader, eager_load, merge_relations, parse_relations
from row_orm.relations.pivot import Pivot

__all__ = [
    "Relation",
    "AnyRelation",
    "RELATION_KINDS",
    "HasOne",
    "HasMany",
    "BelongsTo",
    "BelongsToMany",
    "HasManyThrough",
    "HasOneThrough",
    "MorphTo",
    "MorphOne",
    "MorphMany",
    "MorphToMany",
    "Pivot",
    "EagerLoader",
    "eager_load",
    "parse_relations",
    "merge_relations",
]
