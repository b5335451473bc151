"""Batched (eager) relation loading.

Given parent entities already fetched and a set of relation paths, the loader
issues one query per relation per nesting level (two for pivot relations),
matches the rows back to their parents in memory and fills each parent's
relation cache. Nested paths (``"posts.comments"``) are handed to the related
query's ``with_``, so the next level is resolved over the whole intermediate
result set.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from row_orm.core.log import get_logger
from row_orm.relations.descriptors import (
    THROUGH_KEY,
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
    unique,
)

if TYPE_CHECKING:
    from row_orm.model.base import Model

logger = get_logger(__name__)


def parse_relations(paths: Iterable[str]) -> dict[str, list[str]]:
    """Split dotted relation paths into ``{relation: [nested paths]}``.

    >>> parse_relations(["posts.comments", "posts.tags", "profile"])
    {'posts': ['comments', 'tags'], 'profile': []}
    """
    parsed: dict[str, list[str]] = {}
    for path in paths:
        name, _, rest = str(path).strip().partition(".")
        if not name:
            continue
        nested = parsed.setdefault(name, [])
        if rest and rest not in nested:
            nested.append(rest)
    return parsed


def merge_relations(
    first: Mapping[str, Sequence[str]], second: Mapping[str, Sequence[str]]
) -> dict[str, list[str]]:
    merged = {name: list(nested) for name, nested in first.items()}
    for name, nested in second.items():
        target = merged.setdefault(name, [])
        target.extend(path for path in nested if path not in target)
    return merged


class EagerLoader:
    """Resolves requested relations for a list of parents of one model class."""

    def load(self, models: Sequence[Model], relations: Mapping[str, Sequence[str]]) -> None:
        if not models:
            return
        for name, nested in relations.items():
            self.load_relation(models, name, nested)

    def load_relation(self, models: Sequence[Model], name: str, nested: Sequence[str] = ()) -> None:
        """Load relation *name* onto every model in *models*.

        Raises:
            RelationNotFoundError: If the model class defines no such relation.
        """
        descriptor = models[0].relation(name)
        logger.debug(
            "eager.load",
            relation=name,
            kind=type(descriptor).__name__,
            parents=len(models),
            nested=list(nested),
        )

        match descriptor:
            case BelongsTo():
                self._load_belongs_to(models, name, descriptor, nested)
            case HasOne() | HasMany() | MorphOne() | MorphMany():
                self._load_has(models, name, descriptor, nested)
            case BelongsToMany() | MorphToMany():
                self._load_pivot(models, name, descriptor, nested)
            case HasManyThrough() | HasOneThrough():
                self._load_through(models, name, descriptor, nested)
            case MorphTo():
                self._load_morph_to(models, name, descriptor, nested)
            case _:
                raise TypeError(f"Unsupported relation kind: {type(descriptor).__name__}")

    # --- Strategies ---

    @staticmethod
    def _set_default(models: Sequence[Model], name: str, descriptor: Relation) -> None:
        for model in models:
            model.set_relation(name, descriptor.default)

    def _load_belongs_to(
        self, models: Sequence[Model], name: str, descriptor: BelongsTo, nested: Sequence[str]
    ) -> None:
        keys = unique(m.get_raw_attribute(descriptor.foreign_key) for m in models)
        if not keys:
            self._set_default(models, name, descriptor)
            return

        results = descriptor.eager_query(keys).with_(*nested).get()
        indexed = {r.get_raw_attribute(descriptor.owner_key): r for r in results}
        for model in models:
            model.set_relation(name, indexed.get(model.get_raw_attribute(descriptor.foreign_key)))

    def _load_has(
        self,
        models: Sequence[Model],
        name: str,
        descriptor: HasOne | HasMany | MorphOne | MorphMany,
        nested: Sequence[str],
    ) -> None:
        keys = unique(m.get_raw_attribute(descriptor.local_key) for m in models)
        if not keys:
            self._set_default(models, name, descriptor)
            return

        results = descriptor.eager_query(keys).with_(*nested).get()
        if descriptor.many:
            grouped: dict[Any, list[Model]] = {}
            for result in results:
                grouped.setdefault(result.get_raw_attribute(descriptor.foreign_key), []).append(result)
            for model in models:
                model.set_relation(name, list(grouped.get(model.get_raw_attribute(descriptor.local_key), [])))
            return

        # Several children for one parent: the first row wins
        indexed: dict[Any, Model] = {}
        for result in results:
            indexed.setdefault(result.get_raw_attribute(descriptor.foreign_key), result)
        for model in models:
            model.set_relation(name, indexed.get(model.get_raw_attribute(descriptor.local_key)))

    def _load_pivot(
        self,
        models: Sequence[Model],
        name: str,
        descriptor: BelongsToMany | MorphToMany,
        nested: Sequence[str],
    ) -> None:
        keys = unique(m.get_raw_attribute(descriptor.parent_key) for m in models)
        if not keys:
            self._set_default(models, name, descriptor)
            return

        pivot_rows = descriptor.eager_pivot_query(keys).get()
        related_ids = unique(row[descriptor.related_pivot_key] for row in pivot_rows)
        if not related_ids:
            self._set_default(models, name, descriptor)
            return

        related = descriptor.eager_query(related_ids).with_(*nested).get()
        grouped = descriptor.match_pivot_rows(pivot_rows, related)
        for model in models:
            model.set_relation(name, list(grouped.get(model.get_raw_attribute(descriptor.parent_key), [])))

    def _load_through(
        self,
        models: Sequence[Model],
        name: str,
        descriptor: HasManyThrough | HasOneThrough,
        nested: Sequence[str],
    ) -> None:
        keys = unique(m.get_raw_attribute(descriptor.local_key) for m in models)
        if not keys:
            self._set_default(models, name, descriptor)
            return

        results = descriptor.eager_query(keys).with_(*nested).get()
        grouped: dict[Any, list[Model]] = {}
        for result in results:
            grouped.setdefault(result.pull_raw_attribute(THROUGH_KEY), []).append(result)

        for model in models:
            matches = grouped.get(model.get_raw_attribute(descriptor.local_key), [])
            if descriptor.many:
                model.set_relation(name, list(matches))
            else:
                model.set_relation(name, matches[0] if matches else None)

    def _load_morph_to(
        self, models: Sequence[Model], name: str, descriptor: MorphTo, nested: Sequence[str]
    ) -> None:
        ids_by_type: dict[str, list[Any]] = {}
        for model in models:
            alias = model.get_raw_attribute(descriptor.morph_type)
            key = model.get_raw_attribute(descriptor.foreign_key)
            if alias is None or key is None:
                continue
            ids = ids_by_type.setdefault(alias, [])
            if key not in ids:
                ids.append(key)

        indexed: dict[tuple[str, Any], Model] = {}
        for alias, ids in ids_by_type.items():
            related = descriptor.get_morphed_model(alias)
            owner_key = descriptor.owner_key_for(related)
            for result in related.query(descriptor.engine).where_in(owner_key, ids).with_(*nested).get():
                indexed[(alias, result.get_raw_attribute(owner_key))] = result

        for model in models:
            key = (
                model.get_raw_attribute(descriptor.morph_type),
                model.get_raw_attribute(descriptor.foreign_key),
            )
            model.set_relation(name, indexed.get(key))


def eager_load(models: Sequence[Model], *paths: str) -> Sequence[Model]:
    """Eager-load *paths* onto entities that were already fetched."""
    EagerLoader().load(models, parse_relations(paths))
    return models
