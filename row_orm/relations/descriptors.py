"""Relationship descriptors.

One frozen dataclass per association kind. A descriptor is built for one
owning entity when its relation is requested and never changes afterwards;
methods such as ``with_pivot`` return a new descriptor. Descriptors know
their join keys and how to query for one owner (``get_query`` /
``get_results``) or for a batch of owners (``eager_query``). The batching
itself lives in ``row_orm.relations.eager``.

The set of kinds is closed: ``RELATION_KINDS`` lists every concrete class.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import TYPE_CHECKING, Any, ClassVar, Union

from row_orm.core.registry import registry
from row_orm.relations.pivot import Pivot

if TYPE_CHECKING:
    from row_orm.core.engine import Engine
    from row_orm.model.base import Model
    from row_orm.query.builder import QueryBuilder

# Column alias carrying the intermediate table's key in through queries
THROUGH_KEY = "row_orm_through_key"

_MISSING: Any = object()


def unique(values: Iterable[Any]) -> list[Any]:
    """Distinct non-None values, in first-seen order."""
    return list(dict.fromkeys(v for v in values if v is not None))


def _as_ids(ids: Any) -> list[Any]:
    if ids is None:
        return []
    if not isinstance(ids, (list, tuple, set, frozenset)):
        ids = [ids]
    return [i.get_key() if hasattr(i, "get_key") else i for i in ids]


@dataclass(frozen=True, eq=False, kw_only=True)
class Relation:
    """Common base: the owning entity."""

    parent: Model
    many: ClassVar[bool] = False

    @property
    def engine(self) -> Engine:
        return self.parent.get_engine()

    @property
    def default(self) -> Any:
        """Value of the relation when nothing matches."""
        return [] if self.many else None

    def get_query(self) -> QueryBuilder:
        raise NotImplementedError

    def get_results(self) -> Any:
        raise NotImplementedError


# --- One-to-one / one-to-many ---


@dataclass(frozen=True, eq=False, kw_only=True)
class _HasOneOrMany(Relation):
    related: type[Model]
    foreign_key: str
    local_key: str

    def _constrain(self, query: QueryBuilder) -> QueryBuilder:
        return query

    def get_query(self) -> QueryBuilder:
        query = self._constrain(self.related.query(self.engine))
        return query.where(self.foreign_key, "=", self.parent.get_raw_attribute(self.local_key))

    def eager_query(self, keys: Sequence[Any]) -> QueryBuilder:
        return self._constrain(self.related.query(self.engine)).where_in(self.foreign_key, keys)

    def get_results(self) -> Any:
        if self.parent.get_raw_attribute(self.local_key) is None:
            return self.default
        query = self.get_query()
        return query.get() if self.many else query.first()

    def _owner_attributes(self) -> dict[str, Any]:
        return {self.foreign_key: self.parent.get_raw_attribute(self.local_key)}

    def save(self, model: Model) -> Model:
        """Point *model* at the owner and save it."""
        model.force_fill(self._owner_attributes())
        model.save(self.engine)
        return model

    def create(self, attributes: Mapping[str, Any] | None = None, **kwargs: Any) -> Model:
        """Create and save a related entity owned by the parent."""
        model = self.related(attributes, db=self.engine, **kwargs)
        return self.save(model)


@dataclass(frozen=True, eq=False, kw_only=True)
class HasOne(_HasOneOrMany):
    """Parent local key <- child foreign key, at most one child."""


@dataclass(frozen=True, eq=False, kw_only=True)
class HasMany(_HasOneOrMany):
    """Parent local key <- child foreign key, any number of children."""

    many: ClassVar[bool] = True


@dataclass(frozen=True, eq=False, kw_only=True)
class _MorphOneOrMany(_HasOneOrMany):
    morph_type: str
    morph_class: str

    def _constrain(self, query: QueryBuilder) -> QueryBuilder:
        return query.where(self.morph_type, "=", self.morph_class)

    def _owner_attributes(self) -> dict[str, Any]:
        attributes = super()._owner_attributes()
        attributes[self.morph_type] = self.morph_class
        return attributes


@dataclass(frozen=True, eq=False, kw_only=True)
class MorphOne(_MorphOneOrMany):
    """Like HasOne, restricted to children whose type column names the parent."""


@dataclass(frozen=True, eq=False, kw_only=True)
class MorphMany(_MorphOneOrMany):
    """Like HasMany, restricted to children whose type column names the parent."""

    many: ClassVar[bool] = True


# --- Inverse ---


@dataclass(frozen=True, eq=False, kw_only=True)
class BelongsTo(Relation):
    """Child foreign key -> parent owner key."""

    related: type[Model]
    foreign_key: str
    owner_key: str

    def get_query(self) -> QueryBuilder:
        return self.related.query(self.engine).where(
            self.owner_key, "=", self.parent.get_raw_attribute(self.foreign_key)
        )

    def eager_query(self, keys: Sequence[Any]) -> QueryBuilder:
        return self.related.query(self.engine).where_in(self.owner_key, keys)

    def get_results(self) -> Any:
        if self.parent.get_raw_attribute(self.foreign_key) is None:
            return None
        return self.get_query().first()

    def associate(self, model: Model) -> Model:
        """Set the parent's foreign key to *model*; the caller saves the parent."""
        self.parent.force_fill({self.foreign_key: model.get_raw_attribute(self.owner_key)})
        return self.parent

    def dissociate(self) -> Model:
        self.parent.force_fill({self.foreign_key: None})
        return self.parent


@dataclass(frozen=True, eq=False, kw_only=True)
class MorphTo(Relation):
    """Child (type, id) columns -> an owner of any registered model class."""

    morph_type: str
    foreign_key: str
    owner_key: str | None = None
    morph_map: Mapping[str, type[Model] | str] = field(default_factory=dict)

    def morph_with(self, types: Mapping[str, type[Model] | str]) -> MorphTo:
        return replace(self, morph_map={**self.morph_map, **types})

    def get_morphed_model(self, alias: str) -> type[Model]:
        """Resolve a stored type tag to a model class."""
        return registry.resolve(self.morph_map.get(alias, alias))

    def owner_key_for(self, model: type[Model]) -> str:
        return self.owner_key or model.get_key_name_for_class()

    def get_query(self) -> QueryBuilder:
        model = self.get_morphed_model(self.parent.get_raw_attribute(self.morph_type))
        return model.query(self.engine).where(
            self.owner_key_for(model), "=", self.parent.get_raw_attribute(self.foreign_key)
        )

    def get_results(self) -> Any:
        if (
            self.parent.get_raw_attribute(self.morph_type) is None
            or self.parent.get_raw_attribute(self.foreign_key) is None
        ):
            return None
        return self.get_query().first()

    def associate(self, model: Model) -> Model:
        self.parent.force_fill(
            {
                self.morph_type: model.get_morph_class(),
                self.foreign_key: model.get_raw_attribute(self.owner_key_for(type(model))),
            }
        )
        return self.parent


# --- Many-to-many ---


@dataclass(frozen=True, eq=False, kw_only=True)
class _PivotRelation(Relation):
    related: type[Model]
    table: str
    foreign_pivot_key: str
    related_pivot_key: str
    parent_key: str
    related_key: str
    pivot_columns: tuple[str, ...] = ()
    pivot_wheres: tuple[tuple[str, Any, Any], ...] = ()
    timestamps: bool = False

    many: ClassVar[bool] = True

    # --- Definition ---

    def with_pivot(self, *columns: str) -> _PivotRelation:
        """Declare the extra columns this relation keeps on its pivot table."""
        added = tuple(c for c in columns if c not in self.pivot_columns)
        return replace(self, pivot_columns=self.pivot_columns + added)

    def with_timestamps(self) -> _PivotRelation:
        """Stamp created_at/updated_at on pivot rows and expose them."""
        return replace(self, timestamps=True).with_pivot("created_at", "updated_at")

    def where_pivot(self, column: str, operator: Any = _MISSING, value: Any = _MISSING) -> _PivotRelation:
        if value is _MISSING:
            operator, value = "=", operator
        return replace(self, pivot_wheres=self.pivot_wheres + ((column, operator, value),))

    # --- Queries ---

    def _constrain_pivot(self, query: QueryBuilder) -> QueryBuilder:
        return query

    def pivot_query(self) -> QueryBuilder:
        """Query over the pivot table with the relation's constraints applied."""
        query = self._constrain_pivot(self.engine.table(self.table))
        for column, operator, value in self.pivot_wheres:
            query.where(column, operator, value)
        return query

    def eager_pivot_query(self, keys: Sequence[Any]) -> QueryBuilder:
        return self.pivot_query().where_in(self.foreign_pivot_key, keys)

    def eager_query(self, keys: Sequence[Any]) -> QueryBuilder:
        return self.related.query(self.engine).where_in(self.related_key, keys)

    def get_query(self) -> QueryBuilder:
        """Related rows joined through the pivot table for this parent.

        Rows fetched this way carry no pivot payload; use ``get_results``.
        """
        related_table = self.related.get_table()
        query = (
            self.related.query(self.engine)
            .select(f"{related_table}.*")
            .join(
                self.table,
                f"{self.table}.{self.related_pivot_key}",
                "=",
                f"{related_table}.{self.related_key}",
            )
            .where(f"{self.table}.{self.foreign_pivot_key}", "=", self._parent_value())
        )
        for column, operator, value in self.pivot_wheres:
            query.where(f"{self.table}.{column}", operator, value)
        return self._constrain_joined(query)

    def _constrain_joined(self, query: QueryBuilder) -> QueryBuilder:
        return query

    def get_results(self) -> list[Model]:
        parent_value = self._parent_value()
        if parent_value is None:
            return []
        pivot_rows = self.pivot_query().where(self.foreign_pivot_key, "=", parent_value).get()
        if not pivot_rows:
            return []
        related = self.eager_query(unique(row[self.related_pivot_key] for row in pivot_rows)).get()
        return self.match_pivot_rows(pivot_rows, related).get(parent_value, [])

    def match_pivot_rows(
        self, pivot_rows: list[dict[str, Any]], related: list[Model]
    ) -> dict[Any, list[Model]]:
        """Group related entities by parent key, one copy per pivot row.

        Each copy carries its own pivot payload, so the same related row can
        sit under several parents with different pivot data.
        """
        indexed = {model.get_raw_attribute(self.related_key): model for model in related}
        grouped: dict[Any, list[Model]] = {}
        for row in pivot_rows:
            match = indexed.get(row[self.related_pivot_key])
            if match is None:
                continue
            attached = copy.copy(match)
            attached.set_relation("pivot", self.make_pivot(row))
            grouped.setdefault(row[self.foreign_pivot_key], []).append(attached)
        return grouped

    def make_pivot(self, row: Mapping[str, Any]) -> Pivot:
        """Wrap the whole pivot row, declared or not."""
        return Pivot(self.table, dict(row))

    # --- Pivot maintenance ---

    def _parent_value(self) -> Any:
        return self.parent.get_raw_attribute(self.parent_key)

    def _pivot_record(self, related_id: Any, attributes: Mapping[str, Any]) -> dict[str, Any]:
        record = dict(attributes)
        record[self.foreign_pivot_key] = self._parent_value()
        record[self.related_pivot_key] = related_id
        if self.timestamps:
            now = datetime.now().strftime(self.parent.__date_format__)
            record.setdefault("created_at", now)
            record.setdefault("updated_at", now)
        return record

    def attach(self, ids: Any, attributes: Mapping[str, Any] | None = None) -> bool:
        """Insert pivot rows linking the parent to *ids*."""
        records = [self._pivot_record(i, attributes or {}) for i in _as_ids(ids)]
        if not records:
            return False
        return bool(self.engine.table(self.table).insert_batch(records))

    def detach(self, ids: Any = None) -> int:
        """Delete pivot rows for *ids*, or every pivot row of the parent."""
        query = self._constrain_pivot(self.engine.table(self.table)).where(
            self.foreign_pivot_key, "=", self._parent_value()
        )
        if ids is not None:
            query.where_in(self.related_pivot_key, _as_ids(ids))
        return query.delete()

    def sync(self, ids: Any, detaching: bool = True) -> dict[str, list[Any]]:
        """Make the pivot table hold exactly *ids* for the parent.

        Returns the ids that were attached and detached.
        """
        wanted = unique(_as_ids(ids))
        current_rows = (
            self._constrain_pivot(self.engine.table(self.table))
            .where(self.foreign_pivot_key, "=", self._parent_value())
            .get()
        )
        current = unique(row[self.related_pivot_key] for row in current_rows)

        attach = [i for i in wanted if i not in current]
        detach = [i for i in current if i not in wanted] if detaching else []

        if attach:
            self.attach(attach)
        if detach:
            self.detach(detach)
        return {"attached": attach, "detached": detach}

    def update_existing_pivot(self, related_id: Any, attributes: Mapping[str, Any]) -> int:
        attributes = dict(attributes)
        if self.timestamps:
            attributes["updated_at"] = datetime.now().strftime(self.parent.__date_format__)
        return (
            self._constrain_pivot(self.engine.table(self.table))
            .where(self.foreign_pivot_key, "=", self._parent_value())
            .where(self.related_pivot_key, "=", related_id)
            .update(attributes)
        )


@dataclass(frozen=True, eq=False, kw_only=True)
class BelongsToMany(_PivotRelation):
    """Pivot table with one key per side."""


@dataclass(frozen=True, eq=False, kw_only=True)
class MorphToMany(_PivotRelation):
    """Pivot table whose rows also carry the type tag of the morphing side."""

    morph_type: str
    morph_class: str

    def _constrain_pivot(self, query: QueryBuilder) -> QueryBuilder:
        return query.where(self.morph_type, "=", self.morph_class)

    def _constrain_joined(self, query: QueryBuilder) -> QueryBuilder:
        return query.where(f"{self.table}.{self.morph_type}", "=", self.morph_class)

    def _pivot_record(self, related_id: Any, attributes: Mapping[str, Any]) -> dict[str, Any]:
        record = super()._pivot_record(related_id, attributes)
        record[self.morph_type] = self.morph_class
        return record


# --- Through ---


@dataclass(frozen=True, eq=False, kw_only=True)
class _ThroughRelation(Relation):
    """Far parent -> intermediate table -> related table.

    ``first_key`` is the intermediate table's foreign key to the far parent,
    ``second_key`` the related table's foreign key to the intermediate
    table, ``local_key`` the far parent's key and ``second_local_key`` the
    intermediate table's own key.
    """

    related: type[Model]
    through: type[Model]
    first_key: str
    second_key: str
    local_key: str
    second_local_key: str

    @property
    def qualified_first_key(self) -> str:
        return f"{self.through.get_table()}.{self.first_key}"

    def _base_query(self) -> QueryBuilder:
        related_table = self.related.get_table()
        through_table = self.through.get_table()
        return (
            self.related.query(self.engine)
            .select(f"{related_table}.*", f"{self.qualified_first_key} AS {THROUGH_KEY}")
            .join(
                through_table,
                f"{through_table}.{self.second_local_key}",
                "=",
                f"{related_table}.{self.second_key}",
            )
        )

    def get_query(self) -> QueryBuilder:
        return self._base_query().where(
            self.qualified_first_key, "=", self.parent.get_raw_attribute(self.local_key)
        )

    def eager_query(self, keys: Sequence[Any]) -> QueryBuilder:
        return self._base_query().where_in(self.qualified_first_key, keys)

    def get_results(self) -> Any:
        if self.parent.get_raw_attribute(self.local_key) is None:
            return self.default
        query = self.get_query()
        results = query.get() if self.many else query.clone().limit(1).get()
        for model in results:
            model.pull_raw_attribute(THROUGH_KEY)
        if self.many:
            return results
        return results[0] if results else None


@dataclass(frozen=True, eq=False, kw_only=True)
class HasManyThrough(_ThroughRelation):
    """All related rows reachable through the intermediate table."""

    many: ClassVar[bool] = True


@dataclass(frozen=True, eq=False, kw_only=True)
class HasOneThrough(_ThroughRelation):
    """First related row reachable through the intermediate table."""


AnyRelation = Union[
    HasOne,
    HasMany,
    BelongsTo,
    BelongsToMany,
    HasManyThrough,
    HasOneThrough,
    MorphTo,
    MorphOne,
    MorphMany,
    MorphToMany,
]

RELATION_KINDS: tuple[type[Relation], ...] = (
    HasOne,
    HasMany,
    BelongsTo,
    BelongsToMany,
    HasManyThrough,
    HasOneThrough,
    MorphTo,
    MorphOne,
    MorphMany,
    MorphToMany,
)
