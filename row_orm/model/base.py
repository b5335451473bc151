"""Active-record entity model.

A Model instance holds one row's attributes in storage form, a snapshot of
the last persisted state (``original``) and a cache of resolved relations.
Configuration lives in dunder class attributes::

    class Post(Model):
        __table__ = "posts"
        __fillable__ = ("title", "body", "user_id")
        __casts__ = {"published": "bool", "meta": "array"}

        @relation
        def comments(self):
            return self.has_many(Comment)

Creating the subclass registers it, and every ``@relation`` it defines, in
the model registry. Entities are not deduplicated: loading the same row twice
yields two independent instances.
"""

from __future__ import annotations

import functools
import json
import re
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any, ClassVar

from row_orm.core.enums import CastType
from row_orm.core.exceptions import MissingConnectionError, ModelNotFoundError, UnknownCastError
from row_orm.core.registry import registry
from row_orm.model.casts import DEFAULT_DATE_FORMAT, from_storage, to_plain, to_storage
from row_orm.query.builder import QueryBuilder
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
from row_orm.relations.eager import eager_load

if TYPE_CHECKING:
    from row_orm.core.engine import Engine


def snake_case(name: str) -> str:
    """``BlogPost`` -> ``blog_post``."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


class relation:  # noqa: N801
    """Mark a method as a relation definition.

    The method returns a relation descriptor built from the entity. Reading
    the attribute resolves the relation (once, then from the cache); calling
    ``entity.relation(name)`` returns the descriptor itself.
    """

    def __init__(self, fn: Callable[[Any], Relation]) -> None:
        self.fn = fn
        self.name = fn.__name__
        functools.update_wrapper(self, fn)  # type: ignore[arg-type]

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, instance: Model | None, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return instance.get_attribute(self.name)

    def __set__(self, instance: Model, value: Any) -> None:
        instance.set_relation(self.name, value)

    def __call__(self, instance: Model) -> AnyRelation:
        descriptor = self.fn(instance)
        if not isinstance(descriptor, RELATION_KINDS):
            raise TypeError(
                f"Relation '{self.name}' on {type(instance).__name__} returned "
                f"{type(descriptor).__name__}, not a relation descriptor"
            )
        return descriptor


class Model:
    """Base class for entities."""

    __table__: ClassVar[str | None] = None
    __primary_key__: ClassVar[str] = "id"
    __fillable__: ClassVar[tuple[str, ...]] = ()
    __guarded__: ClassVar[tuple[str, ...]] = ("id",)
    __hidden__: ClassVar[tuple[str, ...]] = ()
    __casts__: ClassVar[Mapping[str, str]] = {}
    __timestamps__: ClassVar[bool] = True
    __date_format__: ClassVar[str] = DEFAULT_DATE_FORMAT
    __morph_name__: ClassVar[str | None] = None

    _resolved_casts: ClassVar[dict[str, CastType]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)

        casts: dict[str, CastType] = {}
        for attribute, name in cls.__casts__.items():
            cast = CastType.parse(name)
            if cast is None:
                raise UnknownCastError(attribute, name)
            casts[attribute] = cast
        cls._resolved_casts = casts

        relations: dict[str, relation] = {}
        for klass in reversed(cls.__mro__):
            for name, value in vars(klass).items():
                if isinstance(value, relation):
                    relations[name] = value

        aliases = (cls.__morph_name__,) if cls.__morph_name__ else ()
        registry.register(cls, relations, aliases)

    def __init__(
        self,
        attributes: Mapping[str, Any] | None = None,
        *,
        db: Engine | None = None,
        **kwargs: Any,
    ) -> None:
        self._attributes: dict[str, Any] = {}
        self._original: dict[str, Any] = {}
        self._relations: dict[str, Any] = {}
        self._exists = False
        self._was_recently_created = False
        self._engine = db
        self.fill({**(attributes or {}), **kwargs})

    # --- Attribute access ---

    def __getattr__(self, key: str) -> Any:
        if key.startswith("_"):
            raise AttributeError(key)
        return self.get_attribute(key)

    def __setattr__(self, key: str, value: Any) -> None:
        # Properties and relations are data descriptors; plain methods are not.
        if key.startswith("_") or hasattr(getattr(type(self), key, None), "__set__"):
            object.__setattr__(self, key, value)
        else:
            self.set_attribute(key, value)

    def get_attribute(self, key: str) -> Any:
        """Read an attribute, falling back to the relation cache and then to
        lazily resolving a registered relation of the same name."""
        if key in self._attributes:
            cast = self._resolved_casts.get(key)
            value = self._attributes[key]
            return value if cast is None else from_storage(cast, value, self.__date_format__)
        if key in self._relations:
            return self._relations[key]
        if registry.has_relation(type(self), key):
            return self.get_relation_value(key)
        return None

    def set_attribute(self, key: str, value: Any) -> Model:
        cast = self._resolved_casts.get(key)
        if cast is not None:
            value = to_storage(cast, value, self.__date_format__)
        self._attributes[key] = value
        return self

    def get_raw_attribute(self, key: str, default: Any = None) -> Any:
        """Stored value of *key*, without casting."""
        return self._attributes.get(key, default)

    def pull_raw_attribute(self, key: str) -> Any:
        """Remove *key* from the attributes and the original snapshot."""
        self._original.pop(key, None)
        return self._attributes.pop(key, None)

    def get_attributes(self) -> dict[str, Any]:
        return dict(self._attributes)

    def set_raw_attributes(self, attributes: Mapping[str, Any], sync: bool = False) -> Model:
        """Replace the attributes with already-stored values."""
        self._attributes = dict(attributes)
        if sync:
            self.sync_original()
        return self

    # --- Mass assignment ---

    def is_fillable(self, key: str) -> bool:
        if key in self.__guarded__ or "*" in self.__guarded__:
            return False
        return not self.__fillable__ or key in self.__fillable__

    def fill(self, attributes: Mapping[str, Any]) -> Model:
        """Assign the fillable subset of *attributes*; the rest is ignored."""
        for key, value in attributes.items():
            if self.is_fillable(key):
                self.set_attribute(key, value)
        return self

    def force_fill(self, attributes: Mapping[str, Any]) -> Model:
        for key, value in attributes.items():
            self.set_attribute(key, value)
        return self

    # --- Dirty tracking ---

    def get_dirty(self) -> dict[str, Any]:
        """Attributes that are new or differ from the original snapshot."""
        return {
            key: value
            for key, value in self._attributes.items()
            if key not in self._original or self._original[key] != value
        }

    def is_dirty(self, *attributes: str) -> bool:
        dirty = self.get_dirty()
        if not attributes:
            return bool(dirty)
        return any(attribute in dirty for attribute in attributes)

    def is_clean(self, *attributes: str) -> bool:
        return not self.is_dirty(*attributes)

    def get_original(self, key: str | None = None, default: Any = None) -> Any:
        """Stored value(s) as of the last sync."""
        if key is None:
            return dict(self._original)
        return self._original.get(key, default)

    def sync_original(self) -> Model:
        self._original = dict(self._attributes)
        return self

    # --- Engine ---

    def get_engine(self) -> Engine:
        if self._engine is None:
            raise MissingConnectionError(type(self).__name__)
        return self._engine

    def set_engine(self, db: Engine) -> Model:
        self._engine = db
        return self

    # --- Persistence ---

    def _touch(self, column: str) -> None:
        now = datetime.now()
        if column in self._resolved_casts:
            self.set_attribute(column, now)
        else:
            self.set_attribute(column, now.strftime(self.__date_format__))

    def save(self, db: Engine | None = None) -> bool:
        """Insert the entity, or update its dirty columns if it already exists."""
        if db is not None:
            self._engine = db
        query = type(self).query(self.get_engine())

        if self._exists:
            dirty = self.get_dirty()
            if not dirty:
                return True
            if self.__timestamps__:
                self._touch("updated_at")
                dirty["updated_at"] = self.get_raw_attribute("updated_at")
            query.where(self.get_key_name(), "=", self.get_key()).update(dirty)
        else:
            if self.__timestamps__:
                if self.get_raw_attribute("created_at") is None:
                    self._touch("created_at")
                self._touch("updated_at")
            key = query.insert(self._attributes)
            if self.get_key() is None:
                self._attributes[self.get_key_name()] = key
            self._exists = True
            self._was_recently_created = True

        self.sync_original()
        return True

    def update(self, attributes: Mapping[str, Any] | None = None, **kwargs: Any) -> bool:
        self.fill({**(attributes or {}), **kwargs})
        return self.save()

    def delete(self) -> bool:
        """Delete the entity's row by primary key."""
        if not self._exists:
            return False
        type(self).query(self.get_engine()).where(self.get_key_name(), "=", self.get_key()).delete()
        self._exists = False
        return True

    def fresh(self, *relations: str) -> Model | None:
        """Load a new instance of this row from the database."""
        if not self._exists:
            return None
        return type(self).query(self.get_engine()).with_(*relations).find(self.get_key())

    def refresh(self) -> Model:
        """Reload attributes, and any relations already loaded, from the database."""
        if not self._exists:
            return self
        fresh = type(self).query(self.get_engine()).find(self.get_key())
        if fresh is None:
            raise ModelNotFoundError(type(self).__name__, self.get_key())
        self.set_raw_attributes(fresh.get_attributes(), sync=True)

        loaded = [name for name in self._relations if registry.has_relation(type(self), name)]
        for name in loaded:
            del self._relations[name]
        if loaded:
            self.load(*loaded)
        return self

    def replicate(self, except_: Iterable[str] = ()) -> Model:
        """Unsaved copy of the entity without its key and timestamps."""
        excluded = {self.get_key_name(), "created_at", "updated_at", *except_}
        clone = type(self)(db=self._engine)
        clone.set_raw_attributes({k: v for k, v in self._attributes.items() if k not in excluded})
        clone._relations = dict(self._relations)
        return clone

    @classmethod
    def new_from_row(cls, row: Mapping[str, Any], db: Engine | None = None) -> Model:
        """Materialize a persisted entity from a raw row."""
        instance = cls(db=db)
        instance.set_raw_attributes(row, sync=True)
        instance._exists = True
        return instance

    # --- Relations ---

    def relation(self, name: str) -> Relation:
        """Build the descriptor for relation *name* on this entity.

        Raises:
            RelationNotFoundError: If the model defines no such relation.
        """
        return registry.relation(type(self), name)(self)

    def get_relation_value(self, name: str) -> Any:
        """Cached relation value, resolving and caching it on first access."""
        if name in self._relations:
            return self._relations[name]
        value = self.relation(name).get_results()
        self._relations[name] = value
        return value

    def set_relation(self, name: str, value: Any) -> Model:
        self._relations[name] = value
        return self

    def get_relation(self, name: str) -> Any:
        return self._relations.get(name)

    def get_relations(self) -> dict[str, Any]:
        return dict(self._relations)

    def relation_loaded(self, name: str) -> bool:
        return name in self._relations

    def unset_relation(self, name: str) -> Model:
        self._relations.pop(name, None)
        return self

    def load(self, *relations: str) -> Model:
        """Eager-load relations onto this already-fetched entity."""
        eager_load([self], *relations)
        return self

    # --- Class-level queries ---

    @classmethod
    def query(cls, db: Engine | None) -> QueryBuilder:
        if db is None:
            raise MissingConnectionError(cls.__name__)
        return QueryBuilder(db, cls.get_table(), cls)

    @classmethod
    def with_(cls, db: Engine, *relations: str) -> QueryBuilder:
        return cls.query(db).with_(*relations)

    @classmethod
    def all(cls, db: Engine) -> list[Any]:
        return cls.query(db).get()

    @classmethod
    def find(cls, db: Engine, key: Any) -> Any:
        return cls.query(db).find(key)

    @classmethod
    def find_or_fail(cls, db: Engine, key: Any) -> Any:
        return cls.query(db).find_or_fail(key)

    @classmethod
    def create(cls, db: Engine, attributes: Mapping[str, Any] | None = None, **kwargs: Any) -> Model:
        instance = cls(attributes, db=db, **kwargs)
        instance.save()
        return instance

    @classmethod
    def first_or_new(
        cls, db: Engine, attributes: Mapping[str, Any], values: Mapping[str, Any] | None = None
    ) -> Model:
        """First entity matching *attributes*, or an unsaved one built from them."""
        instance = cls.query(db).where(dict(attributes)).first()
        if instance is None:
            instance = cls({**attributes, **(values or {})}, db=db)
        return instance

    @classmethod
    def first_or_create(
        cls, db: Engine, attributes: Mapping[str, Any], values: Mapping[str, Any] | None = None
    ) -> Model:
        instance = cls.first_or_new(db, attributes, values)
        if not instance.exists:
            instance.save()
        return instance

    @classmethod
    def update_or_create(
        cls, db: Engine, attributes: Mapping[str, Any], values: Mapping[str, Any] | None = None
    ) -> Model:
        instance = cls.first_or_new(db, attributes)
        instance.fill(values or {})
        instance.save()
        return instance

    @classmethod
    def destroy(cls, db: Engine, *ids: Any) -> int:
        """Delete entities by primary key; returns how many were deleted."""
        keys: list[Any] = []
        for key in ids:
            keys.extend(key if isinstance(key, (list, tuple, set)) else [key])
        if not keys:
            return 0
        deleted = 0
        for instance in cls.query(db).where_in(cls.get_key_name_for_class(), keys).get():
            if instance.delete():
                deleted += 1
        return deleted

    # --- Naming conventions ---

    @classmethod
    def get_table(cls) -> str:
        return cls.__table__ or f"{snake_case(cls.__name__)}s"

    @classmethod
    def get_key_name_for_class(cls) -> str:
        return cls.__primary_key__

    @classmethod
    def get_foreign_key(cls) -> str:
        """Column other tables use to point at this model: ``user_id``."""
        return f"{snake_case(cls.__name__)}_{cls.__primary_key__}"

    @classmethod
    def get_morph_class(cls) -> str:
        """Type tag stored in polymorphic type columns."""
        return cls.__morph_name__ or cls.__name__

    @classmethod
    def joining_table(cls, related: type[Model]) -> str:
        """Default pivot table name: both model names, sorted, joined by ``_``."""
        return "_".join(sorted((snake_case(cls.__name__), snake_case(related.__name__))))

    def get_key_name(self) -> str:
        return self.__primary_key__

    def get_key(self) -> Any:
        return self._attributes.get(self.__primary_key__)

    @property
    def exists(self) -> bool:
        return self._exists

    @property
    def was_recently_created(self) -> bool:
        return self._was_recently_created

    # --- Relation definitions ---

    def has_one(
        self,
        related: type[Model] | str,
        foreign_key: str | None = None,
        local_key: str | None = None,
    ) -> HasOne:
        return HasOne(
            parent=self,
            related=registry.resolve(related),
            foreign_key=foreign_key or self.get_foreign_key(),
            local_key=local_key or self.get_key_name(),
        )

    def has_many(
        self,
        related: type[Model] | str,
        foreign_key: str | None = None,
        local_key: str | None = None,
    ) -> HasMany:
        return HasMany(
            parent=self,
            related=registry.resolve(related),
            foreign_key=foreign_key or self.get_foreign_key(),
            local_key=local_key or self.get_key_name(),
        )

    def belongs_to(
        self,
        related: type[Model] | str,
        foreign_key: str | None = None,
        owner_key: str | None = None,
    ) -> BelongsTo:
        model = registry.resolve(related)
        return BelongsTo(
            parent=self,
            related=model,
            foreign_key=foreign_key or model.get_foreign_key(),
            owner_key=owner_key or model.get_key_name_for_class(),
        )

    def belongs_to_many(
        self,
        related: type[Model] | str,
        table: str | None = None,
        foreign_pivot_key: str | None = None,
        related_pivot_key: str | None = None,
        parent_key: str | None = None,
        related_key: str | None = None,
    ) -> BelongsToMany:
        model = registry.resolve(related)
        return BelongsToMany(
            parent=self,
            related=model,
            table=table or self.joining_table(model),
            foreign_pivot_key=foreign_pivot_key or self.get_foreign_key(),
            related_pivot_key=related_pivot_key or model.get_foreign_key(),
            parent_key=parent_key or self.get_key_name(),
            related_key=related_key or model.get_key_name_for_class(),
        )

    def _through_keys(
        self,
        through: type[Model],
        first_key: str | None,
        second_key: str | None,
        local_key: str | None,
        second_local_key: str | None,
    ) -> dict[str, str]:
        return {
            "first_key": first_key or self.get_foreign_key(),
            "second_key": second_key or through.get_foreign_key(),
            "local_key": local_key or self.get_key_name(),
            "second_local_key": second_local_key or through.get_key_name_for_class(),
        }

    def has_many_through(
        self,
        related: type[Model] | str,
        through: type[Model] | str,
        first_key: str | None = None,
        second_key: str | None = None,
        local_key: str | None = None,
        second_local_key: str | None = None,
    ) -> HasManyThrough:
        through_model = registry.resolve(through)
        return HasManyThrough(
            parent=self,
            related=registry.resolve(related),
            through=through_model,
            **self._through_keys(through_model, first_key, second_key, local_key, second_local_key),
        )

    def has_one_through(
        self,
        related: type[Model] | str,
        through: type[Model] | str,
        first_key: str | None = None,
        second_key: str | None = None,
        local_key: str | None = None,
        second_local_key: str | None = None,
    ) -> HasOneThrough:
        through_model = registry.resolve(through)
        return HasOneThrough(
            parent=self,
            related=registry.resolve(related),
            through=through_model,
            **self._through_keys(through_model, first_key, second_key, local_key, second_local_key),
        )

    def morph_to(
        self,
        name: str,
        type_column: str | None = None,
        id_column: str | None = None,
        owner_key: str | None = None,
    ) -> MorphTo:
        """Inverse polymorphic relation stored in ``<name>_type`` / ``<name>_id``."""
        return MorphTo(
            parent=self,
            morph_type=type_column or f"{name}_type",
            foreign_key=id_column or f"{name}_id",
            owner_key=owner_key,
        )

    def morph_one(
        self,
        related: type[Model] | str,
        name: str,
        type_column: str | None = None,
        id_column: str | None = None,
        local_key: str | None = None,
    ) -> MorphOne:
        return MorphOne(
            parent=self,
            related=registry.resolve(related),
            foreign_key=id_column or f"{name}_id",
            local_key=local_key or self.get_key_name(),
            morph_type=type_column or f"{name}_type",
            morph_class=self.get_morph_class(),
        )

    def morph_many(
        self,
        related: type[Model] | str,
        name: str,
        type_column: str | None = None,
        id_column: str | None = None,
        local_key: str | None = None,
    ) -> MorphMany:
        return MorphMany(
            parent=self,
            related=registry.resolve(related),
            foreign_key=id_column or f"{name}_id",
            local_key=local_key or self.get_key_name(),
            morph_type=type_column or f"{name}_type",
            morph_class=self.get_morph_class(),
        )

    def morph_to_many(
        self,
        related: type[Model] | str,
        name: str,
        table: str | None = None,
        foreign_pivot_key: str | None = None,
        related_pivot_key: str | None = None,
        parent_key: str | None = None,
        related_key: str | None = None,
    ) -> MorphToMany:
        """Polymorphic many-to-many from the morphing side (``Post -> tags``)."""
        model = registry.resolve(related)
        return MorphToMany(
            parent=self,
            related=model,
            table=table or f"{name}s",
            foreign_pivot_key=foreign_pivot_key or f"{name}_id",
            related_pivot_key=related_pivot_key or model.get_foreign_key(),
            parent_key=parent_key or self.get_key_name(),
            related_key=related_key or model.get_key_name_for_class(),
            morph_type=f"{name}_type",
            morph_class=self.get_morph_class(),
        )

    def morphed_by_many(
        self,
        related: type[Model] | str,
        name: str,
        table: str | None = None,
        foreign_pivot_key: str | None = None,
        related_pivot_key: str | None = None,
        parent_key: str | None = None,
        related_key: str | None = None,
    ) -> MorphToMany:
        """Inverse of ``morph_to_many`` (``Tag -> posts``)."""
        model = registry.resolve(related)
        return MorphToMany(
            parent=self,
            related=model,
            table=table or f"{name}s",
            foreign_pivot_key=foreign_pivot_key or self.get_foreign_key(),
            related_pivot_key=related_pivot_key or f"{name}_id",
            parent_key=parent_key or self.get_key_name(),
            related_key=related_key or model.get_key_name_for_class(),
            morph_type=f"{name}_type",
            morph_class=model.get_morph_class(),
        )

    # --- Serialization ---

    def to_dict(self) -> dict[str, Any]:
        """Cast attributes plus loaded relations, without hidden attributes."""
        data = {
            key: to_plain(self.get_attribute(key))
            for key in self._attributes
            if key not in self.__hidden__
        }
        for name, value in self._relations.items():
            if name in self.__hidden__:
                continue
            if isinstance(value, list):
                data[name] = [item.to_dict() if hasattr(item, "to_dict") else item for item in value]
            elif hasattr(value, "to_dict"):
                data[name] = value.to_dict()
            else:
                data[name] = value
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    def only(self, *keys: str) -> dict[str, Any]:
        return {key: self.get_attribute(key) for key in keys}

    # --- Python protocol ---

    def __copy__(self) -> Model:
        clone = type(self).__new__(type(self))
        clone._attributes = dict(self._attributes)
        clone._original = dict(self._original)
        clone._relations = dict(self._relations)
        clone._exists = self._exists
        clone._was_recently_created = self._was_recently_created
        clone._engine = self._engine
        return clone

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._attributes!r}>"


