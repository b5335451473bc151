"""Model registry - maps model aliases to classes and relation names to factories.

Every Model subclass registers itself when the class is created:

    class Post(Model): ...          -> "Post" (and its morph name) -> Post
    @relation def comments(self)    -> (Post, "comments") -> factory

The relation table for a model is fixed once its class body has run; the
eager loader and lazy attribute access only read from it.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from row_orm.core.exceptions import ModelNotRegisteredError, RelationNotFoundError

if TYPE_CHECKING:
    from row_orm.model.base import Model

RelationFactory = Callable[["Model"], Any]


class ModelRegistry:
    """Registry of model classes and their relation factories."""

    def __init__(self) -> None:
        self._models: dict[str, type[Model]] = {}
        self._relations: dict[type[Model], dict[str, RelationFactory]] = {}

    def register(
        self,
        model: type[Model],
        relations: Mapping[str, RelationFactory],
        aliases: tuple[str, ...] = (),
    ) -> None:
        """Register *model* under its class name and any extra aliases.

        Re-registering a name replaces the previous class.
        """
        self._models[model.__name__] = model
        for alias in aliases:
            self._models[alias] = model
        self._relations[model] = dict(relations)

    def resolve(self, model: str | type[Model]) -> type[Model]:
        """Return the model class for a class or alias.

        Raises:
            ModelNotRegisteredError: If the alias is unknown.
        """
        if isinstance(model, type):
            return model
        try:
            return self._models[model]
        except KeyError:
            raise ModelNotRegisteredError(model) from None

    def has(self, alias: str) -> bool:
        return alias in self._models

    def relation(self, model: type[Model], name: str) -> RelationFactory:
        """Look up the factory defining relation *name* on *model*.

        Raises:
            RelationNotFoundError: If the model defines no such relation.
        """
        try:
            return self._relations[model][name]
        except KeyError:
            raise RelationNotFoundError(name, model.__name__) from None

    def has_relation(self, model: type[Model], name: str) -> bool:
        return name in self._relations.get(model, {})

    def relation_names(self, model: type[Model]) -> list[str]:
        """Relations defined on *model*, sorted alphabetically."""
        return sorted(self._relations.get(model, {}))

    @property
    def model_names(self) -> list[str]:
        return sorted(self._models)

    def __len__(self) -> int:
        return len(self._relations)


registry = ModelRegistry()
