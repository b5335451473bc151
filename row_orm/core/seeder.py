"""Database seeders."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from row_orm.core.log import get_logger

if TYPE_CHECKING:
    from row_orm.core.engine import Engine

logger = get_logger(__name__)


class Seeder(ABC):
    """Populates tables with data; ``run`` does the work.

    A top-level seeder usually just calls others::

        class DatabaseSeeder(Seeder):
            def run(self) -> None:
                self.call(UserSeeder, PostSeeder)
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    @abstractmethod
    def run(self) -> None: ...

    def call(self, *seeders: type[Seeder] | Seeder) -> None:
        """Run other seeders, given as classes or instances, in order."""
        for seeder in seeders:
            instance = seeder(self.engine) if isinstance(seeder, type) else seeder
            logger.info("seeder.running", seeder=type(instance).__name__)
            instance.run()
