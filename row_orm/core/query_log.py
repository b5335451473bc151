"""Passive query log.

The engine reports every successfully executed statement here. Entries are
only kept while the log is enabled; the log never influences execution.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class LoggedQuery:
    """A single executed statement."""

    sql: str
    bindings: tuple[Any, ...]
    time: float  # seconds


class QueryLog:
    """In-memory collector of executed statements.

    Not synchronized: concurrent use from several threads needs external
    serialization.
    """

    def __init__(self, enabled: bool = False) -> None:
        self._enabled = enabled
        self._entries: list[LoggedQuery] = []

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False

    def record(self, sql: str, bindings: Any, elapsed: float) -> None:
        """Append an entry if logging is enabled."""
        if not self._enabled:
            return
        self._entries.append(LoggedQuery(sql=sql, bindings=tuple(bindings), time=elapsed))

    def entries(self) -> list[LoggedQuery]:
        """Snapshot of recorded entries, oldest first."""
        return list(self._entries)

    def flush(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
