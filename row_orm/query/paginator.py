"""Length-aware paginator returned by ``QueryBuilder.paginate``."""

from __future__ import annotations

import json
import math
from typing import Any


class Paginator:
    """One page of results plus the information needed to navigate pages."""

    def __init__(self, items: list[Any], total: int, per_page: int, current_page: int) -> None:
        self._items = items
        self._total = total
        self._per_page = per_page
        self._current_page = current_page
        self._last_page = max(math.ceil(total / per_page), 1)

    def items(self) -> list[Any]:
        return self._items

    def total(self) -> int:
        return self._total

    def per_page(self) -> int:
        return self._per_page

    def current_page(self) -> int:
        return self._current_page

    def last_page(self) -> int:
        return self._last_page

    def has_more_pages(self) -> bool:
        return self._current_page < self._last_page

    def has_pages(self) -> bool:
        return self._last_page > 1

    def on_first_page(self) -> bool:
        return self._current_page <= 1

    def on_last_page(self) -> bool:
        return self._current_page >= self._last_page

    def url(self, page: int) -> str:
        return f"?page={page}"

    def previous_page_url(self) -> str | None:
        if self._current_page > 1:
            return self.url(self._current_page - 1)
        return None

    def next_page_url(self) -> str | None:
        if self.has_more_pages():
            return self.url(self._current_page + 1)
        return None

    def links(self) -> str:
        """Render simple HTML pagination links."""
        parts = ['<div class="pagination">']

        if self.on_first_page():
            parts.append('<span class="disabled">Previous</span>')
        else:
            parts.append(f'<a href="{self.previous_page_url()}">Previous</a>')

        for page in range(1, self._last_page + 1):
            if page == self._current_page:
                parts.append(f'<span class="current">{page}</span>')
            else:
                parts.append(f'<a href="{self.url(page)}">{page}</a>')

        if self.on_last_page():
            parts.append('<span class="disabled">Next</span>')
        else:
            parts.append(f'<a href="{self.next_page_url()}">Next</a>')

        parts.append("</div>")
        return "".join(parts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": [item.to_dict() if hasattr(item, "to_dict") else item for item in self._items],
            "total": self._total,
            "per_page": self._per_page,
            "current_page": self._current_page,
            "last_page": self._last_page,
            "has_more_pages": self.has_more_pages(),
            "previous_page_url": self.previous_page_url(),
            "next_page_url": self.next_page_url(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):  # type: ignore[no-untyped-def]
        return iter(self._items)
