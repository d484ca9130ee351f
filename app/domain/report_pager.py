from __future__ import annotations

from dataclasses import dataclass
from math import ceil
from typing import Any, Callable, Generic, Iterable, Sequence, TypeVar


T = TypeVar('T')


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return ceil(self.total / self.limit)

    def pagination(self) -> dict[str, int]:
        return {
            'page': self.page,
            'limit': self.limit,
            'total': self.total,
            'totalPages': self.total_pages,
        }


class ReportPager(Generic[T]):
    """filter -> sort -> slice over an in-memory result set.

    Each step returns a new pager so calls can be chained. Sorting is stable:
    rows with equal keys keep their relative order in both directions.
    """

    def __init__(self, items: Iterable[T]):
        self._items: list[T] = list(items)

    def __len__(self) -> int:
        return len(self._items)

    @property
    def items(self) -> Sequence[T]:
        return tuple(self._items)

    def filter(self, predicate: Callable[[T], bool] | None) -> 'ReportPager[T]':
        if predicate is None:
            return ReportPager(self._items)
        return ReportPager(item for item in self._items if predicate(item))

    def sort(self, key: Callable[[T], Any], direction: str = 'asc') -> 'ReportPager[T]':
        return ReportPager(sorted(self._items, key=key, reverse=(direction == 'desc')))

    def paginate(self, page: int, limit: int) -> Page[T]:
        page = max(1, int(page))
        limit = max(1, int(limit))
        offset = (page - 1) * limit
        return Page(
            items=self._items[offset:offset + limit],
            total=len(self._items),
            page=page,
            limit=limit,
        )
