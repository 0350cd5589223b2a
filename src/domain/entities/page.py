from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class PageDescriptor:
    """Pagination metadata for one list result.

    Always built through :meth:`build` so the derived fields cannot drift
    from ``current_page``/``total_count``/``limit``.
    """

    current_page: int
    total_pages: int
    total_count: int
    limit: int
    has_next: bool
    has_previous: bool

    @classmethod
    def build(cls, current_page: int, total_count: int, limit: int) -> PageDescriptor:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        current_page = max(1, current_page)
        total_count = max(0, total_count)
        total_pages = max(1, math.ceil(total_count / limit))
        return cls(
            current_page=current_page,
            total_pages=total_pages,
            total_count=total_count,
            limit=limit,
            has_next=current_page < total_pages,
            has_previous=current_page > 1,
        )

    @property
    def offset(self) -> int:
        return (self.current_page - 1) * self.limit
