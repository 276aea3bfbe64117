# forumcore/services/pagination.py
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Generic, List, Optional, Sequence, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from forumcore.errors import ValidationError

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    items: List[T] = field(default_factory=list)
    total_count: int = 0
    page: int = 1
    limit: int = 1

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.total_count / self.limit))

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    def replace_items(self, items: List[Any]) -> "Page[Any]":
        return Page(items=items, total_count=self.total_count, page=self.page, limit=self.limit)


def check_window(page: int, limit: int, max_limit: Optional[int] = None) -> None:
    if not isinstance(page, int) or isinstance(page, bool) or page < 1:
        raise ValidationError("page must be an integer >= 1")
    if not isinstance(limit, int) or isinstance(limit, bool) or limit < 1:
        raise ValidationError("limit must be an integer >= 1")
    if max_limit is not None and limit > max_limit:
        raise ValidationError(f"limit must be <= {max_limit}")


class PaginationGate:
    """
    Offset/limit windowing.

    The total is counted over the very same filtered query the page is cut from
    (wrapped as a subquery), so the two can never disagree about joins or WHERE.
    Every ordering ends with a unique tiebreak column.
    """

    def __init__(self, max_limit: Optional[int] = None, logger: Optional[logging.Logger] = None) -> None:
        self.max_limit = max_limit
        self.log = logger or logging.getLogger(__name__)

    async def page(
        self,
        session: AsyncSession,
        base: Select,
        order_by: Sequence[Any],
        tiebreak: Any,
        page: int,
        limit: int,
    ) -> Page:
        check_window(page, limit, self.max_limit)
        offset = (page - 1) * limit

        total_stmt = select(func.count()).select_from(base.order_by(None).subquery())
        total = int((await session.execute(total_stmt)).scalar_one() or 0)

        stmt = base.order_by(*order_by, tiebreak).offset(offset).limit(limit)
        rows = list((await session.execute(stmt)).scalars().all())

        self.log.debug("page offset=%d limit=%d total=%d rows=%d", offset, limit, total, len(rows))
        return Page(items=rows, total_count=total, page=page, limit=limit)
