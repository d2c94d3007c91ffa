"""Standard response envelope and offset pagination."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from fastapi import Query
from pydantic import BaseModel
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


class ApiResponse(BaseModel, Generic[T]):
    """``{success, message?, data?}``"""

    success: bool = True
    message: str | None = None
    data: T | None = None


class Page(BaseModel, Generic[T]):
    data: list[T]
    total: int
    page: int
    limit: int
    total_pages: int


@dataclass(frozen=True)
class PageParams:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_params(
    page: int = Query(DEFAULT_PAGE, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
) -> PageParams:
    """FastAPI dependency for ``?page=&limit=``."""
    return PageParams(page=page, limit=limit)


async def paginate(db: AsyncSession, query: Select[Any], params: PageParams) -> tuple[list[Any], int]:
    """Run ``query`` for one page. Returns (rows, total)."""
    total = (await db.execute(select(func.count()).select_from(query.order_by(None).subquery()))).scalar_one()
    rows = (await db.execute(query.offset(params.offset).limit(params.limit))).scalars().unique().all()
    return list(rows), total


def page_body(items: list[Any], total: int, params: PageParams) -> dict[str, Any]:
    return {
        "data": items,
        "total": total,
        "page": params.page,
        "limit": params.limit,
        "total_pages": math.ceil(total / params.limit) if total else 0,
    }
