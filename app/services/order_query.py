# app/services/order_query.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.errors import NotFoundError
from app.models.order import Order
from app.services.order_lifecycle import parse_status

MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class OrderPage:
    orders: List[Order]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return int(math.ceil(self.total / self.limit)) if self.limit else 0


async def list_user_orders(session: AsyncSession, *, user_id: int) -> List[Order]:
    stmt = (
        select(Order)
        .where(Order.user_id == int(user_id))
        .order_by(Order.ordered_at.desc(), Order.id.desc())
    )
    return list((await session.execute(stmt)).scalars().all())


async def get_user_order(session: AsyncSession, *, user_id: int, order_id: int) -> Order:
    stmt = select(Order).where(Order.id == int(order_id)).where(Order.user_id == int(user_id))
    order = (await session.execute(stmt)).scalars().first()
    if order is None:
        raise NotFoundError("Order not found")
    return order


async def list_all_orders(
    session: AsyncSession,
    *,
    page: int = 1,
    limit: int = 20,
    status: Optional[str] = None,
) -> OrderPage:
    """后台列表：可按状态过滤，按下单时间倒序分页。"""
    page = max(int(page or 1), 1)
    limit = min(max(int(limit or 20), 1), MAX_PAGE_SIZE)

    stmt = select(Order)
    count_stmt = select(func.count(Order.id))
    if status:
        st = parse_status(status).value
        stmt = stmt.where(Order.status == st)
        count_stmt = count_stmt.where(Order.status == st)

    stmt = stmt.order_by(Order.ordered_at.desc(), Order.id.desc()).limit(limit).offset((page - 1) * limit)

    orders = list((await session.execute(stmt)).scalars().all())
    total = int((await session.execute(count_stmt)).scalar() or 0)
    return OrderPage(orders=orders, page=page, limit=limit, total=total)
