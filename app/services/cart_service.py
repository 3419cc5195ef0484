# app/services/cart_service.py
"""
购物车增删改（按用户隔离，不跨用户争用）：

- 加购：同一 (product_id, size, color) 合并数量，合并后的总量也要 ≤ 当前库存
- 改量：0 = 删除；> 0 按当前库存校验
- 合计（件数 / 金额 / 结算报价）一律读时现算，不落库

购物车只是临时状态，下单时会整体重新校验。同一用户并发改车按最后写入为准。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.errors import InsufficientStockError, InvalidInputError, NotFoundError
from app.core.tx import atomic
from app.models.cart_line import CartLine
from app.services import product_repo
from app.services.pricing import Quote, line_total, quote_lines

logger = logging.getLogger("storefront.cart")


@dataclass
class CartView:
    lines: List[CartLine] = field(default_factory=list)
    total_items: int = 0
    total_amount: Decimal = Decimal("0.00")
    quote: Optional[Quote] = None


def _norm_variant(val: Optional[str]) -> Optional[str]:
    if val is None:
        return None
    v = str(val).strip()
    return v or None


def _variant_clause(column, value: Optional[str]):
    # NULL 只匹配 NULL：两行同规格当且仅当 size、color 都精确相等（含都为空）
    return column.is_(None) if value is None else column == value


async def get_cart(session: AsyncSession, *, user_id: int) -> CartView:
    stmt = (
        select(CartLine)
        .where(CartLine.user_id == int(user_id))
        .order_by(CartLine.created_at.desc(), CartLine.id.desc())
        .execution_options(populate_existing=True)
    )
    lines = list((await session.execute(stmt)).scalars().all())

    total_items = sum(int(ln.quantity) for ln in lines)
    total_amount = sum((line_total(ln.product.price, ln.quantity) for ln in lines), Decimal("0.00"))
    quote = quote_lines((ln.product.price, ln.quantity) for ln in lines) if lines else None
    return CartView(lines=lines, total_items=total_items, total_amount=total_amount, quote=quote)


async def find_variant_line(
    session: AsyncSession,
    *,
    user_id: int,
    product_id: int,
    size: Optional[str],
    color: Optional[str],
) -> Optional[CartLine]:
    stmt = (
        select(CartLine)
        .where(CartLine.user_id == int(user_id))
        .where(CartLine.product_id == int(product_id))
        .where(_variant_clause(CartLine.size, size))
        .where(_variant_clause(CartLine.color, color))
    )
    return (await session.execute(stmt)).scalars().first()


async def add_to_cart(
    session: AsyncSession,
    *,
    user_id: int,
    product_id: int,
    quantity: int,
    size: Optional[str] = None,
    color: Optional[str] = None,
) -> CartView:
    if quantity is None or int(quantity) < 1:
        raise InvalidInputError("Quantity must be at least 1")
    quantity = int(quantity)
    size = _norm_variant(size)
    color = _norm_variant(color)

    async with atomic(session):
        product = await product_repo.get_active_product(session, product_id)
        if product is None:
            raise NotFoundError("Product not found")
        if int(product.quantity) < quantity:
            raise InsufficientStockError(product.id, product.name)

        existing = await find_variant_line(
            session, user_id=user_id, product_id=product.id, size=size, color=color
        )
        if existing is not None:
            new_qty = int(existing.quantity) + quantity
            if int(product.quantity) < new_qty:
                raise InsufficientStockError(product.id, product.name)
            existing.quantity = new_qty
        else:
            session.add(
                CartLine(
                    user_id=int(user_id),
                    product_id=product.id,
                    quantity=quantity,
                    size=size,
                    color=color,
                )
            )

    logger.debug("CART_ADD user=%s product=%s qty=%d size=%r color=%r", user_id, product_id, quantity, size, color)
    return await get_cart(session, user_id=user_id)


async def _get_owned_line(session: AsyncSession, *, user_id: int, line_id: int) -> CartLine:
    stmt = select(CartLine).where(CartLine.id == int(line_id)).where(CartLine.user_id == int(user_id))
    line = (await session.execute(stmt)).scalars().first()
    if line is None:
        raise NotFoundError("Cart item not found")
    return line


async def update_cart_line(session: AsyncSession, *, user_id: int, line_id: int, quantity: int) -> CartView:
    if quantity is None:
        raise InvalidInputError("Quantity is required")
    quantity = int(quantity)
    if quantity < 0:
        raise InvalidInputError("Quantity cannot be negative")

    async with atomic(session):
        line = await _get_owned_line(session, user_id=user_id, line_id=line_id)
        if quantity == 0:
            await session.delete(line)
        else:
            product = await product_repo.get_product(session, line.product_id)
            if product is None or not product.is_active:
                raise InsufficientStockError(
                    line.product_id,
                    product.name if product else None,
                    message="Product is no longer available",
                )
            if int(product.quantity) < quantity:
                raise InsufficientStockError(product.id, product.name)
            line.quantity = quantity

    return await get_cart(session, user_id=user_id)


async def remove_cart_line(session: AsyncSession, *, user_id: int, line_id: int) -> CartView:
    async with atomic(session):
        line = await _get_owned_line(session, user_id=user_id, line_id=line_id)
        await session.delete(line)
    return await get_cart(session, user_id=user_id)


async def clear_cart(session: AsyncSession, *, user_id: int) -> int:
    async with atomic(session):
        res = await session.execute(delete(CartLine).where(CartLine.user_id == int(user_id)))
    return int(res.rowcount or 0)
