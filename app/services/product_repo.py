# app/services/product_repo.py
from __future__ import annotations

from typing import Dict, Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.product import Product


async def get_product(session: AsyncSession, product_id: int) -> Optional[Product]:
    return await session.get(Product, int(product_id))


async def get_active_product(session: AsyncSession, product_id: int) -> Optional[Product]:
    stmt = select(Product).where(Product.id == int(product_id)).where(Product.is_active.is_(True))
    return (await session.execute(stmt)).scalars().first()


async def lock_active_products(session: AsyncSession, product_ids: Iterable[int]) -> Dict[int, Product]:
    """
    按 id 升序锁定在售商品行（PG: SELECT ... FOR UPDATE；SQLite 忽略 FOR UPDATE）。

    固定加锁顺序，避免两个结算互相等锁；populate_existing 保证拿到的是加锁后的最新库存，
    而不是 identity map 里的旧值。
    """
    ids = sorted({int(i) for i in product_ids})
    if not ids:
        return {}
    stmt = (
        select(Product)
        .where(Product.id.in_(ids))
        .where(Product.is_active.is_(True))
        .order_by(Product.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    rows = (await session.execute(stmt)).scalars().all()
    return {p.id: p for p in rows}


async def try_decrement_stock(session: AsyncSession, product_id: int, quantity: int) -> bool:
    """
    原子条件扣减：

        UPDATE products SET quantity = quantity - :n
        WHERE id = :id AND is_active AND quantity >= :n

    影响行数 == 1 才算成功；并发下后到者看到扣减后的库存，返回 False。
    """
    stmt = (
        update(Product)
        .where(Product.id == int(product_id))
        .where(Product.is_active.is_(True))
        .where(Product.quantity >= int(quantity))
        .values(quantity=Product.quantity - int(quantity))
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    return (res.rowcount or 0) == 1


async def restore_stock(session: AsyncSession, product_id: int, quantity: int) -> bool:
    """回补库存（取消订单）。下架商品同样回补。"""
    stmt = (
        update(Product)
        .where(Product.id == int(product_id))
        .values(quantity=Product.quantity + int(quantity))
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    return (res.rowcount or 0) == 1
