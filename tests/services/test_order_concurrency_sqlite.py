from __future__ import annotations

import asyncio
from datetime import date

import pytest

from app.api.errors import InsufficientStockError
from app.services.order_placement import place_order
from tests.helpers.seed import CUSTOMER_ID, HOME_ADDRESS_ID, SCARF_ID, count_orders, product_qty

pytestmark = pytest.mark.contract


@pytest.mark.asyncio
async def test_concurrent_checkouts_on_sqlite_queue_instead_of_failing(db):
    """
    默认库（SQLite）上并发 6 个结算抢同一商品（库存 2，每单 1 件）：
      - 写事务排队，不出现 database is locked
      - 恰好 2 单成功，其余 4 单 InsufficientStock（成功 + 拒绝 = 总尝试）
      - 库存落到 0，单号两两不同
    """

    async def attempt():
        async with db.session() as s:
            try:
                order = await place_order(
                    s,
                    user_id=CUSTOMER_ID,
                    cart_items=[{"id": SCARF_ID, "quantity": 1}],
                    shipping_address_id=HOME_ADDRESS_ID,
                    on=date(2026, 3, 7),
                )
                return order.order_number
            except InsufficientStockError:
                return None

    results = await asyncio.gather(*(attempt() for _ in range(6)))
    numbers = [r for r in results if r is not None]

    assert len(numbers) == 2
    assert results.count(None) == 4
    assert len(set(numbers)) == 2
    async with db.session() as s:
        assert await product_qty(s, SCARF_ID) == 0
        assert await count_orders(s) == 2
