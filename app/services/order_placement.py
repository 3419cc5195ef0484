# app/services/order_placement.py
"""
下单主流程（购物车 → 订单），整体一个事务：

    校验地址 → 锁商品并校验库存 → 算金额 → 派生单号 → 写订单头/行 → 条件扣库存 → 清空购物车

- 入参校验（空购物车 / 行格式）在事务外 fail-fast，不产生任何写入
- 地址归属与库存校验在事务内完成，与写入同一作用域，避免检查-使用竞态
- 任一步失败（含写入时才发现的并发扣减失败）整体回滚，不可见半单
- 不自动重试整个流程；唯一允许的内部重试是单号唯一冲突时重派生一次
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.errors import BizError, InsufficientStockError, InvalidInputError, NotFoundError
from app.core.tx import atomic, savepoint
from app.models.cart_line import CartLine
from app.models.enums import DEFAULT_PAYMENT_METHOD, OrderStatus, PaymentStatus
from app.models.order import Order
from app.models.order_item import OrderItem
from app.models.product import Product
from app.obs.metrics import order_number_retry_total, order_rejections_total, orders_placed_total
from app.services import product_repo
from app.services.address_repo import get_owned_address
from app.services.order_number import next_order_number
from app.services.pricing import Quote, line_total, quote_lines

logger = logging.getLogger("storefront.orders")

# 单号唯一冲突时最多派生次数（首次 + 重试一次）
ORDER_NUMBER_ATTEMPTS = 2


@dataclass(frozen=True)
class CheckoutLine:
    product_id: int
    quantity: int


def normalize_cart_items(cart_items: Optional[Sequence[Any]]) -> List[CheckoutLine]:
    """
    接受 [{id, quantity}] / [{product_id, quantity}] / CheckoutLine；
    空列表、缺字段、数量 < 1 → InvalidInput。
    """
    if not cart_items:
        raise InvalidInputError("Cart items are required")

    lines: List[CheckoutLine] = []
    for raw in cart_items:
        if isinstance(raw, CheckoutLine):
            line = raw
        elif isinstance(raw, Mapping):
            pid = raw.get("id", raw.get("product_id"))
            qty = raw.get("quantity")
            if pid is None or qty is None:
                raise InvalidInputError("Invalid cart item format")
            try:
                line = CheckoutLine(product_id=int(pid), quantity=int(qty))
            except (TypeError, ValueError):
                raise InvalidInputError("Invalid cart item format")
        else:
            raise InvalidInputError("Invalid cart item format")

        if line.quantity < 1:
            raise InvalidInputError(f"Quantity must be at least 1 for product {line.product_id}")
        lines.append(line)
    return lines


def _aggregate_demand(lines: Sequence[CheckoutLine]) -> "OrderedDict[int, int]":
    demand: "OrderedDict[int, int]" = OrderedDict()
    for ln in sorted(lines, key=lambda x: x.product_id):
        demand[ln.product_id] = demand.get(ln.product_id, 0) + ln.quantity
    return demand


def _check_stock(products: Dict[int, Product], demand: Mapping[int, int]) -> None:
    """整车校验：任何一行不满足即失败，此时尚未发生任何写入。"""
    for pid, qty in demand.items():
        product = products.get(pid)
        if product is None:
            raise InsufficientStockError(pid, None, message=f"Product {pid} not found")
        if int(product.quantity) < qty:
            raise InsufficientStockError(pid, product.name)


def _build_order(
    *,
    order_number: str,
    user_id: int,
    lines: Sequence[CheckoutLine],
    products: Dict[int, Product],
    quote: Quote,
    shipping_address_id: int,
    billing_address_id: int,
    payment_method: str,
    notes: Optional[str],
    now: datetime,
) -> Order:
    items = []
    for ln in lines:
        p = products[ln.product_id]
        items.append(
            OrderItem(
                product_id=p.id,
                product_name=p.name,
                product_price=p.price,
                quantity=ln.quantity,
                line_total=line_total(p.price, ln.quantity),
            )
        )
    return Order(
        order_number=order_number,
        user_id=user_id,
        status=OrderStatus.PENDING.value,
        subtotal=quote.subtotal,
        shipping_amount=quote.shipping_amount,
        tax_amount=quote.tax_amount,
        total_amount=quote.total_amount,
        payment_method=payment_method,
        payment_status=PaymentStatus.PENDING.value,
        shipping_address_id=shipping_address_id,
        billing_address_id=billing_address_id,
        notes=notes,
        ordered_at=now,
        updated_at=now,
        items=items,
    )


def _is_order_number_conflict(exc: IntegrityError) -> bool:
    return "order_number" in str(getattr(exc, "orig", exc))


async def _insert_order(session: AsyncSession, *, day: Optional[date], build) -> Order:
    """
    派生单号 + 写订单头/行。写入包在保存点里：
    单号唯一冲突只回滚保存点，重新派生一次；再冲突则上抛（整单回滚）。
    """
    for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
        number = await next_order_number(session, day)
        order = build(number)
        try:
            async with savepoint(session):
                session.add(order)
                await session.flush()
            return order
        except IntegrityError as e:
            if not _is_order_number_conflict(e) or attempt >= ORDER_NUMBER_ATTEMPTS:
                raise
            order_number_retry_total.inc()
            logger.warning("ORDER_NUMBER_CONFLICT number=%s attempt=%d, re-deriving", number, attempt)
    raise RuntimeError("unreachable")


async def place_order(
    session: AsyncSession,
    *,
    user_id: int,
    cart_items: Optional[Sequence[Any]],
    shipping_address_id: Optional[int],
    billing_address_id: Optional[int] = None,
    payment_method: Optional[str] = None,
    notes: Optional[str] = None,
    on: Optional[date] = None,
) -> Order:
    """
    返回已提交的订单（含 items）。

    错误：
      - InvalidInputError       购物车为空 / 行格式错误 / 缺收货地址
      - NotFoundError           地址不存在或不属于该用户
      - InsufficientStockError  商品不存在 / 已下架 / 库存不足（含并发扣减失败）
    """
    lines = normalize_cart_items(cart_items)
    if shipping_address_id is None:
        raise InvalidInputError("Shipping address is required")

    demand = _aggregate_demand(lines)
    method = (payment_method or "").strip() or DEFAULT_PAYMENT_METHOD

    try:
        async with atomic(session):
            # 1) 地址归属
            if await get_owned_address(session, user_id=user_id, address_id=shipping_address_id) is None:
                raise NotFoundError("Invalid shipping address")
            billing_id = int(billing_address_id) if billing_address_id is not None else int(shipping_address_id)
            if billing_id != int(shipping_address_id):
                if await get_owned_address(session, user_id=user_id, address_id=billing_id) is None:
                    raise NotFoundError("Invalid billing address")

            # 2) 锁商品行 + 整车库存校验
            products = await product_repo.lock_active_products(session, demand.keys())
            _check_stock(products, demand)

            # 3) 金额
            quote = quote_lines((products[ln.product_id].price, ln.quantity) for ln in lines)
            now = datetime.now(timezone.utc)

            # 4) 单号 + 订单头/行（必须先于扣库存）
            order = await _insert_order(
                session,
                day=on,
                build=lambda number: _build_order(
                    order_number=number,
                    user_id=user_id,
                    lines=lines,
                    products=products,
                    quote=quote,
                    shipping_address_id=int(shipping_address_id),
                    billing_address_id=billing_id,
                    payment_method=method,
                    notes=notes,
                    now=now,
                ),
            )

            # 5) 条件扣减：影响行数 != 1 说明被并发订单抢先，整单回滚
            for pid, qty in demand.items():
                if not await product_repo.try_decrement_stock(session, pid, qty):
                    raise InsufficientStockError(pid, products[pid].name)

            # 6) 清空购物车
            await session.execute(delete(CartLine).where(CartLine.user_id == int(user_id)))

            order_id = order.id
            order_number = order.order_number
    except BizError as e:
        order_rejections_total.labels(e.code).inc()
        if isinstance(e, InsufficientStockError):
            logger.info("ORDER_REJECTED user=%s product=%s reason=%s", user_id, e.product_id, e.code)
        raise

    orders_placed_total.inc()
    logger.info(
        "ORDER_PLACED number=%s user=%s lines=%d total=%s",
        order_number,
        user_id,
        len(lines),
        quote.total_amount,
    )
    return await load_order(session, order_id)


async def load_order(session: AsyncSession, order_id: int) -> Order:
    stmt = select(Order).where(Order.id == int(order_id)).execution_options(populate_existing=True)
    return (await session.execute(stmt)).scalars().one()
