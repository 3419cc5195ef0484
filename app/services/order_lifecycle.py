# app/services/order_lifecycle.py
"""
订单状态流转：

    pending → processing → shipped → delivered     （后台正向推进，可跳级，不可回退）
    pending | processing → cancelled                （用户或后台取消，回补库存）

delivered / cancelled 为终态。
取消 = 状态条件更新 + 逐行回补库存，同一事务；条件更新保证并发重复取消只回补一次。
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.errors import InvalidInputError, InvalidStateError, NotFoundError
from app.core.tx import atomic
from app.models.enums import CANCELLABLE_STATUSES, FORWARD_RANK, TERMINAL_STATUSES, OrderStatus
from app.models.order import Order
from app.models.order_item import OrderItem
from app.obs.metrics import orders_cancelled_total
from app.services import product_repo
from app.services.order_placement import load_order

logger = logging.getLogger("storefront.orders")


def parse_status(raw: Optional[str]) -> OrderStatus:
    if raw is None or not str(raw).strip():
        raise InvalidInputError("Status is required")
    try:
        return OrderStatus(str(raw).strip().lower())
    except ValueError:
        raise InvalidInputError("Invalid status")


def check_transition(current: OrderStatus, target: OrderStatus) -> None:
    """非法流转 → InvalidStateError；current == target 由调用方按幂等处理。"""
    if current in TERMINAL_STATUSES:
        raise InvalidStateError(f"Order is already {current.value}")
    if target == OrderStatus.CANCELLED:
        if current not in CANCELLABLE_STATUSES:
            raise InvalidStateError("Order cannot be cancelled")
        return
    if FORWARD_RANK[target] < FORWARD_RANK[current]:
        raise InvalidStateError(f"Cannot move order from {current.value} back to {target.value}")


async def _restore_order_stock(session: AsyncSession, order_id: int) -> int:
    rows = (
        await session.execute(
            select(OrderItem.product_id, OrderItem.quantity)
            .where(OrderItem.order_id == int(order_id))
            .order_by(OrderItem.product_id)
        )
    ).all()
    for product_id, qty in rows:
        await product_repo.restore_stock(session, product_id, qty)
    return len(rows)


async def _cancel_locked(session: AsyncSession, order_id: int) -> int:
    """
    条件更新到 cancelled（仅从可取消状态），影响行数 0 说明已被并发改走。
    成功后回补库存，返回回补行数。
    """
    res = await session.execute(
        update(Order)
        .where(Order.id == int(order_id))
        .where(Order.status.in_([s.value for s in CANCELLABLE_STATUSES]))
        .values(status=OrderStatus.CANCELLED.value)
        .execution_options(synchronize_session=False)
    )
    if (res.rowcount or 0) != 1:
        raise InvalidStateError("Order cannot be cancelled")
    return await _restore_order_stock(session, order_id)


async def cancel_order(session: AsyncSession, *, user_id: int, order_id: int) -> Order:
    """
    用户取消：只能取消自己的订单，且仅 pending / processing。
    """
    async with atomic(session):
        order = (
            await session.execute(
                select(Order)
                .where(Order.id == int(order_id))
                .where(Order.user_id == int(user_id))
                .with_for_update()
            )
        ).scalars().first()
        if order is None:
            raise NotFoundError("Order not found")
        if OrderStatus(order.status) not in CANCELLABLE_STATUSES:
            raise InvalidStateError("Order cannot be cancelled")

        restored = await _cancel_locked(session, order.id)

    orders_cancelled_total.labels("user").inc()
    logger.info("ORDER_CANCELLED order_id=%s user=%s restored_lines=%d", order_id, user_id, restored)
    return await load_order(session, order_id)


async def update_order_status(session: AsyncSession, *, order_id: int, status: Optional[str]) -> Order:
    """
    后台改状态（管理员权限由身份协作方保证）：
      - 未知状态 → InvalidInput
      - 订单不存在 → NotFound
      - 非法流转 → InvalidState；同状态视为幂等成功
      - 仅取消有库存副作用（回补）
    """
    target = parse_status(status)

    async with atomic(session):
        order = (
            await session.execute(select(Order).where(Order.id == int(order_id)).with_for_update())
        ).scalars().first()
        if order is None:
            raise NotFoundError("Order not found")

        current = OrderStatus(order.status)
        if current == target:
            changed = False
        else:
            check_transition(current, target)
            changed = True
            if target == OrderStatus.CANCELLED:
                await _cancel_locked(session, order.id)
            else:
                res = await session.execute(
                    update(Order)
                    .where(Order.id == order.id)
                    .where(Order.status == current.value)
                    .values(status=target.value)
                    .execution_options(synchronize_session=False)
                )
                if (res.rowcount or 0) != 1:
                    raise InvalidStateError("Order status changed concurrently")

    if changed:
        if target == OrderStatus.CANCELLED:
            orders_cancelled_total.labels("admin").inc()
        logger.info("ORDER_STATUS order_id=%s %s -> %s", order_id, current.value, target.value)
    return await load_order(session, order_id)
