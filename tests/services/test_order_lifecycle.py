from __future__ import annotations

from datetime import date

import pytest
from prometheus_client import REGISTRY
from sqlalchemy import select

from app.api.errors import InvalidInputError, InvalidStateError, NotFoundError
from app.models.enums import OrderStatus
from app.models.order import Order
from app.services import product_repo
from app.services.order_lifecycle import (
    cancel_order,
    check_transition,
    parse_status,
    update_order_status,
)
from app.services.order_placement import place_order
from tests.helpers.seed import (
    CUSTOMER_ID,
    HOME_ADDRESS_ID,
    JACKET_ID,
    OTHER_CUSTOMER_ID,
    TEE_ID,
    product_qty,
)

pytestmark = pytest.mark.contract

DAY = date(2026, 3, 7)


def _cancelled(actor: str) -> float:
    return REGISTRY.get_sample_value("storefront_orders_cancelled_total", {"actor": actor}) or 0.0


async def _place_two_lines(db):
    """商品 A(T 恤) ×2 + 商品 B(夹克) ×1"""
    async with db.session() as s:
        return await place_order(
            s,
            user_id=CUSTOMER_ID,
            cart_items=[{"id": TEE_ID, "quantity": 2}, {"id": JACKET_ID, "quantity": 1}],
            shipping_address_id=HOME_ADDRESS_ID,
            on=DAY,
        )


async def _stock(db):
    async with db.session() as s:
        return await product_qty(s, TEE_ID), await product_qty(s, JACKET_ID)


# ---------------------------------------------------------------------------
# 纯规则
# ---------------------------------------------------------------------------


def test_parse_status_accepts_known_values_case_insensitively():
    assert parse_status("Shipped") is OrderStatus.SHIPPED
    assert parse_status(" pending ") is OrderStatus.PENDING
    with pytest.raises(InvalidInputError, match="Invalid status"):
        parse_status("lost")
    with pytest.raises(InvalidInputError, match="Status is required"):
        parse_status("")
    with pytest.raises(InvalidInputError, match="Status is required"):
        parse_status(None)


@pytest.mark.parametrize(
    "current, target",
    [
        (OrderStatus.PENDING, OrderStatus.PROCESSING),
        (OrderStatus.PENDING, OrderStatus.SHIPPED),
        (OrderStatus.PROCESSING, OrderStatus.DELIVERED),
        (OrderStatus.PENDING, OrderStatus.CANCELLED),
        (OrderStatus.PROCESSING, OrderStatus.CANCELLED),
    ],
)
def test_allowed_transitions(current, target):
    check_transition(current, target)


@pytest.mark.parametrize(
    "current, target",
    [
        (OrderStatus.SHIPPED, OrderStatus.PROCESSING),
        (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
        (OrderStatus.DELIVERED, OrderStatus.SHIPPED),
        (OrderStatus.CANCELLED, OrderStatus.PENDING),
        (OrderStatus.CANCELLED, OrderStatus.PROCESSING),
    ],
)
def test_rejected_transitions(current, target):
    with pytest.raises(InvalidStateError):
        check_transition(current, target)


# ---------------------------------------------------------------------------
# 用户取消
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_cancel_restores_stock_per_item(db):
    tee0, jacket0 = await _stock(db)
    order = await _place_two_lines(db)
    assert await _stock(db) == (tee0 - 2, jacket0 - 1)

    before = _cancelled("user")
    async with db.session() as s:
        cancelled = await cancel_order(s, user_id=CUSTOMER_ID, order_id=order.id)

    assert cancelled.status == "cancelled"
    assert await _stock(db) == (tee0, jacket0)
    assert _cancelled("user") == before + 1


@pytest.mark.asyncio
async def test_cancel_twice_restores_only_once(db):
    tee0, jacket0 = await _stock(db)
    order = await _place_two_lines(db)

    async with db.session() as s:
        await cancel_order(s, user_id=CUSTOMER_ID, order_id=order.id)
    async with db.session() as s:
        with pytest.raises(InvalidStateError, match="Order cannot be cancelled"):
            await cancel_order(s, user_id=CUSTOMER_ID, order_id=order.id)

    assert await _stock(db) == (tee0, jacket0)


@pytest.mark.asyncio
async def test_cancel_from_processing_is_allowed(db):
    order = await _place_two_lines(db)
    async with db.session() as s:
        await update_order_status(s, order_id=order.id, status="processing")
    async with db.session() as s:
        cancelled = await cancel_order(s, user_id=CUSTOMER_ID, order_id=order.id)
    assert cancelled.status == "cancelled"


@pytest.mark.asyncio
async def test_cancel_after_shipping_is_invalid_state(db):
    order = await _place_two_lines(db)
    async with db.session() as s:
        await update_order_status(s, order_id=order.id, status="shipped")
    stock = await _stock(db)

    async with db.session() as s:
        with pytest.raises(InvalidStateError):
            await cancel_order(s, user_id=CUSTOMER_ID, order_id=order.id)
    assert await _stock(db) == stock


@pytest.mark.asyncio
async def test_cancel_of_foreign_or_missing_order_is_not_found(db):
    order = await _place_two_lines(db)
    async with db.session() as s:
        with pytest.raises(NotFoundError, match="Order not found"):
            await cancel_order(s, user_id=OTHER_CUSTOMER_ID, order_id=order.id)
    async with db.session() as s:
        with pytest.raises(NotFoundError):
            await cancel_order(s, user_id=CUSTOMER_ID, order_id=424242)


# ---------------------------------------------------------------------------
# 后台改状态
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_admin_moves_order_forward_without_touching_stock(db):
    order = await _place_two_lines(db)
    stock = await _stock(db)

    for st in ("processing", "shipped", "delivered"):
        async with db.session() as s:
            updated = await update_order_status(s, order_id=order.id, status=st)
        assert updated.status == st

    assert await _stock(db) == stock


@pytest.mark.asyncio
async def test_admin_same_status_is_a_noop(db):
    order = await _place_two_lines(db)
    async with db.session() as s:
        updated = await update_order_status(s, order_id=order.id, status="pending")
    assert updated.status == "pending"


@pytest.mark.asyncio
async def test_admin_cannot_move_backwards_or_leave_terminal_state(db):
    order = await _place_two_lines(db)
    async with db.session() as s:
        await update_order_status(s, order_id=order.id, status="shipped")
    async with db.session() as s:
        with pytest.raises(InvalidStateError):
            await update_order_status(s, order_id=order.id, status="processing")

    async with db.session() as s:
        await update_order_status(s, order_id=order.id, status="delivered")
    async with db.session() as s:
        with pytest.raises(InvalidStateError):
            await update_order_status(s, order_id=order.id, status="cancelled")


@pytest.mark.asyncio
async def test_admin_cancel_restores_stock(db):
    tee0, jacket0 = await _stock(db)
    order = await _place_two_lines(db)

    before = _cancelled("admin")
    async with db.session() as s:
        updated = await update_order_status(s, order_id=order.id, status="cancelled")

    assert updated.status == "cancelled"
    assert await _stock(db) == (tee0, jacket0)
    assert _cancelled("admin") == before + 1


@pytest.mark.asyncio
async def test_admin_unknown_status_or_order(db):
    order = await _place_two_lines(db)
    async with db.session() as s:
        with pytest.raises(InvalidInputError, match="Invalid status"):
            await update_order_status(s, order_id=order.id, status="teleported")
    async with db.session() as s:
        with pytest.raises(NotFoundError, match="Order not found"):
            await update_order_status(s, order_id=98765, status="shipped")


@pytest.mark.asyncio
async def test_cancel_rolls_back_status_when_stock_restore_fails(db, monkeypatch):
    """
    回补完商品 A(T 恤) 之后，商品 B(夹克) 回补失败：
    状态变更与已回补的库存一起回滚，订单仍是 pending，两件商品库存都不变。
    """
    order = await _place_two_lines(db)
    stock = await _stock(db)

    real = product_repo.restore_stock

    async def fail_on_jacket(session, product_id, quantity):
        if product_id == JACKET_ID:
            raise RuntimeError("store write failed")
        return await real(session, product_id, quantity)

    monkeypatch.setattr(product_repo, "restore_stock", fail_on_jacket)

    async with db.session() as s:
        with pytest.raises(RuntimeError, match="store write failed"):
            await cancel_order(s, user_id=CUSTOMER_ID, order_id=order.id)

    async with db.session() as s:
        status = (await s.execute(select(Order.status).where(Order.id == order.id))).scalar_one()
    assert status == "pending"
    assert await _stock(db) == stock
