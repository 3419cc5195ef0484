# app/api/routers/orders.py
from __future__ import annotations

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_identity, get_session, require_admin
from app.api.envelope import ok
from app.api.routers.orders_schemas import OrderStatusIn, PlaceOrderIn, order_payload
from app.core.security import Identity
from app.services import order_lifecycle, order_placement, order_query

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("")
async def place_order(
    body: PlaceOrderIn = Body(...),
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_session),
):
    order = await order_placement.place_order(
        session,
        user_id=identity.user_id,
        cart_items=[{"id": ln.id, "quantity": ln.quantity} for ln in body.cart_items],
        shipping_address_id=body.shipping_address_id,
        billing_address_id=body.billing_address_id,
        payment_method=body.payment_method,
        notes=body.notes,
    )
    message = "Order placed successfully"
    return ok({"order": order_payload(order), "message": message}, message, status_code=201)


@router.get("")
async def list_my_orders(
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_session),
):
    orders = await order_query.list_user_orders(session, user_id=identity.user_id)
    return ok({"orders": [order_payload(o) for o in orders]})


@router.get("/{order_id}")
async def get_my_order(
    order_id: int,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_session),
):
    order = await order_query.get_user_order(session, user_id=identity.user_id, order_id=order_id)
    return ok({"order": order_payload(order)})


@router.delete("/{order_id}")
async def cancel_my_order(
    order_id: int,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_session),
):
    order = await order_lifecycle.cancel_order(session, user_id=identity.user_id, order_id=order_id)
    message = "Order cancelled successfully"
    return ok({"message": message, "order": order_payload(order)}, message)


@router.put("/{order_id}/status")
async def update_order_status(
    order_id: int,
    body: OrderStatusIn = Body(...),
    _admin: Identity = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    order = await order_lifecycle.update_order_status(session, order_id=order_id, status=body.status)
    message = "Order status updated successfully"
    return ok({"message": message, "order": order_payload(order)}, message)
