# app/api/routers/cart.py
from __future__ import annotations

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_identity, get_session
from app.api.envelope import ok
from app.api.routers.cart_schemas import CartAddIn, CartUpdateIn, cart_payload
from app.core.security import Identity
from app.services import cart_service

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("")
async def get_cart(
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_session),
):
    view = await cart_service.get_cart(session, user_id=identity.user_id)
    return ok(cart_payload(view))


async def _add(body: CartAddIn, identity: Identity, session: AsyncSession):
    view = await cart_service.add_to_cart(
        session,
        user_id=identity.user_id,
        product_id=body.product_id,
        quantity=body.quantity,
        size=body.size,
        color=body.color,
    )
    return ok(cart_payload(view), "Item added to cart")


@router.post("")
async def add_to_cart(
    body: CartAddIn = Body(...),
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_session),
):
    return await _add(body, identity, session)


@router.post("/add")
async def add_to_cart_alias(
    body: CartAddIn = Body(...),
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_session),
):
    return await _add(body, identity, session)


# 清空必须先于 /{line_id} 注册
@router.delete("")
async def clear_cart(
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_session),
):
    removed = await cart_service.clear_cart(session, user_id=identity.user_id)
    view = await cart_service.get_cart(session, user_id=identity.user_id)
    data = cart_payload(view)
    data["removed"] = removed
    return ok(data, "Cart cleared")


@router.delete("/clear")
async def clear_cart_alias(
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_session),
):
    return await clear_cart(identity=identity, session=session)


@router.put("/{line_id}")
async def update_cart_line(
    line_id: int,
    body: CartUpdateIn = Body(...),
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_session),
):
    view = await cart_service.update_cart_line(
        session, user_id=identity.user_id, line_id=line_id, quantity=body.quantity
    )
    return ok(cart_payload(view), "Cart updated")


@router.delete("/{line_id}")
async def remove_cart_line(
    line_id: int,
    identity: Identity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_session),
):
    view = await cart_service.remove_cart_line(session, user_id=identity.user_id, line_id=line_id)
    return ok(cart_payload(view), "Item removed from cart")
