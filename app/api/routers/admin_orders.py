# app/api/routers/admin_orders.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_session, require_admin
from app.api.envelope import ok
from app.api.routers.orders_schemas import PaginationOut, order_payload
from app.core.security import Identity
from app.services import order_query

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/orders")
async def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=order_query.MAX_PAGE_SIZE),
    status: Optional[str] = Query(None, description="pending / processing / shipped / delivered / cancelled"),
    _admin: Identity = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    result = await order_query.list_all_orders(session, page=page, limit=limit, status=status)
    pagination = PaginationOut(
        page=result.page,
        limit=result.limit,
        total=result.total,
        total_pages=result.total_pages,
    )
    return ok(
        {
            "orders": [order_payload(o) for o in result.orders],
            "pagination": pagination.model_dump(),
        }
    )
