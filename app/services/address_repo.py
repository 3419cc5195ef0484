# app/services/address_repo.py
from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.address import Address


async def get_owned_address(session: AsyncSession, *, user_id: int, address_id: int) -> Optional[Address]:
    """地址必须属于该用户；否则视为不存在。"""
    stmt = select(Address).where(Address.id == int(address_id)).where(Address.user_id == int(user_id))
    return (await session.execute(stmt)).scalars().first()
