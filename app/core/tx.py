# app/core/tx.py
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession


@asynccontextmanager
async def atomic(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    作用域事务：进入 begin，正常退出 commit，异常退出 rollback。

    - session 尚未开事务：自己 begin/commit
    - 调用方已在事务中：用保存点包裹，提交权交还调用方
    """
    if session.in_transaction():
        async with session.begin_nested():
            yield session
    else:
        async with session.begin():
            yield session


@asynccontextmanager
async def savepoint(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    保存点：块内失败只回滚到保存点，外层事务继续可用。
    必须在 atomic() 内使用。
    """
    async with session.begin_nested():
        yield session
