# app/db/session.py
# 显式构造的库句柄：engine + AsyncSession 工厂，由 create_app 持有并注入
from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.db.base import Base, init_models
from app.db.engine import create_async_engine_safe


class Database:
    """
    单一库句柄（不做模块级全局单例）：

        db = Database.from_url(settings.DATABASE_URL)
        async with db.session() as session:
            ...
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self.sessionmaker: async_sessionmaker[AsyncSession] = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_url(cls, url: str, *, echo: bool = False, **engine_kwargs) -> "Database":
        return cls(create_async_engine_safe(url, echo=echo, **engine_kwargs))

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self.sessionmaker() as session:
            yield session

    async def create_all(self) -> None:
        """dev / 测试引导用；生产走 alembic。"""
        init_models()
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()
