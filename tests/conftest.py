# tests/conftest.py
from __future__ import annotations

from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import AppSettings
from app.core.security import create_access_token
from app.db.session import Database
from app.main import create_app
from tests.helpers.seed import ADMIN_ID, CUSTOMER_ID, OTHER_CUSTOMER_ID, seed_baseline

TEST_JWT_SECRET = "storefront-test-secret-0d9c"


# =========================================
# 配置 / 每用例独立 SQLite 库
# =========================================
@pytest.fixture
def settings(tmp_path) -> AppSettings:
    return AppSettings(
        ENV="test",
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'storefront-test.db'}",
        JWT_SECRET=TEST_JWT_SECRET,
        LOG_LEVEL="INFO",
        AUTO_CREATE_TABLES=False,
    )


@pytest_asyncio.fixture
async def db(settings: AppSettings) -> AsyncGenerator[Database, None]:
    """
    建表 + 最小种子；用例结束 dispose。
    每个用例一份新库文件，不依赖外部数据库。
    """
    database = Database.from_url(settings.DATABASE_URL)
    await database.create_all()
    async with database.session() as s:
        async with s.begin():
            await seed_baseline(s)
    try:
        yield database
    finally:
        await database.dispose()


@pytest_asyncio.fixture
async def session(db: Database) -> AsyncGenerator[AsyncSession, None]:
    """
    标准 Session：服务调用自己 begin/commit；
    断言前想读最新库存请另开 session（见 fresh_session）。
    """
    async with db.session() as s:
        yield s


@pytest.fixture
def fresh_session(db: Database):
    """兼容写法：async with fresh_session() as s"""
    return db.session


# =========================================
# 身份：顾客 / 另一顾客 / 管理员
# =========================================
def _token(settings: AppSettings, user_id: int, role: str, email: str) -> str:
    return create_access_token({"user_id": user_id, "role": role, "email": email}, settings=settings)


@pytest.fixture
def customer_headers(settings: AppSettings) -> dict:
    return {"Authorization": f"Bearer {_token(settings, CUSTOMER_ID, 'user', 'ada@example.com')}"}


@pytest.fixture
def other_customer_headers(settings: AppSettings) -> dict:
    return {"Authorization": f"Bearer {_token(settings, OTHER_CUSTOMER_ID, 'user', 'bo@example.com')}"}


@pytest.fixture
def admin_headers(settings: AppSettings) -> dict:
    return {"Authorization": f"Bearer {_token(settings, ADMIN_ID, 'admin', 'ops@example.com')}"}


# =========================================
# FastAPI / httpx AsyncClient
# =========================================
@pytest.fixture
def app(settings: AppSettings, db: Database):
    return create_app(settings=settings, db=db)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[httpx.AsyncClient, None]:
    # raise_app_exceptions=False：让 500 走应用自己的异常处理器而不是直接抛进测试
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://testserver",
        timeout=httpx.Timeout(10.0, connect=5.0, read=10.0, write=5.0, pool=5.0),
    ) as c:
        yield c
