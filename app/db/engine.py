# app/db/engine.py
# 统一引擎工厂：DSN 归一 + 后端专属 connect_args / 事务钩子
from __future__ import annotations

import re
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

__all__ = ["normalize_async_dsn", "create_async_engine_safe"]


def normalize_async_dsn(url: str) -> str:
    """
    把各种历史写法统一到 psycopg3 / aiosqlite：
    - postgres:// / postgresql:// / +asyncpg → postgresql+psycopg://
    - sqlite:/// → sqlite+aiosqlite:///
    """
    url = (url or "").strip()
    if (url.startswith('"') and url.endswith('"')) or (url.startswith("'") and url.endswith("'")):
        url = url[1:-1].strip()

    if url.startswith("sqlite:///"):
        return "sqlite+aiosqlite://" + url[len("sqlite://") :]
    if url.startswith("postgresql+asyncpg://") or url.startswith("postgres+asyncpg://"):
        return re.sub(r"^postgres(?:ql)?\+asyncpg://", "postgresql+psycopg://", url)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


# SQLite 写锁排队等待上限（秒）
SQLITE_BUSY_TIMEOUT = 30.0


def _connect_args_for(url_str: str) -> dict[str, Any]:
    backend = make_url(url_str).get_backend_name()
    if backend.startswith("sqlite"):
        return {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT}
    return {}


def _install_sqlite_tx_hooks(engine: AsyncEngine) -> None:
    """
    pysqlite / aiosqlite 默认自行管理 BEGIN，SAVEPOINT 会失效；
    关闭驱动的隐式事务，由 SQLAlchemy 显式发 BEGIN IMMEDIATE。

    SQLite 忽略 FOR UPDATE：事务一开始就拿写锁，并发事务在 busy timeout 内排队，
    后到者读到的是前一单扣减后的库存（走 InsufficientStock，而不是 database is locked）。
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, _record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_async_engine_safe(url_str: str, *, echo: bool = False, **extra: Any) -> AsyncEngine:
    """Async 引擎（'postgresql+psycopg' 或 'sqlite+aiosqlite'）。"""
    url_str = normalize_async_dsn(url_str)
    backend = make_url(url_str).get_backend_name()

    kwargs: dict[str, Any] = {"echo": echo}
    if backend.startswith("postgresql"):
        kwargs["pool_pre_ping"] = True
    connect_args = _connect_args_for(url_str)
    if connect_args:
        kwargs["connect_args"] = connect_args
    kwargs.update(extra)

    engine = create_async_engine(url_str, **kwargs)
    if backend.startswith("sqlite"):
        _install_sqlite_tx_hooks(engine)
    return engine
