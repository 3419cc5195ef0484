# alembic/env.py
from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.pool import NullPool

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# 模型注册放在 logging 配置之后
from app.db.base import Base, init_models  # noqa: E402
from app.db.engine import normalize_async_dsn  # noqa: E402


def sync_url() -> str:
    """
    与应用共用 DSN 归一（app.db.engine），再换成同步驱动：
      sqlite+aiosqlite → sqlite；postgresql+psycopg 本身支持同步，保持不变。

    优先级：STOREFRONT_MIGRATION_URL > DATABASE_URL > alembic.ini
    """
    raw = (
        os.getenv("STOREFRONT_MIGRATION_URL")
        or os.getenv("DATABASE_URL")
        or config.get_main_option("sqlalchemy.url")
    )
    if not raw:
        raise RuntimeError("Alembic 无法确定数据库 URL：请设置 DATABASE_URL 或 alembic.ini 的 sqlalchemy.url")

    url = make_url(normalize_async_dsn(raw))
    if url.drivername == "sqlite+aiosqlite":
        url = url.set(drivername="sqlite")
    return url.render_as_string(hide_password=False)


def run_migrations_offline() -> None:
    """只生成 SQL，不连库。"""
    init_models()
    context.configure(
        url=sync_url(),
        target_metadata=Base.metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    init_models()
    url = sync_url()
    engine = create_engine(url, poolclass=NullPool)

    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=Base.metadata,
            compare_type=True,
            # SQLite 改表走 batch 模式
            render_as_batch=url.startswith("sqlite"),
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
