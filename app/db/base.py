# app/db/base.py
from __future__ import annotations

import logging
from importlib import import_module

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase, configure_mappers

log = logging.getLogger("storefront.models")

# 约束 / 索引统一命名，alembic 对比时名字稳定
NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_N_name)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


# 字符串关系（"OrderItem.product_name" 等）依赖这些模块先注册
MODEL_MODULES = (
    "app.models.user",
    "app.models.address",
    "app.models.product",
    "app.models.cart_line",
    "app.models.order",
    "app.models.order_item",
)

_state = {"ready": False}


def init_models(*, force: bool = False) -> None:
    """导入全部模型并 configure_mappers()；幂等。"""
    if _state["ready"] and not force:
        return
    for name in MODEL_MODULES:
        import_module(name)
    configure_mappers()
    _state["ready"] = True
    log.debug("mappers configured: %s", ", ".join(m.rsplit(".", 1)[-1] for m in MODEL_MODULES))
