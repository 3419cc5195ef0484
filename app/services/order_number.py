# app/services/order_number.py
"""
订单号派生：ORD-YYMMDD-NNNN

- NNNN：当天已有单号最大尾号 + 1（无则 1），4 位补零；按天自然重置，不另存计数器
- 查询失败 → 降级为同前缀下的随机 4 位尾号（接受小概率冲突，不阻断下单），必须记日志 + 计数
- 读后算天然有竞态：唯一约束兜底，冲突由下单流程重试一次（见 order_placement）
"""

from __future__ import annotations

import logging
import random
from datetime import date, datetime
from typing import Optional

from sqlalchemy import Integer, cast, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.tx import savepoint
from app.models.order import Order
from app.obs.metrics import order_number_fallback_total

logger = logging.getLogger("storefront.orders")

ORDER_NUMBER_PREFIX = "ORD"
SEQ_WIDTH = 4
# "ORD-YYMMDD-" 长度 11，尾号从第 12 位开始（SQL substr 从 1 计）
_SUFFIX_POS = len(ORDER_NUMBER_PREFIX) + 1 + 6 + 1 + 1


def day_prefix(on: date) -> str:
    return f"{ORDER_NUMBER_PREFIX}-{on.strftime('%y%m%d')}-"


def format_order_number(on: date, seq: int) -> str:
    return f"{day_prefix(on)}{int(seq):0{SEQ_WIDTH}d}"


def parse_sequence(order_number: str) -> Optional[int]:
    """ORD-YYMMDD-NNNN → NNNN；格式不符返回 None。"""
    head, sep, tail = (order_number or "").rpartition("-")
    if not sep or not head.startswith(f"{ORDER_NUMBER_PREFIX}-") or not tail.isdigit():
        return None
    return int(tail)


async def max_sequence_for_day(session: AsyncSession, on: date) -> int:
    prefix = day_prefix(on)
    stmt = select(func.max(cast(func.substr(Order.order_number, _SUFFIX_POS), Integer))).where(
        Order.order_number.like(f"{prefix}%")
    )
    res = await session.execute(stmt)
    return int(res.scalar() or 0)


def _random_order_number(on: date) -> str:
    return format_order_number(on, random.randint(1, 10**SEQ_WIDTH - 1))


async def next_order_number(session: AsyncSession, on: Optional[date] = None) -> str:
    """
    在当前事务内派生下一个单号。

    查询包在保存点里：失败只回滚保存点，外层下单事务继续可用。
    """
    day = on or datetime.now().date()
    try:
        async with savepoint(session):
            current = await max_sequence_for_day(session, day)
    except SQLAlchemyError as e:
        order_number_fallback_total.inc()
        fallback = _random_order_number(day)
        logger.warning(
            "ORDER_NUMBER_FALLBACK day=%s fallback=%s cause=%r",
            day.isoformat(),
            fallback,
            e,
        )
        return fallback

    return format_order_number(day, current + 1)
