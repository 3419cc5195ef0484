# app/models/enums.py
from __future__ import annotations

from enum import StrEnum


class OrderStatus(StrEnum):
    """
    订单状态（落库值为小写字符串）：

    - pending     已下单，待处理
    - processing  处理中
    - shipped     已发货
    - delivered   已签收（终态）
    - cancelled   已取消（终态，取消时回补库存）
    """

    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(StrEnum):
    """支付状态只记标签，不对接支付网关。"""

    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


# 可取消状态
CANCELLABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.PROCESSING})
TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

# 正向推进顺序（允许跳级，不允许回退）
FORWARD_RANK = {
    OrderStatus.PENDING: 0,
    OrderStatus.PROCESSING: 1,
    OrderStatus.SHIPPED: 2,
    OrderStatus.DELIVERED: 3,
}

DEFAULT_PAYMENT_METHOD = "Credit Card"
