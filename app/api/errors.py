# app/api/errors.py
"""
业务异常（服务层抛出，HTTP 层统一翻译成 {error, message, data} 信封）：

- InvalidInputError       400  字段缺失 / 格式错误 / 数量非法 / 未知状态
- NotFoundError           404  订单 / 地址 / 购物车行不存在或不属于当前用户
- InsufficientStockError  400  库存不足（必须带商品）
- InvalidStateError       400  当前状态不允许该操作（如取消已发货订单）
- AuthError / ForbiddenError  401 / 403
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class BizError(Exception):
    code = "BIZ_ERROR"
    status = 400

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status: int | None = None,
        data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        if code:
            self.code = code
        if status:
            self.status = status
        self.message = message
        self.data = data


class InvalidInputError(BizError):
    code = "INVALID_INPUT"
    status = 400


class NotFoundError(BizError):
    code = "NOT_FOUND"
    status = 404


class InsufficientStockError(BizError):
    code = "INSUFFICIENT_STOCK"
    status = 400

    def __init__(self, product_id: int, product_name: Optional[str] = None, *, message: str | None = None):
        label = product_name or f"product {product_id}"
        super().__init__(
            message or f"Insufficient stock for {label}",
            data={"product_id": product_id, "product_name": product_name},
        )
        self.product_id = product_id
        self.product_name = product_name


class InvalidStateError(BizError):
    code = "INVALID_STATE"
    status = 400


class AuthError(BizError):
    code = "UNAUTHORIZED"
    status = 401


class ForbiddenError(BizError):
    code = "FORBIDDEN"
    status = 403
