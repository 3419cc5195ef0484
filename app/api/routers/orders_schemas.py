# app/api/routers/orders_schemas.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, conint, constr

# ---------------------------------------------------------------------------
# 1) 下单
# ---------------------------------------------------------------------------


class CheckoutLineIn(BaseModel):
    """购物车快照行：前端传 {id, quantity}，兼容 product_id。"""

    model_config = ConfigDict(extra="ignore")

    id: conint(gt=0) = Field(..., validation_alias=AliasChoices("id", "product_id"))
    quantity: conint(ge=1)


class PlaceOrderIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    cart_items: List[CheckoutLineIn] = Field(default_factory=list)
    shipping_address_id: Optional[conint(gt=0)] = None
    billing_address_id: Optional[conint(gt=0)] = None
    payment_method: Optional[constr(max_length=64)] = None
    notes: Optional[str] = None


# ---------------------------------------------------------------------------
# 2) 改状态（后台）
# ---------------------------------------------------------------------------


class OrderStatusIn(BaseModel):
    # 不在 schema 层限定枚举：未知状态由服务层统一报 InvalidInput
    status: Optional[str] = None


# ---------------------------------------------------------------------------
# 3) 输出
# ---------------------------------------------------------------------------


class OrderItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    product_id: int
    product_name: str
    product_price: Decimal
    quantity: int
    line_total: Decimal


class AddressSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    street_address: str
    city: str
    postal_code: str
    country: str


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: str
    user_id: int
    status: str
    subtotal: Decimal
    shipping_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    payment_method: str
    payment_status: str
    shipping_address_id: int
    billing_address_id: int
    notes: Optional[str] = None
    ordered_at: datetime
    items: List[OrderItemOut] = Field(default_factory=list)
    shipping_address: Optional[AddressSummaryOut] = None


class PaginationOut(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


def order_payload(order) -> dict:
    return OrderOut.model_validate(order).model_dump(mode="json")
