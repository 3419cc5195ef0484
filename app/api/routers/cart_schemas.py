# app/api/routers/cart_schemas.py
from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from app.services.cart_service import CartView
from app.services.pricing import line_total


class CartAddIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    product_id: int = Field(..., gt=0, validation_alias=AliasChoices("product_id", "id"))
    # 必填；数量下限在服务层校验，错误文案与改量接口保持一致
    quantity: int
    size: Optional[str] = Field(default=None, max_length=32)
    color: Optional[str] = Field(default=None, max_length=32)


class CartUpdateIn(BaseModel):
    quantity: Optional[int] = None


class CartLineOut(BaseModel):
    id: int
    product_id: int
    product_name: str
    sku: str
    price: Decimal
    stock_quantity: int
    quantity: int
    size: Optional[str] = None
    color: Optional[str] = None
    subtotal: Decimal


class CartQuoteOut(BaseModel):
    subtotal: Decimal
    shipping_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal


class CartOut(BaseModel):
    items: List[CartLineOut] = Field(default_factory=list)
    total_items: int = 0
    total_amount: Decimal = Decimal("0.00")
    quote: Optional[CartQuoteOut] = None


def cart_payload(view: CartView) -> dict:
    items = [
        CartLineOut(
            id=ln.id,
            product_id=ln.product_id,
            product_name=ln.product.name,
            sku=ln.product.sku,
            price=ln.product.price,
            stock_quantity=ln.product.quantity,
            quantity=ln.quantity,
            size=ln.size,
            color=ln.color,
            subtotal=line_total(ln.product.price, ln.quantity),
        )
        for ln in view.lines
    ]
    out = CartOut(
        items=items,
        total_items=view.total_items,
        total_amount=view.total_amount,
        quote=CartQuoteOut(**view.quote.as_dict()) if view.quote else None,
    )
    return out.model_dump(mode="json")
