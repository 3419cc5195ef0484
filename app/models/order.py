# app/models/order.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base

if TYPE_CHECKING:
    from app.models.address import Address
    from app.models.order_item import OrderItem


class Order(Base):
    """
    订单头 orders

    - order_number：ORD-YYMMDD-NNNN，全局唯一（唯一约束是并发下的最后防线）
    - 金额在建单时一次算定：total_amount = subtotal + shipping_amount + tax_amount，之后不再修改
    - 建单后只有 status / payment_status 会变
    - 地址按 id 弱引用，不做外键
    """

    __tablename__ = "orders"
    __table_args__ = (Index("ix_orders_user_ordered_at", "user_id", "ordered_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    order_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        index=True,
        server_default=text("'pending'"),
    )

    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    shipping_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    payment_method: Mapped[str] = mapped_column(String(64), nullable=False)
    payment_status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        server_default=text("'pending'"),
    )

    shipping_address_id: Mapped[int] = mapped_column(Integer, nullable=False)
    billing_address_id: Mapped[int] = mapped_column(Integer, nullable=False)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    ordered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderItem.product_name",
        lazy="selectin",
    )

    shipping_address: Mapped[Optional["Address"]] = relationship(
        "Address",
        primaryjoin="foreign(Order.shipping_address_id) == Address.id",
        viewonly=True,
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Order id={self.id} no={self.order_number!r} status={self.status}>"
