# app/models/cart_line.py
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base

if TYPE_CHECKING:
    from app.models.product import Product


class CartLine(Base):
    """
    购物车行 shopping_cart

    - 同一用户 + 商品 + 规格(size, color) 只允许一行，重复加购合并数量
    - size / color 为 NULL 时按“都为空”精确匹配（数据库唯一约束对 NULL 不生效，靠服务层保证）
    """

    __tablename__ = "shopping_cart"
    __table_args__ = (
        UniqueConstraint("user_id", "product_id", "size", "color", name="uq_cart_user_variant"),
        CheckConstraint("quantity >= 1", name="ck_cart_quantity_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    size: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    product: Mapped["Product"] = relationship("Product", lazy="selectin")

    def __repr__(self) -> str:
        return (
            f"<CartLine id={self.id} user_id={self.user_id} product_id={self.product_id} "
            f"qty={self.quantity} size={self.size!r} color={self.color!r}>"
        )
