# app/models/__init__.py
"""ORM 模型统一出口：from app.models import Order, Product ..."""

from app.models.address import Address
from app.models.cart_line import CartLine
from app.models.order import Order
from app.models.order_item import OrderItem
from app.models.product import Product
from app.models.user import User

__all__ = ["Address", "CartLine", "Order", "OrderItem", "Product", "User"]
