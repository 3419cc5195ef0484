# app/services/pricing.py
"""
下单金额口径（唯一出处，下单与购物车报价共用）：

    line_total = price × quantity
    subtotal   = Σ line_total
    shipping   = 0       若 subtotal > 100.00（严格大于）
               = 9.99    否则
    tax        = subtotal × 0.08（2 位小数，四舍五入）
    total      = subtotal + shipping + tax

这些是固定业务规则，不走配置。
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Tuple

_TWO = Decimal("0.01")

FREE_SHIPPING_THRESHOLD = Decimal("100.00")
FLAT_SHIPPING = Decimal("9.99")
TAX_RATE = Decimal("0.08")


def to_money(val: Any) -> Decimal:
    """金额规范化：接受 str/int/float/Decimal，转为 Decimal(2dp, 四舍五入)。"""
    if val is None:
        d = Decimal("0")
    elif isinstance(val, Decimal):
        d = val
    else:
        try:
            d = Decimal(str(val))
        except (InvalidOperation, ValueError):
            raise ValueError(f"invalid decimal: {val!r}")
    return d.quantize(_TWO, rounding=ROUND_HALF_UP)


def line_total(price: Any, quantity: int) -> Decimal:
    return to_money(to_money(price) * Decimal(int(quantity)))


def shipping_for(subtotal: Decimal) -> Decimal:
    return Decimal("0.00") if subtotal > FREE_SHIPPING_THRESHOLD else FLAT_SHIPPING


def tax_for(subtotal: Decimal) -> Decimal:
    return to_money(subtotal * TAX_RATE)


@dataclass(frozen=True)
class Quote:
    subtotal: Decimal
    shipping_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal

    def as_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "shipping_amount": self.shipping_amount,
            "tax_amount": self.tax_amount,
            "total_amount": self.total_amount,
        }


def quote_subtotal(subtotal: Any) -> Quote:
    sub = to_money(subtotal)
    shipping = shipping_for(sub)
    tax = tax_for(sub)
    # 三项均已是 2 位小数，相加精确
    return Quote(
        subtotal=sub,
        shipping_amount=shipping,
        tax_amount=tax,
        total_amount=sub + shipping + tax,
    )


def quote_lines(lines: Iterable[Tuple[Any, int]]) -> Quote:
    """lines: [(unit_price, quantity), ...]"""
    subtotal = sum((line_total(p, q) for p, q in lines), Decimal("0.00"))
    return quote_subtotal(subtotal)
