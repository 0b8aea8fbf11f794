"""
Pricing Module - Calculator
=============================
Order totals: subtotal, shipping, coupon discount and grand total.

All functions are pure. Amounts are kept as unrounded Decimals; rounding to
two places happens only in PricingResult.rounded(), used for display and for
the amounts stored on an order.

Shipping depends on where the totals are shown:
  - CART context:     standard is free at/above FREE_SHIPPING_THRESHOLD, else flat fee
  - CHECKOUT context: standard is always free (checkout and payment steps)
  - express is a flat fee in both contexts
"""

import enum
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from config import settings
from common.helpers import to_decimal, round_money, format_money
from modules.coupon.models import DiscountType

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class ShippingMethod(str, enum.Enum):
    STANDARD = "standard"
    EXPRESS = "express"


class PricingContext(str, enum.Enum):
    CART = "cart"
    CHECKOUT = "checkout"


class PricingInputError(ValueError):
    """Raised for inputs that can only come from a bug upstream (never clamped)."""
    pass


@dataclass(frozen=True)
class PricingResult:
    subtotal: Decimal
    shipping_cost: Decimal
    discount_amount: Decimal
    total: Decimal
    discount_code: Optional[str] = None

    @property
    def is_free_shipping(self) -> bool:
        return self.shipping_cost == ZERO

    def rounded(self) -> "PricingResult":
        """
        Cents version of this result. Each part is rounded once and the total is
        rebuilt from the rounded parts, so subtotal + shipping - discount == total.
        """
        subtotal = round_money(self.subtotal)
        shipping_cost = round_money(self.shipping_cost)
        discount_amount = round_money(self.discount_amount)
        return PricingResult(
            subtotal=subtotal,
            shipping_cost=shipping_cost,
            discount_amount=discount_amount,
            total=max(ZERO, subtotal + shipping_cost - discount_amount),
            discount_code=self.discount_code,
        )

    def to_dict(self) -> dict:
        """Display form: two-decimal strings."""
        r = self.rounded()
        return {
            "subtotal": str(r.subtotal),
            "shipping_cost": str(r.shipping_cost),
            "discount_amount": str(r.discount_amount),
            "discount_code": r.discount_code,
            "total": str(r.total),
            "free_shipping": self.is_free_shipping,
            "display": {
                "subtotal": format_money(r.subtotal, settings.CURRENCY_SYMBOL),
                "shipping_cost": "Free" if self.is_free_shipping
                else format_money(r.shipping_cost, settings.CURRENCY_SYMBOL),
                "discount_amount": f"-{format_money(r.discount_amount, settings.CURRENCY_SYMBOL)}",
                "total": format_money(r.total, settings.CURRENCY_SYMBOL),
            },
        }


# ==========================================
# Building blocks
# ==========================================

def calculate_subtotal(lines: Iterable) -> Decimal:
    """Sum of unit_price × quantity. Empty cart → 0."""
    subtotal = ZERO
    for line in lines:
        qty = line.quantity
        if isinstance(qty, bool) or not isinstance(qty, int) or qty < 1:
            raise PricingInputError(f"Invalid quantity {qty!r} for line {getattr(line, 'line_id', '?')}")
        price = to_decimal(line.unit_price)
        if price < ZERO:
            raise PricingInputError(f"Negative unit price {price} for line {getattr(line, 'line_id', '?')}")
        subtotal += price * qty
    return subtotal


def calculate_shipping(
    method,
    subtotal: Decimal,
    context: PricingContext = PricingContext.CHECKOUT,
) -> Decimal:
    """Shipping cost for the selected method in the given display context."""
    try:
        method = ShippingMethod(method)
        context = PricingContext(context)
    except ValueError as e:
        raise PricingInputError(str(e))

    if method == ShippingMethod.EXPRESS:
        return settings.EXPRESS_SHIPPING_COST

    if context == PricingContext.CART:
        if subtotal >= settings.FREE_SHIPPING_THRESHOLD:
            return ZERO
        return settings.FLAT_SHIPPING_COST

    return ZERO


def calculate_discount(coupon, subtotal: Decimal) -> Decimal:
    """
    Discount against subtotal only (never against shipping).
    percentage   → subtotal × value / 100
    fixed_amount → min(value, subtotal)
    """
    if coupon is None:
        return ZERO

    try:
        discount_type = DiscountType(coupon.discount_type)
    except ValueError as e:
        raise PricingInputError(str(e))
    value = to_decimal(coupon.discount_value)

    if discount_type == DiscountType.PERCENTAGE:
        if value < ZERO or value > HUNDRED:
            raise PricingInputError(f"Percentage out of range: {value}")
        return subtotal * value / HUNDRED

    if value < ZERO:
        raise PricingInputError(f"Negative fixed discount: {value}")
    return min(value, subtotal)


# ==========================================
# Full calculation
# ==========================================

def calculate_totals(
    lines: Iterable,
    shipping_method=ShippingMethod.STANDARD,
    coupon=None,
    context: PricingContext = PricingContext.CHECKOUT,
) -> PricingResult:
    """
    Compute every amount shown to the shopper.

    Args:
        lines: cart lines (anything with unit_price and quantity)
        shipping_method: "standard" or "express"
        coupon: applied coupon (discount_type, discount_value, code) or None
        context: CART for the cart summary, CHECKOUT for checkout/payment

    Returns:
        PricingResult (unrounded Decimals)
    """
    subtotal = calculate_subtotal(lines)
    shipping_cost = calculate_shipping(shipping_method, subtotal, context)
    discount_amount = calculate_discount(coupon, subtotal)

    # Floored at zero; with discount <= subtotal this only guards bad config
    total = max(ZERO, subtotal + shipping_cost - discount_amount)

    return PricingResult(
        subtotal=subtotal,
        shipping_cost=shipping_cost,
        discount_amount=discount_amount,
        total=total,
        discount_code=coupon.code if coupon is not None else None,
    )


def price_session(
    session,
    shipping_method=ShippingMethod.STANDARD,
    context: PricingContext = PricingContext.CHECKOUT,
) -> PricingResult:
    """Totals for a CartSession."""
    return calculate_totals(session.lines, shipping_method, session.coupon, context)
