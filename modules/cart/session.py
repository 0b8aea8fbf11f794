"""
Cart Module - Session State
=============================
CartSession is an immutable snapshot of a shopper's cart and applied coupon.
CartController is the only thing that produces new sessions; every mutation
returns a fresh CartSession with ``revision + 1`` so that work started against
an older revision (e.g. a stock check) can be recognised as stale.
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Optional, Tuple

from config.settings import DEFAULT_COLOR
from common.helpers import to_decimal, normalize_coupon_code
from modules.coupon.models import DiscountType


@dataclass(frozen=True)
class CartLine:
    """One product + size + color entry in the cart."""
    product_id: int
    name: str
    unit_price: Decimal
    size: Decimal
    quantity: int
    brand: str = ""
    color: str = DEFAULT_COLOR
    image: Optional[str] = None
    line_id: Optional[str] = None   # DB row id once persisted

    def __post_init__(self):
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError(f"quantity must be an integer, got {self.quantity!r}")
        if self.quantity < 1:
            raise ValueError(f"quantity must be >= 1, got {self.quantity}")
        price = to_decimal(self.unit_price)
        if price < 0:
            raise ValueError(f"unit_price must be >= 0, got {price}")
        object.__setattr__(self, "unit_price", price)
        object.__setattr__(self, "size", to_decimal(self.size))
        object.__setattr__(self, "color", self.color or DEFAULT_COLOR)
        if self.line_id is None:
            object.__setattr__(self, "line_id", self.variant_key)
        else:
            object.__setattr__(self, "line_id", str(self.line_id))

    @property
    def variant_key(self) -> str:
        return f"{self.product_id}:{format(self.size.normalize(), 'f')}:{self.color}"

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def same_variant(self, other: "CartLine") -> bool:
        return (
            self.product_id == other.product_id
            and self.size == other.size
            and self.color == other.color
        )


@dataclass(frozen=True)
class AppliedCoupon:
    """Validated coupon held for the checkout session."""
    code: str
    discount_type: DiscountType
    discount_value: Decimal

    def __post_init__(self):
        object.__setattr__(self, "code", normalize_coupon_code(self.code))
        object.__setattr__(self, "discount_type", DiscountType(self.discount_type))
        object.__setattr__(self, "discount_value", to_decimal(self.discount_value))


@dataclass(frozen=True)
class CartSession:
    lines: Tuple[CartLine, ...] = field(default_factory=tuple)
    coupon: Optional[AppliedCoupon] = None
    revision: int = 0

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def subtotal(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0"))

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def find(self, line_id: str) -> Optional[CartLine]:
        for line in self.lines:
            if line.line_id == str(line_id):
                return line
        return None


class CartController:
    """Pure cart mutations. Each method returns a new CartSession."""

    def add_line(self, session: CartSession, new_line: CartLine) -> CartSession:
        """Add a line, merging quantities into an existing identical variant."""
        lines = list(session.lines)
        for idx, line in enumerate(lines):
            if line.same_variant(new_line):
                lines[idx] = replace(line, quantity=line.quantity + new_line.quantity)
                break
        else:
            lines.append(new_line)
        return self._next(session, lines=tuple(lines))

    def update_quantity(self, session: CartSession, line_id: str, quantity: int) -> CartSession:
        """Set a line's quantity. Zero removes the line; negative is an error."""
        if quantity < 0:
            raise ValueError(f"quantity must be >= 0, got {quantity}")
        if session.find(line_id) is None:
            raise KeyError(line_id)
        if quantity == 0:
            return self.remove_line(session, line_id)
        lines = tuple(
            replace(line, quantity=quantity) if line.line_id == str(line_id) else line
            for line in session.lines
        )
        return self._next(session, lines=lines)

    def remove_line(self, session: CartSession, line_id: str) -> CartSession:
        lines = tuple(line for line in session.lines if line.line_id != str(line_id))
        return self._next(session, lines=lines)

    def clear(self, session: CartSession) -> CartSession:
        """Empty the cart. The applied coupon goes with it."""
        return self._next(session, lines=(), coupon=None)

    def apply_coupon(self, session: CartSession, coupon: AppliedCoupon) -> CartSession:
        return self._next(session, coupon=coupon)

    def remove_coupon(self, session: CartSession) -> CartSession:
        return self._next(session, coupon=None)

    def _next(self, session: CartSession, **changes) -> CartSession:
        return replace(session, revision=session.revision + 1, **changes)


# Singleton
cart_controller = CartController()
