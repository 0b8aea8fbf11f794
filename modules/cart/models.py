"""
Cart Module - Models
=====================
Shopping cart with per-user uniqueness of (shoe, size, color) and quantity constraints.
The applied coupon lives on the Cart row for the duration of the checkout session.
"""

from sqlalchemy import (
    Column, Integer, String, Numeric, ForeignKey, DateTime,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base
from config.settings import DEFAULT_COLOR


class Cart(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), unique=True, nullable=False, index=True)
    revision = Column(Integer, default=0, nullable=False)

    # Applied coupon snapshot (code/type/value)
    coupon_code = Column(String(50), nullable=True)
    coupon_type = Column(String(20), nullable=True)
    coupon_value = Column(Numeric(10, 2), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    items = relationship(
        "CartItem", back_populates="cart",
        cascade="all, delete-orphan", order_by="CartItem.id",
    )


class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False)
    shoe_id = Column(Integer, ForeignKey("shoes.id", ondelete="RESTRICT"), nullable=False)
    size = Column(Numeric(4, 1), nullable=False)
    color = Column(String(50), default=DEFAULT_COLOR, nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)  # captured when first added
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    cart = relationship("Cart", back_populates="items")
    shoe = relationship("Shoe")

    __table_args__ = (
        UniqueConstraint("cart_id", "shoe_id", "size", "color", name="uq_cart_shoe_variant"),
        CheckConstraint("quantity >= 1", name="ck_cart_qty"),
    )
