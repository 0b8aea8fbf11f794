"""
Coupon Module - Models
========================
Promotional discount codes.

Features:
  - Percentage or fixed amount
  - Activation window (starts_at / expires_at)
  - Optional total usage limit (times_used counter)
  - Optional minimum spend
  - Active flag (admins deactivate instead of deleting used coupons)
"""

import enum
from sqlalchemy import (
    Column, Integer, String, Boolean, Numeric,
    DateTime, Index, CheckConstraint,
)
from sqlalchemy.sql import func
from config.database import Base
from common.helpers import to_decimal


# ==========================================
# Enums
# ==========================================

class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"


# ==========================================
# Coupon
# ==========================================

class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True)
    code = Column(String(50), unique=True, nullable=False, index=True)  # always upper-case
    name = Column(String(200), nullable=True)

    discount_type = Column(String(20), default=DiscountType.PERCENTAGE, nullable=False)
    discount_value = Column(Numeric(10, 2), nullable=False)  # percent (e.g. 20) or fixed amount
    min_spend_amount = Column(Numeric(10, 2), nullable=True)

    # Usage
    usage_limit_total = Column(Integer, nullable=True)
    times_used = Column(Integer, default=0, nullable=False)

    # Activation window
    starts_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        Index("ix_coupon_code_active", "code", "is_active"),
        CheckConstraint("discount_value >= 0", name="ck_coupon_value"),
        CheckConstraint("times_used >= 0", name="ck_coupon_times_used"),
    )

    @property
    def discount_display(self) -> str:
        """Human-readable discount value."""
        if self.discount_type == DiscountType.PERCENTAGE:
            return f"{to_decimal(self.discount_value).normalize():f}% off"
        return f"{to_decimal(self.discount_value):,.2f} off"

    @property
    def uses_left(self):
        if self.usage_limit_total is None:
            return None
        return max(0, self.usage_limit_total - (self.times_used or 0))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "discount_type": str(DiscountType(self.discount_type).value),
            "discount_value": str(self.discount_value),
            "discount_display": self.discount_display,
            "min_spend_amount": str(self.min_spend_amount) if self.min_spend_amount is not None else None,
            "usage_limit_total": self.usage_limit_total,
            "times_used": self.times_used or 0,
            "uses_left": self.uses_left,
            "starts_at": self.starts_at.isoformat() if self.starts_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "is_active": bool(self.is_active),
        }
