"""
Order Module - Models
======================
Order with the checkout totals forwarded unchanged and a price snapshot per item.
"""

import enum
from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, Text,
    ForeignKey, DateTime,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(str, enum.Enum):
    CARD = "card"
    COD = "cod"   # cash on delivery


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    status = Column(String, default=OrderStatus.PENDING, nullable=False)
    payment_method = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Totals (exactly as computed at checkout)
    subtotal = Column(Numeric(12, 2), nullable=False)
    shipping_cost = Column(Numeric(12, 2), default=0, nullable=False)
    discount_amount = Column(Numeric(12, 2), default=0, nullable=False)
    discount_code = Column(String(50), nullable=True)
    total = Column(Numeric(12, 2), nullable=False)

    # Shipping
    shipping_method = Column(String, nullable=False)
    email = Column(String, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    address = Column(Text, nullable=False)
    apartment = Column(String, nullable=True)
    city = Column(String, nullable=False)
    postal_code = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    email_newsletter = Column(Boolean, default=False, nullable=False)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

    def to_dict(self, with_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "status": self.status,
            "payment_method": self.payment_method,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "subtotal": str(self.subtotal),
            "shipping_cost": str(self.shipping_cost),
            "discount_amount": str(self.discount_amount),
            "discount_code": self.discount_code,
            "total": str(self.total),
            "shipping_method": self.shipping_method,
            "shipping_address": {
                "email": self.email,
                "first_name": self.first_name,
                "last_name": self.last_name,
                "address": self.address,
                "apartment": self.apartment,
                "city": self.city,
                "postal_code": self.postal_code,
                "phone": self.phone,
            },
            "item_count": sum(i.quantity for i in self.items),
        }
        if with_items:
            data["items"] = [i.to_dict() for i in self.items]
        return data


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    shoe_id = Column(Integer, ForeignKey("shoes.id", ondelete="SET NULL"), nullable=True)

    # Snapshot
    name = Column(String(200), nullable=False)
    brand = Column(String(100), nullable=True)
    size = Column(Numeric(4, 1), nullable=False)
    color = Column(String(50), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)

    order = relationship("Order", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "shoe_id": self.shoe_id,
            "name": self.name,
            "brand": self.brand,
            "size": str(self.size),
            "color": self.color,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
            "line_total": str(self.line_total),
        }
