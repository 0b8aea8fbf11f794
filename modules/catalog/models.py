"""
Catalog Module - Models
========================
Shoe: a sellable sneaker model (price captured into the cart at add-time).
"""

import enum
from sqlalchemy import Column, Integer, String, Numeric, Boolean, Text, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base


class ShoeStatus(str, enum.Enum):
    IN_STOCK = "in_stock"
    SOLD_OUT = "sold_out"


class Shoe(Base):
    __tablename__ = "shoes"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    brand = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(String, nullable=True)
    status = Column(String, default=ShoeStatus.IN_STOCK, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    sizes = relationship("ShoeSize", back_populates="shoe", cascade="all, delete-orphan")

    @property
    def total_stock(self) -> int:
        return sum(s.quantity for s in self.sizes)
