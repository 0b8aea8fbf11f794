"""
Inventory Module - Models
==========================
ShoeSize: live stock level per (shoe, size). Missing row means zero stock.
"""

from sqlalchemy import (
    Column, Integer, Numeric, ForeignKey, DateTime,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base


class ShoeSize(Base):
    __tablename__ = "shoe_sizes"

    id = Column(Integer, primary_key=True)
    shoe_id = Column(Integer, ForeignKey("shoes.id", ondelete="CASCADE"), nullable=False, index=True)
    size = Column(Numeric(4, 1), nullable=False)  # EU/US sizes incl. half sizes
    quantity = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    shoe = relationship("Shoe", back_populates="sizes")

    __table_args__ = (
        UniqueConstraint("shoe_id", "size", name="uq_shoe_size"),
        CheckConstraint("quantity >= 0", name="ck_shoe_size_qty"),
    )
