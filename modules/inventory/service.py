"""
Inventory Module - Service Layer
==================================
Stock lookups, admin stock updates, and locked decrements at order placement.
Also provides the async lookup collaborators used by the stock reconciler.
"""

import asyncio
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from config.database import SessionLocal
from common.exceptions import KickVaultError, NotFoundError, InsufficientInventoryError
from common.helpers import to_decimal
from modules.catalog.models import Shoe, ShoeStatus
from modules.inventory.models import ShoeSize

logger = logging.getLogger("kickvault.inventory")


class InventoryLookupError(KickVaultError):
    """Raised when the stock store cannot be reached or answers nonsense."""
    code = "inventory_unavailable"
    status_code = 503


class InventoryService:

    # ==========================================
    # Query
    # ==========================================

    def lookup(self, db: Session, shoe_id: int, size) -> int:
        """Available quantity for (shoe, size). Missing row → 0."""
        row = db.query(ShoeSize.quantity).filter(
            ShoeSize.shoe_id == shoe_id,
            ShoeSize.size == to_decimal(size),
        ).first()
        return int(row[0]) if row else 0

    def list_stock(self, db: Session, shoe_id: int) -> List[ShoeSize]:
        self._get_shoe(db, shoe_id)
        return (
            db.query(ShoeSize)
            .filter(ShoeSize.shoe_id == shoe_id)
            .order_by(ShoeSize.size)
            .all()
        )

    # ==========================================
    # Admin updates
    # ==========================================

    def set_stock(self, db: Session, shoe_id: int, size, quantity: int) -> ShoeSize:
        """Create or overwrite the stock level of one size."""
        if quantity < 0:
            raise KickVaultError("Stock quantity must be 0 or greater")
        shoe = self._get_shoe(db, shoe_id)
        size = to_decimal(size)

        row = db.query(ShoeSize).filter(
            ShoeSize.shoe_id == shoe_id, ShoeSize.size == size,
        ).first()
        if row:
            row.quantity = quantity
        else:
            row = ShoeSize(shoe_id=shoe_id, size=size, quantity=quantity)
            db.add(row)
        db.flush()
        self._sync_status(db, shoe)
        logger.info(f"Stock set: shoe #{shoe_id} size {size} → {quantity}")
        return row

    def decrement(self, db: Session, shoe_id: int, size, quantity: int, product_name: str = "") -> ShoeSize:
        """Lock the stock row and take `quantity` units. Caller owns the transaction."""
        row = (
            db.query(ShoeSize)
            .filter(ShoeSize.shoe_id == shoe_id, ShoeSize.size == to_decimal(size))
            .with_for_update()
            .first()
        )
        available = row.quantity if row else 0
        if available < quantity:
            raise InsufficientInventoryError(product_name or f"shoe #{shoe_id} size {size}", available)
        row.quantity = available - quantity
        db.flush()
        if row.quantity == 0:
            self._sync_status(db, row.shoe)
        return row

    # ==========================================
    # Private helpers
    # ==========================================

    def _get_shoe(self, db: Session, shoe_id: int) -> Shoe:
        shoe = db.query(Shoe).filter(Shoe.id == shoe_id).first()
        if not shoe:
            raise NotFoundError("Shoe not found")
        return shoe

    def _sync_status(self, db: Session, shoe: Optional[Shoe]):
        if shoe is None:
            return
        db.refresh(shoe)
        shoe.status = ShoeStatus.IN_STOCK.value if shoe.total_stock > 0 else ShoeStatus.SOLD_OUT.value
        db.flush()


# Singleton
inventory_service = InventoryService()


# ==========================================
# Async lookup collaborators
# ==========================================

class InventoryLookup:
    """Read-only stock lookup keyed by (product id, size)."""

    async def lookup(self, product_id: int, size) -> int:
        raise NotImplementedError


class DatabaseInventoryLookup(InventoryLookup):
    """
    Looks up stock in a fresh session per call, on a worker thread so the
    event loop is free to overlap several lookups.
    """

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    async def lookup(self, product_id: int, size) -> int:
        return await asyncio.to_thread(self._lookup_sync, product_id, size)

    def _lookup_sync(self, product_id: int, size) -> int:
        db = self.session_factory()
        try:
            return inventory_service.lookup(db, product_id, size)
        except Exception as e:
            raise InventoryLookupError(f"Stock lookup failed for #{product_id} size {size}: {e}") from e
        finally:
            db.close()


class SessionInventoryLookup(InventoryLookup):
    """Looks up stock through an existing session (no threads)."""

    def __init__(self, db: Session):
        self.db = db

    async def lookup(self, product_id: int, size) -> int:
        return inventory_service.lookup(self.db, product_id, size)


def get_inventory_lookup() -> InventoryLookup:
    """FastAPI dependency: the stock lookup used by checkout."""
    return DatabaseInventoryLookup()
