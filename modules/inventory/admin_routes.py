"""
Inventory Admin Routes
========================
Per-size stock levels of a shoe (JSON API).
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_admin
from modules.inventory.service import inventory_service

router = APIRouter(prefix="/admin/api/inventory", tags=["admin-inventory"])


class StockUpdateRequest(BaseModel):
    size: float = Field(..., gt=0)
    quantity: int = Field(..., ge=0)


def _stock_rows(rows) -> list:
    return [{"size": str(r.size), "quantity": r.quantity} for r in rows]


@router.get("/{shoe_id}")
async def stock_detail(
    shoe_id: int,
    db: Session = Depends(get_db),
    admin_id: str = Depends(require_admin),
):
    rows = inventory_service.list_stock(db, shoe_id)
    return {"shoe_id": shoe_id, "sizes": _stock_rows(rows), "total": sum(r.quantity for r in rows)}


@router.put("/{shoe_id}")
async def stock_update(
    shoe_id: int,
    body: StockUpdateRequest,
    db: Session = Depends(get_db),
    admin_id: str = Depends(require_admin),
):
    inventory_service.set_stock(db, shoe_id, str(body.size), body.quantity)
    db.commit()
    rows = inventory_service.list_stock(db, shoe_id)
    return {"shoe_id": shoe_id, "sizes": _stock_rows(rows), "total": sum(r.quantity for r in rows)}
