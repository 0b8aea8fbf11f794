"""
Order Module - Admin Routes
==============================
Order management for admin: list and status updates (JSON API).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_admin
from modules.order.models import OrderStatus
from modules.order.service import order_service

router = APIRouter(prefix="/admin/api/orders", tags=["order-admin"])


class StatusUpdateRequest(BaseModel):
    status: OrderStatus


@router.get("")
async def admin_orders(
    page: int = Query(1, ge=1),
    status: Optional[OrderStatus] = Query(None),
    db: Session = Depends(get_db),
    admin_id: str = Depends(require_admin),
):
    per_page = 30
    orders, total = order_service.list_all_orders(
        db, page=page, per_page=per_page, status=status.value if status else None,
    )
    return {
        "orders": [o.to_dict(with_items=False) for o in orders],
        "total": total,
        "page": page,
        "total_pages": max(1, (total + per_page - 1) // per_page),
    }


@router.get("/{order_id}")
async def admin_order_detail(
    order_id: int,
    db: Session = Depends(get_db),
    admin_id: str = Depends(require_admin),
):
    return order_service.get_order(db, order_id).to_dict()


@router.patch("/{order_id}/status")
async def admin_update_status(
    order_id: int,
    body: StatusUpdateRequest,
    db: Session = Depends(get_db),
    admin_id: str = Depends(require_admin),
):
    order = order_service.update_status(db, order_id, body.status.value)
    db.commit()
    return order.to_dict()
