"""
Coupon Admin Routes
=====================
CRUD for coupons, activation toggle, and stats (JSON API).
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_admin
from modules.coupon.models import DiscountType
from modules.coupon.service import coupon_service

router = APIRouter(prefix="/admin/api/coupons", tags=["admin-coupon"])


class CouponCreateRequest(BaseModel):
    code: str = Field(..., min_length=1)
    name: Optional[str] = None
    discount_type: DiscountType = DiscountType.PERCENTAGE
    discount_value: Decimal = Field(..., ge=0)
    min_spend_amount: Optional[Decimal] = Field(None, ge=0)
    usage_limit_total: Optional[int] = Field(None, ge=1)
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_active: bool = True


class CouponUpdateRequest(BaseModel):
    name: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(None, ge=0)
    min_spend_amount: Optional[Decimal] = Field(None, ge=0)
    usage_limit_total: Optional[int] = Field(None, ge=1)
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_active: Optional[bool] = None


# ==========================================
# 📋 Coupon List
# ==========================================

@router.get("")
async def coupon_list(
    page: int = 1,
    active: Optional[bool] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    admin_id: str = Depends(require_admin),
):
    per_page = 30
    coupons, total = coupon_service.list_coupons(db, page=page, per_page=per_page, active=active, search=search)
    return {
        "coupons": [c.to_dict() for c in coupons],
        "total": total,
        "page": page,
        "total_pages": max(1, (total + per_page - 1) // per_page),
        "stats": coupon_service.get_stats(db),
    }


@router.get("/{coupon_id}")
async def coupon_detail(
    coupon_id: int,
    db: Session = Depends(get_db),
    admin_id: str = Depends(require_admin),
):
    return coupon_service.get_coupon(db, coupon_id).to_dict()


# ==========================================
# ➕ Create / ✏️ Update
# ==========================================

@router.post("", status_code=201)
async def coupon_create(
    body: CouponCreateRequest,
    db: Session = Depends(get_db),
    admin_id: str = Depends(require_admin),
):
    coupon = coupon_service.create_coupon(db, body.model_dump())
    db.commit()
    return coupon.to_dict()


@router.patch("/{coupon_id}")
async def coupon_update(
    coupon_id: int,
    body: CouponUpdateRequest,
    db: Session = Depends(get_db),
    admin_id: str = Depends(require_admin),
):
    coupon = coupon_service.update_coupon(db, coupon_id, body.model_dump(exclude_unset=True))
    db.commit()
    return coupon.to_dict()


@router.post("/{coupon_id}/toggle")
async def coupon_toggle(
    coupon_id: int,
    db: Session = Depends(get_db),
    admin_id: str = Depends(require_admin),
):
    coupon = coupon_service.toggle_active(db, coupon_id)
    db.commit()
    return coupon.to_dict()


@router.delete("/{coupon_id}")
async def coupon_delete(
    coupon_id: int,
    db: Session = Depends(get_db),
    admin_id: str = Depends(require_admin),
):
    coupon_service.delete_coupon(db, coupon_id)
    db.commit()
    return {"deleted": True}
