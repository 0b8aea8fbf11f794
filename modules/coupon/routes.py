"""
Coupon Routes - Customer Facing
==================================
Apply / remove the promo code held on the cart, plus an AJAX pre-check.
"""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_login
from modules.cart.service import cart_service
from modules.coupon.service import coupon_service
from modules.inventory.reconciler import invalidate_gate

router = APIRouter(prefix="/api/coupon", tags=["coupon"])


class ApplyCouponRequest(BaseModel):
    code: str


@router.get("/check")
async def check_coupon(
    code: str = Query(""),
    db: Session = Depends(get_db),
    user_id: str = Depends(require_login),
):
    """AJAX: Validate coupon code against current cart (no side effects)."""
    if not code.strip():
        return JSONResponse({"valid": False, "error": "Please enter a coupon code"})

    session = cart_service.get_session(db, user_id)
    if session.is_empty:
        return JSONResponse({"valid": False, "error": "Your cart is empty"})

    return JSONResponse(coupon_service.quick_check(db, code, session.subtotal))


@router.post("/apply")
async def apply_coupon(
    body: ApplyCouponRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(require_login),
):
    """Validate and hold the coupon on the cart. Rejections leave the cart unchanged."""
    session = cart_service.apply_coupon(db, user_id, body.code)
    db.commit()
    invalidate_gate(user_id, session.revision)
    return cart_service.session_to_dict(session)


@router.delete("")
async def remove_coupon(
    db: Session = Depends(get_db),
    user_id: str = Depends(require_login),
):
    session = cart_service.remove_coupon(db, user_id)
    db.commit()
    invalidate_gate(user_id, session.revision)
    return cart_service.session_to_dict(session)
