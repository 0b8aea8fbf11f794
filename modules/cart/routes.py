"""
Cart & Checkout Routes
=======================
Cart view and item updates (JSON API), checkout quote, and the pre-payment stock check.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_login
from modules.cart.service import cart_service
from modules.inventory.reconciler import StockReconciler, drop_gate, get_gate, invalidate_gate, release_gate
from modules.inventory.service import InventoryLookup, get_inventory_lookup
from modules.pricing.calculator import PricingContext, ShippingMethod

router = APIRouter(tags=["cart"])


class AddItemRequest(BaseModel):
    shoe_id: int
    size: float = Field(..., gt=0)
    color: Optional[str] = None
    quantity: int = Field(1, ge=1)


class UpdateQuantityRequest(BaseModel):
    quantity: int = Field(..., ge=0)


# ==========================================
# 🛒 View Cart
# ==========================================

@router.get("/api/cart")
async def view_cart(
    shipping_method: ShippingMethod = Query(ShippingMethod.STANDARD),
    db: Session = Depends(get_db),
    user_id: str = Depends(require_login),
):
    """Cart lines, applied coupon and cart-page totals (threshold-based free shipping)."""
    return cart_service.get_summary(db, user_id, shipping_method, PricingContext.CART)


# ==========================================
# ➕➖ Update Cart
# ==========================================

@router.post("/api/cart/items", status_code=201)
async def add_cart_item(
    body: AddItemRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(require_login),
):
    session = cart_service.add_item(db, user_id, body.shoe_id, str(body.size), body.color, body.quantity)
    db.commit()
    invalidate_gate(user_id, session.revision)
    return cart_service.session_to_dict(session)


@router.patch("/api/cart/items/{line_id}")
async def update_cart_item(
    line_id: str,
    body: UpdateQuantityRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(require_login),
):
    session = cart_service.update_quantity(db, user_id, line_id, body.quantity)
    db.commit()
    invalidate_gate(user_id, session.revision)
    return cart_service.session_to_dict(session)


@router.delete("/api/cart/items/{line_id}")
async def remove_cart_item(
    line_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(require_login),
):
    session = cart_service.remove_item(db, user_id, line_id)
    db.commit()
    invalidate_gate(user_id, session.revision)
    return cart_service.session_to_dict(session)


@router.delete("/api/cart")
async def clear_cart(
    db: Session = Depends(get_db),
    user_id: str = Depends(require_login),
):
    session = cart_service.clear_cart(db, user_id)
    db.commit()
    drop_gate(user_id)
    return cart_service.session_to_dict(session)


# ==========================================
# 🧾 Checkout
# ==========================================

@router.get("/api/checkout/quote")
async def checkout_quote(
    shipping_method: ShippingMethod = Query(ShippingMethod.STANDARD),
    db: Session = Depends(get_db),
    user_id: str = Depends(require_login),
):
    """Totals as shown on the checkout and payment steps."""
    return cart_service.get_summary(db, user_id, shipping_method, PricingContext.CHECKOUT)


@router.post("/api/checkout/stock-check")
async def stock_check(
    db: Session = Depends(get_db),
    user_id: str = Depends(require_login),
    lookup: InventoryLookup = Depends(get_inventory_lookup),
):
    """Reconcile every cart line against live stock. Re-run after any cart change."""
    session = cart_service.get_session(db, user_id)
    gate = get_gate(user_id, StockReconciler(lookup))
    try:
        result = await gate.check(session)
    finally:
        release_gate(user_id, gate)
    return result.to_dict()
