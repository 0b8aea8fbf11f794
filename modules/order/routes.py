"""
Order Routes - Customer Facing
=================================
Place an order from the cart (after a final stock check) and view order history.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from common.exceptions import CheckoutBlockedError
from modules.auth.deps import require_login
from modules.cart.service import cart_service
from modules.inventory.reconciler import StockReconciler, drop_gate, get_gate, release_gate
from modules.inventory.service import InventoryLookup, get_inventory_lookup
from modules.order.models import PaymentMethod
from modules.order.service import order_service
from modules.pricing.calculator import ShippingMethod

router = APIRouter(prefix="/api/orders", tags=["order"])


class PlaceOrderRequest(BaseModel):
    email: str = Field(..., min_length=3)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    apartment: Optional[str] = None
    city: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    email_newsletter: bool = False
    shipping_method: ShippingMethod = ShippingMethod.STANDARD
    payment_method: PaymentMethod = PaymentMethod.CARD


@router.post("", status_code=201)
async def place_order(
    body: PlaceOrderRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(require_login),
    lookup: InventoryLookup = Depends(get_inventory_lookup),
):
    """Re-check stock for the current cart, then turn it into an order."""
    session = cart_service.get_session(db, user_id)
    if not session.is_empty:
        gate = get_gate(user_id, StockReconciler(lookup))
        try:
            result = await gate.check(session)
        finally:
            release_gate(user_id, gate)
        if not result.can_proceed:
            raise CheckoutBlockedError(issues=result.to_dict()["issues"])

    shipping_info = body.model_dump(exclude={"payment_method"})
    try:
        order = order_service.place_order(db, user_id, shipping_info, body.payment_method.value)
        db.commit()
    except Exception:
        db.rollback()
        raise

    drop_gate(user_id)
    db.refresh(order)
    return order.to_dict()


@router.get("")
async def my_orders(
    db: Session = Depends(get_db),
    user_id: str = Depends(require_login),
):
    orders = order_service.list_orders(db, user_id)
    return {"orders": [o.to_dict(with_items=False) for o in orders]}


@router.get("/{order_id}")
async def order_detail(
    order_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(require_login),
):
    return order_service.get_order(db, order_id, user_id=user_id).to_dict()
