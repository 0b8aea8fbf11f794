"""
Order Module - Service Layer
===============================
Order placement, order history, and admin status updates.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session, joinedload
from sqlalchemy import desc

from common.exceptions import KickVaultError, NotFoundError
from modules.cart.service import cart_service
from modules.cart.session import cart_controller
from modules.coupon.service import coupon_service
from modules.inventory.service import inventory_service
from modules.order.models import Order, OrderItem, OrderStatus, PaymentMethod
from modules.pricing.calculator import PricingContext, ShippingMethod, price_session

logger = logging.getLogger("kickvault.order")

_SHIPPING_FIELDS = ("email", "first_name", "last_name", "address", "city", "postal_code", "phone")

# Allowed admin transitions
_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}


class OrderService:

    # ==========================================
    # Place order
    # ==========================================

    def place_order(self, db: Session, user_id: str, shipping_info: dict, payment_method: str) -> Order:
        """
        Turn the user's cart into an order, in one transaction:
        1. Price the cart in checkout context
        2. Re-validate the applied coupon (it may have expired or run out)
        3. Lock and decrement stock for every line
        4. Count one coupon use
        5. Persist order + items with the totals rounded to cents (total rebuilt from the parts)
        6. Clear cart and coupon

        Raises KickVaultError subclasses; the caller rolls back.
        """
        try:
            payment_method = PaymentMethod(payment_method).value
        except ValueError:
            raise KickVaultError("Payment method must be 'card' or 'cod'")
        missing = [f for f in _SHIPPING_FIELDS if not str(shipping_info.get(f) or "").strip()]
        if missing:
            raise KickVaultError(f"Missing shipping information: {', '.join(missing)}")
        try:
            shipping_method = ShippingMethod(shipping_info.get("shipping_method", ShippingMethod.STANDARD))
        except ValueError:
            raise KickVaultError("Shipping method must be 'standard' or 'express'")

        session = cart_service.get_session(db, user_id)
        if session.is_empty:
            raise KickVaultError("Your cart is empty")

        if session.coupon:
            applied = coupon_service.validate(db, session.coupon.code, session.subtotal)
            session = cart_controller.apply_coupon(session, applied)

        pricing = price_session(session, shipping_method, PricingContext.CHECKOUT).rounded()

        for line in session.lines:
            inventory_service.decrement(db, line.product_id, line.size, line.quantity, line.name)

        if pricing.discount_code:
            coupon_service.increment_usage(db, pricing.discount_code)

        order = Order(
            user_id=user_id,
            status=OrderStatus.PENDING.value,
            payment_method=payment_method,
            subtotal=pricing.subtotal,
            shipping_cost=pricing.shipping_cost,
            discount_amount=pricing.discount_amount,
            discount_code=pricing.discount_code,
            total=pricing.total,
            shipping_method=shipping_method.value,
            email=shipping_info["email"],
            first_name=shipping_info["first_name"],
            last_name=shipping_info["last_name"],
            address=shipping_info["address"],
            apartment=shipping_info.get("apartment") or None,
            city=shipping_info["city"],
            postal_code=shipping_info["postal_code"],
            phone=shipping_info["phone"],
            email_newsletter=bool(shipping_info.get("email_newsletter")),
        )
        for line in session.lines:
            order.items.append(OrderItem(
                shoe_id=line.product_id,
                name=line.name,
                brand=line.brand or None,
                size=line.size,
                color=line.color,
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_total=line.line_total,
            ))
        db.add(order)
        db.flush()

        cart_service.clear_cart(db, user_id)

        logger.info(
            f"Order #{order.id} placed by {user_id}: total={pricing.total} "
            f"(coupon={pricing.discount_code or '-'}, {payment_method})"
        )
        return order

    # ==========================================
    # History
    # ==========================================

    def list_orders(self, db: Session, user_id: str) -> List[Order]:
        return (
            db.query(Order)
            .options(joinedload(Order.items))
            .filter(Order.user_id == user_id)
            .order_by(desc(Order.created_at), desc(Order.id))
            .all()
        )

    def get_order(self, db: Session, order_id: int, user_id: Optional[str] = None) -> Order:
        q = db.query(Order).options(joinedload(Order.items)).filter(Order.id == order_id)
        if user_id is not None:
            q = q.filter(Order.user_id == user_id)
        order = q.first()
        if not order:
            raise NotFoundError("Order not found")
        return order

    # ==========================================
    # Admin
    # ==========================================

    def list_all_orders(
        self, db: Session, page: int = 1, per_page: int = 30, status: str = None,
    ) -> Tuple[List[Order], int]:
        q = db.query(Order)
        if status:
            q = q.filter(Order.status == status)
        total = q.count()
        orders = (
            q.order_by(desc(Order.created_at), desc(Order.id))
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return orders, total

    def update_status(self, db: Session, order_id: int, new_status: str) -> Order:
        order = self.get_order(db, order_id)
        try:
            target = OrderStatus(new_status)
        except ValueError:
            raise KickVaultError(f"Unknown order status: {new_status}")
        current = OrderStatus(order.status)
        if target not in _TRANSITIONS[current]:
            raise KickVaultError(f"Cannot move order from {current.value} to {target.value}")
        order.status = target.value
        db.flush()
        logger.info(f"Order #{order.id}: {current.value} → {target.value}")
        return order


# Singleton
order_service = OrderService()
