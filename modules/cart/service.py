"""
Cart Module - Service Layer
==============================
Cart persistence: load a CartSession from the DB, apply a CartController
mutation, and write the resulting session back.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from common.exceptions import KickVaultError, NotFoundError
from common.helpers import to_decimal
from modules.cart.models import Cart, CartItem
from modules.cart.session import CartLine, CartSession, AppliedCoupon, cart_controller
from modules.catalog.models import Shoe
from modules.coupon.service import coupon_service
from modules.pricing.calculator import PricingContext, ShippingMethod, price_session

logger = logging.getLogger("kickvault.cart")


class CartService:

    def get_or_create_cart(self, db: Session, user_id: str) -> Cart:
        """Get existing cart or create new one for user."""
        cart = (
            db.query(Cart)
            .options(joinedload(Cart.items).joinedload(CartItem.shoe))
            .filter(Cart.user_id == user_id)
            .first()
        )
        if not cart:
            cart = Cart(user_id=user_id, revision=0)
            db.add(cart)
            db.flush()
        return cart

    def get_session(self, db: Session, user_id: str) -> CartSession:
        cart = db.query(Cart).filter(Cart.user_id == user_id).first()
        if not cart:
            return CartSession()
        return self._to_session(cart)

    # ==========================================
    # Mutations
    # ==========================================

    def add_item(
        self, db: Session, user_id: str, shoe_id: int, size,
        color: Optional[str] = None, quantity: int = 1,
    ) -> CartSession:
        """Add a shoe variant; an identical (shoe, size, color) line has its quantity increased."""
        shoe = db.query(Shoe).filter(Shoe.id == shoe_id, Shoe.is_active == True).first()  # noqa: E712
        if not shoe:
            raise NotFoundError("Shoe not found")
        if quantity < 1:
            raise KickVaultError("Quantity must be at least 1")

        line = CartLine(
            product_id=shoe.id,
            name=shoe.name,
            brand=shoe.brand or "",
            unit_price=shoe.price,
            size=size,
            color=color,
            quantity=quantity,
            image=shoe.image_url,
            line_id="new",
        )
        cart = self.get_or_create_cart(db, user_id)
        new_session = cart_controller.add_line(self._to_session(cart), line)
        logger.info(f"Cart {user_id}: +{quantity} × {shoe.name} (size {line.size}, {line.color})")
        return self._persist(db, cart, new_session)

    def update_quantity(self, db: Session, user_id: str, line_id: str, quantity: int) -> CartSession:
        """Set quantity of a line; 0 removes it."""
        cart = self.get_or_create_cart(db, user_id)
        try:
            new_session = cart_controller.update_quantity(self._to_session(cart), str(line_id), quantity)
        except KeyError:
            raise NotFoundError("Cart item not found")
        except ValueError as e:
            raise KickVaultError(str(e))
        return self._persist(db, cart, new_session)

    def remove_item(self, db: Session, user_id: str, line_id: str) -> CartSession:
        cart = self.get_or_create_cart(db, user_id)
        session = self._to_session(cart)
        if session.find(str(line_id)) is None:
            raise NotFoundError("Cart item not found")
        return self._persist(db, cart, cart_controller.remove_line(session, str(line_id)))

    def clear_cart(self, db: Session, user_id: str) -> CartSession:
        """Remove all items and the applied coupon."""
        cart = self.get_or_create_cart(db, user_id)
        return self._persist(db, cart, cart_controller.clear(self._to_session(cart)))

    # ==========================================
    # Coupon
    # ==========================================

    def apply_coupon(self, db: Session, user_id: str, code: str) -> CartSession:
        """Validate against the current subtotal, then hold the coupon on the cart."""
        cart = self.get_or_create_cart(db, user_id)
        session = self._to_session(cart)
        if session.is_empty:
            raise KickVaultError("Your cart is empty")
        applied = coupon_service.validate(db, code, session.subtotal)
        logger.info(f"Cart {user_id}: coupon {applied.code} applied")
        return self._persist(db, cart, cart_controller.apply_coupon(session, applied))

    def remove_coupon(self, db: Session, user_id: str) -> CartSession:
        cart = self.get_or_create_cart(db, user_id)
        return self._persist(db, cart, cart_controller.remove_coupon(self._to_session(cart)))

    # ==========================================
    # Summary
    # ==========================================

    def get_summary(
        self, db: Session, user_id: str,
        shipping_method=ShippingMethod.STANDARD,
        context: PricingContext = PricingContext.CART,
    ) -> dict:
        session = self.get_session(db, user_id)
        return self.session_to_dict(session, shipping_method, context)

    def session_to_dict(self, session: CartSession, shipping_method=ShippingMethod.STANDARD,
                        context: PricingContext = PricingContext.CART) -> dict:
        pricing = price_session(session, shipping_method, context)
        return {
            "revision": session.revision,
            "item_count": session.item_count,
            "items": [
                {
                    "id": line.line_id,
                    "shoe_id": line.product_id,
                    "name": line.name,
                    "brand": line.brand,
                    "image": line.image,
                    "size": format(line.size.normalize(), "f"),
                    "color": line.color,
                    "quantity": line.quantity,
                    "unit_price": str(line.unit_price),
                    "line_total": str(line.line_total),
                }
                for line in session.lines
            ],
            "coupon": {
                "code": session.coupon.code,
                "type": session.coupon.discount_type.value,
                "value": str(session.coupon.discount_value),
            } if session.coupon else None,
            "shipping_method": ShippingMethod(shipping_method).value,
            "context": PricingContext(context).value,
            "totals": pricing.to_dict(),
        }

    # ==========================================
    # Private helpers
    # ==========================================

    def _to_session(self, cart: Cart) -> CartSession:
        lines = tuple(
            CartLine(
                product_id=item.shoe_id,
                name=item.shoe.name if item.shoe else "Unknown Shoe",
                brand=(item.shoe.brand if item.shoe else "") or "",
                unit_price=item.unit_price,
                size=item.size,
                color=item.color,
                quantity=item.quantity,
                image=item.shoe.image_url if item.shoe else None,
                line_id=str(item.id),
            )
            for item in cart.items
        )
        coupon = None
        if cart.coupon_code:
            coupon = AppliedCoupon(
                code=cart.coupon_code,
                discount_type=cart.coupon_type,
                discount_value=cart.coupon_value,
            )
        return CartSession(lines=lines, coupon=coupon, revision=cart.revision or 0)

    def _persist(self, db: Session, cart: Cart, session: CartSession) -> CartSession:
        """Write a session back onto the cart rows (insert / update / delete lines)."""
        rows = {str(item.id): item for item in cart.items}
        kept = set()
        for line in session.lines:
            row = rows.get(line.line_id)
            if row is not None:
                row.quantity = line.quantity
                kept.add(line.line_id)
            else:
                cart.items.append(CartItem(
                    shoe_id=line.product_id,
                    size=line.size,
                    color=line.color,
                    quantity=line.quantity,
                    unit_price=to_decimal(line.unit_price),
                ))
        for row_id, row in rows.items():
            if row_id not in kept:
                cart.items.remove(row)

        if session.coupon:
            cart.coupon_code = session.coupon.code
            cart.coupon_type = session.coupon.discount_type.value
            cart.coupon_value = session.coupon.discount_value
        else:
            cart.coupon_code = None
            cart.coupon_type = None
            cart.coupon_value = None
        cart.revision = session.revision
        db.flush()
        db.refresh(cart)
        return self._to_session(cart)


# Singleton
cart_service = CartService()
