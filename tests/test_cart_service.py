from datetime import timedelta
from decimal import Decimal

import pytest

from common.exceptions import InsufficientInventoryError, KickVaultError, NotFoundError
from common.helpers import now_utc
from modules.cart.service import cart_service
from modules.coupon.service import CouponExpired, coupon_service
from modules.inventory.service import inventory_service
from modules.order.service import order_service
from modules.pricing.calculator import PricingContext, ShippingMethod

USER = "customer-1"

SHIPPING = {
    "email": "ada@example.com", "first_name": "Ada", "last_name": "Lovelace",
    "address": "12 Analytical St", "city": "London", "postal_code": "N1 9GU",
    "phone": "+44 20 7946 0000", "shipping_method": "standard",
}


def test_add_and_merge_persist(db, make_shoe):
    shoe = make_shoe(price="89.00", stock={"9": 5})
    cart_service.add_item(db, USER, shoe.id, "9", None, 1)
    session = cart_service.add_item(db, USER, shoe.id, "9.0", None, 2)
    db.commit()

    reloaded = cart_service.get_session(db, USER)
    assert len(reloaded.lines) == 1
    assert reloaded.lines[0].quantity == 3
    assert reloaded.subtotal == Decimal("267.00")
    assert reloaded.revision == session.revision == 2


def test_price_is_captured_when_added(db, make_shoe):
    shoe = make_shoe(price="100.00")
    cart_service.add_item(db, USER, shoe.id, "10")
    shoe.price = Decimal("150.00")
    db.commit()
    assert cart_service.get_session(db, USER).lines[0].unit_price == Decimal("100.00")


def test_update_quantity_and_remove(db, make_shoe):
    shoe = make_shoe()
    session = cart_service.add_item(db, USER, shoe.id, "9")
    line_id = session.lines[0].line_id

    session = cart_service.update_quantity(db, USER, line_id, 4)
    assert session.lines[0].quantity == 4

    session = cart_service.update_quantity(db, USER, line_id, 0)
    assert session.is_empty

    with pytest.raises(NotFoundError):
        cart_service.remove_item(db, USER, line_id)


def test_unknown_shoe(db):
    with pytest.raises(NotFoundError):
        cart_service.add_item(db, USER, 999, "9")


def test_apply_coupon_on_empty_cart_is_refused(db, make_coupon):
    make_coupon()
    with pytest.raises(KickVaultError):
        cart_service.apply_coupon(db, USER, "SAVE20")


def test_rejected_coupon_leaves_cart_unchanged(db, make_shoe, make_coupon):
    shoe = make_shoe()
    make_coupon(code="OLD", expires_at=now_utc() - timedelta(days=1))
    before = cart_service.add_item(db, USER, shoe.id, "9")
    with pytest.raises(CouponExpired):
        cart_service.apply_coupon(db, USER, "old")
    after = cart_service.get_session(db, USER)
    assert after == before


def test_clear_cart_drops_coupon(db, make_shoe, make_coupon):
    shoe = make_shoe()
    make_coupon()
    cart_service.add_item(db, USER, shoe.id, "9")
    session = cart_service.apply_coupon(db, USER, "save20")
    assert session.coupon.code == "SAVE20"

    cleared = cart_service.clear_cart(db, USER)
    assert cleared.is_empty and cleared.coupon is None
    assert cart_service.get_session(db, USER).coupon is None


def test_summary_contexts(db, make_shoe):
    shoe = make_shoe(price="100.00")
    cart_service.add_item(db, USER, shoe.id, "9")
    cart = cart_service.get_summary(db, USER, ShippingMethod.STANDARD, PricingContext.CART)
    checkout = cart_service.get_summary(db, USER, ShippingMethod.STANDARD, PricingContext.CHECKOUT)
    assert cart["totals"]["shipping_cost"] == "15.00"
    assert checkout["totals"]["shipping_cost"] == "0.00"
    assert cart["items"][0]["size"] == "9"


# ==========================================
# Order placement
# ==========================================

def test_place_order_consumes_stock_coupon_and_cart(db, make_shoe, make_coupon):
    shoe = make_shoe(price="100.00", stock={"9": 3})
    make_coupon(usage_limit_total=10)
    cart_service.add_item(db, USER, shoe.id, "9", None, 2)
    cart_service.apply_coupon(db, USER, "SAVE20")

    order = order_service.place_order(db, USER, dict(SHIPPING, shipping_method="express"), "card")
    db.commit()

    assert order.subtotal == Decimal("200")
    assert order.discount_amount == Decimal("40")
    assert order.shipping_cost == Decimal("15")
    assert order.total == Decimal("175")
    assert order.discount_code == "SAVE20"
    assert [i.quantity for i in order.items] == [2]

    assert inventory_service.lookup(db, shoe.id, "9") == 1
    assert coupon_service.find_by_code(db, "SAVE20").times_used == 1
    assert cart_service.get_session(db, USER).is_empty


def test_stored_order_amounts_add_up(db, make_shoe, make_coupon):
    shoe = make_shoe(price="33.32", stock={"9": 3})
    make_coupon(code="EIGHTTH", discount_value="12.5")
    cart_service.add_item(db, USER, shoe.id, "9")
    cart_service.apply_coupon(db, USER, "EIGHTTH")

    order = order_service.place_order(db, USER, SHIPPING, "card")
    db.commit()
    db.refresh(order)

    assert order.discount_amount == Decimal("4.17")
    assert order.total == Decimal("29.15")
    assert order.subtotal + order.shipping_cost - order.discount_amount == order.total


def test_place_order_without_stock_fails(db, make_shoe):
    shoe = make_shoe(stock={"9": 1})
    cart_service.add_item(db, USER, shoe.id, "9", None, 2)
    with pytest.raises(InsufficientInventoryError) as exc:
        order_service.place_order(db, USER, SHIPPING, "cod")
    assert exc.value.available == 1


@pytest.mark.parametrize("info, payment", [
    (dict(SHIPPING, city=""), "card"),
    (SHIPPING, "crypto"),
    (dict(SHIPPING, shipping_method="drone"), "card"),
])
def test_place_order_validates_input(db, make_shoe, info, payment):
    shoe = make_shoe(stock={"9": 5})
    cart_service.add_item(db, USER, shoe.id, "9")
    with pytest.raises(KickVaultError):
        order_service.place_order(db, USER, info, payment)


def test_empty_cart_cannot_be_ordered(db):
    with pytest.raises(KickVaultError):
        order_service.place_order(db, USER, SHIPPING, "card")


def test_status_transitions(db, make_shoe):
    shoe = make_shoe(stock={"9": 5})
    cart_service.add_item(db, USER, shoe.id, "9")
    order = order_service.place_order(db, USER, SHIPPING, "card")
    order_service.update_status(db, order.id, "processing")
    order_service.update_status(db, order.id, "shipped")
    with pytest.raises(KickVaultError):
        order_service.update_status(db, order.id, "cancelled")
    assert order_service.update_status(db, order.id, "delivered").status == "delivered"
