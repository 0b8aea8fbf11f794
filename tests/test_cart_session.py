from decimal import Decimal

import pytest

from modules.cart.session import AppliedCoupon, CartLine, CartSession, cart_controller
from modules.coupon.models import DiscountType


def make_line(product_id=1, size="9.5", qty=1, color=None, price="100"):
    return CartLine(product_id=product_id, name="Air Runner 90", unit_price=Decimal(price),
                    size=Decimal(size), quantity=qty, color=color)


def test_new_line_gets_variant_key_and_default_color():
    line = make_line(size="10")
    assert line.color == "Default"
    assert line.line_id == "1:10:Default"


def test_adding_same_variant_merges_quantities():
    session = cart_controller.add_line(CartSession(), make_line(qty=1))
    session = cart_controller.add_line(session, make_line(qty=2))
    assert len(session.lines) == 1
    assert session.lines[0].quantity == 3
    assert session.revision == 2


def test_different_size_or_color_is_a_separate_line():
    session = CartSession()
    session = cart_controller.add_line(session, make_line(size="9"))
    session = cart_controller.add_line(session, make_line(size="9.5"))
    session = cart_controller.add_line(session, make_line(size="9.5", color="Black"))
    assert len(session.lines) == 3
    assert session.item_count == 3
    assert session.subtotal == Decimal("300")


def test_mutations_leave_the_previous_session_untouched():
    before = cart_controller.add_line(CartSession(), make_line())
    after = cart_controller.update_quantity(before, before.lines[0].line_id, 4)
    assert before.lines[0].quantity == 1
    assert after.lines[0].quantity == 4
    assert after.revision == before.revision + 1


def test_update_to_zero_removes_line():
    session = cart_controller.add_line(CartSession(), make_line())
    session = cart_controller.update_quantity(session, session.lines[0].line_id, 0)
    assert session.is_empty


def test_negative_quantity_is_rejected():
    session = cart_controller.add_line(CartSession(), make_line())
    with pytest.raises(ValueError):
        cart_controller.update_quantity(session, session.lines[0].line_id, -1)


def test_unknown_line_is_rejected():
    with pytest.raises(KeyError):
        cart_controller.update_quantity(CartSession(), "nope", 1)


def test_clear_drops_coupon_too():
    coupon = AppliedCoupon(code="save20", discount_type="percentage", discount_value="20")
    session = cart_controller.add_line(CartSession(), make_line())
    session = cart_controller.apply_coupon(session, coupon)
    assert session.coupon.code == "SAVE20"
    assert session.coupon.discount_type == DiscountType.PERCENTAGE

    cleared = cart_controller.clear(session)
    assert cleared.is_empty
    assert cleared.coupon is None
    assert cleared.revision == session.revision + 1


def test_negative_price_is_rejected():
    with pytest.raises(ValueError):
        make_line(price="-1")
