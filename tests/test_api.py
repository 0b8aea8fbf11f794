from datetime import timedelta

from common.helpers import now_utc
from common.security import create_token
from modules.inventory import reconciler
from modules.inventory.service import inventory_service

SHIPPING = {
    "email": "ada@example.com", "first_name": "Ada", "last_name": "Lovelace",
    "address": "12 Analytical St", "city": "London", "postal_code": "N1 9GU",
    "phone": "+44 20 7946 0000",
}


def add(client, headers, shoe_id, size=9, quantity=1, color=None):
    body = {"shoe_id": shoe_id, "size": size, "quantity": quantity}
    if color:
        body["color"] = color
    return client.post("/api/cart/items", json=body, headers=headers)


# ==========================================
# Auth
# ==========================================

def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


def test_cart_requires_token(client):
    r = client.get("/api/cart")
    assert r.status_code == 401
    assert r.json()["code"] == "authentication_required"


def test_garbage_token_is_rejected(client):
    r = client.get("/api/cart", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


def test_expired_token_is_rejected(client):
    token = create_token("customer-1", expires_minutes=-5)
    r = client.get("/api/cart", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


def test_admin_routes_need_admin_role(client, customer_headers, admin_headers):
    assert client.get("/admin/api/coupons").status_code == 401
    assert client.get("/admin/api/coupons", headers=customer_headers).status_code == 403
    assert client.get("/admin/api/coupons", headers=admin_headers).status_code == 200


# ==========================================
# Cart
# ==========================================

def test_cart_flow(client, customer_headers, make_shoe):
    shoe = make_shoe(price="100.00", stock={"9": 5})

    r = add(client, customer_headers, shoe.id, quantity=1)
    assert r.status_code == 201
    r = add(client, customer_headers, shoe.id, quantity=1)
    cart = r.json()
    assert len(cart["items"]) == 1
    assert cart["items"][0]["quantity"] == 2
    assert cart["revision"] == 2

    cart = client.get("/api/cart", headers=customer_headers).json()
    assert cart["totals"]["subtotal"] == "200.00"
    assert cart["totals"]["shipping_cost"] == "0.00"
    assert cart["totals"]["total"] == "200.00"

    line_id = cart["items"][0]["id"]
    cart = client.patch(f"/api/cart/items/{line_id}", json={"quantity": 1}, headers=customer_headers).json()
    assert cart["totals"]["shipping_cost"] == "15.00"

    cart = client.delete(f"/api/cart/items/{line_id}", headers=customer_headers).json()
    assert cart["items"] == []


def test_carts_are_per_user(client, customer_headers, make_shoe):
    shoe = make_shoe()
    add(client, customer_headers, shoe.id)
    other = {"Authorization": f"Bearer {create_token('customer-2')}"}
    assert client.get("/api/cart", headers=other).json()["items"] == []


def test_update_unknown_line_is_404(client, customer_headers):
    r = client.patch("/api/cart/items/12345", json={"quantity": 1}, headers=customer_headers)
    assert r.status_code == 404


def test_zero_quantity_add_is_rejected(client, customer_headers, make_shoe):
    shoe = make_shoe()
    assert add(client, customer_headers, shoe.id, quantity=0).status_code == 422


# ==========================================
# Coupons
# ==========================================

def test_apply_and_remove_coupon(client, customer_headers, make_shoe, make_coupon):
    shoe = make_shoe(price="100.00")
    make_coupon(code="SAVE20", discount_value="20")
    add(client, customer_headers, shoe.id)

    check = client.get("/api/coupon/check", params={"code": "save20"}, headers=customer_headers).json()
    assert check["valid"] is True
    assert check["discount_amount"] == "20.00"

    cart = client.post("/api/coupon/apply", json={"code": "save20"}, headers=customer_headers).json()
    assert cart["coupon"]["code"] == "SAVE20"
    quote = client.get(
        "/api/checkout/quote", params={"shipping_method": "express"}, headers=customer_headers,
    ).json()
    assert quote["totals"]["discount_amount"] == "20.00"
    assert quote["totals"]["shipping_cost"] == "15.00"
    assert quote["totals"]["total"] == "95.00"

    cart = client.delete("/api/coupon", headers=customer_headers).json()
    assert cart["coupon"] is None


def test_expired_coupon_is_rejected_and_cart_unchanged(client, customer_headers, make_shoe, make_coupon):
    shoe = make_shoe()
    make_coupon(code="OLD", expires_at=now_utc() - timedelta(days=1))
    before = add(client, customer_headers, shoe.id).json()

    r = client.post("/api/coupon/apply", json={"code": "OLD"}, headers=customer_headers)
    assert r.status_code == 400
    assert r.json()["reason"] == "expired"
    assert r.json()["code"] == "coupon_expired"

    after = client.get("/api/cart", headers=customer_headers).json()
    assert after["coupon"] is None
    assert after["revision"] == before["revision"]


def test_checkout_quote_ships_standard_free(client, customer_headers, make_shoe):
    shoe = make_shoe(price="30.00")
    add(client, customer_headers, shoe.id)
    quote = client.get("/api/checkout/quote", headers=customer_headers).json()
    assert quote["context"] == "checkout"
    assert quote["totals"]["shipping_cost"] == "0.00"
    assert quote["totals"]["total"] == "30.00"


# ==========================================
# Stock check & orders
# ==========================================

def test_stock_check_reports_shortages(client, customer_headers, make_shoe):
    short = make_shoe(name="Court Classic", stock={"9": 2})
    gone = make_shoe(name="Retro High", stock={"10": 0})
    fine = make_shoe(name="Slip-On", stock={"8": 1})
    add(client, customer_headers, short.id, size=9, quantity=5)
    add(client, customer_headers, gone.id, size=10, quantity=3)
    cart = add(client, customer_headers, fine.id, size=8, quantity=1).json()
    ids = {item["shoe_id"]: item["id"] for item in cart["items"]}

    result = client.post("/api/checkout/stock-check", headers=customer_headers).json()
    assert result["complete"] is True
    assert result["can_proceed"] is False
    assert result["issues"][ids[short.id]]["type"] == "insufficient"
    assert result["issues"][ids[short.id]]["available"] == 2
    assert result["issues"][ids[gone.id]]["type"] == "sold_out"
    assert ids[fine.id] not in result["issues"]


def test_abandoned_checkouts_leave_no_gates(client, make_shoe):
    shoe = make_shoe(stock={"9": 100})
    for i in range(50):
        headers = {"Authorization": f"Bearer {create_token(f'shopper-{i}')}"}
        add(client, headers, shoe.id)
        assert client.post("/api/checkout/stock-check", headers=headers).json()["can_proceed"] is True
        if i % 2:
            client.delete("/api/cart", headers=headers)
    assert len(reconciler._gates) == 0


def test_colour_variants_share_size_stock(client, customer_headers, make_shoe):
    shoe = make_shoe(stock={"9": 3})
    add(client, customer_headers, shoe.id, quantity=2, color="Red")
    add(client, customer_headers, shoe.id, quantity=2, color="Blue")

    result = client.post("/api/checkout/stock-check", headers=customer_headers).json()
    assert result["can_proceed"] is False
    assert len(result["issues"]) == 2
    for issue in result["issues"].values():
        assert issue["type"] == "insufficient"
        assert issue["available"] == 3
        assert issue["combined_requested"] == 4

    r = client.post("/api/orders", json=SHIPPING, headers=customer_headers)
    assert r.status_code == 409
    assert r.json()["code"] == "checkout_blocked"


def test_place_order(client, customer_headers, make_shoe, make_coupon, db):
    shoe = make_shoe(price="100.00", stock={"9": 3})
    make_coupon(code="SAVE20", discount_value="20")
    add(client, customer_headers, shoe.id, quantity=2)
    client.post("/api/coupon/apply", json={"code": "SAVE20"}, headers=customer_headers)

    r = client.post("/api/orders", json=dict(SHIPPING, shipping_method="express"), headers=customer_headers)
    assert r.status_code == 201
    order = r.json()
    assert order["subtotal"] == "200.00"
    assert order["discount_amount"] == "40.00"
    assert order["total"] == "175.00"
    assert order["status"] == "pending"

    assert inventory_service.lookup(db, shoe.id, "9") == 1
    assert client.get("/api/cart", headers=customer_headers).json()["items"] == []

    history = client.get("/api/orders", headers=customer_headers).json()["orders"]
    assert [o["id"] for o in history] == [order["id"]]
    detail = client.get(f"/api/orders/{order['id']}", headers=customer_headers).json()
    assert detail["items"][0]["quantity"] == 2

    other = {"Authorization": f"Bearer {create_token('customer-2')}"}
    assert client.get(f"/api/orders/{order['id']}", headers=other).status_code == 404


def test_order_blocked_by_stock(client, customer_headers, make_shoe):
    shoe = make_shoe(stock={"9": 1})
    add(client, customer_headers, shoe.id, quantity=2)

    r = client.post("/api/orders", json=SHIPPING, headers=customer_headers)
    assert r.status_code == 409
    body = r.json()
    assert body["code"] == "checkout_blocked"
    assert list(body["issues"].values())[0]["type"] == "insufficient"
    assert len(client.get("/api/cart", headers=customer_headers).json()["items"]) == 1


def test_order_with_empty_cart(client, customer_headers):
    r = client.post("/api/orders", json=SHIPPING, headers=customer_headers)
    assert r.status_code == 400


# ==========================================
# Admin
# ==========================================

def test_admin_coupon_crud(client, admin_headers):
    r = client.post("/admin/api/coupons", json={
        "code": "fall15", "name": "Fall sale", "discount_type": "percentage", "discount_value": "15",
    }, headers=admin_headers)
    assert r.status_code == 201
    coupon = r.json()
    assert coupon["code"] == "FALL15"

    r = client.post("/admin/api/coupons", json={"code": "FALL15", "discount_value": "5"}, headers=admin_headers)
    assert r.status_code == 409

    r = client.post("/admin/api/coupons", json={
        "code": "HUGE", "discount_type": "percentage", "discount_value": "150",
    }, headers=admin_headers)
    assert r.status_code == 422

    updated = client.patch(
        f"/admin/api/coupons/{coupon['id']}", json={"usage_limit_total": 50}, headers=admin_headers,
    ).json()
    assert updated["usage_limit_total"] == 50

    toggled = client.post(f"/admin/api/coupons/{coupon['id']}/toggle", headers=admin_headers).json()
    assert toggled["is_active"] is False

    listing = client.get("/admin/api/coupons", headers=admin_headers).json()
    assert listing["total"] == 1
    assert listing["stats"]["active_coupons"] == 0

    assert client.delete(f"/admin/api/coupons/{coupon['id']}", headers=admin_headers).json() == {"deleted": True}
    assert client.get(f"/admin/api/coupons/{coupon['id']}", headers=admin_headers).status_code == 404


def test_admin_stock_update(client, admin_headers, make_shoe):
    shoe = make_shoe(stock={"9": 1})
    r = client.put(f"/admin/api/inventory/{shoe.id}", json={"size": 9.5, "quantity": 4}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["total"] == 5

    r = client.put(f"/admin/api/inventory/{shoe.id}", json={"size": 9, "quantity": -1}, headers=admin_headers)
    assert r.status_code == 422


def test_admin_order_status(client, customer_headers, admin_headers, make_shoe):
    shoe = make_shoe(stock={"9": 2})
    add(client, customer_headers, shoe.id)
    order = client.post("/api/orders", json=SHIPPING, headers=customer_headers).json()

    listing = client.get("/admin/api/orders", params={"status": "pending"}, headers=admin_headers).json()
    assert listing["total"] == 1

    r = client.patch(f"/admin/api/orders/{order['id']}/status", json={"status": "processing"}, headers=admin_headers)
    assert r.json()["status"] == "processing"

    r = client.patch(f"/admin/api/orders/{order['id']}/status", json={"status": "delivered"}, headers=admin_headers)
    assert r.status_code == 400
