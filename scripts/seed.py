"""
KickVault - Database Seeder
=============================
Seeds the catalog, per-size stock, and sample coupons for local testing.

Usage:
    python scripts/seed.py          # Seed (idempotent)
    python scripts/seed.py --reset  # Drop all data and reseed

Also prints a customer and an admin bearer token for trying the API.
"""

import sys
import os
from datetime import timedelta
from decimal import Decimal

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.database import SessionLocal, Base, engine
from common.helpers import now_utc
from common.security import create_token
from modules.catalog.models import Shoe
from modules.inventory.models import ShoeSize  # noqa: F401
from modules.cart.models import Cart, CartItem  # noqa: F401
from modules.coupon.models import Coupon, DiscountType
from modules.order.models import Order, OrderItem  # noqa: F401
from modules.inventory.service import inventory_service


SHOES = [
    {
        "name": "Air Runner 90", "brand": "Nike", "category": "running", "price": "129.99",
        "stock": {"8": 4, "9": 6, "9.5": 2, "10": 5, "11": 1},
    },
    {
        "name": "Court Classic Low", "brand": "Adidas", "category": "lifestyle", "price": "89.00",
        "stock": {"7": 3, "8": 3, "9": 0, "10": 2},
    },
    {
        "name": "Trail Blazer GTX", "brand": "Salomon", "category": "trail", "price": "164.50",
        "stock": {"9": 2, "10": 2, "11": 2, "12": 1},
    },
    {
        "name": "Retro High OG", "brand": "Jordan", "category": "basketball", "price": "190.00",
        "stock": {"8.5": 1, "9": 0, "10": 0},
    },
    {
        "name": "Canvas Slip-On", "brand": "Vans", "category": "skate", "price": "55.00",
        "stock": {"6": 8, "7": 8, "8": 8, "9": 8, "10": 8},
    },
]


def _coupons():
    now = now_utc()
    return [
        {"code": "WELCOME10", "name": "10% off your first pair",
         "discount_type": DiscountType.PERCENTAGE, "discount_value": Decimal("10"),
         "starts_at": now - timedelta(days=1), "expires_at": now + timedelta(days=90)},
        {"code": "SAVE20", "name": "20 off orders over 150",
         "discount_type": DiscountType.FIXED_AMOUNT, "discount_value": Decimal("20"),
         "min_spend_amount": Decimal("150"), "usage_limit_total": 100,
         "starts_at": now - timedelta(days=1), "expires_at": now + timedelta(days=30)},
        {"code": "SUMMER15", "name": "Summer sale (ended)",
         "discount_type": DiscountType.PERCENTAGE, "discount_value": Decimal("15"),
         "starts_at": now - timedelta(days=120), "expires_at": now - timedelta(days=30)},
        {"code": "LAUNCH25", "name": "Launch week (upcoming)",
         "discount_type": DiscountType.PERCENTAGE, "discount_value": Decimal("25"),
         "starts_at": now + timedelta(days=7), "expires_at": now + timedelta(days=14)},
        {"code": "STAFF50", "name": "Staff discount (disabled)",
         "discount_type": DiscountType.PERCENTAGE, "discount_value": Decimal("50"),
         "is_active": False, "starts_at": now - timedelta(days=1)},
    ]


def seed():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        print("=" * 50)
        print("  KickVault Seeder")
        print("=" * 50)

        # ==========================================
        # 1. Shoes + stock
        # ==========================================
        print("\n[1/2] Shoes")
        for data in SHOES:
            shoe = db.query(Shoe).filter(Shoe.name == data["name"]).first()
            if shoe:
                print(f"  = exists: {data['name']}")
                continue
            shoe = Shoe(
                name=data["name"], brand=data["brand"], category=data["category"],
                price=Decimal(data["price"]),
            )
            db.add(shoe)
            db.flush()
            for size, qty in data["stock"].items():
                inventory_service.set_stock(db, shoe.id, size, qty)
            print(f"  + #{shoe.id} {data['brand']} {data['name']} ({len(data['stock'])} sizes)")

        # ==========================================
        # 2. Coupons
        # ==========================================
        print("\n[2/2] Coupons")
        for cd in _coupons():
            if db.query(Coupon).filter(Coupon.code == cd["code"]).first():
                print(f"  = exists: {cd['code']}")
                continue
            db.add(Coupon(**cd))
            print(f"  + {cd['code']}: {cd['name']}")

        db.commit()

        print("\n--- Tokens (valid for 24h) ---")
        print(f"  customer: {create_token('demo-customer', expires_minutes=24 * 60)}")
        print(f"  admin   : {create_token('demo-admin', role='admin', expires_minutes=24 * 60)}")
    except Exception as e:
        db.rollback()
        print(f"\nSeed failed: {e}")
        raise
    finally:
        db.close()


def reset_and_seed():
    """Drop all tables and recreate + seed."""
    Base.metadata.drop_all(bind=engine)
    print("All tables dropped")
    seed()


if __name__ == "__main__":
    if "--reset" in sys.argv:
        confirm = input("This will DELETE ALL DATA. Type 'yes' to confirm: ")
        if confirm.strip().lower() == "yes":
            reset_and_seed()
        else:
            print("Aborted.")
    else:
        seed()
