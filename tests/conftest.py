"""
KickVault - Test Fixtures
===========================
In-memory SQLite shared by the service layer and the FastAPI app.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config.database import Base, get_db
from common.helpers import now_utc
from common.security import create_token
from main import app
from modules.catalog.models import Shoe
from modules.coupon.models import Coupon, DiscountType
from modules.inventory import reconciler
from modules.inventory.service import SessionInventoryLookup, get_inventory_lookup, inventory_service


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def clear_gates():
    reconciler._gates.clear()
    yield
    reconciler._gates.clear()


@pytest.fixture
def client(db):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_inventory_lookup] = lambda: SessionInventoryLookup(db)
    yield TestClient(app)
    app.dependency_overrides.clear()


# ==========================================
# Auth headers
# ==========================================

@pytest.fixture
def customer_headers():
    return {"Authorization": f"Bearer {create_token('customer-1')}"}


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {create_token('admin-1', role='admin')}"}


# ==========================================
# Data builders
# ==========================================

@pytest.fixture
def make_shoe(db):
    def _make(name="Air Runner 90", price="100.00", stock=None, brand="Nike"):
        shoe = Shoe(name=name, brand=brand, price=Decimal(price))
        db.add(shoe)
        db.flush()
        for size, qty in (stock or {}).items():
            inventory_service.set_stock(db, shoe.id, size, qty)
        db.commit()
        return shoe
    return _make


@pytest.fixture
def make_coupon(db):
    def _make(code="SAVE20", discount_type=DiscountType.PERCENTAGE, discount_value="20", **fields):
        fields.setdefault("starts_at", now_utc() - timedelta(days=30))
        coupon = Coupon(
            code=code,
            discount_type=DiscountType(discount_type).value,
            discount_value=Decimal(discount_value),
            times_used=fields.pop("times_used", 0),
            is_active=fields.pop("is_active", True),
            **fields,
        )
        db.add(coupon)
        db.commit()
        return coupon
    return _make
