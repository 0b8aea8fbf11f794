"""
KickVault - Application Entry Point
=====================================
FastAPI app initialization, middleware, and router registration.
"""

import logging
import time as _time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config import settings
from config.database import Base, engine
from common.exceptions import KickVaultError

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
request_logger = logging.getLogger("kickvault.request")


# ==========================================
# Import ALL models so Alembic/Base can see them
# ==========================================
from modules.catalog.models import Shoe  # noqa: F401
from modules.inventory.models import ShoeSize  # noqa: F401
from modules.cart.models import Cart, CartItem  # noqa: F401
from modules.coupon.models import Coupon  # noqa: F401
from modules.order.models import Order, OrderItem  # noqa: F401

# ==========================================
# Import routers
# ==========================================
from modules.cart.routes import router as cart_router
from modules.coupon.routes import router as coupon_api_router
from modules.coupon.admin_routes import router as coupon_admin_router
from modules.inventory.admin_routes import router as inventory_admin_router
from modules.order.routes import router as order_router
from modules.order.admin_routes import router as order_admin_router


@asynccontextmanager
async def lifespan(app):
    # Auto-create any missing tables (safe for existing tables)
    Base.metadata.create_all(bind=engine)
    yield


# ==========================================
# Create App
# ==========================================
app = FastAPI(
    title="KickVault",
    description="Sneaker storefront: cart pricing, coupons and checkout stock checks",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
    lifespan=lifespan,
)


# ==========================================
# Exception handler: business errors → JSON
# ==========================================
async def kickvault_exception_handler(request: Request, exc: KickVaultError):
    body = {"detail": exc.message, "code": exc.code}
    reason = getattr(exc, "reason", None)
    if reason is not None:
        body["reason"] = reason.value
    issues = getattr(exc, "issues", None)
    if issues:
        body["issues"] = issues
    return JSONResponse(body, status_code=exc.status_code)


app.add_exception_handler(KickVaultError, kickvault_exception_handler)


# ==========================================
# Middleware: No-Cache for Admin API
# ==========================================
_NO_CACHE_PREFIXES = ("/admin/", "/api/checkout/")

@app.middleware("http")
async def no_cache_admin(request: Request, call_next):
    """Stock levels and totals must never be served from a browser cache."""
    response = await call_next(request)
    if any(request.url.path.startswith(p) for p in _NO_CACHE_PREFIXES):
        response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
        response.headers["Pragma"] = "no-cache"
    return response


# ==========================================
# Middleware: Request Log
# ==========================================
_SKIP_PATHS = ("/health", "/favicon.ico")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    path = request.url.path
    if any(path.startswith(p) for p in _SKIP_PATHS):
        return await call_next(request)

    start = _time.time()
    response = await call_next(request)
    elapsed_ms = int((_time.time() - start) * 1000)
    request_logger.info(f"{request.method} {path} → {response.status_code} ({elapsed_ms}ms)")
    return response


# ==========================================
# Register Routers
# ==========================================
app.include_router(cart_router)
app.include_router(coupon_api_router)
app.include_router(coupon_admin_router)
app.include_router(inventory_admin_router)
app.include_router(order_router)
app.include_router(order_admin_router)


# ==========================================
# Health check
# ==========================================
@app.get("/health")
async def health():
    return {"status": "ok", "version": "1.0.0"}
