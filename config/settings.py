"""
KickVault - Centralized Configuration
======================================
All environment variables and constants are loaded here.
No other module should call os.getenv() directly.
"""

import os
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()


# ==========================================
# 🗄️ Database
# ==========================================
DB_USER = os.getenv("DB_USER")
DB_PASSWORD = os.getenv("DB_PASSWORD")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME")

if os.getenv("DATABASE_URL"):
    DATABASE_URL = os.getenv("DATABASE_URL")
elif all([DB_USER, DB_PASSWORD, DB_NAME]):
    DATABASE_URL = f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
else:
    # Local development fallback
    DATABASE_URL = "sqlite:///./kickvault.db"


# ==========================================
# 🔐 Security (tokens are issued by the auth provider)
# ==========================================
AUTH_JWT_SECRET = os.getenv("AUTH_JWT_SECRET", "dev-only-secret-change-me")
ALGORITHM = os.getenv("AUTH_JWT_ALGORITHM", "HS256")
AUTH_JWT_AUDIENCE = os.getenv("AUTH_JWT_AUDIENCE", "authenticated")
ADMIN_ROLE = "admin"
ACCESS_TOKEN_EXPIRE_MINUTES = 60  # only used by scripts/tests that mint tokens


# ==========================================
# 💰 Pricing
# ==========================================
CURRENCY_SYMBOL = os.getenv("CURRENCY_SYMBOL", "₹")
FREE_SHIPPING_THRESHOLD = Decimal(os.getenv("FREE_SHIPPING_THRESHOLD", "200"))
FLAT_SHIPPING_COST = Decimal(os.getenv("FLAT_SHIPPING_COST", "15"))        # cart page, below threshold
EXPRESS_SHIPPING_COST = Decimal(os.getenv("EXPRESS_SHIPPING_COST", "15"))


# ==========================================
# 📦 Stock Reconciliation
# ==========================================
STOCK_LOOKUP_TIMEOUT_SECONDS = float(os.getenv("STOCK_LOOKUP_TIMEOUT_SECONDS", "5"))
CHECKOUT_GATE_MAX_ENTRIES = int(os.getenv("CHECKOUT_GATE_MAX_ENTRIES", "10000"))   # per process


# ==========================================
# 🎟️ Coupons
# ==========================================
COUPON_CODE_MIN_LENGTH = 3
DEFAULT_COLOR = "Default"


# ==========================================
# 🔧 App
# ==========================================
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO").upper()
