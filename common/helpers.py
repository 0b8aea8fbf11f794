"""
KickVault - Shared Helpers
===========================
Pure utility functions with NO database or module dependencies.
"""

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Optional


def now_utc() -> datetime:
    """Returns current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_decimal(value) -> Decimal:
    """Convert numbers and numeric strings to Decimal without float noise."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Not a number: {value!r}")


def round_money(value) -> Decimal:
    """Round an amount to two places (display and stored order amounts)."""
    return to_decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def format_money(value, symbol: str = "") -> str:
    """Format an amount with two decimals and thousands separators."""
    if value is None:
        value = 0
    try:
        return f"{symbol}{round_money(value):,.2f}"
    except ValueError:
        return str(value)


def normalize_coupon_code(code: Optional[str]) -> str:
    """Coupon codes are stored upper-cased and compared case-insensitively."""
    return (code or "").strip().upper()
