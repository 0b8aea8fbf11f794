"""
Coupon Service
================
Validate, administer, and count usage of coupons.

Validation chain (first failure wins):
  1. Code exists (case-insensitive)
  2. Not expired (expires_at)  -- reported even for inactive/exhausted coupons
  3. Started (starts_at)
  4. Active flag
  5. Total usage limit
  6. Minimum spend
Validation never touches times_used; usage is counted at order placement.
"""

import enum
import logging
import re
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any, List, Tuple

from sqlalchemy.orm import Session
from sqlalchemy import func as sa_func, desc, or_

from config.settings import COUPON_CODE_MIN_LENGTH
from common.exceptions import KickVaultError, NotFoundError, DuplicateError
from common.helpers import now_utc, as_utc, to_decimal, normalize_coupon_code, round_money
from modules.coupon.models import Coupon, DiscountType
from modules.cart.session import AppliedCoupon

logger = logging.getLogger("kickvault.coupon")

_CODE_RE = re.compile(r"^[A-Z0-9]+$")


# ==========================================
# Rejections
# ==========================================

class CouponRejection(str, enum.Enum):
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    NOT_YET_STARTED = "not_yet_started"
    EXPIRED = "expired"
    USAGE_LIMIT_REACHED = "usage_limit_reached"
    MINIMUM_SPEND_NOT_MET = "minimum_spend_not_met"


class CouponValidationError(KickVaultError):
    """Raised when a coupon cannot be applied. Expected, user-facing."""
    reason = None
    default_message = "This coupon cannot be applied"

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)

    @property
    def code(self) -> str:
        return f"coupon_{self.reason.value}" if self.reason else "coupon_invalid"


class CouponNotFound(CouponValidationError):
    reason = CouponRejection.NOT_FOUND
    default_message = "Invalid coupon code"


class CouponInactive(CouponValidationError):
    reason = CouponRejection.INACTIVE
    default_message = "This coupon is no longer active"


class CouponNotYetStarted(CouponValidationError):
    reason = CouponRejection.NOT_YET_STARTED
    default_message = "This coupon is not yet active"


class CouponExpired(CouponValidationError):
    reason = CouponRejection.EXPIRED
    default_message = "This coupon has expired"


class CouponUsageLimitReached(CouponValidationError):
    reason = CouponRejection.USAGE_LIMIT_REACHED
    default_message = "This coupon usage limit has been reached"


class CouponMinimumSpendNotMet(CouponValidationError):
    reason = CouponRejection.MINIMUM_SPEND_NOT_MET
    default_message = "Minimum spend not reached for this coupon"


class CouponDefinitionError(KickVaultError):
    """Raised when an admin submits an invalid coupon definition."""
    code = "invalid_coupon_definition"
    status_code = 422


# ==========================================
# Pure validation
# ==========================================

def check_coupon(coupon: Optional[Coupon], subtotal, now: datetime = None) -> AppliedCoupon:
    """
    Run the validation chain against an already-fetched coupon record.
    Returns AppliedCoupon; raises a CouponValidationError subclass.
    """
    if coupon is None:
        raise CouponNotFound()

    now = as_utc(now) if now else now_utc()
    starts_at = as_utc(coupon.starts_at)
    expires_at = as_utc(coupon.expires_at)

    if expires_at is not None and now > expires_at:
        raise CouponExpired()

    if starts_at is not None and now < starts_at:
        raise CouponNotYetStarted()

    if not coupon.is_active:
        raise CouponInactive()

    if coupon.usage_limit_total is not None and (coupon.times_used or 0) >= coupon.usage_limit_total:
        raise CouponUsageLimitReached()

    if coupon.min_spend_amount is not None and to_decimal(subtotal) < to_decimal(coupon.min_spend_amount):
        raise CouponMinimumSpendNotMet(
            f"Minimum spend of {round_money(coupon.min_spend_amount)} required"
        )

    return AppliedCoupon(
        code=coupon.code,
        discount_type=coupon.discount_type,
        discount_value=coupon.discount_value,
    )


def _parse_dt(value) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    try:
        return as_utc(datetime.fromisoformat(str(value)))
    except ValueError:
        raise CouponDefinitionError(f"Invalid date: {value}")


class CouponService:

    # ------------------------------------------
    # Lookup / validate
    # ------------------------------------------

    def find_by_code(self, db: Session, code: str) -> Optional[Coupon]:
        code = normalize_coupon_code(code)
        if not code:
            return None
        return db.query(Coupon).filter(sa_func.upper(Coupon.code) == code).first()

    def validate(self, db: Session, code: str, subtotal, now: datetime = None) -> AppliedCoupon:
        """
        Full validation chain for a shopper-entered code.
        Raises CouponValidationError on failure.
        """
        coupon = self.find_by_code(db, code)
        try:
            applied = check_coupon(coupon, subtotal, now)
        except CouponValidationError as e:
            logger.info(f"Coupon '{normalize_coupon_code(code)}' rejected: {e.reason.value}")
            raise
        return applied

    def quick_check(self, db: Session, code: str, subtotal) -> Dict[str, Any]:
        """
        Same as validate but returns a dict (for AJAX), including the discount
        the coupon would give on the current subtotal.
        """
        from modules.pricing.calculator import calculate_discount

        try:
            applied = self.validate(db, code, subtotal)
        except CouponValidationError as e:
            return {"valid": False, "error": e.message, "reason": e.reason.value}
        discount = calculate_discount(applied, to_decimal(subtotal))
        return {
            "valid": True,
            "code": applied.code,
            "discount_type": applied.discount_type.value,
            "discount_value": str(applied.discount_value),
            "discount_amount": str(round_money(discount)),
        }

    # ------------------------------------------
    # Usage (order placement)
    # ------------------------------------------

    def increment_usage(self, db: Session, code: str) -> Coupon:
        """Lock the coupon row and count one use. Caller owns the transaction."""
        code = normalize_coupon_code(code)
        coupon = (
            db.query(Coupon)
            .filter(Coupon.code == code)
            .with_for_update()
            .first()
        )
        if not coupon:
            raise CouponNotFound()
        if coupon.usage_limit_total is not None and (coupon.times_used or 0) >= coupon.usage_limit_total:
            raise CouponUsageLimitReached()
        coupon.times_used = (coupon.times_used or 0) + 1
        db.flush()
        return coupon

    # ------------------------------------------
    # Admin: CRUD
    # ------------------------------------------

    def list_coupons(
        self, db: Session, page: int = 1, per_page: int = 30,
        active: Optional[bool] = None, search: str = None,
    ) -> Tuple[List[Coupon], int]:
        q = db.query(Coupon)
        if active is not None:
            q = q.filter(Coupon.is_active == active)
        if search:
            q = q.filter(or_(Coupon.code.ilike(f"%{search}%"), Coupon.name.ilike(f"%{search}%")))
        total = q.count()
        coupons = (
            q.order_by(desc(Coupon.created_at), desc(Coupon.id))
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return coupons, total

    def get_coupon(self, db: Session, coupon_id: int) -> Coupon:
        coupon = db.query(Coupon).filter(Coupon.id == coupon_id).first()
        if not coupon:
            raise NotFoundError("Coupon not found")
        return coupon

    def create_coupon(self, db: Session, data: dict) -> Coupon:
        code = normalize_coupon_code(data.get("code"))
        if len(code) < COUPON_CODE_MIN_LENGTH:
            raise CouponDefinitionError(f"Code must be at least {COUPON_CODE_MIN_LENGTH} characters")
        if not _CODE_RE.match(code):
            raise CouponDefinitionError("Code must be alphanumeric")
        if self.find_by_code(db, code):
            raise DuplicateError(f"Coupon code {code} already exists")

        coupon = Coupon(
            code=code,
            name=data.get("name") or None,
            discount_type=DiscountType.PERCENTAGE.value,
            discount_value=Decimal("0"),
            times_used=0,
            is_active=bool(data.get("is_active", True)),
        )
        self._apply_definition(coupon, data, creating=True)
        db.add(coupon)
        db.flush()
        logger.info(f"Coupon {coupon.code} created ({coupon.discount_display})")
        return coupon

    def update_coupon(self, db: Session, coupon_id: int, data: dict) -> Coupon:
        coupon = self.get_coupon(db, coupon_id)
        if "name" in data:
            coupon.name = data["name"] or None
        if "is_active" in data and data["is_active"] is not None:
            coupon.is_active = bool(data["is_active"])
        self._apply_definition(coupon, data, creating=False)
        db.flush()
        return coupon

    def toggle_active(self, db: Session, coupon_id: int) -> Coupon:
        coupon = self.get_coupon(db, coupon_id)
        coupon.is_active = not coupon.is_active
        db.flush()
        logger.info(f"Coupon {coupon.code} {'activated' if coupon.is_active else 'deactivated'}")
        return coupon

    def delete_coupon(self, db: Session, coupon_id: int) -> bool:
        coupon = self.get_coupon(db, coupon_id)
        if (coupon.times_used or 0) > 0:
            raise CouponDefinitionError("This coupon has been used and cannot be deleted. Deactivate it instead.")
        db.delete(coupon)
        db.flush()
        return True

    # ------------------------------------------
    # Stats
    # ------------------------------------------

    def get_stats(self, db: Session) -> Dict[str, Any]:
        total = db.query(Coupon).count()
        active = db.query(Coupon).filter(Coupon.is_active == True).count()  # noqa: E712
        total_usages = db.query(sa_func.coalesce(sa_func.sum(Coupon.times_used), 0)).scalar()
        return {
            "total_coupons": total,
            "active_coupons": active,
            "total_usages": int(total_usages or 0),
        }

    # ------------------------------------------
    # Private helpers
    # ------------------------------------------

    def _apply_definition(self, coupon: Coupon, data: dict, creating: bool):
        """Copy type/value/window/limit fields from data and enforce their invariants."""
        if "discount_type" in data or creating:
            try:
                coupon.discount_type = DiscountType(data.get("discount_type", DiscountType.PERCENTAGE)).value
            except ValueError:
                raise CouponDefinitionError("Discount type must be 'percentage' or 'fixed_amount'")
        if "discount_value" in data or creating:
            try:
                coupon.discount_value = to_decimal(data.get("discount_value", 0))
            except ValueError:
                raise CouponDefinitionError("Discount value must be a number")
        if "min_spend_amount" in data:
            val = data["min_spend_amount"]
            coupon.min_spend_amount = to_decimal(val) if val not in (None, "") else None
        if "usage_limit_total" in data:
            val = data["usage_limit_total"]
            coupon.usage_limit_total = int(val) if val not in (None, "") else None
        if "starts_at" in data or creating:
            coupon.starts_at = _parse_dt(data.get("starts_at")) or as_utc(coupon.starts_at) or now_utc()
        if "expires_at" in data:
            coupon.expires_at = _parse_dt(data["expires_at"])

        value = to_decimal(coupon.discount_value)
        if value < 0:
            raise CouponDefinitionError("Value must be 0 or greater")
        if DiscountType(coupon.discount_type) == DiscountType.PERCENTAGE and value > 100:
            raise CouponDefinitionError("Percentage cannot be greater than 100")
        if coupon.usage_limit_total is not None and coupon.usage_limit_total < 1:
            raise CouponDefinitionError("Usage limit must be at least 1")
        if coupon.min_spend_amount is not None and to_decimal(coupon.min_spend_amount) < 0:
            raise CouponDefinitionError("Minimum spend must be 0 or greater")
        if coupon.expires_at is not None and as_utc(coupon.expires_at) <= as_utc(coupon.starts_at):
            raise CouponDefinitionError("Expiry date must be after start date")


# Singleton
coupon_service = CouponService()
