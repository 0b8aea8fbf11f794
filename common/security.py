"""
KickVault - Security Utilities
===============================
Verification of bearer tokens issued by the external auth provider.

The service never logs users in itself; it only checks the signature of the
access token and reads the subject (user id) and role claims.
"""

import logging
from datetime import timedelta
from typing import Optional

from jose import jwt, JWTError

from config.settings import (
    AUTH_JWT_SECRET, ALGORITHM, AUTH_JWT_AUDIENCE,
    ACCESS_TOKEN_EXPIRE_MINUTES, ADMIN_ROLE,
)
from common.helpers import now_utc

logger = logging.getLogger("kickvault.security")


# ==========================================
# JWT
# ==========================================

def create_token(user_id: str, role: str = "customer", expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    """Mint a token in the auth provider's format (seed scripts and tests)."""
    expire = now_utc() + timedelta(minutes=expires_minutes)
    payload = {
        "sub": str(user_id),
        "aud": AUTH_JWT_AUDIENCE,
        "app_role": role,
        "exp": expire,
    }
    return jwt.encode(payload, AUTH_JWT_SECRET, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decode a JWT token. Returns payload or None."""
    try:
        return jwt.decode(
            token, AUTH_JWT_SECRET,
            algorithms=[ALGORITHM],
            audience=AUTH_JWT_AUDIENCE,
        )
    except JWTError as e:
        logger.info(f"Rejected access token: {e}")
        return None


def extract_bearer(authorization: Optional[str]) -> Optional[str]:
    """Return the token part of an 'Authorization: Bearer <token>' header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def is_admin_payload(payload: dict) -> bool:
    return payload.get("app_role") == ADMIN_ROLE
