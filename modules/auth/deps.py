"""
Auth Module - Dependencies
===========================
FastAPI dependencies for user authentication and authorization.
These are injected into route handlers via Depends().

NOTE: Sign-in happens at the auth provider; we only verify its bearer token.
"""

from typing import Optional

from fastapi import Header, Depends

from common.exceptions import AuthenticationError, AuthorizationError
from common.security import decode_token, extract_bearer, is_admin_payload


def get_token_payload(authorization: Optional[str] = Header(None)) -> Optional[dict]:
    """Decode the bearer token from the Authorization header. Returns payload or None."""
    token = extract_bearer(authorization)
    if not token:
        return None
    return decode_token(token)


def require_login(payload=Depends(get_token_payload)) -> str:
    """Require an authenticated user. Returns the user id (token subject)."""
    if not payload or not payload.get("sub"):
        raise AuthenticationError("Please sign in to continue.")
    return payload["sub"]


def require_admin(payload=Depends(get_token_payload)) -> str:
    """Only allow users whose token carries the admin role. Raises 401/403 otherwise."""
    if not payload or not payload.get("sub"):
        raise AuthenticationError("Please sign in to continue.")
    if not is_admin_payload(payload):
        raise AuthorizationError("Admin access required.")
    return payload["sub"]
