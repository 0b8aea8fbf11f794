"""
KickVault - Custom Exceptions
==============================
Business-level exceptions that can be caught and converted to HTTP responses.
"""


class KickVaultError(Exception):
    """Base exception for all business logic errors."""
    code = "error"
    status_code = 400

    def __init__(self, message: str = "Something went wrong."):
        self.message = message
        super().__init__(self.message)


class AuthenticationError(KickVaultError):
    """Raised when the bearer token is missing or invalid."""
    code = "authentication_required"
    status_code = 401


class AuthorizationError(KickVaultError):
    """Raised when user lacks permission."""
    code = "forbidden"
    status_code = 403


class InsufficientInventoryError(KickVaultError):
    """Raised when stock for a product/size is not enough."""
    code = "insufficient_inventory"
    status_code = 409

    def __init__(self, product_name: str = "", available: int = 0):
        self.available = available
        msg = f"Not enough stock for {product_name} (available: {available})" if product_name else "Not enough stock."
        super().__init__(msg)


class DuplicateError(KickVaultError):
    """Raised for unique constraint violations at the business level."""
    code = "duplicate"
    status_code = 409


class NotFoundError(KickVaultError):
    """Raised when a requested resource doesn't exist."""
    code = "not_found"
    status_code = 404


class CheckoutBlockedError(KickVaultError):
    """Raised when checkout is attempted while stock issues are outstanding."""
    code = "checkout_blocked"
    status_code = 409

    def __init__(self, message: str = "Some items in your cart are unavailable.", issues: dict = None):
        self.issues = issues or {}
        super().__init__(message)
