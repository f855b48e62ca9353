"""
Domain error taxonomy.

Every failure the ledger reports to a caller is one of these exceptions. Each
class carries a stable machine-readable `code` and the HTTP status the API
layer maps it to, so services never import web framework types.

Ownership failures deliberately collapse "not found" and "not yours" into a
single `NotFoundOrForbidden` so record identifiers cannot be probed.
"""

from __future__ import annotations

from typing import Optional


class LedgerError(Exception):
    """Base class for all errors surfaced by the sales ledger."""

    code: str = "ledger_error"
    status_code: int = 500
    default_message: str = "Unexpected error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# ============================================================================
# Authentication
# ============================================================================

class AuthError(LedgerError):
    code = "auth_error"
    status_code = 401
    default_message = "Authentication failed"


class MissingToken(AuthError):
    code = "missing_token"
    status_code = 401
    default_message = "Token not provided"


class InvalidToken(AuthError):
    code = "invalid_token"
    status_code = 403
    default_message = "Invalid or expired token"


class InvalidCredentials(AuthError):
    code = "invalid_credentials"
    status_code = 401
    default_message = "Incorrect username or password"


# ============================================================================
# Validation
# ============================================================================

class ValidationError(LedgerError):
    code = "validation_error"
    status_code = 400
    default_message = "Invalid request"


class InvalidProduct(ValidationError):
    code = "invalid_product"

    def __init__(self, product_name: str) -> None:
        self.product_name = product_name
        super().__init__(f"Invalid product: {product_name}")


class EmptyCart(ValidationError):
    code = "empty_cart"
    default_message = "A sale needs at least one item"


class InvalidInstallmentCount(ValidationError):
    code = "invalid_installment_count"

    def __init__(self, installment_count: object) -> None:
        self.installment_count = installment_count
        super().__init__(f"Installment count must be 1 or 2, got {installment_count!r}")


class UsernameTaken(ValidationError):
    code = "username_taken"
    default_message = "User already exists"


class InvalidCredentialFormat(ValidationError):
    code = "invalid_credential_format"
    default_message = "Username or password does not meet the requirements"


# ============================================================================
# Access
# ============================================================================

class AccessError(LedgerError):
    code = "access_error"
    status_code = 404
    default_message = "Not found"


class NotFoundOrForbidden(AccessError):
    code = "not_found"
    default_message = "Sale not found"


# ============================================================================
# Upstream collaborators
# ============================================================================

class UpstreamError(LedgerError):
    code = "upstream_error"
    status_code = 503
    default_message = "Service temporarily unavailable, please retry"


class GatewayUnavailable(UpstreamError):
    code = "gateway_unavailable"
    default_message = "Payment gateway unavailable, please retry"


class StoreUnavailable(UpstreamError):
    code = "store_unavailable"
    default_message = "Storage unavailable, please retry"


# ============================================================================
# Throttling
# ============================================================================

class ThrottleError(LedgerError):
    code = "throttled"
    status_code = 429
    default_message = "Too many requests"


class RateLimited(ThrottleError):
    code = "rate_limited"

    def __init__(self, message: Optional[str] = None, retry_after: int = 0) -> None:
        self.retry_after = retry_after
        super().__init__(message)


__all__ = [
    "LedgerError",
    "AuthError",
    "MissingToken",
    "InvalidToken",
    "InvalidCredentials",
    "ValidationError",
    "InvalidProduct",
    "EmptyCart",
    "InvalidInstallmentCount",
    "UsernameTaken",
    "InvalidCredentialFormat",
    "AccessError",
    "NotFoundOrForbidden",
    "UpstreamError",
    "GatewayUnavailable",
    "StoreUnavailable",
    "ThrottleError",
    "RateLimited",
]
