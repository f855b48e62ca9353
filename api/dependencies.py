"""
Shared FastAPI dependencies: rate limits, the request principal and the
payment gateway.
"""

import logging
from functools import lru_cache
from typing import Callable, Optional

from fastapi import Header, Request

from domain.errors import GatewayUnavailable
from domain.user import Principal
from services.payment_gateway import PaymentGateway, get_payment_gateway
from services.rate_limiter import FixedWindowRateLimiter
from services.session_service import principal_from_authorization
from settings import get_settings

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_auth_limiter() -> FixedWindowRateLimiter:
    settings = get_settings()
    return FixedWindowRateLimiter("auth", settings.auth_rate_limit, settings.auth_rate_window_seconds)


@lru_cache(maxsize=1)
def get_api_limiter() -> FixedWindowRateLimiter:
    settings = get_settings()
    return FixedWindowRateLimiter("api", settings.api_rate_limit, settings.api_rate_window_seconds)


def _client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def auth_rate_limit(request: Request) -> None:
    get_auth_limiter().hit(_client_address(request))


def api_rate_limit(request: Request) -> None:
    get_api_limiter().hit(_client_address(request))


def get_principal(authorization: Optional[str] = Header(None)) -> Principal:
    """Verified caller identity from the bearer token (401 missing, 403 invalid)."""

    return principal_from_authorization(authorization)


def require_gateway() -> PaymentGateway:
    return get_payment_gateway()


def optional_gateway() -> Optional[PaymentGateway]:
    try:
        return get_payment_gateway()
    except GatewayUnavailable:
        return None


def gateway_resolver() -> Callable[[], Optional[PaymentGateway]]:
    """
    Hand the webhook a way to build the gateway itself.

    The webhook must acknowledge every delivery, so building the adapter
    happens inside its own error handling rather than as a dependency.
    """

    return optional_gateway
