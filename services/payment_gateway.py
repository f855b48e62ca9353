"""
Payment gateway adapter (Mercado Pago).

Outbound:
- Create hosted checkout sessions (preferences) for a sale
- Create recurring-charge sessions (preapprovals) for subscriptions

Inbound verification:
- Check the `x-signature` header of a notification against the webhook secret
- Fetch the authoritative payment record by id; notification bodies are never
  trusted for status or correlation
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from decimal import Decimal
from functools import lru_cache
from typing import Any, Dict, Mapping, Optional, Protocol, Sequence

import mercadopago
import requests
from mercadopago.config import RequestOptions

from domain.errors import GatewayUnavailable
from domain.payment import CheckoutLineItem, CheckoutSession, PaymentRecord
from settings import get_settings

logger = logging.getLogger(__name__)


class PaymentGateway(Protocol):
    def create_checkout(
        self,
        items: Sequence[CheckoutLineItem],
        back_urls: Mapping[str, str],
        metadata: Mapping[str, Any],
        external_reference: str,
    ) -> CheckoutSession: ...

    def create_subscription(
        self,
        reason: str,
        amount: Decimal,
        payer_email: str,
        back_url: str,
        external_reference: str,
    ) -> CheckoutSession: ...

    def fetch_payment(self, payment_id: str) -> PaymentRecord: ...


def _money(value: Decimal) -> float:
    # The gateway API only accepts JSON numbers.
    return float(value)


class MercadoPagoGateway:
    """PaymentGateway backed by the official Mercado Pago SDK."""

    def __init__(self, access_token: str, currency_id: str = "BRL", timeout_seconds: int = 10) -> None:
        # The SDK only accepts a float connection timeout.
        options = RequestOptions(
            access_token=access_token, connection_timeout=float(timeout_seconds), max_retries=1
        )
        self._sdk = mercadopago.SDK(access_token, request_options=options)
        self._currency_id = currency_id

    def _call(self, action: str, fn, *args) -> Dict[str, Any]:
        try:
            result = fn(*args)
        except requests.RequestException as e:
            logger.error("Gateway request failed", extra={"action": action, "error": str(e)})
            raise GatewayUnavailable(f"Payment gateway failed to {action}") from e

        status = result.get("status") if isinstance(result, dict) else None
        response = result.get("response") if isinstance(result, dict) else None
        if not isinstance(status, int) or not 200 <= status < 300 or not isinstance(response, dict):
            logger.error("Gateway returned an error", extra={"action": action, "status": status})
            raise GatewayUnavailable(f"Payment gateway failed to {action}")
        return response

    def create_checkout(
        self,
        items: Sequence[CheckoutLineItem],
        back_urls: Mapping[str, str],
        metadata: Mapping[str, Any],
        external_reference: str,
    ) -> CheckoutSession:
        preference = {
            "items": [
                {
                    "title": item.title,
                    "quantity": item.quantity,
                    "unit_price": _money(item.unit_price),
                    "currency_id": self._currency_id,
                }
                for item in items
            ],
            "back_urls": dict(back_urls),
            "auto_return": "approved",
            "external_reference": external_reference,
            "metadata": dict(metadata),
        }
        response = self._call("create checkout session", self._sdk.preference().create, preference)
        try:
            return CheckoutSession(session_id=str(response["id"]), redirect_url=str(response["init_point"]))
        except KeyError as e:
            raise GatewayUnavailable("Payment gateway returned an incomplete checkout session") from e

    def create_subscription(
        self,
        reason: str,
        amount: Decimal,
        payer_email: str,
        back_url: str,
        external_reference: str,
    ) -> CheckoutSession:
        preapproval = {
            "reason": reason,
            "payer_email": payer_email,
            "back_url": back_url,
            "external_reference": external_reference,
            "auto_recurring": {
                "frequency": 1,
                "frequency_type": "months",
                "transaction_amount": _money(amount),
                "currency_id": self._currency_id,
            },
        }
        response = self._call("create subscription", self._sdk.preapproval().create, preapproval)
        try:
            return CheckoutSession(session_id=str(response["id"]), redirect_url=str(response["init_point"]))
        except KeyError as e:
            raise GatewayUnavailable("Payment gateway returned an incomplete subscription") from e

    def fetch_payment(self, payment_id: str) -> PaymentRecord:
        response = self._call("fetch payment", self._sdk.payment().get, payment_id)
        metadata = response.get("metadata")
        external_reference = response.get("external_reference")
        return PaymentRecord(
            payment_id=str(response.get("id", payment_id)),
            status=str(response.get("status", "")),
            metadata=metadata if isinstance(metadata, dict) else {},
            external_reference=str(external_reference) if external_reference else None,
        )


@lru_cache(maxsize=1)
def _build_gateway(access_token: str, currency_id: str, timeout_seconds: int) -> MercadoPagoGateway:
    return MercadoPagoGateway(access_token, currency_id=currency_id, timeout_seconds=timeout_seconds)


def get_payment_gateway() -> PaymentGateway:
    """
    Return the configured gateway adapter.

    Raises:
        GatewayUnavailable: No access token is configured
    """

    settings = get_settings()
    if not settings.gateway_enabled:
        raise GatewayUnavailable("Payment gateway is not configured")
    return _build_gateway(settings.mp_access_token, settings.currency_id, settings.gateway_timeout_seconds)


# ============================================================================
# Notification signatures
# ============================================================================

def _parse_signature_header(header: str) -> Dict[str, str]:
    parts: Dict[str, str] = {}
    for chunk in header.split(","):
        key, sep, value = chunk.partition("=")
        if sep:
            parts[key.strip()] = value.strip()
    return parts


def build_signature_manifest(data_id: Optional[str], request_id: Optional[str], ts: Optional[str]) -> str:
    """
    Build the signed template `id:<data.id>;request-id:<x-request-id>;ts:<ts>;`.

    Parts without a value are left out. Alphanumeric ids are lower-cased.
    """

    manifest = ""
    if data_id:
        manifest += f"id:{data_id.lower() if data_id.isalnum() else data_id};"
    if request_id:
        manifest += f"request-id:{request_id};"
    if ts:
        manifest += f"ts:{ts};"
    return manifest


def sign_notification(secret: str, data_id: Optional[str], request_id: Optional[str], ts: str) -> str:
    """Return an `x-signature` header value for a notification."""

    return f"ts={ts},v1={_digest(secret, build_signature_manifest(data_id, request_id, ts))}"


def _digest(secret: str, manifest: str) -> str:
    return hmac.new(secret.encode("utf-8"), manifest.encode("utf-8"), hashlib.sha256).hexdigest()


def _timestamp_seconds(ts: str) -> Optional[float]:
    try:
        value = float(ts)
    except ValueError:
        return None
    # Millisecond timestamps are normalised to seconds.
    return value / 1000 if value > 10**11 else value


def verify_notification_signature(
    secret: str,
    signature_header: Optional[str],
    request_id: Optional[str],
    data_id: Optional[str],
    tolerance_seconds: int = 0,
    now: Optional[float] = None,
) -> bool:
    """
    Check a notification's `x-signature` header with HMAC-SHA256.

    With a positive `tolerance_seconds`, a signature whose `ts` is further than
    that from `now` is refused, so a captured notification cannot be replayed
    indefinitely.

    Returns:
        True only if a secret is configured, the v1 digest matches and the
        timestamp is inside the tolerance window
    """

    if not secret or not signature_header:
        return False

    parts = _parse_signature_header(signature_header)
    ts = parts.get("ts")
    received = parts.get("v1")
    if not ts or not received:
        return False

    expected = _digest(secret, build_signature_manifest(data_id, request_id, ts))
    if not hmac.compare_digest(expected, received):
        return False

    if tolerance_seconds > 0:
        signed_at = _timestamp_seconds(ts)
        current = time.time() if now is None else now
        if signed_at is None or abs(current - signed_at) > tolerance_seconds:
            logger.warning("Notification signature outside tolerance window", extra={"ts": ts})
            return False

    return True


__all__ = [
    "PaymentGateway",
    "MercadoPagoGateway",
    "get_payment_gateway",
    "build_signature_manifest",
    "sign_notification",
    "verify_notification_signature",
]
