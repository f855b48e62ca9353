"""
Reconciliation of asynchronous payment notifications.

The gateway delivers notifications at least once, possibly duplicated and out
of order. A notification is only a hint: its signature is checked, then the
payment is fetched from the gateway by id and only that record decides status
and which sale it belongs to.

Every failure here is logged and reported as an outcome, never raised, so the
webhook endpoint can acknowledge receipt and stop redelivery without ever
treating a failure as a settlement.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from domain.errors import GatewayUnavailable, StoreUnavailable
from domain.payment import PaymentConfirmation, PaymentRecord, SettlementOutcome
from domain.sale import ALLOWED_INSTALLMENT_COUNTS, InstallmentField
from repositories.sale_repository import get_sale_by_id, mark_installment_paid
from services.payment_gateway import PaymentGateway, verify_notification_signature

logger = logging.getLogger(__name__)

PAYMENT_TOPIC = "payment"


@dataclass(frozen=True, slots=True)
class PaymentNotification:
    """
    What the endpoint extracted from an inbound call.

    Only the payment id and the signature headers are used.
    """
    topic: Optional[str]
    payment_id: Optional[str]
    signature: Optional[str] = None
    request_id: Optional[str] = None


def _correlate(record: PaymentRecord) -> Optional[PaymentConfirmation]:
    """Build a confirmation from verified metadata, or None if it cannot be correlated."""

    raw_sale_id = record.metadata.get("sale_id") or record.external_reference
    if not raw_sale_id:
        logger.warning("Approved payment carries no sale correlation", extra={"payment_id": record.payment_id})
        return None

    try:
        sale_id = UUID(str(raw_sale_id))
    except ValueError:
        logger.warning(
            "Approved payment carries a malformed sale id",
            extra={"payment_id": record.payment_id, "sale_id": str(raw_sale_id)},
        )
        return None

    try:
        installment = int(record.metadata.get("installment", 1))
    except (TypeError, ValueError):
        installment = 0
    if installment not in ALLOWED_INSTALLMENT_COUNTS:
        logger.warning(
            "Approved payment targets an unknown installment",
            extra={"payment_id": record.payment_id, "installment": record.metadata.get("installment")},
        )
        return None

    return PaymentConfirmation(
        gateway_payment_id=record.payment_id,
        status=record.status,
        correlated_sale_id=sale_id,
        installment=installment,
    )


def apply_confirmation(confirmation: PaymentConfirmation) -> SettlementOutcome:
    """
    Mark the correlated installment Paid.

    Idempotent: a confirmation for an installment that is already Paid is a
    no-op reported as ALREADY_SETTLED.
    """

    field = InstallmentField.for_installment(confirmation.installment)
    extra = {
        "payment_id": confirmation.gateway_payment_id,
        "sale_id": str(confirmation.correlated_sale_id),
        "installment": confirmation.installment,
    }

    try:
        if mark_installment_paid(confirmation.correlated_sale_id, field):
            logger.info("Sale installment settled", extra=extra)
            return SettlementOutcome.SETTLED

        sale = get_sale_by_id(confirmation.correlated_sale_id)
    except StoreUnavailable:
        logger.exception("Store error while settling payment", extra=extra)
        return SettlementOutcome.IGNORED

    if sale is None:
        logger.warning("Approved payment references an unknown sale", extra=extra)
        return SettlementOutcome.IGNORED

    if sale.installment_count < confirmation.installment:
        logger.warning("Approved payment targets a missing installment", extra=extra)
        return SettlementOutcome.IGNORED

    if sale.is_paid(field):
        logger.info("Duplicate payment confirmation ignored", extra=extra)
        return SettlementOutcome.ALREADY_SETTLED

    # Pending yet not updated means the row changed between the two queries.
    logger.warning("Settlement raced with a concurrent update", extra=extra)
    return SettlementOutcome.IGNORED


def handle_notification(
    notification: PaymentNotification,
    gateway: Optional[PaymentGateway],
    webhook_secret: str,
    tolerance_seconds: int = 0,
) -> SettlementOutcome:
    """
    Verify and apply one inbound payment notification.

    Process:
    1. Ignore anything that is not a payment notification with an id
    2. Reject notifications whose signature does not match the webhook secret
       or whose signed timestamp is outside `tolerance_seconds` (0 disables)
    3. Fetch the payment from the gateway; only `approved` proceeds
    4. Correlate the sale from the fetched record's metadata
    5. Settle the installment (Pending -> Paid, at most once)
    """

    if notification.topic != PAYMENT_TOPIC:
        logger.info("Non-payment notification ignored", extra={"topic": notification.topic})
        return SettlementOutcome.IGNORED

    payment_id = (notification.payment_id or "").strip()
    if not payment_id:
        logger.warning("Payment notification without payment id")
        return SettlementOutcome.IGNORED

    if not webhook_secret:
        logger.error("Webhook secret not configured; notification refused", extra={"payment_id": payment_id})
        return SettlementOutcome.REJECTED

    if not verify_notification_signature(
        webhook_secret,
        notification.signature,
        notification.request_id,
        payment_id,
        tolerance_seconds=tolerance_seconds,
    ):
        logger.warning("Invalid notification signature", extra={"payment_id": payment_id})
        return SettlementOutcome.REJECTED

    if gateway is None:
        logger.error("Payment notification received but no gateway is configured", extra={"payment_id": payment_id})
        return SettlementOutcome.IGNORED

    try:
        record = gateway.fetch_payment(payment_id)
    except GatewayUnavailable:
        logger.exception("Could not verify payment with the gateway", extra={"payment_id": payment_id})
        return SettlementOutcome.IGNORED

    if not record.is_approved:
        logger.info("Payment not approved; nothing to settle", extra={"payment_id": payment_id, "status": record.status})
        return SettlementOutcome.IGNORED

    confirmation = _correlate(record)
    if confirmation is None:
        return SettlementOutcome.IGNORED

    return apply_confirmation(confirmation)


__all__ = [
    "PaymentNotification",
    "apply_confirmation",
    "handle_notification",
]
