"""
Payments API Endpoints.

Subscriptions (recurring-charge checkout) and the payment gateway webhook.
"""

import logging
from typing import Any, Callable, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse

from api.dependencies import api_rate_limit, gateway_resolver, get_principal, require_gateway
from api.models import ErrorResponse, SubscribeRequest, SubscribeResponse
from domain.payment import SettlementOutcome
from domain.user import Principal
from services.checkout_service import create_subscription
from services.payment_gateway import PaymentGateway
from services.reconciliation_service import PaymentNotification, handle_notification
from settings import get_settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/subscribe",
    response_model=SubscribeResponse,
    summary="Create Subscription",
    description="Create a monthly recurring-charge checkout for a catalog product.",
    dependencies=[Depends(api_rate_limit)],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
def subscribe(
    request: SubscribeRequest,
    principal: Principal = Depends(get_principal),
    gateway: PaymentGateway = Depends(require_gateway),
):
    session = create_subscription(principal, request.product_name, request.payer_email, gateway)
    return SubscribeResponse(checkout_url=session.redirect_url, session_id=session.session_id)


async def _json_body(request: Request) -> dict:
    try:
        body: Any = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _notification_from(request: Request, body: dict) -> PaymentNotification:
    """
    Extract only the topic and payment id; the rest of the body is ignored.

    Query string forms: `?type=payment&data.id=123` and legacy `?topic=payment&id=123`.
    """
    query = request.query_params
    topic: Optional[str] = query.get("type") or query.get("topic") or body.get("type") or body.get("topic")

    payment_id: Optional[str] = query.get("data.id") or query.get("id")
    if not payment_id:
        data = body.get("data")
        if isinstance(data, dict) and data.get("id") is not None:
            payment_id = str(data["id"])

    return PaymentNotification(
        topic=topic,
        payment_id=payment_id,
        signature=request.headers.get("x-signature"),
        request_id=request.headers.get("x-request-id"),
    )


def _process_notification(
    notification: PaymentNotification,
    resolve_gateway: Callable[[], Optional[PaymentGateway]],
) -> SettlementOutcome:
    settings = get_settings()
    return handle_notification(
        notification,
        resolve_gateway(),
        settings.mp_webhook_secret,
        tolerance_seconds=settings.webhook_tolerance_seconds,
    )


@router.post(
    "/webhooks/payment-gateway",
    response_class=PlainTextResponse,
    summary="Payment Gateway Webhook",
    description="Receives payment notifications. Always acknowledges with 200.",
)
async def payment_gateway_webhook(
    request: Request,
    resolve_gateway: Callable[[], Optional[PaymentGateway]] = Depends(gateway_resolver),
):
    """
    Verify and settle a payment notification.

    The notification is never trusted: the signature is checked, then the
    payment is fetched from the gateway and only an approved payment marks its
    correlated sale installment as paid. Failures are logged and still
    acknowledged so the gateway does not redeliver endlessly.
    """
    notification = _notification_from(request, await _json_body(request))
    try:
        outcome = await run_in_threadpool(_process_notification, notification, resolve_gateway)
    except Exception:
        logger.exception(
            "Payment notification failed; acknowledged without settling",
            extra={"payment_id": notification.payment_id},
        )
        return PlainTextResponse("OK", status_code=200)

    logger.info(
        "Payment notification processed",
        extra={"payment_id": notification.payment_id, "outcome": outcome.value},
    )
    return PlainTextResponse("OK", status_code=200)
