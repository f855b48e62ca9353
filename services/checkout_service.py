"""
Checkout service for creating sales.

Handles:
- Recomputing the sale total from the pricing catalog (client totals are never used)
- All-or-nothing validation: an unknown product aborts before anything is stored
- Optional hosted checkout at the payment gateway, correlated by sale id
- Recurring-charge subscriptions priced from the catalog
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from domain.errors import EmptyCart, GatewayUnavailable, InvalidInstallmentCount, InvalidProduct
from domain.payment import CheckoutLineItem, CheckoutSession
from domain.sale import ALLOWED_INSTALLMENT_COUNTS, Sale, SaleItem, to_money
from domain.user import Principal
from repositories.product_repository import get_catalog
from repositories.sale_repository import insert_sale
from services.payment_gateway import PaymentGateway
from settings import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CheckoutRequest:
    """
    Request to record a sale.

    There is deliberately no total or price field.
    """
    customer_name: str
    item_names: List[str]
    payment_method: str
    installment_count: int
    online_checkout: bool = False


@dataclass(frozen=True, slots=True)
class PriceCalculation:
    """Catalog-priced line items and their total."""
    line_items: List[CheckoutLineItem]
    total: Decimal


@dataclass(frozen=True, slots=True)
class CheckoutResult:
    """
    Result of a sale creation.

    sale: The persisted sale (always Pending)
    checkout_url: Redirect handle when an online checkout was created
    checkout_error: Why the online checkout could not be created, if requested
    """
    sale: Sale
    checkout_url: Optional[str] = None
    checkout_session_id: Optional[str] = None
    checkout_error: Optional[str] = None


def price_items(item_names: Sequence[str], catalog: Dict[str, Decimal]) -> PriceCalculation:
    """
    Price every referenced product from the catalog.

    Raises:
        EmptyCart: No items referenced
        InvalidProduct: The first name that is not in the catalog
    """

    if not item_names:
        raise EmptyCart()

    line_items: List[CheckoutLineItem] = []
    total = Decimal("0.00")

    for name in item_names:
        price = catalog.get(name)
        if price is None:
            raise InvalidProduct(name)
        line_items.append(CheckoutLineItem(title=name, unit_price=price))
        total += price

    return PriceCalculation(line_items=line_items, total=to_money(total))


def _back_urls() -> Dict[str, str]:
    base = get_settings().public_base_url
    return {
        "success": f"{base}/checkout/success",
        "failure": f"{base}/checkout/failure",
        "pending": f"{base}/checkout/pending",
    }


def create_sale(
    principal: Principal,
    request: CheckoutRequest,
    gateway: Optional[PaymentGateway] = None,
) -> CheckoutResult:
    """
    Create a pending sale owned by the principal.

    Process:
    1. Validate installment count and cart
    2. Price every item from the catalog (abort on any unknown product)
    3. Persist the sale with status Pending
    4. If an online checkout was requested, create a hosted session carrying
       the sale id as correlation metadata. Gateway failures are reported in
       the result but never undo the stored sale.

    Raises:
        InvalidInstallmentCount, EmptyCart, InvalidProduct: Nothing was stored
        StoreUnavailable: The store could not be reached
    """

    if request.installment_count not in ALLOWED_INSTALLMENT_COUNTS:
        raise InvalidInstallmentCount(request.installment_count)

    pricing = price_items(request.item_names, get_catalog())

    sale = insert_sale(
        owner_user_id=principal.user_id,
        customer_name=request.customer_name,
        items=[SaleItem(product_name=name) for name in request.item_names],
        total=pricing.total,
        payment_method=request.payment_method,
        installment_count=request.installment_count,
    )
    logger.info(
        "Sale recorded",
        extra={"sale_id": str(sale.sale_id), "user_id": str(principal.user_id), "total": str(sale.total)},
    )

    if not request.online_checkout:
        return CheckoutResult(sale=sale)

    if gateway is None:
        logger.warning("Online checkout requested but no gateway is configured", extra={"sale_id": str(sale.sale_id)})
        return CheckoutResult(sale=sale, checkout_error=GatewayUnavailable.default_message)

    try:
        session = gateway.create_checkout(
            items=pricing.line_items,
            back_urls=_back_urls(),
            metadata={"sale_id": str(sale.sale_id), "installment": 1},
            external_reference=str(sale.sale_id),
        )
    except GatewayUnavailable as e:
        logger.error(
            "Checkout session failed; sale stays pending",
            extra={"sale_id": str(sale.sale_id), "error": e.message},
        )
        return CheckoutResult(sale=sale, checkout_error=e.message)

    return CheckoutResult(
        sale=sale,
        checkout_url=session.redirect_url,
        checkout_session_id=session.session_id,
    )


def create_subscription(
    principal: Principal,
    product_name: str,
    payer_email: str,
    gateway: PaymentGateway,
) -> CheckoutSession:
    """
    Create a monthly recurring-charge session for a catalog product.

    Raises:
        InvalidProduct: The plan product is not in the catalog
        GatewayUnavailable: The gateway could not create the session
    """

    pricing = price_items([product_name], get_catalog())

    session = gateway.create_subscription(
        reason=product_name,
        amount=pricing.total,
        payer_email=payer_email,
        back_url=f"{get_settings().public_base_url}/subscription",
        external_reference=str(principal.user_id),
    )
    logger.info(
        "Subscription session created",
        extra={"user_id": str(principal.user_id), "session_id": session.session_id},
    )
    return session


__all__ = [
    "CheckoutRequest",
    "CheckoutResult",
    "PriceCalculation",
    "price_items",
    "create_sale",
    "create_subscription",
]
