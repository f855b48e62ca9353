"""
Sales API Endpoints.

Every endpoint requires a bearer token; the owner of every read and write is
the token's user. Sales that do not exist and sales owned by someone else both
answer 404.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends

from api.dependencies import api_rate_limit, get_principal, optional_gateway
from api.models import (
    CreateSaleRequest,
    CreateSaleResponse,
    ErrorResponse,
    MessageResponse,
    SaleResponse,
    StatusUpdateRequest,
)
from domain.sale import StatusUpdate
from domain.user import Principal
from services import ledger_service
from services.checkout_service import CheckoutRequest, create_sale
from services.payment_gateway import PaymentGateway

router = APIRouter(
    dependencies=[Depends(api_rate_limit)],
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
    },
)


@router.get(
    "/sales",
    response_model=List[SaleResponse],
    summary="List Sales",
    description="Sales recorded by the authenticated user, newest first.",
)
def list_sales(principal: Principal = Depends(get_principal)):
    return [SaleResponse.from_sale(sale) for sale in ledger_service.list_sales(principal)]


@router.post(
    "/sales",
    response_model=CreateSaleResponse,
    summary="Record Sale",
    description="Record a sale priced from the product catalog, optionally with an online checkout.",
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
def record_sale(
    request: CreateSaleRequest,
    principal: Principal = Depends(get_principal),
    gateway: Optional[PaymentGateway] = Depends(optional_gateway),
):
    """
    Record a sale.

    **Pricing:**
    The total is the sum of current catalog prices for the named items. Any
    total or price sent by the client is ignored. An unknown product rejects
    the whole request and nothing is stored.

    **Online checkout:**
    With `online_checkout: true` a hosted checkout is created at the payment
    gateway and its URL returned. If the gateway fails, the sale is still
    recorded as pending and `checkout_error` explains why.

    **Example request:**
    ```json
    {
      "customer": "Maria",
      "items": [{"name": "Brinco"}],
      "payment_method": "Pix",
      "installments": 1
    }
    ```
    """
    result = create_sale(
        principal,
        CheckoutRequest(
            customer_name=request.customer,
            item_names=[item.name for item in request.items],
            payment_method=request.payment_method,
            installment_count=request.installments,
            online_checkout=request.online_checkout,
        ),
        gateway=gateway,
    )

    return CreateSaleResponse(
        sale=SaleResponse.from_sale(result.sale),
        checkout_url=result.checkout_url,
        checkout_session_id=result.checkout_session_id,
        checkout_error=result.checkout_error,
    )


@router.patch(
    "/sales/{sale_id}",
    response_model=MessageResponse,
    summary="Update Installment Status",
    responses={404: {"model": ErrorResponse}},
)
def update_sale_status(
    sale_id: UUID,
    request: StatusUpdateRequest,
    principal: Principal = Depends(get_principal),
):
    ledger_service.update_status(principal, sale_id, StatusUpdate(field=request.field, value=request.value))
    return MessageResponse()


@router.delete(
    "/sales/{sale_id}",
    response_model=MessageResponse,
    summary="Delete Sale",
    responses={404: {"model": ErrorResponse}},
)
def delete_sale(sale_id: UUID, principal: Principal = Depends(get_principal)):
    ledger_service.delete_sale(principal, sale_id)
    return MessageResponse()
