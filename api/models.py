"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
Request models never declare a total, price or owner field; anything of the
kind sent by a client is dropped during validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from domain.sale import InstallmentField, InstallmentStatus, Sale


# ============================================================================
# Auth Models
# ============================================================================

class CredentialsRequest(BaseModel):
    """Login or registration credentials."""
    username: str = Field(..., alias="user", min_length=1, max_length=128)
    password: str = Field(..., alias="pass", min_length=1, max_length=128)

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "user": "alice",
                "pass": "pw1"
            }
        }


class LoginResponse(BaseModel):
    success: bool = True
    token: str
    expires_in: int


class MessageResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None


# ============================================================================
# Sale Models
# ============================================================================

class SaleItemModel(BaseModel):
    """Reference to a catalog product by name."""
    name: str = Field(..., min_length=1, max_length=200)


class CreateSaleRequest(BaseModel):
    """Request to record a sale."""
    customer: str = Field(..., min_length=1, max_length=200)
    items: List[SaleItemModel]
    payment_method: str = Field(..., min_length=1, max_length=50)
    installments: int = Field(1, description="Number of installments (1 or 2)")
    online_checkout: bool = Field(
        False,
        description="Create a hosted checkout at the payment gateway for this sale"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "customer": "Maria",
                "items": [{"name": "Brinco"}],
                "payment_method": "Pix",
                "installments": 1,
                "online_checkout": False
            }
        }


class SaleResponse(BaseModel):
    """Single sale in API responses."""
    id: UUID
    customer: str
    items: List[SaleItemModel]
    total: Decimal
    payment_method: str
    installments: int
    status_installment_1: InstallmentStatus
    status_installment_2: Optional[InstallmentStatus] = None
    date: datetime

    @classmethod
    def from_sale(cls, sale: Sale) -> "SaleResponse":
        return cls(
            id=sale.sale_id,
            customer=sale.customer_name,
            items=[SaleItemModel(name=item.product_name) for item in sale.items],
            total=sale.total,
            payment_method=sale.payment_method,
            installments=sale.installment_count,
            status_installment_1=sale.status_installment_1,
            status_installment_2=sale.status_installment_2,
            date=sale.created_at,
        )

    class Config:
        json_schema_extra = {
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174003",
                "customer": "Maria",
                "items": [{"name": "Brinco"}],
                "total": "50.00",
                "payment_method": "Pix",
                "installments": 1,
                "status_installment_1": "Pendente",
                "status_installment_2": None,
                "date": "2025-01-01T12:00:00Z"
            }
        }


class CreateSaleResponse(BaseModel):
    """Response after recording a sale."""
    success: bool = True
    sale: SaleResponse
    checkout_url: Optional[str] = None
    checkout_session_id: Optional[str] = None
    checkout_error: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    """Set one installment status. Only the two status fields are accepted."""
    field: InstallmentField
    value: InstallmentStatus

    class Config:
        json_schema_extra = {
            "example": {
                "field": "status_installment_1",
                "value": "Pago"
            }
        }


# ============================================================================
# Payment Models
# ============================================================================

class SubscribeRequest(BaseModel):
    """Request a monthly recurring charge for a catalog product."""
    product_name: str = Field(..., min_length=1, max_length=200)
    payer_email: str = Field(..., min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+$")


class SubscribeResponse(BaseModel):
    success: bool = True
    checkout_url: str
    session_id: str


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    code: str
    message: str

    class Config:
        json_schema_extra = {
            "example": {
                "success": False,
                "code": "invalid_product",
                "message": "Invalid product: Anel"
            }
        }
