"""
Domain: Payment gateway values.

The ledger keeps no gateway state. A checkout session is only an opaque
reference plus the redirect the customer follows; a payment record is what the
gateway reports when queried directly, never what a notification body claims.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional
from uuid import UUID

APPROVED_STATUS = "approved"


@dataclass(frozen=True, slots=True)
class CheckoutLineItem:
    title: str
    unit_price: Decimal
    quantity: int = 1


@dataclass(frozen=True, slots=True)
class CheckoutSession:
    """Hosted checkout created at the gateway."""

    session_id: str
    redirect_url: str


@dataclass(frozen=True, slots=True)
class PaymentRecord:
    """Authoritative payment state fetched from the gateway by id."""

    payment_id: str
    status: str
    metadata: Mapping[str, Any] = field(default_factory=dict)
    external_reference: Optional[str] = None

    @property
    def is_approved(self) -> bool:
        return self.status == APPROVED_STATUS


@dataclass(frozen=True, slots=True)
class PaymentConfirmation:
    """
    Verified, correlated confirmation consumed once by reconciliation.

    Built only from a PaymentRecord that the gateway returned as approved.
    """

    gateway_payment_id: str
    status: str
    correlated_sale_id: UUID
    installment: int = 1


class SettlementOutcome(str, Enum):
    SETTLED = "settled"
    ALREADY_SETTLED = "already_settled"
    IGNORED = "ignored"
    REJECTED = "rejected"
