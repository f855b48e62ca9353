"""
Domain: Sale records.

Contract excerpts relevant here:
- `total` equals the sum of catalog prices for `items` at creation time and is
  never client-supplied. It is immutable after creation.
- Every Sale has exactly one owner; all reads and writes filter on it.
- Installment status moves Pending -> Paid on settlement. Owners may also set
  either value by hand through an explicit status update.

This module captures the sale entity and the closed set of status updates.
Ownership enforcement lives with the ledger service and sale repository.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional, Tuple
from uuid import UUID

from .time import require_utc_timestamp

CENTS = Decimal("0.01")
ALLOWED_INSTALLMENT_COUNTS = (1, 2)


def to_money(value: Decimal) -> Decimal:
    """Quantize an amount to cents."""

    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


class InstallmentStatus(str, Enum):
    # Stored values match the existing `sales` table.
    PENDING = "Pendente"
    PAID = "Pago"


class InstallmentField(str, Enum):
    """The only sale fields a status update may target."""

    INSTALLMENT_1 = "status_installment_1"
    INSTALLMENT_2 = "status_installment_2"

    @property
    def number(self) -> int:
        return 1 if self is InstallmentField.INSTALLMENT_1 else 2

    @classmethod
    def for_installment(cls, number: int) -> "InstallmentField":
        if number == 1:
            return cls.INSTALLMENT_1
        if number == 2:
            return cls.INSTALLMENT_2
        raise ValueError(f"No status field for installment {number!r}")


@dataclass(frozen=True, slots=True)
class StatusUpdate:
    """A single field-level status transition requested on a Sale."""

    field: InstallmentField
    value: InstallmentStatus


@dataclass(frozen=True, slots=True)
class SaleItem:
    product_name: str


@dataclass(frozen=True, slots=True)
class Sale:
    """
    Immutable snapshot of a sale owned by one user.

    `status_installment_2` is None when the sale has a single installment.
    """

    sale_id: UUID
    owner_user_id: UUID
    customer_name: str
    items: Tuple[SaleItem, ...]
    total: Decimal
    payment_method: str
    installment_count: int
    status_installment_1: InstallmentStatus
    created_at: datetime
    status_installment_2: Optional[InstallmentStatus] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        if self.installment_count not in ALLOWED_INSTALLMENT_COUNTS:
            raise ValueError(f"installment_count must be 1 or 2, got {self.installment_count!r}")
        if self.installment_count == 1 and self.status_installment_2 is not None:
            raise ValueError("status_installment_2 must be empty for a single installment sale")
        if self.installment_count == 2 and self.status_installment_2 is None:
            raise ValueError("status_installment_2 is required for a two installment sale")

    def status_of(self, field: InstallmentField) -> Optional[InstallmentStatus]:
        if field is InstallmentField.INSTALLMENT_1:
            return self.status_installment_1
        return self.status_installment_2

    def is_paid(self, field: InstallmentField) -> bool:
        return self.status_of(field) is InstallmentStatus.PAID
