"""
Sale repository (persistence).

This module provides *only* persistence operations for the Sale domain
entity. Every owner-facing query conjoins `id` with `user_id`, so a row that
belongs to someone else behaves exactly like a row that does not exist.

Column names follow the existing `sales` table:
id, user_id, customer, items, total, payment_method, installments,
status1, status2, date.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence
from uuid import UUID, uuid4

from domain.sale import (
    InstallmentField,
    InstallmentStatus,
    Sale,
    SaleItem,
    StatusUpdate,
)
from domain.time import parse_utc_datetime, require_utc_timestamp, utc_now
from repositories.client import execute, get_supabase

# Supabase table name for sale records.
# Keep this aligned with your database schema.
_SALES_TABLE: str = "sales"

_STATUS_COLUMNS: Dict[InstallmentField, str] = {
    InstallmentField.INSTALLMENT_1: "status1",
    InstallmentField.INSTALLMENT_2: "status2",
}


def _to_iso_utc(dt: datetime, *, name: str) -> str:
    """Serialize a UTC datetime to ISO-8601 (timezone-aware, offset 0)."""

    require_utc_timestamp(name, dt)
    return dt.astimezone(timezone.utc).isoformat()


def _row_to_sale(row: Mapping[str, Any]) -> Sale:
    """Convert a Supabase row into a Sale."""

    installments = int(row["installments"])
    status2 = row.get("status2")
    return Sale(
        sale_id=UUID(str(row["id"])),
        owner_user_id=UUID(str(row["user_id"])),
        customer_name=str(row["customer"]),
        items=tuple(SaleItem(product_name=str(item["name"])) for item in row.get("items") or []),
        total=Decimal(str(row["total"])),
        payment_method=str(row["payment_method"]),
        installment_count=installments,
        status_installment_1=InstallmentStatus(row["status1"]),
        status_installment_2=(
            InstallmentStatus(status2 or InstallmentStatus.PENDING.value) if installments == 2 else None
        ),
        created_at=parse_utc_datetime(row["date"]),
    )


def status_column(field: InstallmentField) -> str:
    return _STATUS_COLUMNS[field]


def insert_sale(
    owner_user_id: UUID,
    customer_name: str,
    items: Sequence[SaleItem],
    total: Decimal,
    payment_method: str,
    installment_count: int,
    created_at: Optional[datetime] = None,
) -> Sale:
    """
    Insert a new pending sale owned by `owner_user_id`.

    Args:
        owner_user_id: User the sale belongs to (taken from the principal)
        customer_name: Customer the sale was made to
        items: Ordered product references
        total: Server-computed total
        payment_method: Free-form payment method label
        installment_count: 1 or 2
        created_at: UTC creation timestamp (defaults to now)

    Returns:
        Sale domain model with the recorded sale
    """

    sale = Sale(
        sale_id=uuid4(),
        owner_user_id=owner_user_id,
        customer_name=customer_name,
        items=tuple(items),
        total=total,
        payment_method=payment_method,
        installment_count=installment_count,
        status_installment_1=InstallmentStatus.PENDING,
        status_installment_2=InstallmentStatus.PENDING if installment_count == 2 else None,
        created_at=created_at or utc_now(),
    )

    payload: dict[str, Any] = {
        "id": str(sale.sale_id),
        "user_id": str(sale.owner_user_id),
        "customer": sale.customer_name,
        "items": [{"name": item.product_name} for item in sale.items],
        "total": str(sale.total),
        "payment_method": sale.payment_method,
        "installments": sale.installment_count,
        "status1": sale.status_installment_1.value,
        "status2": sale.status_installment_2.value if sale.status_installment_2 else None,
        "date": _to_iso_utc(sale.created_at, name="created_at"),
    }

    execute(get_supabase().table(_SALES_TABLE).insert(payload), "record sale")
    return sale


def list_sales_by_owner(owner_user_id: UUID) -> List[Sale]:
    """
    Retrieve all sales owned by a user, newest first.

    Returns:
        List[Sale] (possibly empty)
    """

    rows = execute(
        get_supabase()
        .table(_SALES_TABLE)
        .select("*")
        .eq("user_id", str(owner_user_id))
        .order("date", desc=True),
        "list sales",
    )
    return [_row_to_sale(row) for row in rows]


def get_sale_by_id(sale_id: UUID) -> Optional[Sale]:
    """
    Retrieve a single sale by primary key, without an ownership filter.

    Only the reconciliation path (a trusted system principal) may use this.

    Returns:
        Sale or None if not found
    """

    rows = execute(
        get_supabase()
        .table(_SALES_TABLE)
        .select("*")
        .eq("id", str(sale_id))
        .limit(1),
        "get sale",
    )
    if not rows:
        return None
    return _row_to_sale(rows[0])


def update_status_for_owner(sale_id: UUID, owner_user_id: UUID, update: StatusUpdate) -> bool:
    """
    Set one installment status on a sale the owner holds.

    Installment 2 can only be written on two-installment sales.

    Returns:
        True if exactly one row was updated, False if no row matched
    """

    query = (
        get_supabase()
        .table(_SALES_TABLE)
        .update({status_column(update.field): update.value.value})
        .eq("id", str(sale_id))
        .eq("user_id", str(owner_user_id))
    )
    if update.field is InstallmentField.INSTALLMENT_2:
        query = query.eq("installments", 2)

    rows = execute(query, "update sale status")
    return len(rows) == 1


def delete_sale_for_owner(sale_id: UUID, owner_user_id: UUID) -> bool:
    """
    Delete a sale the owner holds.

    Returns:
        True if a row was deleted, False if no row matched
    """

    rows = execute(
        get_supabase()
        .table(_SALES_TABLE)
        .delete()
        .eq("id", str(sale_id))
        .eq("user_id", str(owner_user_id)),
        "delete sale",
    )
    return len(rows) == 1


def mark_installment_paid(sale_id: UUID, field: InstallmentField) -> bool:
    """
    Flip one installment from Pending to Paid by primary key.

    The update only matches while the field is still Pending, so repeated or
    concurrent settlements change the row at most once.

    Returns:
        True if this call performed the transition
    """

    query = (
        get_supabase()
        .table(_SALES_TABLE)
        .update({status_column(field): InstallmentStatus.PAID.value})
        .eq("id", str(sale_id))
        .eq(status_column(field), InstallmentStatus.PENDING.value)
    )
    if field is InstallmentField.INSTALLMENT_2:
        query = query.eq("installments", 2)

    rows = execute(query, "settle sale installment")
    return len(rows) == 1


__all__ = [
    "insert_sale",
    "list_sales_by_owner",
    "get_sale_by_id",
    "update_status_for_owner",
    "delete_sale_for_owner",
    "mark_installment_paid",
    "status_column",
]
