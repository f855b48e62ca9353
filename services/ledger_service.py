"""
Sale ledger service.

Owner-scoped reads and writes over sale records. The owner always comes from
the verified principal; no operation accepts an owner id or a total from the
caller.
"""

from __future__ import annotations

import logging
from typing import List
from uuid import UUID

from domain.errors import NotFoundOrForbidden
from domain.sale import Sale, StatusUpdate
from domain.user import Principal
from repositories.sale_repository import (
    delete_sale_for_owner,
    list_sales_by_owner,
    update_status_for_owner,
)

logger = logging.getLogger(__name__)


def list_sales(principal: Principal) -> List[Sale]:
    """Sales owned by the principal, newest first."""

    return list_sales_by_owner(principal.user_id)


def update_status(principal: Principal, sale_id: UUID, update: StatusUpdate) -> None:
    """
    Apply one installment status update to a sale the principal owns.

    Raises:
        NotFoundOrForbidden: No such sale, someone else's sale, or a second
            installment requested on a single-installment sale
    """

    if not update_status_for_owner(sale_id, principal.user_id, update):
        logger.info(
            "Status update matched no sale",
            extra={"sale_id": str(sale_id), "user_id": str(principal.user_id), "field": update.field.value},
        )
        raise NotFoundOrForbidden()

    logger.info(
        "Sale status updated",
        extra={"sale_id": str(sale_id), "field": update.field.value, "value": update.value.value},
    )


def delete_sale(principal: Principal, sale_id: UUID) -> None:
    """
    Delete a sale the principal owns.

    Raises:
        NotFoundOrForbidden: No such sale or someone else's sale
    """

    if not delete_sale_for_owner(sale_id, principal.user_id):
        logger.info("Delete matched no sale", extra={"sale_id": str(sale_id), "user_id": str(principal.user_id)})
        raise NotFoundOrForbidden()

    logger.info("Sale deleted", extra={"sale_id": str(sale_id)})


__all__ = ["list_sales", "update_status", "delete_sale"]
