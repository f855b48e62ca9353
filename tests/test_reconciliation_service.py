"""
Tests for `services/reconciliation_service.py`.

Covers contract rules:
- Only a payment the gateway reports as approved settles a sale.
- Replaying the same confirmation is a no-op the second time.
- Forged notifications (bad signature, unknown payment) never change a sale.
- Correlation comes from the fetched payment record, not the notification.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID, uuid4

from domain.payment import SettlementOutcome
from domain.sale import SaleItem
from repositories.sale_repository import insert_sale
from services.payment_gateway import sign_notification
from services.reconciliation_service import PaymentNotification, handle_notification

SECRET = "test-webhook-secret"
OWNER = UUID("00000000-0000-0000-0000-0000000000aa")


def _sale(installments: int = 1):
    return insert_sale(
        owner_user_id=OWNER,
        customer_name="Maria",
        items=[SaleItem("Brinco")],
        total=Decimal("50.00"),
        payment_method="Pix",
        installment_count=installments,
    )


def _notification(payment_id: str, secret: str = SECRET, topic: str = "payment") -> PaymentNotification:
    return PaymentNotification(
        topic=topic,
        payment_id=payment_id,
        signature=sign_notification(secret, payment_id, "req-1", "1700000000"),
        request_id="req-1",
    )


def _status1(fake_db, sale) -> str:
    return next(r for r in fake_db.rows("sales") if r["id"] == str(sale.sale_id))["status1"]


def test_approved_payment_settles_first_installment(fake_db, fake_gateway) -> None:
    sale = _sale()
    fake_gateway.add_payment("123", "approved", {"sale_id": str(sale.sale_id)})

    outcome = handle_notification(_notification("123"), fake_gateway, SECRET)

    assert outcome is SettlementOutcome.SETTLED
    assert _status1(fake_db, sale) == "Pago"
    assert fake_gateway.fetched == ["123"]


def test_replayed_confirmation_is_a_noop(fake_db, fake_gateway) -> None:
    sale = _sale()
    fake_gateway.add_payment("123", "approved", {"sale_id": str(sale.sale_id)})

    first = handle_notification(_notification("123"), fake_gateway, SECRET)
    updates_after_first = sum(1 for t, op in fake_db.calls if t == "sales" and op == "update")
    second = handle_notification(_notification("123"), fake_gateway, SECRET)

    assert first is SettlementOutcome.SETTLED
    assert second is SettlementOutcome.ALREADY_SETTLED
    assert _status1(fake_db, sale) == "Pago"
    # The conditional update ran again but matched nothing.
    assert sum(1 for t, op in fake_db.calls if t == "sales" and op == "update") == updates_after_first + 1


def test_unapproved_payment_does_not_settle(fake_db, fake_gateway) -> None:
    sale = _sale()
    fake_gateway.add_payment("123", "pending", {"sale_id": str(sale.sale_id)})

    outcome = handle_notification(_notification("123"), fake_gateway, SECRET)

    assert outcome is SettlementOutcome.IGNORED
    assert _status1(fake_db, sale) == "Pendente"


def test_payment_unknown_to_gateway_does_not_settle(fake_db, fake_gateway) -> None:
    sale = _sale()

    outcome = handle_notification(_notification("999"), fake_gateway, SECRET)

    assert outcome is SettlementOutcome.IGNORED
    assert _status1(fake_db, sale) == "Pendente"


def test_bad_signature_is_rejected_before_gateway_lookup(fake_db, fake_gateway) -> None:
    sale = _sale()
    fake_gateway.add_payment("123", "approved", {"sale_id": str(sale.sale_id)})

    outcome = handle_notification(_notification("123", secret="wrong-secret"), fake_gateway, SECRET)

    assert outcome is SettlementOutcome.REJECTED
    assert fake_gateway.fetched == []
    assert _status1(fake_db, sale) == "Pendente"


def test_stale_signature_is_rejected_when_window_enforced(fake_db, fake_gateway) -> None:
    sale = _sale()
    fake_gateway.add_payment("123", "approved", {"sale_id": str(sale.sale_id)})

    # Signed at 1700000000, far outside a ten minute window from now.
    outcome = handle_notification(_notification("123"), fake_gateway, SECRET, tolerance_seconds=600)

    assert outcome is SettlementOutcome.REJECTED
    assert fake_gateway.fetched == []
    assert _status1(fake_db, sale) == "Pendente"


def test_notifications_refused_without_configured_secret(fake_db, fake_gateway) -> None:
    sale = _sale()
    fake_gateway.add_payment("123", "approved", {"sale_id": str(sale.sale_id)})

    outcome = handle_notification(_notification("123"), fake_gateway, "")

    assert outcome is SettlementOutcome.REJECTED
    assert _status1(fake_db, sale) == "Pendente"


def test_non_payment_topic_is_ignored(fake_db, fake_gateway) -> None:
    outcome = handle_notification(_notification("123", topic="merchant_order"), fake_gateway, SECRET)

    assert outcome is SettlementOutcome.IGNORED
    assert fake_gateway.fetched == []


def test_missing_or_malformed_correlation_is_ignored(fake_db, fake_gateway) -> None:
    sale = _sale()
    fake_gateway.add_payment("1", "approved", {})
    fake_gateway.add_payment("2", "approved", {"sale_id": "not-a-uuid"})
    fake_gateway.add_payment("3", "approved", {"sale_id": str(uuid4())})

    for payment_id in ("1", "2", "3"):
        assert handle_notification(_notification(payment_id), fake_gateway, SECRET) is SettlementOutcome.IGNORED

    assert _status1(fake_db, sale) == "Pendente"


def test_installment_comes_from_verified_metadata(fake_db, fake_gateway) -> None:
    sale = _sale(installments=2)
    fake_gateway.add_payment("77", "approved", {"sale_id": str(sale.sale_id), "installment": 2})

    outcome = handle_notification(_notification("77"), fake_gateway, SECRET)

    row = next(r for r in fake_db.rows("sales") if r["id"] == str(sale.sale_id))
    assert outcome is SettlementOutcome.SETTLED
    assert row["status1"] == "Pendente"
    assert row["status2"] == "Pago"


def test_second_installment_on_single_installment_sale_is_ignored(fake_db, fake_gateway) -> None:
    sale = _sale(installments=1)
    fake_gateway.add_payment("78", "approved", {"sale_id": str(sale.sale_id), "installment": 2})

    outcome = handle_notification(_notification("78"), fake_gateway, SECRET)

    row = next(r for r in fake_db.rows("sales") if r["id"] == str(sale.sale_id))
    assert outcome is SettlementOutcome.IGNORED
    assert row["status2"] is None


def test_gateway_outage_is_acknowledged_without_settling(fake_db, fake_gateway) -> None:
    sale = _sale()
    fake_gateway.add_payment("123", "approved", {"sale_id": str(sale.sale_id)})
    fake_gateway.fail = True

    outcome = handle_notification(_notification("123"), fake_gateway, SECRET)

    assert outcome is SettlementOutcome.IGNORED
    assert _status1(fake_db, sale) == "Pendente"


def test_store_outage_is_acknowledged_without_settling(fake_db, fake_gateway) -> None:
    import httpx

    sale = _sale()
    fake_gateway.add_payment("123", "approved", {"sale_id": str(sale.sale_id)})
    fake_db.fail_with = httpx.ConnectError("down")

    outcome = handle_notification(_notification("123"), fake_gateway, SECRET)

    fake_db.fail_with = None
    assert outcome is SettlementOutcome.IGNORED
    assert _status1(fake_db, sale) == "Pendente"
