"""
End-to-end tests through the FastAPI application.

Supabase and the payment gateway are in-memory fakes (see conftest.py); every
other layer runs for real.
"""

from __future__ import annotations

import time
from decimal import Decimal
from uuid import uuid4

from api.dependencies import gateway_resolver, get_auth_limiter
from api.main import app
from domain.user import User
from services.payment_gateway import sign_notification
from services.session_service import issue_token

WEBHOOK_SECRET = "test-webhook-secret"


def _register_and_login(client, username: str, password: str) -> dict:
    assert client.post("/api/register", json={"user": username, "pass": password}).status_code == 200
    response = client.post("/api/login", json={"user": username, "pass": password})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


def _create_sale(client, headers, items, **extra) -> dict:
    body = {
        "customer": "Maria",
        "items": [{"name": name} for name in items],
        "payment_method": "Pix",
        "installments": 1,
    }
    body.update(extra)
    return client.post("/api/sales", json=body, headers=headers)


def _notify(client, payment_id: str, secret: str = WEBHOOK_SECRET, body=None, ts=None):
    return client.post(
        f"/api/webhooks/payment-gateway?type=payment&data.id={payment_id}",
        json=body or {"type": "payment", "data": {"id": payment_id}},
        headers={
            "x-signature": sign_notification(secret, payment_id, "req-1", ts or str(int(time.time()))),
            "x-request-id": "req-1",
        },
    )


def test_end_to_end_sale_and_settlement(client, fake_db, fake_gateway) -> None:
    headers = _register_and_login(client, "alice", "pw1")

    response = _create_sale(client, headers, ["Brinco"])
    assert response.status_code == 200
    sale = response.json()["sale"]
    assert Decimal(sale["total"]) == Decimal("50.00")
    assert sale["status_installment_1"] == "Pendente"
    assert sale["status_installment_2"] is None

    fake_gateway.add_payment("pay-1", "approved", {"sale_id": sale["id"]})

    assert _notify(client, "pay-1").status_code == 200
    listed = client.get("/api/sales", headers=headers).json()
    assert listed[0]["status_installment_1"] == "Pago"

    assert _notify(client, "pay-1").status_code == 200
    listed = client.get("/api/sales", headers=headers).json()
    assert listed[0]["status_installment_1"] == "Pago"


def test_client_supplied_total_is_ignored(client, fake_db) -> None:
    headers = _register_and_login(client, "alice", "pw1")

    response = client.post(
        "/api/sales",
        json={
            "customer": "Maria",
            "items": [{"name": "Brinco", "price": 0.01}, {"name": "Anel", "price": 0.01}],
            "payment_method": "Pix",
            "installments": 2,
            "total": 0.02,
            "user_id": "00000000-0000-0000-0000-000000000000",
        },
        headers=headers,
    )

    assert response.status_code == 200
    assert Decimal(response.json()["sale"]["total"]) == Decimal("85.50")
    row = fake_db.rows("sales")[0]
    assert Decimal(row["total"]) == Decimal("85.50")
    assert row["user_id"] != "00000000-0000-0000-0000-000000000000"


def test_unknown_product_returns_400_and_stores_nothing(client, fake_db) -> None:
    headers = _register_and_login(client, "alice", "pw1")

    response = _create_sale(client, headers, ["Brinco", "Pulseira"])

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_product"
    assert fake_db.rows("sales") == []


def test_missing_token_is_401_and_invalid_token_is_403(client, fake_db) -> None:
    assert client.get("/api/sales").status_code == 401
    assert client.get("/api/sales", headers={"Authorization": "Bearer garbage"}).status_code == 403


def test_users_cannot_touch_each_others_sales(client, fake_db) -> None:
    alice = _register_and_login(client, "alice", "pw1")
    bob = _register_and_login(client, "bob", "pw2")

    bob_sale = _create_sale(client, bob, ["Colar"]).json()["sale"]

    assert client.get("/api/sales", headers=alice).json() == []

    patch = client.patch(
        f"/api/sales/{bob_sale['id']}",
        json={"field": "status_installment_1", "value": "Pago"},
        headers=alice,
    )
    delete = client.delete(f"/api/sales/{bob_sale['id']}", headers=alice)

    assert patch.status_code == 404
    assert delete.status_code == 404
    assert patch.json() == delete.json()

    listed = client.get("/api/sales", headers=bob).json()
    assert listed[0]["status_installment_1"] == "Pendente"


def test_patch_only_accepts_status_fields(client, fake_db) -> None:
    headers = _register_and_login(client, "alice", "pw1")
    sale = _create_sale(client, headers, ["Brinco"]).json()["sale"]

    bad_field = client.patch(f"/api/sales/{sale['id']}", json={"field": "total", "value": "0"}, headers=headers)
    bad_value = client.patch(
        f"/api/sales/{sale['id']}", json={"field": "status_installment_1", "value": "Refunded"}, headers=headers
    )
    ok = client.patch(
        f"/api/sales/{sale['id']}", json={"field": "status_installment_1", "value": "Pago"}, headers=headers
    )

    assert bad_field.status_code == 422
    assert bad_value.status_code == 422
    assert ok.status_code == 200
    assert Decimal(fake_db.rows("sales")[0]["total"]) == Decimal("50.00")


def test_owner_can_delete_sale(client, fake_db) -> None:
    headers = _register_and_login(client, "alice", "pw1")
    sale = _create_sale(client, headers, ["Brinco"]).json()["sale"]

    assert client.delete(f"/api/sales/{sale['id']}", headers=headers).status_code == 200
    assert client.get("/api/sales", headers=headers).json() == []


def test_eleventh_login_is_throttled_without_checking_credentials(client, fake_db) -> None:
    get_auth_limiter().reset()

    for _ in range(10):
        response = client.post("/api/login", json={"user": "nobody", "pass": "x"})
        assert response.status_code == 401

    user_lookups = fake_db.count_calls("users")
    response = client.post("/api/login", json={"user": "nobody", "pass": "x"})

    assert response.status_code == 429
    assert response.json()["code"] == "rate_limited"
    assert "Retry-After" in response.headers
    assert fake_db.count_calls("users") == user_lookups


def test_forged_webhook_does_not_settle(client, fake_db, fake_gateway) -> None:
    headers = _register_and_login(client, "alice", "pw1")
    sale = _create_sale(client, headers, ["Brinco"]).json()["sale"]
    forged_body = {"type": "payment", "status": "approved", "data": {"id": "fake"}, "sale_id": sale["id"]}

    # Valid signature but the gateway knows no such payment.
    assert _notify(client, "fake", body=forged_body).status_code == 200
    # Bad signature for a real approved payment.
    fake_gateway.add_payment("real", "approved", {"sale_id": sale["id"]})
    assert _notify(client, "real", secret="guessed").status_code == 200

    listed = client.get("/api/sales", headers=headers).json()
    assert listed[0]["status_installment_1"] == "Pendente"


def test_stale_signed_notification_does_not_settle(client, fake_db, fake_gateway) -> None:
    headers = _register_and_login(client, "alice", "pw1")
    sale = _create_sale(client, headers, ["Brinco"]).json()["sale"]
    fake_gateway.add_payment("pay-old", "approved", {"sale_id": sale["id"]})

    response = _notify(client, "pay-old", ts=str(int(time.time()) - 3600))

    assert response.status_code == 200
    assert fake_gateway.fetched == []
    assert fake_db.rows("sales")[0]["status1"] == "Pendente"


def test_webhook_acknowledges_when_gateway_cannot_be_built(client, fake_db) -> None:
    headers = _register_and_login(client, "alice", "pw1")
    sale = _create_sale(client, headers, ["Brinco"]).json()["sale"]

    def broken_gateway():
        raise ValueError("Param connection_timeout must be a Float")

    app.dependency_overrides[gateway_resolver] = lambda: broken_gateway

    response = _notify(client, "pay-1", body={"type": "payment", "data": {"id": "pay-1"}, "sale_id": sale["id"]})

    assert response.status_code == 200
    assert response.text == "OK"
    assert fake_db.rows("sales")[0]["status1"] == "Pendente"


def test_webhook_acknowledges_unreadable_sale_row(client, fake_db, fake_gateway) -> None:
    headers = _register_and_login(client, "alice", "pw1")
    sale = _create_sale(client, headers, ["Brinco"]).json()["sale"]
    fake_db.rows("sales")[0]["status1"] = "Estornado"
    fake_gateway.add_payment("pay-1", "approved", {"sale_id": sale["id"]})

    response = _notify(client, "pay-1")

    assert response.status_code == 200
    assert response.text == "OK"
    assert fake_db.rows("sales")[0]["status1"] == "Estornado"


def test_webhook_body_garbage_is_acknowledged(client, fake_db) -> None:
    response = client.post(
        "/api/webhooks/payment-gateway", content=b"not json", headers={"content-type": "application/json"}
    )

    assert response.status_code == 200
    assert response.text == "OK"


def test_online_checkout_returns_redirect(client, fake_db, fake_gateway) -> None:
    headers = _register_and_login(client, "alice", "pw1")

    response = _create_sale(client, headers, ["Brinco"], online_checkout=True)

    body = response.json()
    assert body["checkout_url"] == "https://gateway.test/checkout/pref-1"
    assert fake_gateway.checkouts[0]["metadata"]["sale_id"] == body["sale"]["id"]


def test_subscribe_creates_recurring_session(client, fake_db, fake_gateway) -> None:
    headers = _register_and_login(client, "alice", "pw1")

    response = client.post(
        "/api/subscribe",
        json={"product_name": "Colar", "payer_email": "alice@example.com"},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json()["checkout_url"] == "https://gateway.test/subscribe/sub-1"
    assert fake_gateway.subscriptions[0]["amount"] == Decimal("120.00")


def test_store_outage_is_503(client, fake_db) -> None:
    import httpx

    token = issue_token(User(user_id=uuid4(), username="alice", credential_hash="x")).token
    fake_db.fail_with = httpx.ReadTimeout("slow")

    response = client.get("/api/sales", headers={"Authorization": f"Bearer {token}"})

    fake_db.fail_with = None
    assert response.status_code == 503
    assert response.json()["code"] == "store_unavailable"


def test_security_headers_and_health(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
