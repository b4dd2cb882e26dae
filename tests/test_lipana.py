import json

import pytest

from shopki_api.app.core.config import settings
from shopki_api.app.core.security import compute_signature
from shopki_api.app.services.lipana_service import extract_identifiers, format_phone, normalize_status


WEBHOOK_SECRET = "whsec_test"


@pytest.fixture
def webhook_secret(monkeypatch):
    monkeypatch.setattr(settings, "lipana_webhook_secret", WEBHOOK_SECRET)
    return WEBHOOK_SECRET


def post_webhook(client, payload, secret=WEBHOOK_SECRET, signature=None, header="x-lipana-signature"):
    body = json.dumps(payload).encode()
    headers = {"Content-Type": "application/json"}
    if signature is None and secret:
        signature = compute_signature(secret, body)
    if signature:
        headers[header] = signature
    return client.post("/api/lipana/webhook", content=body, headers=headers)


def success_event(order_id, transaction_id="TXN1"):
    return {
        "event": "transaction.success",
        "data": {
            "transactionId": transaction_id,
            "checkoutRequestID": "ws_CO_1",
            "amount": 3300,
            "metadata": {"orderId": order_id},
        },
    }


def initiate(client, order):
    return client.post(
        "/api/lipana/initiate-stk-push",
        json={"phone": "0712345678", "amount": order["total"], "orderId": order["id"]},
    )


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"event": "transaction.success"}, "completed"),
        ({"event": "payment.failed"}, "failed"),
        ({"data": {"status": "PENDING"}}, "pending"),
        ({"status": "paid"}, "completed"),
        ({"data": {"status": "unpaid"}}, "unknown"),
        ({}, "unknown"),
    ],
)
def test_normalize_status(payload, expected):
    assert normalize_status(payload) == expected


@pytest.mark.parametrize(
    "phone, expected",
    [("0712345678", "+254712345678"), ("254712345678", "+254712345678"), ("712345678", "+254712345678")],
)
def test_format_phone(phone, expected):
    assert format_phone(phone) == expected


def test_initiate_stk_push(client, order, lipana):
    response = initiate(client, order)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["transactionId"] == "TXN1"
    assert data["checkoutRequestID"] == "ws_CO_1"
    assert data["transaction"]["amount"] == 3300
    assert data["transaction"]["expiresIn"] == 300000
    assert "raw" not in data

    request = lipana.sent(settings.lipana_base_url)[0]
    assert request.headers["x-api-key"] == "lip_sk_test"
    assert json.loads(request.read()) == {"phone": "+254712345678", "amount": 3300}

    stored = client.get(f"/api/orders/{order['id']}").json()
    assert stored["payment_status"] == "payment_processing"
    assert stored["transaction_id"] == "TXN1"
    assert stored["checkout_request_id"] == "ws_CO_1"
    assert stored["payment_initiated_at"]


def test_initiate_rejects_out_of_range_amount(client, lipana):
    response = client.post("/api/lipana/initiate-stk-push", json={"phone": "0712345678", "amount": 5})
    assert response.status_code == 400
    assert response.json()["error"] == "Amount must be between 10 and 150000 KES"
    assert lipana.requests == []


def test_initiate_without_key(client, order):
    response = initiate(client, order)
    assert response.status_code == 500
    assert response.json()["success"] is False


def test_initiate_provider_error_includes_recovery_options(client, order, lipana):
    lipana.add(
        "POST",
        f"{settings.lipana_base_url}/v1/transactions/push-stk",
        400,
        json={"success": False, "message": "Invalid phone number"},
    )
    response = initiate(client, order)

    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "Invalid phone number"
    assert data["orderId"] == order["id"]
    assert data["recoveryOptions"]
    assert client.get(f"/api/orders/{order['id']}").json()["payment_status"] == "pending"


def test_webhook_completes_order_and_reduces_stock_once(client, order, product, lipana, webhook_secret):
    initiate(client, order)

    for _ in range(2):
        response = post_webhook(client, success_event(order["id"]))
        assert response.status_code == 200
        assert response.json() == {"success": True, "received": True}

    stored = client.get(f"/api/orders/{order['id']}").json()
    assert stored["payment_status"] == "completed"
    assert stored["status"] == "processing"
    assert stored["payment_id"] == "TXN1"
    assert stored["stock_reduced"] is True

    stock = client.get(f"/api/products/{product['id']}").json()
    assert stock["stock"] == 8
    assert stock["sold"] == 2


def test_webhook_resolves_order_through_transaction_mapping(client, order, lipana, webhook_secret):
    initiate(client, order)
    payload = {"event": "transaction.success", "data": {"transactionId": "TXN1"}}

    post_webhook(client, payload)

    assert client.get(f"/api/orders/{order['id']}").json()["payment_status"] == "completed"


def test_webhook_failure_then_success(client, order, lipana, webhook_secret):
    initiate(client, order)
    failed = {
        "event": "transaction.failed",
        "data": {"transactionId": "TXN1", "message": "Insufficient funds", "metadata": {"orderId": order["id"]}},
    }

    post_webhook(client, failed)
    stored = client.get(f"/api/orders/{order['id']}").json()
    assert stored["payment_status"] == "failed"
    assert stored["status"] == "payment_failed"
    assert stored["payment_error"] == "Insufficient funds"
    assert stored["stock_reduced"] is False

    post_webhook(client, success_event(order["id"]))
    stored = client.get(f"/api/orders/{order['id']}").json()
    assert stored["payment_status"] == "completed"
    assert stored["payment_error"] is None


def test_completed_payment_ignores_late_failure(client, order, lipana, webhook_secret):
    initiate(client, order)
    post_webhook(client, success_event(order["id"]))
    post_webhook(client, {"event": "transaction.failed", "data": {"transactionId": "TXN1", "metadata": {"orderId": order["id"]}}})

    assert client.get(f"/api/orders/{order['id']}").json()["payment_status"] == "completed"


def test_tampered_webhook_rejected(client, order, webhook_secret):
    payload = success_event(order["id"])
    signature = compute_signature(WEBHOOK_SECRET, json.dumps(payload).encode())
    payload["data"]["amount"] = 1

    response = post_webhook(client, payload, signature=signature)

    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Invalid signature"}
    assert client.get(f"/api/orders/{order['id']}").json()["payment_status"] == "pending"


def test_unsigned_webhook_rejected_when_secret_configured(client, order, webhook_secret):
    response = post_webhook(client, success_event(order["id"]), secret=None)
    assert response.status_code == 401


def test_alternative_signature_header_accepted(client, order, webhook_secret):
    response = post_webhook(client, success_event(order["id"]), header="x-webhook-signature")
    assert response.status_code == 200
    assert client.get(f"/api/orders/{order['id']}").json()["payment_status"] == "completed"


def test_webhook_accepted_without_secret(client, order):
    response = post_webhook(client, success_event(order["id"]), secret=None)
    assert response.status_code == 200
    assert client.get(f"/api/orders/{order['id']}").json()["payment_status"] == "completed"


def test_webhook_for_unknown_order_is_acknowledged(client, webhook_secret):
    response = post_webhook(client, success_event("does-not-exist", transaction_id="TXN404"))
    assert response.status_code == 200


def test_reconcile(client, order, lipana, admin_headers):
    initiate(client, order)

    assert client.post("/api/lipana/reconcile", json={"transactionId": "TXN1"}).status_code == 401

    response = client.post("/api/lipana/reconcile", json={"transactionId": "TXN1"}, headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == f"Order {order['id']} updated to completed"
    assert data["order"]["payment_status"] == "completed"
    assert data["order"]["stock_reduced"] is True

    logs = client.get("/api/audit", params={"action": "reconcile"}, headers=admin_headers).json()
    assert logs[0]["object_id"] == order["id"]


def test_reconcile_unknown_transaction(client, admin_headers):
    response = client.post("/api/lipana/reconcile", json={"transactionId": "nope"}, headers=admin_headers)
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "No mapping or order found for transactionId"}


def test_extract_identifiers_prefers_id_over_transaction_id():
    payload = {
        "event": "transaction.success",
        "data": {"id": "TXN_PRIMARY", "transactionId": "TXN_SECONDARY", "metadata": {"orderId": "o1"}},
    }

    identifiers = extract_identifiers(payload)

    assert identifiers["transaction_id"] == "TXN_PRIMARY"
    assert identifiers["order_id"] == "o1"
    assert extract_identifiers({"data": {"transactionId": "TXN2"}})["transaction_id"] == "TXN2"
