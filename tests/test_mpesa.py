import base64
import json

from shopki_api.app.core.config import settings
from shopki_api.app.services.mpesa_service import MpesaService, mpesa_password, order_id_from_reference


def callback(checkout_request_id, result_code=0, items=None):
    stk = {
        "MerchantRequestID": "29115-34620561-1",
        "CheckoutRequestID": checkout_request_id,
        "ResultCode": result_code,
        "ResultDesc": "The service request is processed successfully." if result_code == 0 else "Request cancelled by user",
    }
    if items is not None:
        stk["CallbackMetadata"] = {"Item": items}
    return {"Body": {"stkCallback": stk}}


def initiate(client, order):
    return client.post(
        "/api/mpesa/initiate-payment",
        json={"phoneNumber": "254712345678", "amount": order["total"], "orderId": order["id"]},
    )


def test_password_is_base64_of_shortcode_passkey_timestamp():
    password = mpesa_password("174379", "passkey", "20260101120000")
    assert base64.b64decode(password).decode() == "174379passkey20260101120000"


def test_order_id_from_reference():
    assert order_id_from_reference("SHOPKI-abc123") == "abc123"
    assert order_id_from_reference("abc123") == "abc123"
    assert order_id_from_reference(None) is None


def test_parse_callback_without_body():
    assert MpesaService.parse_callback({"foo": "bar"}) is None


def test_initiate_payment(client, order, mpesa):
    response = initiate(client, order)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["checkoutRequestId"] == "ws_CO_9"
    assert data["responseCode"] == "0"

    token_request = mpesa.sent(f"{settings.mpesa_base_url}/oauth/v1/generate")[0]
    expected = base64.b64encode(b"ck_test:cs_test").decode()
    assert token_request.headers["Authorization"] == f"Basic {expected}"

    push = json.loads(mpesa.sent(f"{settings.mpesa_base_url}/mpesa/stkpush")[0].read())
    assert push["Amount"] == 3300
    assert push["AccountReference"] == f"SHOPKI-{order['id']}"
    assert push["BusinessShortCode"] == settings.mpesa_short_code
    assert push["TransactionType"] == "CustomerPayBillOnline"

    stored = client.get(f"/api/orders/{order['id']}").json()
    assert stored["payment_status"] == "payment_processing"
    assert stored["checkout_request_id"] == "ws_CO_9"


def test_initiate_payment_not_configured(client, order):
    response = initiate(client, order)
    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "M-Pesa payment not configured. Please contact admin."}


def test_initiate_payment_rejected(client, order, mpesa):
    mpesa.add(
        "POST",
        f"{settings.mpesa_base_url}/mpesa/stkpush/v1/processrequest",
        200,
        json={"ResponseCode": "1", "ResponseDescription": "Invalid PhoneNumber"},
    )
    response = initiate(client, order)

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid PhoneNumber", "responseCode": "1"}
    assert client.get(f"/api/orders/{order['id']}").json()["payment_status"] == "pending"


def test_successful_callback_completes_order(client, order, product, mpesa):
    initiate(client, order)
    items = [
        {"Name": "Amount", "Value": 3300},
        {"Name": "MpesaReceiptNumber", "Value": "QKX12345"},
        {"Name": "PhoneNumber", "Value": 254712345678},
    ]

    response = client.post("/api/mpesa/callback", json=callback("ws_CO_9", 0, items))
    assert response.json() == {"ResultCode": 0, "ResultDesc": "Accepted"}

    stored = client.get(f"/api/orders/{order['id']}").json()
    assert stored["payment_status"] == "completed"
    assert stored["status"] == "processing"
    assert stored["payment_id"] == "QKX12345"
    assert client.get(f"/api/products/{product['id']}").json()["stock"] == 8


def test_callback_matches_order_by_account_reference(client, order):
    items = [
        {"Name": "MpesaReceiptNumber", "Value": "QKX999"},
        {"Name": "AccountReference", "Value": f"SHOPKI-{order['id']}"},
    ]
    client.post("/api/mpesa/callback", json=callback("ws_CO_unknown", 0, items))

    assert client.get(f"/api/orders/{order['id']}").json()["payment_id"] == "QKX999"


def test_failed_callback(client, order, product, mpesa):
    initiate(client, order)

    client.post("/api/mpesa/callback", json=callback("ws_CO_9", 1032))

    stored = client.get(f"/api/orders/{order['id']}").json()
    assert stored["payment_status"] == "failed"
    assert stored["status"] == "payment_failed"
    assert stored["payment_error"] == "Payment failed with code: 1032"
    assert client.get(f"/api/products/{product['id']}").json()["stock"] == 10


def test_callback_with_unreadable_body_is_acknowledged(client):
    response = client.post("/api/mpesa/callback", content=b"not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 200
    assert response.json()["ResultCode"] == 0


def test_query_status(client, mpesa):
    mpesa.add(
        "POST",
        f"{settings.mpesa_base_url}/mpesa/stkpushquery/v1/query",
        200,
        json={"ResponseCode": "0", "ResultCode": "1032", "ResultDesc": "Request cancelled by user"},
    )
    response = client.get("/api/mpesa/payment-status/ws_CO_9")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["status"] == "failed"
    assert data["data"]["ResultDesc"] == "Request cancelled by user"


def test_query_status_pending(client, mpesa):
    mpesa.add(
        "POST",
        f"{settings.mpesa_base_url}/mpesa/stkpushquery/v1/query",
        200,
        json={"ResponseCode": "0", "ResponseDescription": "The transaction is being processed"},
    )
    assert client.get("/api/mpesa/payment-status/ws_CO_9").json()["status"] == "pending"


def test_query_status_while_transaction_is_processing(client, mpesa):
    mpesa.add(
        "POST",
        f"{settings.mpesa_base_url}/mpesa/stkpushquery/v1/query",
        500,
        json={
            "requestId": "ws_CO_9",
            "errorCode": "500.001.1001",
            "errorMessage": "The transaction is being processed",
        },
    )

    response = client.get("/api/mpesa/payment-status/ws_CO_9")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is False
    assert data["status"] == "pending"
    assert data["data"]["errorCode"] == "500.001.1001"


def test_query_status_unreachable_is_an_error(client, mpesa):
    mpesa.add("POST", f"{settings.mpesa_base_url}/mpesa/stkpushquery/v1/query", 503)

    response = client.get("/api/mpesa/payment-status/ws_CO_9")

    assert response.status_code == 503
    assert response.json()["success"] is False


def paid_callback(receipt="QKX12345"):
    return callback("ws_CO_9", 0, [{"Name": "Amount", "Value": 3300}, {"Name": "MpesaReceiptNumber", "Value": receipt}])


def test_stock_is_floored_at_zero(client, make_order, product, mpesa):
    order = make_order(quantity=12)
    initiate(client, order)

    client.post("/api/mpesa/callback", json=paid_callback())

    stored = client.get(f"/api/products/{product['id']}").json()
    assert stored["stock"] == 0
    assert stored["sold"] == 12


def test_missing_product_does_not_stop_stock_reduction(client, make_order, product, mpesa, caplog):
    order = make_order(
        items=[
            {"product_id": "gone", "name": "Retired kikoi", "price": 500, "quantity": 1},
            {"product_id": product["id"], "name": product["name"], "price": product["price"], "quantity": 3},
        ]
    )
    initiate(client, order)

    with caplog.at_level("WARNING"):
        client.post("/api/mpesa/callback", json=paid_callback())

    assert client.get(f"/api/orders/{order['id']}").json()["payment_status"] == "completed"
    assert client.get(f"/api/products/{product['id']}").json()["stock"] == 7
    assert any("Product gone" in record.getMessage() for record in caplog.records)


def test_duplicate_callback_is_ignored(client, order, product, mpesa, admin_headers):
    initiate(client, order)

    client.post("/api/mpesa/callback", json=paid_callback())
    client.post("/api/mpesa/callback", json=paid_callback())

    stored = client.get(f"/api/orders/{order['id']}").json()
    assert stored["payment_status"] == "completed"
    assert stored["payment_id"] == "QKX12345"
    assert client.get(f"/api/products/{product['id']}").json()["stock"] == 8
    entries = client.get(
        "/api/audit", params={"object_id": order["id"], "action": "payment_completed"}, headers=admin_headers
    ).json()
    assert len(entries) == 1
