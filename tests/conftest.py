import httpx
import pytest
from fastapi.testclient import TestClient

from shopki_api.app.core import http
from shopki_api.app.core.config import settings
from shopki_api.app.core.db import init_db
from shopki_api.app.main import app


ADMIN_TOKEN = "test-admin-token"

CREDENTIAL_SETTINGS = (
    "email_api_key",
    "mpesa_consumer_key",
    "mpesa_consumer_secret",
    "lipana_secret_key",
    "lipana_webhook_secret",
    "paypal_client_id",
    "paypal_client_secret",
    "stripe_secret_key",
)


class ProviderMock:
    """Routes outbound provider calls to canned responses and records them."""

    def __init__(self):
        self.routes = []
        self.requests = []

    def add(self, method, url, status_code=200, json=None, headers=None):
        self.routes.append((method, url, status_code, json, headers))

    def sent(self, url):
        return [request for request in self.requests if str(request.url).startswith(url)]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for method, url, status_code, body, headers in reversed(self.routes):
            if request.method == method and str(request.url).startswith(url):
                return httpx.Response(status_code, json=body, headers=headers)
        return httpx.Response(404, json={"message": f"No mock for {request.method} {request.url}"})


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "database_path", str(tmp_path / "shopki.db"))
    monkeypatch.setattr(settings, "admin_api_tokens", ADMIN_TOKEN)
    monkeypatch.setattr(settings, "email_provider", "sendgrid")
    monkeypatch.setattr(settings, "payment_window_seconds", 300)
    for name in CREDENTIAL_SETTINGS:
        monkeypatch.setattr(settings, name, "")
    monkeypatch.setattr(http, "transport", None)
    init_db()
    yield


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture
def provider(monkeypatch):
    mock = ProviderMock()
    monkeypatch.setattr(http, "transport", httpx.MockTransport(mock))
    return mock


@pytest.fixture
def sendgrid(provider, monkeypatch):
    monkeypatch.setattr(settings, "email_api_key", "SG.test")
    provider.add("POST", "https://api.sendgrid.com/v3/mail/send", 202, headers={"x-message-id": "msg-1"})
    return provider


@pytest.fixture
def lipana(provider, monkeypatch):
    monkeypatch.setattr(settings, "lipana_secret_key", "lip_sk_test")
    provider.add(
        "POST",
        f"{settings.lipana_base_url}/v1/transactions/push-stk",
        200,
        json={
            "success": True,
            "message": "STK push initiated",
            "data": {
                "transactionId": "TXN1",
                "checkoutRequestID": "ws_CO_1",
                "message": "STK push sent",
            },
        },
    )
    return provider


@pytest.fixture
def mpesa(provider, monkeypatch):
    monkeypatch.setattr(settings, "mpesa_consumer_key", "ck_test")
    monkeypatch.setattr(settings, "mpesa_consumer_secret", "cs_test")
    provider.add("GET", f"{settings.mpesa_base_url}/oauth/v1/generate", 200, json={"access_token": "daraja-token"})
    provider.add(
        "POST",
        f"{settings.mpesa_base_url}/mpesa/stkpush/v1/processrequest",
        200,
        json={
            "MerchantRequestID": "29115-34620561-1",
            "CheckoutRequestID": "ws_CO_9",
            "ResponseCode": "0",
            "ResponseDescription": "Success. Request accepted for processing",
        },
    )
    return provider


@pytest.fixture
def product(client, admin_headers):
    response = client.post(
        "/api/products",
        json={"name": "Kiondo basket", "price": 1500, "category": "crafts", "stock": 10},
        headers=admin_headers,
    )
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def make_order(client, product):
    def _make_order(quantity=2, user_id="user-1", **overrides):
        payload = {
            "user_id": user_id,
            "items": [
                {"product_id": product["id"], "name": product["name"], "price": product["price"], "quantity": quantity}
            ],
            "shipping_info": {
                "full_name": "Wanjiku Kamau",
                "email": "wanjiku@example.com",
                "phone": "0712345678",
                "address": "Moi Avenue 12",
                "city": "Nairobi",
                "county": "Nairobi",
            },
            "payment_method": "mpesa",
        }
        payload.update(overrides)
        response = client.post("/api/orders", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    return _make_order


@pytest.fixture
def order(make_order):
    return make_order()
