import pytest

from shopki_api.app.core.config import is_configured, settings
from shopki_api.app.core.security import compute_signature, extract_signature, verify_signature


def test_health_reports_provider_state(client, monkeypatch):
    monkeypatch.setattr(settings, "lipana_secret_key", "lip_sk_live")

    response = client.get("/api/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["message"] == "Payment API server is running"
    assert data["email"] == "not_configured"
    assert data["mpesa"] == "not_configured"
    assert data["lipana"] == "configured"
    assert data["timestamp"]


def test_unknown_route_is_json(client):
    response = client.get("/api/nothing-here")
    assert response.status_code == 404
    assert response.json()["success"] is False


def test_signature_roundtrip():
    body = b'{"event":"transaction.success"}'
    signature = compute_signature("secret", body)

    assert verify_signature("secret", body, signature)
    assert verify_signature("secret", body, f"  {signature.upper()} ")
    assert not verify_signature("other", body, signature)
    assert not verify_signature("secret", body + b" ", signature)
    assert not verify_signature("secret", body, None)


def test_extract_signature_header_order():
    assert extract_signature({"x-signature": "b", "x-webhook-signature": "c"}) == "b"
    assert extract_signature({"content-type": "application/json"}) is None


@pytest.mark.parametrize(
    "value, expected",
    [("sk_live_123", True), ("", False), (None, False), ("your_key", False), ("your_secret", False)],
)
def test_is_configured(value, expected):
    assert is_configured(value) is expected


def test_admin_tokens_list(monkeypatch):
    monkeypatch.setattr(settings, "admin_api_tokens", " one, two ,,")
    assert settings.admin_token_list == ["one", "two"]


def test_no_admin_tokens_closes_admin_routes(client, monkeypatch):
    monkeypatch.setattr(settings, "admin_api_tokens", "")
    response = client.get("/api/audit", headers={"Authorization": "Bearer anything"})
    assert response.status_code == 403
