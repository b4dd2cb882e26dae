import json

import pytest

from shopki_api.app.core.config import settings
from shopki_api.app.services.email_templates import DEFAULT_TEMPLATES, substitute


def test_send_email_logged_without_provider(client):
    response = client.post(
        "/api/send-email",
        json={"to": "customer@example.com", "subject": "Hello", "html": "<p>Hi</p>"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["message"].startswith("Email logged to console")
    assert "customer@example.com" in data["message"]


def test_send_email_missing_fields(client):
    response = client.post("/api/send-email", json={"to": "customer@example.com"})
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Missing required fields: subject, html"}


def test_send_email_via_sendgrid(client, sendgrid):
    response = client.post(
        "/api/send-email",
        json={"to": "customer@example.com", "subject": "Hello", "html": "<p>Hi</p>", "text": "Hi"},
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Email sent to customer@example.com", "messageId": "msg-1"}

    request = sendgrid.sent("https://api.sendgrid.com")[0]
    assert request.headers["Authorization"] == "Bearer SG.test"
    body = json.loads(request.read())
    assert body["personalizations"] == [{"to": [{"email": "customer@example.com"}]}]
    assert body["subject"] == "Hello"
    assert body["content"] == [{"type": "text/plain", "value": "Hi"}, {"type": "text/html", "value": "<p>Hi</p>"}]


def test_send_email_via_brevo(client, provider, monkeypatch):
    monkeypatch.setattr(settings, "email_provider", "brevo")
    monkeypatch.setattr(settings, "email_api_key", "xkeysib-test")
    provider.add("POST", "https://api.brevo.com/v3/smtp/email", 201, json={"messageId": "<abc@smtp-relay>"})

    response = client.post(
        "/api/send-email",
        json={"to": "customer@example.com", "subject": "Hello", "html": "<p>Hi</p>"},
    )

    assert response.json()["messageId"] == "<abc@smtp-relay>"
    request = provider.sent("https://api.brevo.com")[0]
    assert request.headers["api-key"] == "xkeysib-test"
    assert json.loads(request.read())["htmlContent"] == "<p>Hi</p>"


def test_provider_error_status_is_passed_through(client, sendgrid):
    sendgrid.add(
        "POST",
        "https://api.sendgrid.com/v3/mail/send",
        401,
        json={"errors": [{"message": "The provided authorization grant is invalid"}]},
    )
    response = client.post(
        "/api/send-email",
        json={"to": "customer@example.com", "subject": "Hello", "html": "<p>Hi</p>"},
    )

    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "The provided authorization grant is invalid"}


@pytest.mark.parametrize("value", ["your_key", "changeme", "  "])
def test_placeholder_key_counts_as_unconfigured(client, monkeypatch, value):
    monkeypatch.setattr(settings, "email_api_key", value)
    response = client.post("/api/send-email", json={"to": "a@example.com", "subject": "s", "html": "h"})
    assert response.json()["message"].startswith("Email logged to console")


def test_substitute_escapes_values():
    rendered = substitute("<p>{{name}}</p>{{rowsHtml}}{{missing}}", {"name": "<b>Ann</b>", "rowsHtml": "<tr></tr>"})
    assert rendered == "<p>&lt;b&gt;Ann&lt;/b&gt;</p><tr></tr>"


def test_substitute_without_escaping():
    assert substitute("Hi {{ name }}", {"name": "A & B"}, escape=False) == "Hi A & B"


def test_chat_notification_logged(client):
    response = client.post(
        "/api/chat/notify-provider",
        json={
            "providerEmail": "vendor@example.com",
            "senderName": "Wanjiku",
            "message": "Is this available?",
            "serviceName": "Catering",
        },
    )
    assert response.status_code == 200
    assert response.json()["status"] == "logged"


def test_chat_notification_missing_fields(client):
    response = client.post("/api/chat/notify-customer", json={"customerEmail": "c@example.com", "message": "Hi"})
    assert response.status_code == 400
    assert response.json()["error"] == "Missing required fields: providerName, serviceName"


def test_booking_notification_sent(client, sendgrid):
    response = client.post(
        "/api/booking/notify-customer-reschedule",
        json={
            "customerEmail": "customer@example.com",
            "customerName": "Wanjiku",
            "vendorName": "Mama Oliech Catering",
            "serviceName": "Catering",
            "originalDate": "2026-11-01",
            "newDate": "2026-11-08",
            "newTime": "12:00",
            "reason": "Venue change",
        },
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Notification sent to customer", "status": "sent"}
    body = json.loads(sendgrid.sent("https://api.sendgrid.com")[0].read())
    assert body["subject"] == "Booking Rescheduled - Catering"
    assert "2026-11-08" in body["content"][-1]["value"]


class TestTemplateAdministration:
    def test_requires_admin(self, client):
        assert client.get("/api/email-templates").status_code == 401
        response = client.get("/api/email-templates", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 403
        assert response.json() == {"success": False, "error": "Insufficient permissions"}

    def test_list_defaults(self, client, admin_headers):
        templates = client.get("/api/email-templates", headers=admin_headers).json()
        assert {t["template_type"] for t in templates} == set(DEFAULT_TEMPLATES)
        assert not any(t["customized"] for t in templates)

    def test_unknown_type(self, client, admin_headers):
        assert client.get("/api/email-templates/newsletter", headers=admin_headers).status_code == 404

    def test_override_is_used_and_escaped(self, client, admin_headers, sendgrid):
        response = client.put(
            "/api/email-templates/chat_provider",
            json={"subject": "Message from {{senderName}}", "html": "<p>{{message}}</p>"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["customized"] is True

        client.post(
            "/api/chat/notify-provider",
            json={
                "providerEmail": "vendor@example.com",
                "senderName": "Tom & Jerry",
                "message": "<script>alert(1)</script>",
                "serviceName": "Catering",
            },
        )

        body = json.loads(sendgrid.sent("https://api.sendgrid.com")[0].read())
        assert body["subject"] == "Message from Tom & Jerry"
        assert body["content"][-1]["value"] == "<p>&lt;script&gt;alert(1)&lt;/script&gt;</p>"

    def test_delete_reverts_to_default(self, client, admin_headers):
        client.put(
            "/api/email-templates/order_status",
            json={"subject": "Custom", "html": "<p>Custom</p>"},
            headers=admin_headers,
        )

        assert client.delete("/api/email-templates/order_status", headers=admin_headers).status_code == 204
        template = client.get("/api/email-templates/order_status", headers=admin_headers).json()
        assert template["customized"] is False
        assert template["subject"] == DEFAULT_TEMPLATES["order_status"]["subject"]

        assert client.delete("/api/email-templates/order_status", headers=admin_headers).status_code == 404
