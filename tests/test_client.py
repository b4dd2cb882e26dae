import json

import requests

from shopki_client import ShopkiAPI


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload
        self.content = json.dumps(payload).encode() if payload is not None else b""
        self.text = self.content.decode()

    def json(self):
        if not self.content:
            raise ValueError("No JSON body")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


class StubSession:
    """Returns queued responses and records every request."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, params=None, json=None, headers=None, timeout=None):
        self.calls.append({"method": method, "url": url, "params": params, "json": json, "headers": headers})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_api(responses, **kwargs):
    session = StubSession(responses)
    return ShopkiAPI(base_url="https://api.shopki.test/", session=session, **kwargs), session


def test_create_order_posts_payload():
    api, session = make_api([FakeResponse(201, {"id": "o1", "total": 3300})])

    data, error = api.create_order({"user_id": "u1"})

    assert error is None
    assert data["id"] == "o1"
    assert session.calls[0]["method"] == "POST"
    assert session.calls[0]["url"] == "https://api.shopki.test/api/orders"
    assert session.calls[0]["json"] == {"user_id": "u1"}


def test_admin_token_sent_as_bearer():
    api, session = make_api([FakeResponse(200, {"period": "all"})], api_key="tok")

    api.get_finance_statistics()

    assert session.calls[0]["headers"] == {"Authorization": "Bearer tok"}
    assert session.calls[0]["params"] == {"period": "all"}


def test_http_error_is_returned():
    api, _ = make_api([FakeResponse(404, {"success": False, "error": "Order x not found"})])

    data, error = api.get_order("x")

    assert data is None
    assert error == {"status_code": 404, "message": "Order x not found"}


def test_connection_error_is_returned():
    api, _ = make_api([requests.ConnectionError("connection refused")])

    data, error = api.get_payment_status("o1")

    assert data is None
    assert error["status_code"] is None
    assert "connection refused" in error["message"]


def test_list_helpers_default_to_empty_list_on_error():
    api, _ = make_api([FakeResponse(500, {"success": False, "error": "Internal server error"})])

    products, error = api.list_products()

    assert products == []
    assert error["status_code"] == 500


def test_wait_for_payment_expires_stale_payment():
    api, session = make_api(
        [
            FakeResponse(200, {"order_id": "o1", "payment_status": "payment_processing", "seconds_remaining": 12}),
            FakeResponse(200, {"order_id": "o1", "payment_status": "payment_processing", "seconds_remaining": 0}),
            FakeResponse(200, {"id": "o1", "payment_status": "expired"}),
            FakeResponse(200, {"order_id": "o1", "payment_status": "expired", "seconds_remaining": None}),
        ]
    )
    sleeps = []

    status, error = api.wait_for_payment("o1", interval=2, sleep=sleeps.append)

    assert error is None
    assert status["payment_status"] == "expired"
    assert sleeps == [2]
    assert [call["url"].rsplit("/", 1)[-1] for call in session.calls] == [
        "payment-status",
        "payment-status",
        "expire-payment",
        "payment-status",
    ]


def test_wait_for_payment_stops_when_mpesa_reports_completion():
    api, session = make_api(
        [
            FakeResponse(200, {"order_id": "o1", "payment_status": "payment_processing", "seconds_remaining": 200}),
            FakeResponse(200, {"success": True, "status": "completed", "data": {"ResultCode": "0"}}),
        ]
    )
    sleeps = []

    status, error = api.wait_for_payment("o1", checkout_request_id="ws_CO_9", sleep=sleeps.append)

    assert error is None
    assert status["payment_status"] == "completed"
    assert status["mpesa"] == {"ResultCode": "0"}
    assert sleeps == []
    assert [call["url"] for call in session.calls] == [
        "https://api.shopki.test/api/orders/o1/payment-status",
        "https://api.shopki.test/api/mpesa/payment-status/ws_CO_9",
    ]


def test_wait_for_payment_stops_when_mpesa_reports_failure():
    api, _ = make_api(
        [
            FakeResponse(200, {"order_id": "o1", "payment_status": "payment_processing", "seconds_remaining": 200}),
            FakeResponse(200, {"success": True, "status": "failed", "data": {"ResultCode": "1032"}}),
        ]
    )

    status, error = api.wait_for_payment("o1", checkout_request_id="ws_CO_9", sleep=lambda _: None)

    assert error is None
    assert status["payment_status"] == "failed"


def test_wait_for_payment_keeps_polling_while_mpesa_is_pending():
    api, session = make_api(
        [
            FakeResponse(200, {"order_id": "o1", "payment_status": "payment_processing", "seconds_remaining": 200}),
            FakeResponse(200, {"success": False, "status": "pending", "data": {"errorCode": "500.001.1001"}}),
            FakeResponse(200, {"order_id": "o1", "payment_status": "completed"}),
        ]
    )
    sleeps = []

    status, error = api.wait_for_payment("o1", checkout_request_id="ws_CO_9", sleep=sleeps.append)

    assert error is None
    assert status["payment_status"] == "completed"
    assert sleeps == [5]
    assert len(session.calls) == 3


def test_wait_for_payment_times_out():
    api, _ = make_api(
        [FakeResponse(200, {"order_id": "o1", "payment_status": "payment_processing", "seconds_remaining": 200})]
    )

    status, error = api.wait_for_payment("o1", timeout=0, sleep=lambda _: None)

    assert status is None
    assert error["status_code"] is None
    assert "Timed out" in error["message"]


def test_wait_for_payment_tolerates_expiry_conflict():
    api, _ = make_api(
        [
            FakeResponse(200, {"order_id": "o1", "payment_status": "payment_processing", "seconds_remaining": 0}),
            FakeResponse(409, {"success": False, "error": "Payment for order o1 is already completed"}),
            FakeResponse(200, {"order_id": "o1", "payment_status": "completed"}),
        ]
    )

    status, error = api.wait_for_payment("o1", sleep=lambda _: None)

    assert error is None
    assert status["payment_status"] == "completed"
