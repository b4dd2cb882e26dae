"""Shopki API client.

This module defines a small client wrapper around the Shopki REST API
for scripts and back-office tools.  It uses the ``requests`` library
internally and reports failures as values rather than exceptions: every
method returns a tuple ``(data, error)`` where ``error`` is ``None`` on
success and a dictionary with ``status_code`` and ``message`` keys
otherwise.

The client exposes high-level methods for the checkout flow:

* :meth:`create_order` – place an order.
* :meth:`pay_with_mpesa` / :meth:`pay_with_lipana` – start an STK push.
* :meth:`get_payment_status` – read the payment state of an order.
* :meth:`wait_for_payment` – poll until the payment is settled or the
  payment window runs out.

Admin endpoints (status updates, reconciliation, finance statistics)
require the client to be initialised with ``api_key='<admin token>'``,
which is sent as a bearer token.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests


logger = logging.getLogger(__name__)

FINAL_PAYMENT_STATUSES = ("completed", "failed", "expired")

Result = Tuple[Optional[Any], Optional[Dict[str, Any]]]


class ShopkiAPI:
    """Client for interacting with the Shopki API."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 15,
    ) -> None:
        """Initialise the API client.

        Args:
            base_url: Base URL of the server, e.g. ``https://api.shopki.co.ke``.
                The ``/api`` prefix is added by the client.
            api_key: Optional admin token sent as ``Authorization: Bearer``.
            session: Optional requests session.  If not supplied a
                session will be created automatically.
            timeout: Request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(
        self, method: str, path: str, *, params: Dict[str, Any] | None = None,
        json_body: Any | None = None
    ) -> Result:
        """Perform an HTTP request to the API.

        Returns:
            A tuple ``(data, error)``. ``data`` contains the parsed JSON
            response on success and ``error`` is ``None``. On failure,
            ``data`` is ``None`` and ``error`` is a dictionary with keys
            ``status_code`` and ``message`` describing the issue.
        """
        url = f"{self.base_url}/api{path}"
        headers: Dict[str, str] = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            logger.debug("Sending %s request to %s", method, url)
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=json_body,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            if response.content:
                return response.json(), None
            return None, None
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            message = ""
            if exc.response is not None:
                try:
                    err_json = exc.response.json()
                    message = err_json.get("error") or err_json.get("detail") or err_json.get("message") or str(err_json)
                except ValueError:
                    message = exc.response.text
            if not message:
                message = str(exc)
            logger.error("API request failed (%s): %s", status, message)
            return None, {"status_code": status, "message": message}
        except requests.RequestException as exc:
            logger.error("API request failed: %s", exc)
            return None, {"status_code": None, "message": str(exc)}

    # ------------------------------------------------------------------
    # Products and orders
    # ------------------------------------------------------------------
    def list_products(
        self, category: Optional[str] = None, search: Optional[str] = None
    ) -> Tuple[List[Dict[str, Any]], Optional[Dict[str, Any]]]:
        params = {key: value for key, value in (("category", category), ("q", search)) if value}
        data, error = self._request("GET", "/products", params=params or None)
        if error:
            return [], error
        return data or [], None

    def add_review(self, product_id: str, user_id: str, rating: int, comment: Optional[str] = None) -> Result:
        return self._request(
            "POST",
            f"/products/{product_id}/reviews",
            json_body={"user_id": user_id, "rating": rating, "comment": comment},
        )

    def list_services(self, category: Optional[str] = None) -> Tuple[List[Dict[str, Any]], Optional[Dict[str, Any]]]:
        params = {"category": category} if category else None
        data, error = self._request("GET", "/services", params=params)
        if error:
            return [], error
        return data or [], None

    def create_order(self, payload: Dict[str, Any]) -> Result:
        return self._request("POST", "/orders", json_body=payload)

    def get_order(self, order_id: str) -> Result:
        return self._request("GET", f"/orders/{order_id}")

    def get_user_orders(self, user_id: str) -> Tuple[List[Dict[str, Any]], Optional[Dict[str, Any]]]:
        data, error = self._request("GET", f"/orders/user/{user_id}")
        if error:
            return [], error
        return data or [], None

    def update_order_status(self, order_id: str, status: str) -> Result:
        return self._request("PATCH", f"/orders/{order_id}/status", json_body={"status": status})

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------
    def pay_with_mpesa(self, order_id: str, phone_number: str, amount: float) -> Result:
        return self._request(
            "POST",
            "/mpesa/initiate-payment",
            json_body={"phoneNumber": phone_number, "amount": amount, "orderId": order_id},
        )

    def pay_with_lipana(self, order_id: str, phone: str, amount: float) -> Result:
        return self._request(
            "POST",
            "/lipana/initiate-stk-push",
            json_body={"phone": phone, "amount": amount, "orderId": order_id},
        )

    def get_payment_status(self, order_id: str) -> Result:
        return self._request("GET", f"/orders/{order_id}/payment-status")

    def query_mpesa_status(self, checkout_request_id: str) -> Result:
        return self._request("GET", f"/mpesa/payment-status/{checkout_request_id}")

    def expire_payment(self, order_id: str, force: bool = False) -> Result:
        return self._request("POST", f"/orders/{order_id}/expire-payment", json_body={"force": force})

    def reconcile(self, transaction_id: str, status: str = "completed") -> Result:
        return self._request(
            "POST",
            "/lipana/reconcile",
            json_body={"transactionId": transaction_id, "status": status},
        )

    def wait_for_payment(
        self,
        order_id: str,
        *,
        interval: float = 5,
        timeout: Optional[float] = None,
        checkout_request_id: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> Result:
        """Poll the payment status of an order until it is settled.

        Stops when the payment status is ``completed``, ``failed`` or
        ``expired``.  When the server reports no time remaining the
        client asks it to expire the payment.  If ``checkout_request_id``
        is given, Daraja is queried on each round so that a missed
        callback does not leave the order waiting; a completed or failed
        query result ends the wait with that payment status.

        Returns the last payment status snapshot, or an error with
        ``status_code`` ``None`` when ``timeout`` seconds pass first.
        """
        deadline = time.monotonic() + timeout if timeout is not None else None
        while True:
            status, error = self.get_payment_status(order_id)
            if error:
                return None, error
            if status.get("payment_status") in FINAL_PAYMENT_STATUSES:
                return status, None
            if status.get("seconds_remaining") == 0:
                _, error = self.expire_payment(order_id)
                if error and error.get("status_code") != 409:
                    return None, error
                continue
            if checkout_request_id:
                query, error = self.query_mpesa_status(checkout_request_id)
                if error:
                    logger.warning("M-Pesa status query for %s failed: %s", order_id, error["message"])
                elif query and query.get("status") in ("completed", "failed"):
                    logger.info("M-Pesa reports %s for order %s", query["status"], order_id)
                    return dict(status, payment_status=query["status"], mpesa=query.get("data")), None
            if deadline is not None and time.monotonic() >= deadline:
                return None, {"status_code": None, "message": f"Timed out waiting for payment of order {order_id}"}
            sleep(interval)

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------
    def get_finance_statistics(self, period: str = "all") -> Result:
        return self._request("GET", "/statistics/finance", params={"period": period})

    def get_audit_logs(self, **filters: Any) -> Tuple[List[Dict[str, Any]], Optional[Dict[str, Any]]]:
        params = {key: value for key, value in filters.items() if value is not None}
        data, error = self._request("GET", "/audit", params=params or None)
        if error:
            return [], error
        return data or [], None

    def send_email(self, to: str, subject: str, html: str, text: Optional[str] = None) -> Result:
        payload = {"to": to, "subject": subject, "html": html}
        if text:
            payload["text"] = text
        return self._request("POST", "/send-email", json_body=payload)
