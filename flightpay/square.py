"""Square invoicing connector.

Small wrapper over the Square REST API (v2) for the calls the club needs:
locations, customer lookup by phone, invoices (create + list).
"""

from __future__ import annotations

import logging
import os
from typing import Any

import requests
from dotenv import load_dotenv

load_dotenv(override=False)

logger = logging.getLogger(__name__)

SQUARE_API_VERSION = "2024-10-17"


class SquareError(RuntimeError):
    pass


def to_e164(phone: str) -> str:
    # the tracker stores US numbers as bare digits
    digits = "".join(ch for ch in phone or "" if ch.isdigit())
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    return phone


class SquareClient:
    def __init__(
        self,
        *,
        access_token: str,
        environment: str = "sandbox",
        timeout_seconds: int = 30,
        currency: str = "USD",
    ) -> None:
        self._access_token = access_token
        self._environment = environment
        self._timeout_seconds = timeout_seconds
        self._currency = currency

    @staticmethod
    def _base_url(environment: str) -> str:
        return (
            "https://connect.squareup.com"
            if environment == "production"
            else "https://connect.squareupsandbox.com"
        )

    @property
    def environment(self) -> str:
        return self._environment

    @classmethod
    def from_env(cls) -> "SquareClient":
        load_dotenv(override=False)
        environment = os.environ.get("SQUARE_ENVIRONMENT", "sandbox")
        token = (
            os.environ.get("SQUARE_ACCESS_TOKEN")
            if environment == "production"
            else os.environ.get("SQUARE_SANDBOX_ACCESS_TOKEN")
        )
        if not token:
            raise ValueError(
                "Missing SQUARE_ACCESS_TOKEN (production) or SQUARE_SANDBOX_ACCESS_TOKEN (sandbox)"
            )
        timeout_seconds = int(os.environ.get("SQUARE_HTTP_TIMEOUT_SECONDS", "30"))
        currency = os.environ.get("SQUARE_CURRENCY", "USD")
        return cls(
            access_token=token,
            environment=environment,
            timeout_seconds=timeout_seconds,
            currency=currency,
        )

    def _request_json(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self._base_url(self._environment)}{path}"
        resp = requests.request(
            method,
            url,
            headers={
                "Authorization": f"Bearer {self._access_token}",
                "Square-Version": SQUARE_API_VERSION,
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            params=params,
            json=body,
            timeout=self._timeout_seconds,
        )
        logger.debug("Square %s %s -> %s", method, path, resp.status_code)

        if resp.status_code >= 400:
            raise SquareError(f"HTTP {resp.status_code}: {resp.text}")
        return resp.json()

    def _paged(self, method: str, path: str, key: str, *, params: dict[str, str] | None = None) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        query = dict(params or {})
        while True:
            data = self._request_json(method, path, params=query or None)
            items.extend(data.get(key) or [])
            cursor = data.get("cursor")
            if not cursor:
                return items
            query["cursor"] = cursor

    # -- locations ------------------------------------------------------------

    def first_location_id(self) -> str | None:
        data = self._request_json("GET", "/v2/locations")
        locations = data.get("locations") or []
        return locations[0].get("id") if locations else None

    # -- customers ------------------------------------------------------------

    def find_customer_id_by_phone(self, phone: str) -> str | None:
        if not phone:
            return None
        data = self._request_json(
            "POST",
            "/v2/customers/search",
            body={"query": {"filter": {"phone_number": {"exact": to_e164(phone)}}}},
        )
        customers = data.get("customers") or []
        return customers[0].get("id") if customers else None

    def list_customers(self) -> list[dict[str, Any]]:
        return self._paged("GET", "/v2/customers", "customers")

    # -- invoices -------------------------------------------------------------

    def _create_order(self, *, location_id: str, customer_id: str, name: str, amount_cents: int, idempotency_key: str) -> str:
        data = self._request_json(
            "POST",
            "/v2/orders",
            body={
                "idempotency_key": f"{idempotency_key}-order",
                "order": {
                    "location_id": location_id,
                    "customer_id": customer_id,
                    "line_items": [
                        {
                            "name": name,
                            "quantity": "1",
                            "base_price_money": {"amount": amount_cents, "currency": self._currency},
                        }
                    ],
                },
            },
        )
        order_id = (data.get("order") or {}).get("id")
        if not order_id:
            raise SquareError("Order create returned no id")
        return order_id

    def create_invoice(
        self,
        *,
        customer_id: str,
        amount: float,
        title: str,
        description: str,
        due_date: str,
        idempotency_key: str,
        location_id: str | None = None,
        publish: bool = True,
    ) -> str:
        location_id = location_id or self.first_location_id()
        if not location_id:
            raise SquareError("No Square location found")

        amount_cents = int(round(float(amount) * 100))
        order_id = self._create_order(
            location_id=location_id,
            customer_id=customer_id,
            name=title,
            amount_cents=amount_cents,
            idempotency_key=idempotency_key,
        )

        data = self._request_json(
            "POST",
            "/v2/invoices",
            body={
                "idempotency_key": idempotency_key,
                "invoice": {
                    "location_id": location_id,
                    "order_id": order_id,
                    "primary_recipient": {"customer_id": customer_id},
                    "payment_requests": [
                        {
                            "request_type": "BALANCE",
                            "due_date": due_date,
                            "automatic_payment_source": "NONE",
                        }
                    ],
                    "delivery_method": "SMS",
                    "accepted_payment_methods": {"card": True},
                    "title": title,
                    "description": description,
                },
            },
        )
        invoice = data.get("invoice") or {}
        invoice_id = invoice.get("id")
        if not invoice_id:
            raise SquareError("Invoice create returned no id")

        if publish:
            self._request_json(
                "POST",
                f"/v2/invoices/{invoice_id}/publish",
                body={"version": invoice.get("version", 0), "idempotency_key": f"{idempotency_key}-publish"},
            )
        logger.info("Created Square invoice %s for customer %s (%s)", invoice_id, customer_id, amount)
        return invoice_id

    def list_invoices(self, location_id: str) -> list[dict[str, Any]]:
        return self._paged("GET", "/v2/invoices", "invoices", params={"location_id": location_id})
