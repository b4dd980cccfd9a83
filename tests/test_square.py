from __future__ import annotations

import json

import pytest

from flightpay.square import SquareClient, SquareError, to_e164


class _FakeResp:
    def __init__(self, status_code: int, payload: dict, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text or json.dumps(payload)

    def json(self):
        return self._payload


def _client() -> SquareClient:
    return SquareClient(access_token="tok", environment="sandbox")


def test_to_e164() -> None:
    assert to_e164("5551112222") == "+15551112222"
    assert to_e164("(555) 111-2222") == "+15551112222"
    assert to_e164("15551112222") == "+15551112222"
    assert to_e164("123") == "123"


def test_from_env_sandbox(square_env) -> None:
    client = SquareClient.from_env()
    assert client.environment == "sandbox"


def test_from_env_requires_token(monkeypatch) -> None:
    monkeypatch.setenv("SQUARE_ENVIRONMENT", "production")
    monkeypatch.delenv("SQUARE_ACCESS_TOKEN", raising=False)
    with pytest.raises(ValueError):
        SquareClient.from_env()


def test_customer_search_uses_e164(monkeypatch) -> None:
    seen = {}

    def fake_request(method, url, headers=None, params=None, json=None, timeout=None):
        seen.update(method=method, url=url, headers=headers, body=json, timeout=timeout)
        return _FakeResp(200, {"customers": [{"id": "CUST1"}]})

    monkeypatch.setattr("requests.request", fake_request)

    assert _client().find_customer_id_by_phone("5551112222") == "CUST1"
    assert seen["method"] == "POST"
    assert seen["url"] == "https://connect.squareupsandbox.com/v2/customers/search"
    assert seen["headers"]["Authorization"] == "Bearer tok"
    assert seen["body"] == {"query": {"filter": {"phone_number": {"exact": "+15551112222"}}}}
    assert seen["timeout"] == 30


def test_customer_not_found(monkeypatch) -> None:
    monkeypatch.setattr("requests.request", lambda *a, **k: _FakeResp(200, {}))
    assert _client().find_customer_id_by_phone("5551112222") is None
    assert _client().find_customer_id_by_phone("") is None


def test_http_error_raises(monkeypatch) -> None:
    monkeypatch.setattr("requests.request", lambda *a, **k: _FakeResp(401, {"errors": []}, text="unauthorized"))
    with pytest.raises(SquareError, match="401"):
        _client().first_location_id()


def test_list_invoices_follows_cursor(monkeypatch) -> None:
    calls = []

    def fake_request(method, url, headers=None, params=None, json=None, timeout=None):
        calls.append(dict(params or {}))
        if len(calls) == 1:
            return _FakeResp(200, {"invoices": [{"id": "I1"}], "cursor": "next"})
        return _FakeResp(200, {"invoices": [{"id": "I2"}]})

    monkeypatch.setattr("requests.request", fake_request)

    invoices = _client().list_invoices("LOC1")
    assert [i["id"] for i in invoices] == ["I1", "I2"]
    assert calls == [{"location_id": "LOC1"}, {"location_id": "LOC1", "cursor": "next"}]


def test_create_invoice_order_then_invoice_then_publish(monkeypatch) -> None:
    calls = []

    def fake_request(method, url, headers=None, params=None, json=None, timeout=None):
        path = url.replace("https://connect.squareupsandbox.com", "")
        calls.append((method, path, json))
        if path == "/v2/locations":
            return _FakeResp(200, {"locations": [{"id": "LOC1"}]})
        if path == "/v2/orders":
            return _FakeResp(200, {"order": {"id": "ORD1"}})
        if path == "/v2/invoices":
            return _FakeResp(200, {"invoice": {"id": "INV1", "version": 0}})
        return _FakeResp(200, {"invoice": {"id": "INV1", "version": 1}})

    monkeypatch.setattr("requests.request", fake_request)

    inv_id = _client().create_invoice(
        customer_id="CUST1",
        amount=170,
        title="AZ Flight Basketball - Alex, Sam",
        description="Monthly club fee",
        due_date="2025-12-08",
        idempotency_key="CUST1-2025-12",
    )
    assert inv_id == "INV1"
    assert [c[1] for c in calls] == ["/v2/locations", "/v2/orders", "/v2/invoices", "/v2/invoices/INV1/publish"]

    order = calls[1][2]
    assert order["idempotency_key"] == "CUST1-2025-12-order"
    assert order["order"]["line_items"][0]["base_price_money"] == {"amount": 17000, "currency": "USD"}

    invoice = calls[2][2]
    assert invoice["idempotency_key"] == "CUST1-2025-12"
    assert invoice["invoice"]["order_id"] == "ORD1"
    assert invoice["invoice"]["primary_recipient"] == {"customer_id": "CUST1"}
    assert invoice["invoice"]["payment_requests"][0]["due_date"] == "2025-12-08"

    assert calls[3][2] == {"version": 0, "idempotency_key": "CUST1-2025-12-publish"}


def test_create_invoice_without_location(monkeypatch) -> None:
    monkeypatch.setattr("requests.request", lambda *a, **k: _FakeResp(200, {"locations": []}))
    with pytest.raises(SquareError):
        _client().create_invoice(
            customer_id="C", amount=95, title="t", description="d", due_date="2025-12-08", idempotency_key="k",
        )
