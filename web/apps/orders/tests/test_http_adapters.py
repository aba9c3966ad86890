"""Unit tests for the HTTP adapter to the payment service.

These tests verify that the HTTP client handles success, business errors,
retries and network failures correctly by monkeypatching
``httpx.Client.post`` and asserting the adapter behavior.
"""

import uuid
from decimal import Decimal

import httpx
import pytest

from apps.orders.exceptions import PaymentServiceRejected, PaymentServiceUnavailable
from apps.orders.http_adapters import CircuitBreaker, HttpPaymentServiceClient, _payments_cb
from gateway.middleware import REQUEST_ID_CTX


class DummyResp:
    """Minimal httpx-like response stub for adapter tests.

    Args:
        status_code (int): HTTP status code to simulate.
        json_data (dict | None): JSON body to return from ``json()``.
    """

    def __init__(self, status_code=200, json_data=None):
        self.status_code = status_code
        self._json = json_data or {}

    def json(self):
        return self._json


@pytest.fixture(autouse=True)
def fast_retries(settings, monkeypatch):
    settings.HTTP_RETRY_MAX = 2
    settings.HTTP_RETRY_BACKOFF_BASE = 0.0
    monkeypatch.setattr("time.sleep", lambda *a, **k: None, raising=True)
    # reset the shared breaker so tests do not leak state
    _payments_cb.on_success()
    yield
    _payments_cb.on_success()


def test_create_payment_order_ok(monkeypatch):
    """Returns the QR payload and external id; amount is sent in cents."""
    order_id = uuid.uuid4()
    external_id = str(uuid.uuid4())
    seen = {}

    def fake_post(self, url, json=None, headers=None, **kw):
        seen.update(url=url, json=json, headers=headers)
        return DummyResp(201, {"qr_data": "000201...6304ABCD", "external_id": external_id})

    monkeypatch.setattr(httpx.Client, "post", fake_post, raising=True)
    token = REQUEST_ID_CTX.set("rid-1")
    try:
        out = HttpPaymentServiceClient(base_url="http://payments:9002").create_payment_order(
            order_id, Decimal("15.50")
        )
    finally:
        REQUEST_ID_CTX.reset(token)

    assert out.qr_data == "000201...6304ABCD"
    assert out.external_id == external_id
    assert seen["url"] == "http://payments:9002/payment-intents"
    assert seen["json"] == {"order_id": str(order_id), "amount_cents": 1550}
    assert seen["headers"]["X-Request-ID"] == "rid-1"


def test_replayed_intent_is_accepted(monkeypatch):
    """A 200 replay from the service is treated like a fresh intent."""

    def fake_post(self, url, json=None, headers=None, **kw):
        return DummyResp(200, {"qr_data": "qr", "external_id": "ext"})

    monkeypatch.setattr(httpx.Client, "post", fake_post, raising=True)
    out = HttpPaymentServiceClient(base_url="http://x").create_payment_order(uuid.uuid4(), Decimal("1"))
    assert out.external_id == "ext"


def test_retries_on_5xx(monkeypatch):
    calls = {"n": 0}

    def fake_post(self, url, json=None, headers=None, **kw):
        calls["n"] += 1
        if calls["n"] == 1:
            return DummyResp(500)
        assert headers["X-Retry-Count"] == "1"
        return DummyResp(201, {"qr_data": "qr", "external_id": "ext"})

    monkeypatch.setattr(httpx.Client, "post", fake_post, raising=True)
    out = HttpPaymentServiceClient(base_url="http://x").create_payment_order(uuid.uuid4(), Decimal("10"))
    assert out.qr_data == "qr"
    assert calls["n"] == 2


def test_network_error_exhausts_retries(monkeypatch):
    """Transport errors are retried, then surface as PaymentServiceUnavailable."""
    calls = {"n": 0}

    def fake_post(self, url, json=None, headers=None, **kw):
        calls["n"] += 1
        raise httpx.ConnectError("boom")

    monkeypatch.setattr(httpx.Client, "post", fake_post, raising=True)
    with pytest.raises(PaymentServiceUnavailable):
        HttpPaymentServiceClient(base_url="http://x").create_payment_order(uuid.uuid4(), Decimal("10"))
    assert calls["n"] == 3


def test_no_retry_on_4xx(monkeypatch):
    calls = {"n": 0}

    def fake_post(self, url, json=None, headers=None, **kw):
        calls["n"] += 1
        return DummyResp(409, {"detail": "INTENT_AMOUNT_MISMATCH"})

    monkeypatch.setattr(httpx.Client, "post", fake_post, raising=True)
    with pytest.raises(PaymentServiceRejected, match="HTTP 409"):
        HttpPaymentServiceClient(base_url="http://x").create_payment_order(uuid.uuid4(), Decimal("10"))
    assert calls["n"] == 1
    assert _payments_cb.state == "CLOSED"


def test_open_circuit_short_circuits(monkeypatch):
    def fake_post(self, url, json=None, headers=None, **kw):
        raise AssertionError("no call expected while the circuit is open")

    monkeypatch.setattr(httpx.Client, "post", fake_post, raising=True)
    for _ in range(_payments_cb.fail_threshold):
        _payments_cb.on_failure()

    with pytest.raises(PaymentServiceUnavailable, match="circuit is open"):
        HttpPaymentServiceClient(base_url="http://x").create_payment_order(uuid.uuid4(), Decimal("10"))


def test_circuit_breaker_half_open_probe(monkeypatch):
    clock = {"t": 100.0}
    monkeypatch.setattr("time.monotonic", lambda: clock["t"])
    cb = CircuitBreaker("test", fail_threshold=2, reset_timeout=5.0)

    cb.on_failure()
    assert cb.state == "CLOSED"
    cb.on_failure()
    assert cb.state == "OPEN"

    clock["t"] += 5.0
    assert cb.before_call() == "HALF_OPEN"
    with pytest.raises(PaymentServiceUnavailable, match="probing"):
        cb.before_call()

    cb.on_failure()
    assert cb.state == "OPEN"

    clock["t"] += 5.0
    cb.before_call()
    cb.on_success()
    assert cb.state == "CLOSED"
