"""HTTP adapter client with retries, circuit breaker, and context headers.

This module implements the payment service port using ``httpx``. It adds:

- Request correlation: propagates ``X-Request-ID`` from a ContextVar set by
    the gateway middleware.
- Circuit breaker for the payment service to avoid hammering an unhealthy
    dependency, with HALF_OPEN probing after a timeout.
- Simple retry policy with exponential backoff for transport errors and 5xx.

The payment service treats a repeated intent for the same order and amount
as a replay, so retrying a POST cannot register two intents for one order.
"""

import logging
import threading
import time
import uuid
from decimal import Decimal
from typing import Optional

import httpx
from django.conf import settings

from gateway.middleware import REQUEST_ID_CTX

from .domain import PaymentServiceOrder, PaymentServicePort
from .exceptions import PaymentServiceRejected, PaymentServiceUnavailable

logger = logging.getLogger("orders.payments")


# ---------------- Circuit Breaker ---------------- #

CLOSED, OPEN, HALF_OPEN = "CLOSED", "OPEN", "HALF_OPEN"


class CircuitBreaker:
    """Thread-safe circuit breaker guarding calls to the payment service.

    ``fail_threshold`` consecutive failures open the circuit and calls are
    refused with ``PaymentServiceUnavailable``. Once ``reset_timeout``
    seconds have passed the breaker lets a single probe through
    (HALF_OPEN): a success closes it again, a failure reopens it at once.
    """

    def __init__(self, name: str, fail_threshold: int, reset_timeout: float):
        self.name = name
        self.fail_threshold = fail_threshold
        self.reset_timeout = reset_timeout
        self._lock = threading.RLock()
        self._failures = 0
        self._state = CLOSED
        self._opened_at = 0.0
        self._probing = False

    @property
    def state(self) -> str:
        with self._lock:
            if self._state == OPEN and time.monotonic() - self._opened_at >= self.reset_timeout:
                self._state = HALF_OPEN
                self._probing = False
            return self._state

    def before_call(self) -> str:
        """Admit a call or refuse it; returns the state the call ran under.

        Raises:
            PaymentServiceUnavailable: While the circuit is open, or when a
                HALF_OPEN probe is already running.
        """
        with self._lock:
            current = self.state
            if current == OPEN:
                raise PaymentServiceUnavailable(f"{self.name} circuit is open")
            if current == HALF_OPEN:
                if self._probing:
                    raise PaymentServiceUnavailable(f"{self.name} circuit is probing")
                self._probing = True
            return current

    def on_success(self):
        with self._lock:
            self._failures = 0
            self._state = CLOSED
            self._probing = False

    def on_failure(self):
        with self._lock:
            self._failures += 1
            tripped = self._state == HALF_OPEN or (
                self._state == CLOSED and self._failures >= self.fail_threshold
            )
            if tripped:
                self._state = OPEN
                self._opened_at = time.monotonic()
                self._probing = False
                logger.warning("circuit opened", extra={"circuit": self.name, "failures": self._failures})

    def on_finish(self):
        """Release the HALF_OPEN probe slot once the guarded call returns."""
        with self._lock:
            if self._state == HALF_OPEN:
                self._probing = False


_payments_cb = CircuitBreaker(
    "payments",
    getattr(settings, "HTTP_CIRCUIT_FAIL_THRESHOLD", 5),
    getattr(settings, "HTTP_CIRCUIT_RESET_TIMEOUT", 30.0),
)


# ---------------- Helpers ---------------- #

def _request_headers(extra: Optional[dict] = None) -> dict:
    """Build base headers including X-Request-ID and any extras.

    Args:
        extra: Optional dict of additional headers to include.

    Returns:
        dict: Final headers dictionary for the outgoing request.
    """
    headers: dict[str, str] = {}
    rid = REQUEST_ID_CTX.get()
    if rid and rid != "-":
        headers["X-Request-ID"] = rid
    if extra:
        headers.update(extra)
    return headers


def _retry_policy():
    """Return retry configuration as (max_retries, backoff_base_seconds)."""
    return (
        getattr(settings, "HTTP_RETRY_MAX", 3),
        getattr(settings, "HTTP_RETRY_BACKOFF_BASE", 0.15),
    )


def _should_retry(resp: Optional[httpx.Response], exc: Optional[Exception]) -> bool:
    """Retry only on transport exceptions or HTTP 5xx."""
    if exc is not None:
        return True
    if resp is not None and 500 <= resp.status_code < 600:
        return True
    return False


def _to_cents(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1")))


# ---------------- Payment Service Adapter ---------------- #

class HttpPaymentServiceClient(PaymentServicePort):
    """HTTP client for the payment service with retry and circuit breaker."""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.PAYMENTS_BASE_URL
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECS

    def create_payment_order(self, order_id: uuid.UUID, amount: Decimal) -> PaymentServiceOrder:
        """Register a payment intent for the order.

        Applies a circuit-breaker precheck and retries on transport/5xx.
        Business mappings:
        - 200 or 201 → PaymentServiceOrder built from ``qr_data`` and
          ``external_id``
        - other 4xx → ``PaymentServiceRejected``, not counted as a circuit
          failure

        Args:
            order_id: Identifier of the order being paid.
            amount: Amount to collect; sent in cents.

        Returns:
            PaymentServiceOrder: QR payload and external reference.

        Raises:
            PaymentServiceUnavailable: When the circuit is open or the
                service is still failing after the retries.
            PaymentServiceRejected: For non-retriable 4xx responses.
        """
        payload = {"order_id": str(order_id), "amount_cents": _to_cents(amount)}
        max_retries, backoff = _retry_policy()
        tries = 0

        state = _payments_cb.before_call()
        headers = _request_headers({"X-Circuit-State": state, "X-Retry-Count": "0"})

        try:
            with httpx.Client(timeout=self.timeout) as client:
                while True:
                    resp = None
                    exc = None
                    try:
                        resp = client.post(f"{self.base_url}/payment-intents", json=payload, headers=headers)
                        if resp.status_code in (200, 201):
                            _payments_cb.on_success()
                            data = resp.json()
                            return PaymentServiceOrder(
                                qr_data=data["qr_data"],
                                external_id=str(data["external_id"]),
                            )
                        if not _should_retry(resp, None):
                            _payments_cb.on_success()  # business outcome, not a circuit failure
                            raise PaymentServiceRejected(
                                f"payment service rejected the intent: HTTP {resp.status_code}"
                            )
                    except httpx.RequestError as e:
                        exc = e

                    tries += 1
                    headers["X-Retry-Count"] = str(tries)

                    if tries > max_retries:
                        _payments_cb.on_failure()
                        reason = repr(exc) if exc else f"HTTP {resp.status_code}"
                        raise PaymentServiceUnavailable(f"payment service failed after {tries} attempts: {reason}")

                    logger.warning(
                        "retrying payment intent",
                        extra={"order_id": str(order_id), "attempt": tries},
                    )
                    sleep_s = backoff * (2 ** (tries - 1))
                    cap = getattr(settings, "HTTP_RETRY_MAX_SLEEP", 0.5)
                    time.sleep(min(sleep_s, cap))

        finally:
            _payments_cb.on_finish()
