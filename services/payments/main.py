"""Payments service API built with FastAPI.

Mock of the external payment provider used by the order service. It
registers one payment intent per order and hands back the QR payload the
client scans, plus an external reference. Validation is performed with
Pydantic models, while persistence is delegated to the SQLAlchemy-backed
repository in ``repo.PaymentsRepo``.
"""

import logging
import time
import uuid

from fastapi import FastAPI, HTTPException, Request, Response
from pydantic import BaseModel, Field
from pythonjsonlogger import jsonlogger
from sqlalchemy import text

from repo import AmountMismatch, PaymentsRepo, engine, init_db

app = FastAPI(title="Payments Service")

logger = logging.getLogger("payments")
if not logger.handlers:
    h = logging.StreamHandler()
    h.setFormatter(jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s"))
    logger.addHandler(h)
    logger.setLevel(logging.INFO)


@app.on_event("startup")
def _startup_db():
    # wait briefly until the database accepts connections
    deadline = time.time() + 30
    while True:
        try:
            with engine.connect() as conn:
                conn.execute(text("select 1"))
            break
        except Exception:
            if time.time() > deadline:
                raise
            time.sleep(1)
    init_db()


class CreateIntentRequest(BaseModel):
    """Request body for the create-intent endpoint.

    Attributes:
        order_id: Identifier of the order being paid.
        amount_cents: Positive amount in minor currency units (cents).
    """

    order_id: uuid.UUID
    amount_cents: int = Field(gt=0)


class IntentResponse(BaseModel):
    """A registered payment intent.

    Attributes:
        external_id: Reference of the intent; the order service stores it.
        order_id: Order the intent belongs to.
        amount_cents: Amount to collect, in cents.
        status: Intent status (PENDING until paid).
        qr_data: EMV QR payload to render for the client.
    """

    external_id: uuid.UUID
    order_id: uuid.UUID
    amount_cents: int
    status: str
    qr_data: str


@app.get("/health")
def health():
    """Liveness/health probe endpoint."""
    return {"ok": True}


@app.post("/payment-intents", response_model=IntentResponse, status_code=201)
def create_payment_intent(req: CreateIntentRequest, request: Request, response: Response):
    """Register the payment intent of an order.

    Calls are idempotent per order: repeating the request for an order that
    already has an intent with the same amount returns that intent with
    HTTP 200 instead of 201.

    Args:
        req: Validated body with ``order_id`` and ``amount_cents``.

    Returns:
        IntentResponse: The created or existing intent.

    Raises:
        HTTPException: With status 409 when the order already has an intent
            for a different amount.
    """
    try:
        intent, created = PaymentsRepo().get_or_create_intent(req.order_id, req.amount_cents)
    except AmountMismatch:
        raise HTTPException(status_code=409, detail="INTENT_AMOUNT_MISMATCH")

    if not created:
        response.status_code = 200
    logger.info(
        "payment intent registered" if created else "payment intent replayed",
        extra={
            "request_id": getattr(request.state, "request_id", "-"),
            "order_id": str(req.order_id),
            "external_id": str(intent["external_id"]),
        },
    )
    return IntentResponse(**intent)


@app.get("/payment-intents/{external_id}", response_model=IntentResponse)
def get_payment_intent(external_id: uuid.UUID):
    intent = PaymentsRepo().get_intent(external_id)
    if intent is None:
        raise HTTPException(status_code=404, detail="INTENT_NOT_FOUND")
    return IntentResponse(**intent)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = rid
    try:
        response = await call_next(request)
    finally:
        logger.info("request handled", extra={"request_id": rid, "path": request.url.path, "method": request.method})
    response.headers["X-Request-ID"] = rid
    return response
