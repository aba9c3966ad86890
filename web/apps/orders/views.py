"""HTTP views for the orders app.

This module contains DRF API views used by the orders service. Views are
kept intentionally small: they validate requests (via Pydantic), delegate to
the domain service, and translate domain errors into HTTP responses.

The views obtain a configured ``OrderService`` from
``providers.get_order_service()``, which wires the ORM repositories with
either the HTTP payment client (``HttpPaymentServiceClient``) or the
in-process ``PaymentServiceStub`` depending on runtime settings.

Mutating use cases run inside ``transaction.atomic()`` so the order row
locked by the repository stays locked until the change is saved.

Error responses carry ``{"detail": <code>, "message": <text>}``:
404 for unknown clients, products and orders (and an empty kitchen queue),
422 for invalid order operations, 502 when the payment service rejects
the payment intent, 503 when it is unavailable and 400 for payload
validation errors.

Idempotency: when an ``Idempotency-Key`` header is provided, the create
endpoint stores the first response and replays it for retries with the same
payload. Reusing the key with a different payload returns HTTP 409.
"""

import logging

from django.db import transaction
from pydantic import ValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from . import providers
from .exceptions import (
    ClientNotFound,
    InvalidOrderOperation,
    OrderNotFound,
    OrderingError,
    PaymentServiceRejected,
    PaymentServiceUnavailable,
    ProductNotFound,
)
from .idempotency import IdempotencyConflict, finalize, get_or_create_idempotent
from .schemas import CreateOrderDTO, UpdateOrderStatusDTO

logger = logging.getLogger("orders")

ERROR_STATUS = {
    ClientNotFound: status.HTTP_404_NOT_FOUND,
    ProductNotFound: status.HTTP_404_NOT_FOUND,
    OrderNotFound: status.HTTP_404_NOT_FOUND,
    InvalidOrderOperation: status.HTTP_422_UNPROCESSABLE_ENTITY,
    PaymentServiceRejected: status.HTTP_502_BAD_GATEWAY,
    PaymentServiceUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _error_response(exc: OrderingError) -> Response:
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    if status_code >= 500:
        logger.warning("upstream failure", extra={"code": exc.code, "reason": exc.message})
    return Response({"detail": exc.code, "message": exc.message}, status=status_code)


def _invalid_payload(exc: ValidationError) -> Response:
    return Response(
        {"detail": "INVALID_PAYLOAD", "message": str(exc)},
        status=status.HTTP_400_BAD_REQUEST,
    )


class OrdersAPIView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders_read"


class OrdersCollectionView(OrdersAPIView):
    """Create an order.

    Validates the payload, resolves products and client, registers the
    payment intent, persists the order and returns its view. Supports
    idempotency via the ``Idempotency-Key`` header.
    """

    throttle_scope = "orders_create"

    def post(self, request):
        """Create a new order.

        Args:
            request (Request): DRF request with JSON body
                ``{"client_id": int | null, "product_ids": [int, ...]}`` and an
                optional ``Idempotency-Key`` header.

        Returns:
            Response: One of the following responses.
            - 201 with the order view when the order is created.
            - the stored status and body, with ``Idempotent-Replay: true``,
              when the same idempotency key and payload are retried.
            - 409 with {detail: "IDEMPOTENCY_CONFLICT"} when the key is
              reused with a different payload, or
              {detail: "IDEMPOTENCY_IN_PROGRESS"} while the first request
              is still running.
            - 400 for DTO validation errors.
            - 404 when a product or the client does not exist.
            - 502 with {detail: "UPSTREAM_REJECTED"} when the payment
              service rejects the intent.
            - 503 with {detail: "UPSTREAM_UNAVAILABLE"} when the payment
              service is unavailable.
        """
        idem_key = request.headers.get("Idempotency-Key")

        # 1) Pydantic validation
        try:
            dto = CreateOrderDTO.model_validate(request.data)
        except ValidationError as e:
            return _invalid_payload(e)

        # 2) Idempotency get-or-create
        rec = None
        if idem_key:
            try:
                existing, rec = get_or_create_idempotent(idem_key, dto.model_dump())
            except IdempotencyConflict:
                return Response({"detail": "IDEMPOTENCY_CONFLICT"}, status=status.HTTP_409_CONFLICT)
            if existing:
                if not rec.response_status:
                    return Response({"detail": "IDEMPOTENCY_IN_PROGRESS"}, status=status.HTTP_409_CONFLICT)
                resp = Response(rec.response_body, status=rec.response_status)
                resp["Idempotent-Replay"] = "true"
                return resp

        # 3) Domain
        service = providers.get_order_service()
        try:
            with transaction.atomic():
                out = service.create_order(dto.product_ids, client_id=dto.client_id)
        except OrderingError as e:
            resp = _error_response(e)
            if rec:
                finalize(rec, resp.status_code, resp.data)
            return resp
        except Exception:
            # Let a later retry with the same key run again
            if rec:
                rec.delete()
            raise

        # 4) Response
        body = out.model_dump(mode="json")
        if rec:
            finalize(rec, status.HTTP_201_CREATED, body, order_id=out.id)
        return Response(body, status=status.HTTP_201_CREATED)


class QueuedOrdersView(OrdersAPIView):
    """Kitchen queue: orders in preparation, ready ones first."""

    def get(self, request):
        try:
            orders = providers.get_order_service().list_queued_orders()
        except OrderingError as e:
            return _error_response(e)
        return Response([o.model_dump(mode="json") for o in orders])


class RetrieveOrderView(OrdersAPIView):
    def get(self, request, oid):
        try:
            order = providers.get_order_service().get_order(oid)
        except OrderingError as e:
            return _error_response(e)
        return Response(order.model_dump(mode="json"))


class ConfirmPaymentView(OrdersAPIView):
    """Confirm the payment of an order and send it to the kitchen queue."""

    throttle_scope = "orders_update"

    def post(self, request, oid):
        service = providers.get_order_service()
        try:
            with transaction.atomic():
                service.confirm_payment(oid)
        except OrderingError as e:
            return _error_response(e)
        return Response(status=status.HTTP_204_NO_CONTENT)


class OrderPaymentStatusView(OrdersAPIView):
    def get(self, request, oid):
        try:
            view = providers.get_order_service().get_order_payment_status(oid)
        except OrderingError as e:
            return _error_response(e)
        return Response(view.model_dump(mode="json"))


class OrderStatusView(OrdersAPIView):
    """Move an order through the kitchen lifecycle.

    Body: ``{"status": "PREPARING" | "READY" | "RECEIVED" | "FINISHED" |
    "CANCELLED"}``. Illegal moves for the current status return 422.
    """

    throttle_scope = "orders_update"

    def patch(self, request, oid):
        try:
            dto = UpdateOrderStatusDTO.model_validate(request.data)
        except ValidationError as e:
            return _invalid_payload(e)

        service = providers.get_order_service()
        try:
            with transaction.atomic():
                order = service.update_order_status(oid, dto.status)
        except OrderingError as e:
            return _error_response(e)
        return Response(order.model_dump(mode="json"))
