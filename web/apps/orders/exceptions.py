"""Domain errors raised by the ordering core.

Every error carries a stable ``code`` used by the HTTP layer as the
``detail`` of the error response, plus a human readable message.
"""


class OrderingError(Exception):
    """Base class for errors surfaced by the ordering use cases."""

    code = "ORDERING_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ClientNotFound(OrderingError):
    code = "CLIENT_NOT_FOUND"

    def __init__(self, client_id):
        super().__init__(f"client not found with identifier {client_id}")
        self.client_id = client_id


class ProductNotFound(OrderingError):
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id):
        super().__init__(f"product not found with identifier {product_id}")
        self.product_id = product_id


class OrderNotFound(OrderingError):
    """Raised when an order id is unknown, or when the kitchen queue is empty.

    Accepts either the missing identifier or a ready-made message.
    """

    code = "ORDER_NOT_FOUND"

    def __init__(self, order_id=None, message: str | None = None):
        super().__init__(message or f"order not found with identifier {order_id}")
        self.order_id = order_id


class InvalidOrderOperation(OrderingError):
    code = "INVALID_ORDER_OPERATION"


class PaymentServiceUnavailable(OrderingError):
    code = "UPSTREAM_UNAVAILABLE"


class PaymentServiceRejected(OrderingError):
    """The payment service refused the intent (non-retriable 4xx answer)."""

    code = "UPSTREAM_REJECTED"
