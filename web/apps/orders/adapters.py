"""In-process stub adapter for the payment service port.

The stub implements ``PaymentServicePort`` without any network calls. It is
intended for unit tests and local development where deterministic behavior
is useful and the payment service is not running.
"""

import uuid
from decimal import Decimal

from .domain import PaymentServiceOrder, PaymentServicePort


class PaymentServiceStub(PaymentServicePort):
    """Stub implementation of ``PaymentServicePort``.

    Issues a random external reference and a readable QR payload that
    embeds the order id and the amount. Every call counts as a new intent.
    """

    def create_payment_order(self, order_id: uuid.UUID, amount: Decimal) -> PaymentServiceOrder:
        """Register a fake payment intent.

        Args:
            order_id: Identifier of the order being paid.
            amount: Amount to collect.

        Returns:
            PaymentServiceOrder: QR payload ``STUB|<order_id>|<amount>`` and a
            random UUID as external reference.
        """
        external_id = str(uuid.uuid4())
        return PaymentServiceOrder(
            qr_data=f"STUB|{order_id}|{amount:.2f}",
            external_id=external_id,
        )
