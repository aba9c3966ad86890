"""Service provider helpers for wiring OrderService with its ports.

This module exposes a small factory function ``get_order_service`` that
returns a configured ``OrderService`` instance. The persistence and lookup
ports are always backed by the Django ORM repositories; the payment port is
the HTTP client when ``settings.USE_HTTP_ADAPTERS`` is truthy and the
in-process stub otherwise (tests and local development).
"""

from django.conf import settings

from apps.clients.repository import ClientRepository
from apps.products.repository import ProductRepository

from .adapters import PaymentServiceStub
from .domain import OrderService
from .http_adapters import HttpPaymentServiceClient
from .repository import OrderRepository


def get_order_service() -> OrderService:
    """Return a configured OrderService instance.

    Returns:
        OrderService: A service instance with appropriate ports.
    """
    if getattr(settings, "USE_HTTP_ADAPTERS", True):
        payments = HttpPaymentServiceClient()
    else:
        payments = PaymentServiceStub()

    return OrderService(
        orders=OrderRepository(),
        payments=payments,
        clients=ClientRepository(),
        products=ProductRepository(),
    )
