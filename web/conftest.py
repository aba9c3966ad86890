from decimal import Decimal

import pytest

from apps.clients.models import ClientModel
from apps.products.models import ProductModel


@pytest.fixture(autouse=True)
def use_stubs_for_tests(settings):
    settings.USE_HTTP_ADAPTERS = False


@pytest.fixture
def burger(db):
    return ProductModel.objects.create(
        name="X-Burger", category=ProductModel.Category.SANDWICH, price=Decimal("10.00")
    )


@pytest.fixture
def fries(db):
    return ProductModel.objects.create(
        name="Fries", category=ProductModel.Category.SIDE, price=Decimal("5.00")
    )


@pytest.fixture
def soda(db):
    return ProductModel.objects.create(
        name="Soda", category=ProductModel.Category.DRINK, price=Decimal("6.50")
    )


@pytest.fixture
def client_model(db):
    return ClientModel.objects.create(name="Maria Silva", email="maria@example.com", document="12345678900")
