"""Unit tests for the OrderService use cases.

In-memory fakes stand in for the persistence, lookup and payment ports so
the orchestration can be checked without a database.
"""

import copy
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from apps.orders.domain import (
    Client,
    Order,
    OrderService,
    OrderStatus,
    PaymentServiceOrder,
    PaymentStatus,
    Product,
    ProductCategory,
)
from apps.orders.exceptions import (
    ClientNotFound,
    InvalidOrderOperation,
    OrderNotFound,
    ProductNotFound,
)

NOW = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)

PRODUCTS = {
    1: Product(1, "X-Burger", ProductCategory.SANDWICH, Decimal("10.00")),
    2: Product(2, "Fries", ProductCategory.SIDE, Decimal("5.00")),
    3: Product(3, "Soda", ProductCategory.DRINK, Decimal("6.50")),
}
CLIENTS = {7: Client(7, "Maria Silva", "maria@example.com", "12345678900")}


class FakeOrders:
    """In-memory persistence port; stores copies like a real database would."""

    def __init__(self, orders_today=0):
        self.rows = {}
        self.orders_today = orders_today
        self.count_calls = []
        self.locked = []

    def save_order(self, order):
        self.rows[order.id] = copy.deepcopy(order)
        return copy.deepcopy(order)

    def find_order_by_id(self, order_id, lock=False):
        if lock:
            self.locked.append(order_id)
        row = self.rows.get(order_id)
        return copy.deepcopy(row) if row else None

    def find_orders_by_status_in(self, statuses):
        return [copy.deepcopy(o) for o in self.rows.values() if o.status in statuses]

    def count_orders_between(self, start, end, reserve=False):
        self.count_calls.append((start, end))
        count = self.orders_today
        if reserve:
            self.orders_today += 1
        return count


class FakePayments:
    def __init__(self):
        self.calls = []

    def create_payment_order(self, order_id, amount):
        self.calls.append((order_id, amount))
        return PaymentServiceOrder(qr_data=f"QR-{order_id}", external_id=f"ext-{len(self.calls)}")


class FakeClients:
    def find_client_by_id(self, client_id):
        try:
            return CLIENTS[client_id]
        except KeyError:
            raise ClientNotFound(client_id) from None


class FakeProducts:
    def find_product_by_id(self, product_id):
        try:
            return PRODUCTS[product_id]
        except KeyError:
            raise ProductNotFound(product_id) from None


@pytest.fixture
def orders():
    return FakeOrders()


@pytest.fixture
def payments():
    return FakePayments()


@pytest.fixture
def service(orders, payments):
    return OrderService(orders, payments, FakeClients(), FakeProducts(), clock=lambda: NOW)


def stored(orders, order_id) -> Order:
    return orders.rows[uuid.UUID(str(order_id))]


# ---- create_order ----

def test_create_order_first_of_the_day(service, orders, payments):
    """Scenario: products priced 10.00 and 5.00 on the first order of the day."""
    out = service.create_order([1, 2])

    assert out.total_amount == Decimal("15.00")
    assert out.formatted_number == "001"
    assert out.status == OrderStatus.PAYMENT_PENDING.value
    assert out.payment_status == PaymentStatus.PENDING.value
    assert out.client is None
    assert [p.id for p in out.products] == [1, 2]
    assert out.payment_qr_code_data == f"QR-{out.id}"
    assert out.external_id == "ext-1"
    assert out.id in orders.rows


def test_create_order_registers_exactly_one_payment_intent(service, payments):
    out = service.create_order([1, 3, 3])
    assert payments.calls == [(out.id, Decimal("23.00"))]


def test_create_order_number_is_count_of_today_plus_one(payments):
    orders = FakeOrders(orders_today=12)
    service = OrderService(orders, payments, FakeClients(), FakeProducts(), clock=lambda: NOW)

    out = service.create_order([2])

    assert out.formatted_number == "013"
    start, end = orders.count_calls[0]
    assert start == datetime(2024, 5, 1, 0, 0, tzinfo=timezone.utc)
    assert end == datetime(2024, 5, 1, 23, 59, 59, 999999, tzinfo=timezone.utc)


def test_orders_built_before_either_is_saved_get_distinct_numbers(service, orders):
    first = service._create_order_with_products([1])
    second = service._create_order_with_products([2])

    assert (first.number, second.number) == (1, 2)
    assert orders.orders_today == 2


def test_created_at_comes_from_the_service_clock(service, orders):
    out = service.create_order([1])

    assert out.created_at == NOW
    assert stored(orders, out.id).created_at == NOW
    assert out.waiting_time_in_minutes == 0


def test_create_order_with_client(service, orders):
    out = service.create_order([1], client_id=7)
    assert out.client.name == "Maria Silva"
    assert stored(orders, out.id).client == CLIENTS[7]


def test_create_order_unknown_product_registers_nothing(service, orders, payments):
    with pytest.raises(ProductNotFound):
        service.create_order([1, 99])
    assert payments.calls == []
    assert orders.rows == {}


def test_create_order_unknown_client(service, orders, payments):
    with pytest.raises(ClientNotFound):
        service.create_order([1], client_id=404)
    assert payments.calls == []
    assert orders.rows == {}


def test_create_order_without_products_is_invalid(service):
    with pytest.raises(InvalidOrderOperation):
        service.create_order([])


# ---- list_queued_orders ----

def test_empty_queue_raises_order_not_found(service):
    with pytest.raises(OrderNotFound):
        service.list_queued_orders()


def test_queue_ignores_orders_outside_preparation(service, orders):
    service.create_order([1])  # still awaiting payment
    with pytest.raises(OrderNotFound):
        service.list_queued_orders()


def test_queue_sorted_by_presentation_then_newest_first(service, orders):
    def seed(status, minutes_ago):
        order = Order(
            status=status,
            payment_status=PaymentStatus.APPROVED,
            created_at=NOW - timedelta(minutes=minutes_ago),
        )
        order.add_products([PRODUCTS[1]])
        orders.save_order(order)
        return order.id

    confirmed_old = seed(OrderStatus.PAYMENT_CONFIRMED, 30)
    preparing_old = seed(OrderStatus.PREPARING, 20)
    ready = seed(OrderStatus.READY, 15)
    confirmed_new = seed(OrderStatus.PAYMENT_CONFIRMED, 5)
    preparing_new = seed(OrderStatus.PREPARING, 10)
    seed(OrderStatus.FINISHED, 1)

    queue = service.list_queued_orders()

    assert [o.id for o in queue] == [
        ready,
        preparing_new,
        preparing_old,
        confirmed_new,
        confirmed_old,
    ]
    assert queue[0].waiting_time_in_minutes == 15


# ---- confirm_payment ----

def test_confirm_payment_unknown_order(service):
    with pytest.raises(OrderNotFound):
        service.confirm_payment(uuid.uuid4())


def test_confirm_payment_persists_both_mutations(service, orders):
    out = service.create_order([1, 2])

    assert service.confirm_payment(out.id) is None

    row = stored(orders, out.id)
    assert row.payment_status == PaymentStatus.APPROVED
    assert row.status == OrderStatus.PAYMENT_CONFIRMED
    assert orders.locked == [out.id]


def test_confirm_payment_twice_leaves_order_untouched(service, orders):
    out = service.create_order([1])
    service.confirm_payment(out.id)
    before = copy.deepcopy(stored(orders, out.id))

    with pytest.raises(InvalidOrderOperation):
        service.confirm_payment(out.id)
    assert stored(orders, out.id) == before


# ---- get_order_payment_status ----

def test_payment_status_view(service):
    out = service.create_order([1])

    pending = service.get_order_payment_status(out.id)
    assert pending.payment_status == "PENDING"
    assert pending.is_payment_approved is False

    service.confirm_payment(out.id)
    approved = service.get_order_payment_status(out.id)
    assert approved.id == out.id
    assert approved.payment_status == "APPROVED"
    assert approved.is_payment_approved is True
    assert approved.payment_status_updated_at is not None


def test_payment_status_unknown_order(service):
    with pytest.raises(OrderNotFound):
        service.get_order_payment_status(uuid.uuid4())


# ---- update_order_status ----

def test_update_status_unknown_name(service):
    out = service.create_order([1])
    with pytest.raises(InvalidOrderOperation):
        service.update_order_status(out.id, "BOGUS")


def test_update_status_unknown_name_checked_before_lookup(service):
    with pytest.raises(InvalidOrderOperation):
        service.update_order_status(uuid.uuid4(), "BOGUS")


def test_update_status_unknown_order(service):
    with pytest.raises(OrderNotFound):
        service.update_order_status(uuid.uuid4(), "READY")


def test_start_preparation_requires_confirmed_payment(service, orders):
    out = service.create_order([1])
    with pytest.raises(InvalidOrderOperation):
        service.update_order_status(out.id, "PREPARING")
    assert stored(orders, out.id).status == OrderStatus.PAYMENT_PENDING


@pytest.mark.parametrize("name", ["CREATED", "PAYMENT_PENDING", "PAYMENT_CONFIRMED"])
def test_statuses_without_a_transition_are_rejected(service, name):
    out = service.create_order([1])
    service.confirm_payment(out.id)
    with pytest.raises(InvalidOrderOperation, match="cannot update order status"):
        service.update_order_status(out.id, name)


def test_update_status_walks_the_kitchen_lifecycle(service, orders):
    out = service.create_order([1])
    service.confirm_payment(out.id)

    assert service.update_order_status(out.id, "PREPARING").status == "PREPARING"
    assert service.update_order_status(out.id, "ready").status == "READY"
    assert service.update_order_status(out.id, " RECEIVED ").status == "RECEIVED"
    finished = service.update_order_status(out.id, "FINISHED")

    assert finished.status == "FINISHED"
    assert finished.finished_at is not None
    assert stored(orders, out.id).status == OrderStatus.FINISHED


def test_cancel_from_kitchen(service):
    out = service.create_order([1])
    service.confirm_payment(out.id)
    service.update_order_status(out.id, "PREPARING")

    cancelled = service.update_order_status(out.id, "CANCELLED")

    assert cancelled.status == "CANCELLED"
    assert cancelled.payment_status == "APPROVED"


def test_get_order(service):
    out = service.create_order([3], client_id=7)
    again = service.get_order(out.id)
    assert again.id == out.id
    assert again.total_amount == Decimal("6.50")
    assert again.client.id == 7
