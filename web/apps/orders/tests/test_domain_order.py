"""Unit tests for the Order aggregate and its status state machine."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from apps.orders.domain import (
    ALLOWED_TRANSITIONS,
    Order,
    OrderStatus,
    PaymentStatus,
    Product,
    ProductCategory,
)
from apps.orders.exceptions import InvalidOrderOperation

BURGER = Product(1, "X-Burger", ProductCategory.SANDWICH, Decimal("10.00"))
FRIES = Product(2, "Fries", ProductCategory.SIDE, Decimal("5.00"))


def awaiting_payment():
    order = Order()
    order.add_products([BURGER, FRIES])
    order.update_payment_service_integration_data("qr", "ext-1")
    return order


def in_kitchen_queue():
    order = awaiting_payment()
    order.confirm_order_payment()
    order.send_to_preparation()
    return order


def test_total_is_sum_of_product_prices_including_repeats():
    order = Order()
    order.add_products([BURGER, FRIES, FRIES])
    assert order.total_amount == Decimal("20.00")
    assert [p.id for p in order.products] == [1, 2, 2]


def test_order_number_follows_daily_count():
    order = Order()
    order.generate_order_number(0)
    assert order.number == 1 and order.formatted_number == "001"
    order.generate_order_number(41)
    assert order.formatted_number == "042"


def test_payment_integration_data_moves_order_to_payment_pending():
    order = awaiting_payment()
    assert order.status == OrderStatus.PAYMENT_PENDING
    assert order.payment_qr_code_data == "qr"
    assert order.payment_external_id == "ext-1"
    assert order.payment_status == PaymentStatus.PENDING


def test_confirm_payment_then_send_to_preparation():
    order = in_kitchen_queue()
    assert order.payment_status == PaymentStatus.APPROVED
    assert order.payment_status.is_payment_approved
    assert order.payment_status_updated_at is not None
    assert order.status == OrderStatus.PAYMENT_CONFIRMED


def test_confirm_payment_twice_is_rejected():
    order = in_kitchen_queue()
    with pytest.raises(InvalidOrderOperation):
        order.confirm_order_payment()


def test_send_to_preparation_requires_approved_payment():
    order = awaiting_payment()
    with pytest.raises(InvalidOrderOperation):
        order.send_to_preparation()
    assert order.status == OrderStatus.PAYMENT_PENDING


def test_start_preparation_before_payment_is_rejected():
    order = awaiting_payment()
    with pytest.raises(InvalidOrderOperation):
        order.start_preparation()


def test_full_kitchen_lifecycle():
    order = in_kitchen_queue()
    order.start_preparation()
    assert order.status == OrderStatus.PREPARING
    order.finish_preparation()
    assert order.status == OrderStatus.READY
    order.deliver_to_client()
    assert order.status == OrderStatus.RECEIVED
    assert order.finished_at is None
    order.finish_order()
    assert order.status == OrderStatus.FINISHED
    assert order.finished_at == order.updated_at


def test_cannot_finish_before_ready():
    order = in_kitchen_queue()
    order.start_preparation()
    with pytest.raises(InvalidOrderOperation, match="PREPARING to RECEIVED"):
        order.deliver_to_client()
    with pytest.raises(InvalidOrderOperation):
        order.finish_order()


def test_cancel_while_awaiting_payment_cancels_payment():
    order = awaiting_payment()
    order.cancel_order()
    assert order.status == OrderStatus.CANCELLED
    assert order.payment_status == PaymentStatus.CANCELLED
    assert order.finished_at is not None


def test_cancel_after_payment_keeps_payment_approved():
    order = in_kitchen_queue()
    order.start_preparation()
    order.cancel_order()
    assert order.status == OrderStatus.CANCELLED
    assert order.payment_status == PaymentStatus.APPROVED


def test_terminal_states_accept_no_transition():
    assert ALLOWED_TRANSITIONS[OrderStatus.FINISHED] == set()
    assert ALLOWED_TRANSITIONS[OrderStatus.CANCELLED] == set()
    order = awaiting_payment()
    order.cancel_order()
    with pytest.raises(InvalidOrderOperation):
        order.cancel_order()


def test_received_order_cannot_be_cancelled():
    order = in_kitchen_queue()
    order.start_preparation()
    order.finish_preparation()
    order.deliver_to_client()
    with pytest.raises(InvalidOrderOperation):
        order.cancel_order()


def test_waiting_time_counts_until_now_then_freezes_when_finished():
    created = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    order = Order(created_at=created)
    assert order.waiting_time_in_minutes(created + timedelta(minutes=17, seconds=59)) == 17

    order.finished_at = created + timedelta(minutes=25)
    assert order.waiting_time_in_minutes(created + timedelta(hours=3)) == 25
