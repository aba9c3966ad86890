"""Domain models, ports and service for orders.

This module contains the order aggregate with its status state machine,
the read-only client and product entities the aggregate references,
protocol definitions (ports) for persistence, lookups and the external
payment service, and the domain service implementing the ordering use cases.
Nothing in here knows about Django or HTTP.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Callable, Iterable, List, Optional, Protocol

from .exceptions import InvalidOrderOperation, OrderNotFound
from .schemas import (
    ClientResponseDTO,
    OrderPaymentStatusResponseDTO,
    OrderResponseDTO,
    ProductResponseDTO,
)

logger = logging.getLogger("orders")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _local_now() -> datetime:
    return datetime.now().astimezone()


# ---- Enums ----
class OrderStatus(str, Enum):
    """Enumeration of the possible order statuses.

    The lifecycle runs CREATED -> PAYMENT_PENDING -> PAYMENT_CONFIRMED ->
    PREPARING -> READY -> RECEIVED -> FINISHED, with CANCELLED reachable
    from every state before the client receives the order.
    """

    CREATED = "CREATED"
    PAYMENT_PENDING = "PAYMENT_PENDING"
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    PREPARING = "PREPARING"
    READY = "READY"
    RECEIVED = "RECEIVED"
    FINISHED = "FINISHED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    CANCELLED = "CANCELLED"

    @property
    def is_payment_approved(self) -> bool:
        return self is PaymentStatus.APPROVED


class ProductCategory(str, Enum):
    SANDWICH = "SANDWICH"
    SIDE = "SIDE"
    DRINK = "DRINK"
    DESSERT = "DESSERT"


# Orders shown on the kitchen queue.
IN_PREPARATION_STATUSES = (
    OrderStatus.PAYMENT_CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
)

# Rank used to order the kitchen queue; lower ranks are listed first.
PRESENTATION_ORDER = {
    OrderStatus.READY: 1,
    OrderStatus.PREPARING: 2,
    OrderStatus.PAYMENT_CONFIRMED: 3,
}

ALLOWED_TRANSITIONS = {
    OrderStatus.CREATED: {OrderStatus.PAYMENT_PENDING, OrderStatus.CANCELLED},
    OrderStatus.PAYMENT_PENDING: {OrderStatus.PAYMENT_CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.PAYMENT_CONFIRMED: {OrderStatus.PREPARING, OrderStatus.CANCELLED},
    OrderStatus.PREPARING: {OrderStatus.READY, OrderStatus.CANCELLED},
    OrderStatus.READY: {OrderStatus.RECEIVED, OrderStatus.CANCELLED},
    OrderStatus.RECEIVED: {OrderStatus.FINISHED},
    OrderStatus.FINISHED: set(),
    OrderStatus.CANCELLED: set(),
}


# ---- Entities / DTOs ----
@dataclass(frozen=True)
class Client:
    """A registered client. Read-only to the ordering core."""

    id: int
    name: str
    email: str | None = None
    document: str | None = None


@dataclass(frozen=True)
class Product:
    """A menu product. Read-only to the ordering core.

    Attributes:
        id: Catalog identifier.
        name: Display name.
        category: Menu section the product belongs to.
        price: Unit price with two decimal places.
        description: Optional free text shown on the menu.
    """

    id: int
    name: str
    category: ProductCategory
    price: Decimal
    description: str = ""


@dataclass(frozen=True)
class PaymentServiceOrder:
    """Payment intent registered with the external payment service.

    Attributes:
        qr_data: Payload the client scans to pay.
        external_id: Reference of the intent on the payment service side.
    """

    qr_data: str
    external_id: str


@dataclass
class Order:
    """Order aggregate.

    The identifier is assigned on instantiation so the payment intent can
    reference the order before it is persisted. Status changes go through
    the transition methods, which enforce ``ALLOWED_TRANSITIONS`` and raise
    ``InvalidOrderOperation`` on illegal moves.

    Attributes:
        id: Public identifier of the order.
        number: Sequential number of the order within its calendar day.
        status: Current OrderStatus.
        payment_status: Current PaymentStatus.
        payment_status_updated_at: When the payment status last changed.
        client: Client who placed the order, if identified.
        products: Ordered products; the same product may repeat.
        total_amount: Sum of the product prices.
        created_at: Creation timestamp (timezone aware).
        updated_at: Timestamp of the last status change.
        finished_at: When the order reached FINISHED or CANCELLED.
        payment_qr_code_data: QR payload issued by the payment service.
        payment_external_id: Payment reference issued by the payment service.
    """

    id: uuid.UUID = field(default_factory=uuid.uuid4)
    number: int = 0
    status: OrderStatus = OrderStatus.CREATED
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_status_updated_at: datetime | None = None
    client: Client | None = None
    products: List[Product] = field(default_factory=list)
    total_amount: Decimal = Decimal("0.00")
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime | None = None
    finished_at: datetime | None = None
    payment_qr_code_data: str | None = None
    payment_external_id: str | None = None

    @property
    def formatted_number(self) -> str:
        return f"{self.number:03d}"

    def add_products(self, products: Iterable[Product]) -> None:
        self.products.extend(products)
        self.total_amount = sum((p.price for p in self.products), Decimal("0.00"))

    def generate_order_number(self, orders_today: int) -> None:
        """Assign the next daily number given how many orders exist today."""
        self.number = orders_today + 1

    def identify_client(self, client: Client) -> None:
        self.client = client

    def update_payment_service_integration_data(self, qr_data: str, external_id: str) -> None:
        """Store the payment intent data and mark the order as awaiting payment."""
        self.payment_qr_code_data = qr_data
        self.payment_external_id = external_id
        self._transition_to(OrderStatus.PAYMENT_PENDING)

    def confirm_order_payment(self) -> None:
        if self.payment_status is not PaymentStatus.PENDING:
            raise InvalidOrderOperation(
                f"cannot confirm payment of order {self.id}: payment is {self.payment_status.value}"
            )
        now = _utcnow()
        self.payment_status = PaymentStatus.APPROVED
        self.payment_status_updated_at = now
        self.updated_at = now

    def send_to_preparation(self) -> None:
        self._require_payment_approved()
        self._transition_to(OrderStatus.PAYMENT_CONFIRMED)

    def start_preparation(self) -> None:
        self._require_payment_approved()
        self._transition_to(OrderStatus.PREPARING)

    def finish_preparation(self) -> None:
        self._transition_to(OrderStatus.READY)

    def deliver_to_client(self) -> None:
        self._transition_to(OrderStatus.RECEIVED)

    def finish_order(self) -> None:
        self._transition_to(OrderStatus.FINISHED)
        self.finished_at = self.updated_at

    def cancel_order(self) -> None:
        self._transition_to(OrderStatus.CANCELLED)
        self.finished_at = self.updated_at
        if self.payment_status is PaymentStatus.PENDING:
            self.payment_status = PaymentStatus.CANCELLED
            self.payment_status_updated_at = self.updated_at

    def waiting_time_in_minutes(self, now: datetime | None = None) -> int:
        """Minutes elapsed since creation, frozen once the order is closed."""
        end = self.finished_at or now or _utcnow()
        return max(0, int((end - self.created_at).total_seconds() // 60))

    def _require_payment_approved(self) -> None:
        if not self.payment_status.is_payment_approved:
            raise InvalidOrderOperation(
                f"order {self.id} cannot go to preparation: payment is {self.payment_status.value}"
            )

    def _transition_to(self, target: OrderStatus) -> None:
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidOrderOperation(
                f"cannot change order status from {self.status.value} to {target.value}"
            )
        self.status = target
        self.updated_at = _utcnow()


# Status names accepted by the status update use case and the transition
# each one triggers.
STATUS_TRANSITIONS = {
    OrderStatus.PREPARING: Order.start_preparation,
    OrderStatus.READY: Order.finish_preparation,
    OrderStatus.RECEIVED: Order.deliver_to_client,
    OrderStatus.FINISHED: Order.finish_order,
    OrderStatus.CANCELLED: Order.cancel_order,
}


# ---- Ports (DIP) ----
class SaveOrderPort(Protocol):
    def save_order(self, order: Order) -> Order:
        """Persist the order (insert or update) and return the stored state."""
        raise NotImplementedError()


class FindOrderByIdPort(Protocol):
    def find_order_by_id(self, order_id: uuid.UUID, lock: bool = False) -> Optional[Order]:
        """Load an order by id.

        Args:
            order_id: Identifier of the order.
            lock: When True the stored row is locked for the rest of the
                surrounding transaction.

        Returns:
            The order, or None if no order has that id.
        """
        raise NotImplementedError()


class FindOrdersByStatusPort(Protocol):
    def find_orders_by_status_in(self, statuses: Iterable[OrderStatus]) -> List[Order]:
        raise NotImplementedError()


class CountOrdersBetweenDatesPort(Protocol):
    def count_orders_between(self, start: datetime, end: datetime, reserve: bool = False) -> int:
        """Count orders whose creation time lies in ``[start, end]``.

        With ``reserve=True`` the call also claims the next number of the
        day: concurrent or repeated reserving calls for the same day never
        return the same count. Callers must be inside
        ``transaction.atomic()`` so an aborted creation releases its claim.
        """
        raise NotImplementedError()


class OrderPersistencePort(
    SaveOrderPort,
    FindOrderByIdPort,
    FindOrdersByStatusPort,
    CountOrdersBetweenDatesPort,
    Protocol,
):
    """All persistence operations the ordering use cases rely on."""


class PaymentServicePort(Protocol):
    """Port describing the external payment service.

    Implementers register a payment intent for an order and return the QR
    payload the client pays with along with the external reference.
    """

    def create_payment_order(self, order_id: uuid.UUID, amount: Decimal) -> PaymentServiceOrder:
        """Register a payment intent.

        Args:
            order_id: Identifier of the order being paid.
            amount: Amount to collect.

        Returns:
            PaymentServiceOrder with the QR payload and external reference.

        Raises:
            PaymentServiceUnavailable: When the service cannot be reached.
            PaymentServiceRejected: When the service refuses the intent.
        """
        raise NotImplementedError()


class ClientLookupPort(Protocol):
    def find_client_by_id(self, client_id: int) -> Client:
        """Return the client or raise ``ClientNotFound``."""
        raise NotImplementedError()


class ProductLookupPort(Protocol):
    def find_product_by_id(self, product_id: int) -> Product:
        """Return the product or raise ``ProductNotFound``."""
        raise NotImplementedError()


# ---- Domain service ----
class OrderService:
    """Domain service implementing the ordering use cases.

    The service orchestrates the order aggregate, the persistence port, the
    client and product lookups, and the payment service. It does not open
    transactions; callers wrap mutating use cases in one so the row lock
    taken by ``find_order_by_id(lock=True)`` lasts until the save.
    """

    def __init__(
        self,
        orders: OrderPersistencePort,
        payments: PaymentServicePort,
        clients: ClientLookupPort,
        products: ProductLookupPort,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize the service with required dependencies.

        Args:
            orders: Persistence port for orders.
            payments: Payment service port used to register payment intents.
            clients: Lookup used to resolve client ids.
            products: Lookup used to resolve product ids.
            clock: Returns the current local, timezone aware time. Defines
                the calendar day used for order numbering.
        """
        self.orders = orders
        self.payments = payments
        self.clients = clients
        self.products = products
        self.clock = clock or _local_now

    def create_order(self, product_ids: List[int], client_id: int | None = None) -> OrderResponseDTO:
        """Create an order, register its payment intent and persist it.

        Raises:
            ProductNotFound: If any product id is unknown.
            ClientNotFound: If ``client_id`` is given and unknown.
            InvalidOrderOperation: If no product id is given.
            PaymentServiceUnavailable: If the payment service is unreachable.
            PaymentServiceRejected: If the payment service refuses the intent.
        """
        order = self._create_order_with_products(product_ids)
        if client_id is not None:
            order.identify_client(self.clients.find_client_by_id(client_id))
        self._create_payment_service_order(order)
        persisted = self.orders.save_order(order)
        logger.info(
            "order created",
            extra={
                "order_id": str(persisted.id),
                "order_number": persisted.formatted_number,
                "with_client": persisted.client is not None,
            },
        )
        return self._to_order_response(persisted)

    def list_queued_orders(self) -> List[OrderResponseDTO]:
        """Return the kitchen queue.

        Orders are sorted by ``PRESENTATION_ORDER`` and, within the same
        status, newest first.

        Raises:
            OrderNotFound: If no order is in preparation.
        """
        queued = self.orders.find_orders_by_status_in(IN_PREPARATION_STATUSES)
        if not queued:
            raise OrderNotFound(message="no orders in preparation found")

        queued = sorted(queued, key=lambda o: o.created_at, reverse=True)
        queued.sort(key=lambda o: PRESENTATION_ORDER[o.status])
        return [self._to_order_response(o) for o in queued]

    def get_order(self, order_id: uuid.UUID) -> OrderResponseDTO:
        return self._to_order_response(self._get_order_by_id(order_id))

    def confirm_payment(self, order_id: uuid.UUID) -> None:
        """Approve the order payment and queue the order for the kitchen.

        Both mutations are applied in memory before a single save, so a
        failing guard leaves the stored order untouched.

        Raises:
            OrderNotFound: If the order does not exist.
            InvalidOrderOperation: If the payment is not pending or the order
                is not awaiting payment.
        """
        order = self._get_order_by_id(order_id, lock=True)
        order.confirm_order_payment()
        order.send_to_preparation()
        self.orders.save_order(order)
        logger.info(
            "order payment confirmed; order sent to preparation",
            extra={"order_id": str(order.id)},
        )

    def get_order_payment_status(self, order_id: uuid.UUID) -> OrderPaymentStatusResponseDTO:
        order = self._get_order_by_id(order_id)
        return OrderPaymentStatusResponseDTO(
            id=order.id,
            payment_status=order.payment_status.value,
            payment_status_updated_at=order.payment_status_updated_at,
            is_payment_approved=order.payment_status.is_payment_approved,
        )

    def update_order_status(self, order_id: uuid.UUID, status_name: str) -> OrderResponseDTO:
        """Move an order to the requested status.

        Args:
            order_id: Identifier of the order.
            status_name: Name of the target OrderStatus, case-insensitive.

        Returns:
            The order view after the transition.

        Raises:
            InvalidOrderOperation: If the name is not a status, the status
                cannot be requested directly, or the transition is illegal
                from the current status.
            OrderNotFound: If the order does not exist.
        """
        try:
            target = OrderStatus[status_name.strip().upper()]
        except KeyError:
            raise InvalidOrderOperation(f"there is no order status named {status_name!r}") from None

        order = self._get_order_by_id(order_id, lock=True)
        transition = STATUS_TRANSITIONS.get(target)
        if transition is None:
            raise InvalidOrderOperation(f"cannot update order status to {target.value}")

        previous = order.status
        transition(order)
        persisted = self.orders.save_order(order)
        logger.info(
            "order status updated",
            extra={
                "order_id": str(order.id),
                "from_status": previous.value,
                "to_status": persisted.status.value,
            },
        )
        return self._to_order_response(persisted)

    # --- Helpers ---
    def _create_order_with_products(self, product_ids: List[int]) -> Order:
        if not product_ids:
            raise InvalidOrderOperation("an order needs at least one product")
        products = [self.products.find_product_by_id(pid) for pid in product_ids]

        now = self.clock()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        end_of_day = now.replace(hour=23, minute=59, second=59, microsecond=999999)
        orders_today = self.orders.count_orders_between(start_of_day, end_of_day, reserve=True)

        order = Order(created_at=now)
        order.add_products(products)
        order.generate_order_number(orders_today)
        return order

    def _create_payment_service_order(self, order: Order) -> None:
        payment = self.payments.create_payment_order(order.id, order.total_amount)
        order.update_payment_service_integration_data(payment.qr_data, payment.external_id)

    def _get_order_by_id(self, order_id: uuid.UUID, lock: bool = False) -> Order:
        order = self.orders.find_order_by_id(order_id, lock=lock)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    def _to_order_response(self, order: Order) -> OrderResponseDTO:
        client = None
        if order.client is not None:
            client = ClientResponseDTO(
                id=order.client.id,
                name=order.client.name,
                email=order.client.email,
                document=order.client.document,
            )
        return OrderResponseDTO(
            id=order.id,
            payment_status=order.payment_status.value,
            status=order.status.value,
            client=client,
            products=[
                ProductResponseDTO(
                    id=p.id,
                    name=p.name,
                    category=p.category.value,
                    price=p.price,
                    description=p.description,
                )
                for p in order.products
            ],
            created_at=order.created_at,
            total_amount=order.total_amount,
            updated_at=order.updated_at,
            finished_at=order.finished_at,
            waiting_time_in_minutes=order.waiting_time_in_minutes(self.clock()),
            formatted_number=order.formatted_number,
            payment_qr_code_data=order.payment_qr_code_data,
            external_id=order.payment_external_id,
        )
