"""Repository layer for persisting orders.

This module implements the order persistence ports on top of the Django
ORM. It maps between ``OrderModel`` rows and the domain ``Order`` aggregate
so the domain layer is not coupled to ORM details.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional

from django.db import transaction
from django.db.models import F, Prefetch

from apps.clients.repository import to_domain as client_to_domain
from apps.products.repository import to_domain as product_to_domain

from .domain import Order, OrderPersistencePort, OrderStatus, PaymentStatus
from .models import DailyOrderCounter, OrderModel, OrderProductModel


class OrderRepository(OrderPersistencePort):
    """Repository that persists Order domain objects using Django ORM.

    Product lines are written once, when the order is first stored; an
    order's products never change afterwards.
    """

    def save_order(self, order: Order) -> Order:
        """Insert or update the order row and return the stored state.

        Args:
            order: Domain ``Order`` instance to persist.

        Returns:
            The order as read back from the database.
        """
        with transaction.atomic():
            obj, created = OrderModel.objects.update_or_create(
                id=order.id,
                defaults={
                    "number": order.number,
                    "status": order.status.value,
                    "payment_status": order.payment_status.value,
                    "payment_status_updated_at": order.payment_status_updated_at,
                    "client_id": order.client.id if order.client else None,
                    "total_amount": order.total_amount,
                    "payment_qr_code_data": order.payment_qr_code_data,
                    "payment_external_id": order.payment_external_id,
                    "created_at": order.created_at,
                    "updated_at": order.updated_at,
                    "finished_at": order.finished_at,
                },
            )
            if created:
                OrderProductModel.objects.bulk_create(
                    [
                        OrderProductModel(order=obj, product_id=product.id, position=position)
                        for position, product in enumerate(order.products)
                    ]
                )
        return self.find_order_by_id(order.id)

    def find_order_by_id(self, order_id: uuid.UUID, lock: bool = False) -> Optional[Order]:
        """Load an order by id.

        With ``lock=True`` the order row is selected ``FOR UPDATE``; callers
        must be inside ``transaction.atomic()``.
        """
        qs = self._queryset()
        if lock:
            qs = qs.select_for_update(of=("self",))
        obj = qs.filter(pk=order_id).first()
        return self._to_domain(obj) if obj else None

    def find_orders_by_status_in(self, statuses: Iterable[OrderStatus]) -> List[Order]:
        qs = self._queryset().filter(status__in=[s.value for s in statuses])
        return [self._to_domain(obj) for obj in qs]

    def count_orders_between(self, start: datetime, end: datetime, reserve: bool = False) -> int:
        """Count orders created in ``[start, end]``.

        With ``reserve=True`` the day's ``DailyOrderCounter`` row (keyed by
        ``start``'s date and seeded from the stored orders on first use) is
        bumped with ``UPDATE ... SET last_number = last_number + 1`` and the
        previous value is returned. The update row-locks the counter until
        the surrounding transaction ends, which serializes order numbering
        for the day.
        """
        created = OrderModel.objects.filter(created_at__range=(start, end))
        if not reserve:
            return created.count()

        day = start.date()
        with transaction.atomic():
            DailyOrderCounter.objects.get_or_create(day=day, defaults={"last_number": created.count()})
            DailyOrderCounter.objects.filter(day=day).update(last_number=F("last_number") + 1)
            return DailyOrderCounter.objects.get(day=day).last_number - 1

    @staticmethod
    def _queryset():
        return OrderModel.objects.select_related("client").prefetch_related(
            Prefetch("lines", queryset=OrderProductModel.objects.select_related("product"))
        )

    @staticmethod
    def _to_domain(obj: OrderModel) -> Order:
        return Order(
            id=obj.id,
            number=obj.number,
            status=OrderStatus(obj.status),
            payment_status=PaymentStatus(obj.payment_status),
            payment_status_updated_at=obj.payment_status_updated_at,
            client=client_to_domain(obj.client) if obj.client_id else None,
            products=[product_to_domain(line.product) for line in obj.lines.all()],
            total_amount=Decimal(obj.total_amount),
            created_at=obj.created_at,
            updated_at=obj.updated_at,
            finished_at=obj.finished_at,
            payment_qr_code_data=obj.payment_qr_code_data,
            payment_external_id=obj.payment_external_id,
        )
