import uuid
from django.db import models


class OrderModel(models.Model):
    # UUID PK exposed in the API, assigned by the domain
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Daily sequential number shown on the kitchen panel
    number = models.PositiveIntegerField()

    class Status(models.TextChoices):
        CREATED = "CREATED"
        PAYMENT_PENDING = "PAYMENT_PENDING"
        PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
        PREPARING = "PREPARING"
        READY = "READY"
        RECEIVED = "RECEIVED"
        FINISHED = "FINISHED"
        CANCELLED = "CANCELLED"

    class PaymentStatus(models.TextChoices):
        PENDING = "PENDING"
        APPROVED = "APPROVED"
        CANCELLED = "CANCELLED"

    status = models.CharField(max_length=32, choices=Status.choices, default=Status.CREATED)
    payment_status = models.CharField(
        max_length=16, choices=PaymentStatus.choices, default=PaymentStatus.PENDING
    )
    payment_status_updated_at = models.DateTimeField(null=True, blank=True)
    client = models.ForeignKey(
        "clients.ClientModel",
        related_name="orders",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
    )
    total_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    payment_qr_code_data = models.TextField(null=True, blank=True)
    payment_external_id = models.CharField(max_length=64, null=True, blank=True)

    # Timestamps come from the domain aggregate, not from auto_now
    created_at = models.DateTimeField(db_index=True)
    updated_at = models.DateTimeField(null=True, blank=True)
    finished_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["status"], name="orders_status_idx")]


class OrderProductModel(models.Model):
    """One product line of an order; ``position`` keeps the ordered sequence."""

    order = models.ForeignKey(OrderModel, related_name="lines", on_delete=models.CASCADE)
    product = models.ForeignKey("products.ProductModel", related_name="+", on_delete=models.PROTECT)
    position = models.PositiveSmallIntegerField()

    class Meta:
        db_table = "order_products"
        ordering = ["position"]
        constraints = [
            models.UniqueConstraint(fields=["order", "position"], name="ux_order_product_position"),
        ]


class IdempotencyKey(models.Model):
    key = models.CharField(max_length=200, primary_key=True)
    request_hash = models.CharField(max_length=64)
    # 0 while the first request is still being processed
    response_status = models.PositiveSmallIntegerField(default=0)
    response_body = models.JSONField(default=dict)
    order = models.ForeignKey(OrderModel, null=True, blank=True, on_delete=models.SET_NULL)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "idempotency_keys"


class DailyOrderCounter(models.Model):
    """Last order number handed out on a calendar day.

    Incremented with a single ``UPDATE`` inside the create transaction, so
    the row stays locked until the order is stored or the creation aborts.
    """

    day = models.DateField(primary_key=True)
    last_number = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "daily_order_counters"
