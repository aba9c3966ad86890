"""Pydantic schemas for orders.

This module exposes the request validation schemas used by the orders API
and the response views assembled by the ordering use cases.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class CreateOrderDTO(BaseModel):
    """Schema for creating an order.

    Attributes:
        client_id: Optional identifier of the client placing the order.
            Anonymous orders leave it empty.
        product_ids: Identifiers of the ordered products, in order. The same
            product may appear more than once.
    """

    client_id: int | None = Field(default=None, gt=0)
    product_ids: list[int] = Field(min_length=1)

    @field_validator("product_ids")
    @classmethod
    def validate_product_ids(cls, v: list[int]) -> list[int]:
        """Reject non-positive product identifiers.

        Raises:
            ValueError: When any identifier is zero or negative.
        """
        if any(pid <= 0 for pid in v):
            raise ValueError("Product ids must be positive")
        return v


class UpdateOrderStatusDTO(BaseModel):
    """Schema for the status update endpoint.

    Attributes:
        status: Name of the target order status (e.g. ``READY``).
    """

    status: str = Field(min_length=1, max_length=32)


# ---- Response views ----
class ClientResponseDTO(BaseModel):
    id: int
    name: str
    email: str | None = None
    document: str | None = None


class ProductResponseDTO(BaseModel):
    id: int
    name: str
    category: str
    price: Decimal
    description: str = ""


class OrderResponseDTO(BaseModel):
    """Order view returned by the create, read and status update endpoints.

    ``formatted_number`` is the daily sequential number padded to three
    digits, as shown on the kitchen panel. ``external_id`` is the payment
    reference issued by the payment service.
    """

    id: UUID
    payment_status: str
    status: str
    client: ClientResponseDTO | None = None
    products: list[ProductResponseDTO]
    created_at: datetime
    total_amount: Decimal
    updated_at: datetime | None = None
    finished_at: datetime | None = None
    waiting_time_in_minutes: int
    formatted_number: str
    payment_qr_code_data: str | None = None
    external_id: str | None = None


class OrderPaymentStatusResponseDTO(BaseModel):
    id: UUID
    payment_status: str
    payment_status_updated_at: datetime | None = None
    is_payment_approved: bool
