"""Order model type definitions for database operations."""

from datetime import datetime
from enum import Enum
from typing import TypedDict


class OrderStatus(str, Enum):
    """Fulfilment status of an order."""

    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


# Orders in these states only accept refund bookkeeping
CLOSED_ORDER_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.REFUNDED})


class OrderItem(TypedDict):
    """Snapshot of a purchased product, stored in the items JSONB array.

    Prices are in minor units (kopiykas).
    """

    product_id: str
    name: str
    price: int
    quantity: int


class Order(TypedDict):
    """Order table row representation.

    Represents an order stored in the orders table.
    Maps directly to the database schema.
    """

    id: str
    order_number: str
    status: str
    payment_status: str
    total: int
    currency: str
    customer_name: str | None
    customer_email: str | None
    customer_phone: str | None
    items: list[OrderItem]
    created_at: datetime
    updated_at: datetime


class OrderUpdate(TypedDict, total=False):
    """Data the payment workflow may change on an order."""

    status: str
    payment_status: str
    updated_at: str
